"""
Common enums and value types: organization kinds, membership roles,
account roles and the error envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class OrgKind(str, Enum):
    STORE = "store"
    PROVIDER = "provider"
    CORPORATION = "corporation"


class Privilege(str, Enum):
    ADMIN = "admin"
    VIEWER = "viewer"
    TECH = "tech"
    STAFF = "staff"


class AccountRole(str, Enum):
    """Self-declared role from the identity provider's account metadata."""

    STORE = "store"
    MAINTENANCE = "maintenance"

    @classmethod
    def from_metadata(cls, raw: Optional[str]) -> "AccountRole":
        """Normalize raw metadata; `provider` is an alias, anything else is a store."""
        value = str(raw or "").strip().lower()
        if value in ("maintenance", "provider"):
            return cls.MAINTENANCE
        return cls.STORE


# Role strings are `<prefix>_<privilege>`
ROLE_PREFIXES: dict[OrgKind, str] = {
    OrgKind.CORPORATION: "corp",
    OrgKind.STORE: "store",
    OrgKind.PROVIDER: "provider",
}

ALLOWED_PRIVILEGES: dict[OrgKind, tuple[Privilege, ...]] = {
    OrgKind.CORPORATION: (Privilege.ADMIN, Privilege.VIEWER),
    OrgKind.STORE: (Privilege.ADMIN, Privilege.VIEWER, Privilege.STAFF),
    OrgKind.PROVIDER: (Privilege.ADMIN, Privilege.TECH),
}

# Lower sorts first when picking the highest-privilege membership
_PRIVILEGE_RANK = {
    Privilege.ADMIN: 0,
    Privilege.VIEWER: 1,
    Privilege.TECH: 1,
    Privilege.STAFF: 1,
}
_KIND_RANK = {
    OrgKind.CORPORATION: 0,
    OrgKind.PROVIDER: 1,
    OrgKind.STORE: 2,
}


@dataclass(frozen=True)
class MembershipRole:
    """A membership role as an explicit (organization kind, privilege) pair."""

    kind: OrgKind
    privilege: Privilege

    def __post_init__(self) -> None:
        if self.privilege not in ALLOWED_PRIVILEGES[self.kind]:
            raise ValueError(
                f"Privilege '{self.privilege.value}' is not valid for {self.kind.value} orgs"
            )

    @classmethod
    def parse(cls, raw: str) -> "MembershipRole":
        """Parse a stored role string such as `provider_tech`."""
        prefix, _, privilege = (raw or "").partition("_")
        for kind, kind_prefix in ROLE_PREFIXES.items():
            if kind_prefix == prefix:
                try:
                    return cls(kind=kind, privilege=Privilege(privilege))
                except ValueError:
                    break
        raise ValueError(f"Unknown membership role '{raw}'")

    @classmethod
    def owner(cls, kind: OrgKind) -> "MembershipRole":
        return cls(kind=kind, privilege=Privilege.ADMIN)

    @property
    def value(self) -> str:
        return f"{ROLE_PREFIXES[self.kind]}_{self.privilege.value}"

    @property
    def rank(self) -> tuple[int, int]:
        return (_PRIVILEGE_RANK[self.privilege], _KIND_RANK[self.kind])

    @property
    def can_act(self) -> bool:
        """Viewers are read-only."""
        return self.privilege != Privilege.VIEWER

    def __str__(self) -> str:
        return self.value


ALL_ROLES: list[str] = [
    MembershipRole(kind=kind, privilege=privilege).value
    for kind, privileges in ALLOWED_PRIVILEGES.items()
    for privilege in privileges
]


class ErrorBody(BaseModel):
    code: str
    message: str
    status: int


class ErrorResponse(BaseModel):
    error: ErrorBody
