"""
Authentication for the coordination API.

The identity provider is external: it issues signed JWTs carrying the
user id, email, verification state and self-declared account role. This
module verifies those tokens and builds the SessionContext every service
receives explicitly.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import Unauthenticated
from app.core.redis import get_redis
from app.models.membership import OrgMembership
from app.models.organization import Organization
from app.models.user import User
from cartcare_shared.schemas.common import AccountRole, MembershipRole
from cartcare_shared.schemas.organizations import OrgStatus

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "ct_session"
CSRF_COOKIE = "ct_csrf"

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


# ---------------------------------------------------------------------------
# Session context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Membership:
    org_id: uuid.UUID
    role: MembershipRole


@dataclass(frozen=True)
class SessionContext:
    """Who is calling, populated once at request entry and never mutated."""

    user_id: uuid.UUID
    account_role: AccountRole
    email: Optional[str] = None
    email_verified: bool = False
    memberships: tuple[Membership, ...] = field(default_factory=tuple)

    def membership_for(self, org_id: uuid.UUID) -> Optional[Membership]:
        for membership in self.memberships:
            if membership.org_id == org_id:
                return membership
        return None

    def is_member(self, org_id: uuid.UUID) -> bool:
        return self.membership_for(org_id) is not None


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    role: str = AccountRole.STORE.value,
    *,
    email: Optional[str] = None,
    email_verified: bool = False,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT shaped like the identity provider's. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "email": email,
        "email_verified": email_verified,
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    options = {} if settings.jwt_audience else {"verify_aud": False}
    return jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options=options,
    )


def account_role_from_claims(payload: dict) -> AccountRole:
    """Role metadata lives at the top level or under `user_metadata`."""
    raw = payload.get("role")
    if raw is None:
        raw = (payload.get("user_metadata") or {}).get("role")
    return AccountRole.from_metadata(raw)


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int = 3600) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    await redis.setex(f"jwt:revoked:{jti}", ttl_seconds, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# Context assembly
# ---------------------------------------------------------------------------

def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return request.cookies.get(SESSION_COOKIE)


async def _sync_user(
    user_id: uuid.UUID,
    email: Optional[str],
    account_role: AccountRole,
    session: AsyncSession,
) -> User:
    """Mirror the identity provider's account into the local users table.

    Committed on its own so a later rollback in the same request keeps it.
    """
    user = await session.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email, account_role=account_role.value)
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            # A concurrent first request mirrored the account already
            await session.rollback()
            return await session.get(User, user_id)
        log.info("user.mirrored", user_id=str(user_id), account_role=account_role.value)
        return user

    if user.email != email or user.account_role != account_role.value:
        user.email = email
        user.account_role = account_role.value
        session.add(user)
        await session.commit()
    return user


async def load_memberships(
    user_id: uuid.UUID, session: AsyncSession
) -> tuple[Membership, ...]:
    """Memberships in the caller's active orgs. Deactivated orgs grant nothing."""
    result = await session.execute(
        select(OrgMembership)
        .join(Organization, Organization.id == OrgMembership.org_id)
        .where(
            OrgMembership.user_id == user_id,
            Organization.status == OrgStatus.ACTIVE.value,
        )
    )
    memberships = []
    for row in result.scalars().all():
        try:
            role = MembershipRole.parse(row.role)
        except ValueError:
            log.warning("membership.unknown_role", user_id=str(user_id), org_id=str(row.org_id), role=row.role)
            continue
        memberships.append(Membership(org_id=row.org_id, role=role))
    return tuple(memberships)


async def get_session_context(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> SessionContext:
    """Main authentication dependency: verify the caller's token and build their context."""
    token = _extract_token(request, authorization)
    if not token:
        raise Unauthenticated()

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid or expired session")

    jti = payload.get("jti")
    if settings.jwt_revocation_enabled and jti and await is_jwt_revoked(jti):
        raise Unauthenticated("Session has been revoked")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise Unauthenticated("Token subject is not a user id")

    account_role = account_role_from_claims(payload)
    email = payload.get("email")
    await _sync_user(user_id, email, account_role, session)

    ctx = SessionContext(
        user_id=user_id,
        account_role=account_role,
        email=email,
        email_verified=bool(payload.get("email_verified")),
        memberships=await load_memberships(user_id, session),
    )
    request.state.session_context = ctx
    return ctx
