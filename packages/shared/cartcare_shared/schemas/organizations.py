"""
Organization-related Pydantic schemas shared between server and clients.

Covers: org create request/response, membership listing, provider
directory, org lifecycle states and the verification marker kept in the
settings blob.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import OrgKind


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class OrgStatus(str, Enum):
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    SUBMITTED = "submitted"
    VERIFIED = "verified"


# Orgs are never hard-deleted
ORG_TRANSITIONS: dict[OrgStatus, list[OrgStatus]] = {
    OrgStatus.ACTIVE: [OrgStatus.DEACTIVATED],
    OrgStatus.DEACTIVATED: [],
}


# ---------------------------------------------------------------------------
# Settings blob
# ---------------------------------------------------------------------------

class OrgSettings(BaseModel):
    """Known keys of the free-form settings blob. Unknown keys are preserved."""

    model_config = {"extra": "allow"}

    verification_status: VerificationStatus = Field(
        default=VerificationStatus.UNVERIFIED,
        description="Business verification marker (provider orgs)",
    )
    market: Optional[str] = None
    region: Optional[str] = None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Organization display name")
    kind: OrgKind
    settings: Optional[dict] = Field(None, description="Initial settings blob")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    kind: OrgKind
    status: OrgStatus
    settings: OrgSettings
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgListItem(BaseModel):
    id: uuid.UUID
    name: str
    kind: OrgKind
    status: OrgStatus
    role: str  # the requesting user's role in this org


class OrgListResponse(BaseModel):
    data: list[OrgListItem]


class ProviderDirectoryItem(BaseModel):
    id: uuid.UUID
    name: str
    verification_status: VerificationStatus


class ProviderDirectoryResponse(BaseModel):
    data: list[ProviderDirectoryItem]
