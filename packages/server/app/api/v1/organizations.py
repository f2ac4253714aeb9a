"""
Organization API endpoints.

GET    /api/v1/orgs                       — List orgs for the authenticated user
POST   /api/v1/orgs                       — Create an org; the caller becomes its admin
GET    /api/v1/orgs/{org_id}              — Get org details (members only)
POST   /api/v1/orgs/{org_id}/deactivate   — Deactivate an org (admin only)
GET    /api/v1/providers                  — Provider directory for discovery
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionContext, get_session_context
from app.core.database import get_session
from app.models.organization import Organization
from app.services import organizations as org_service
from cartcare_shared.schemas.organizations import (
    OrgCreateRequest,
    OrgListResponse,
    OrgResponse,
    OrgSettings,
    ProviderDirectoryResponse,
)

router = APIRouter()


def _org_response(org: Organization) -> OrgResponse:
    return OrgResponse(
        id=org.id,
        name=org.name,
        kind=org.kind,
        status=org.status,
        settings=OrgSettings.model_validate(org.settings or {}),
        created_at=org.created_at,
        updated_at=org.updated_at,
    )


@router.get("/orgs", response_model=OrgListResponse, tags=["Organizations"])
async def list_orgs(
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    """List orgs the authenticated user belongs to."""
    items = await org_service.list_user_orgs(ctx.user_id, session)
    return OrgListResponse(data=items)


@router.post("/orgs", response_model=OrgResponse, status_code=201, tags=["Organizations"])
async def create_org(
    body: OrgCreateRequest,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes its `<kind>_admin`."""
    org = await org_service.create_org_with_owner(body, ctx, session)
    await session.commit()
    return _org_response(org)


@router.get("/orgs/{org_id}", response_model=OrgResponse, tags=["Organizations"])
async def get_org(
    org_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    """Get org details including settings."""
    org = await org_service.get_org_for_member(ctx, org_id, session)
    return _org_response(org)


@router.post("/orgs/{org_id}/deactivate", response_model=OrgResponse, tags=["Organizations"])
async def deactivate_org(
    org_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    """Deactivate an organization (Admin only). Orgs are never hard-deleted."""
    org = await org_service.deactivate_org(ctx, org_id, session)
    await session.commit()
    return _org_response(org)


@router.get("/providers", response_model=ProviderDirectoryResponse, tags=["Organizations"])
async def list_providers(
    verified_only: bool = Query(False, description="Only providers marked verified"),
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    """Active provider organizations a store can send a connection request to."""
    items = await org_service.list_providers(session, verified_only=verified_only)
    return ProviderDirectoryResponse(data=items)
