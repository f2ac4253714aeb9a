"""
Organization service: org creation with an owner membership, listing,
deactivation and the provider directory.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import SessionContext
from app.core.errors import Forbidden, InvalidTransition
from app.models.membership import OrgMembership
from app.models.organization import Organization
from app.services.guards import require_org, require_standing
from cartcare_shared.schemas.common import AccountRole, MembershipRole, OrgKind, Privilege
from cartcare_shared.schemas.organizations import (
    ORG_TRANSITIONS,
    OrgCreateRequest,
    OrgListItem,
    OrgSettings,
    OrgStatus,
    ProviderDirectoryItem,
    VerificationStatus,
)

log = structlog.get_logger()

# Org kind each account role may create for itself
SELF_SERVICE_KINDS: dict[AccountRole, OrgKind] = {
    AccountRole.STORE: OrgKind.STORE,
    AccountRole.MAINTENANCE: OrgKind.PROVIDER,
}


async def list_user_orgs(
    user_id: uuid.UUID, session: AsyncSession
) -> list[OrgListItem]:
    """List all orgs a user belongs to, with their role."""
    result = await session.execute(
        select(Organization, OrgMembership.role)
        .join(OrgMembership, OrgMembership.org_id == Organization.id)
        .where(OrgMembership.user_id == user_id)
        .order_by(Organization.name)
    )
    return [
        OrgListItem(
            id=org.id,
            name=org.name,
            kind=OrgKind(org.kind),
            status=OrgStatus(org.status),
            role=role,
        )
        for org, role in result.all()
    ]


async def create_org_with_owner(
    req: OrgCreateRequest,
    ctx: SessionContext,
    session: AsyncSession,
) -> Organization:
    """Create an org and make the caller its `<kind>_admin`.

    Self-service creation is limited to the org kind matching the caller's
    account role. Corporations are provisioned by operators. The verification
    marker is server-owned and always starts at `unverified`.
    """
    if req.kind == OrgKind.CORPORATION:
        raise Forbidden("Corporation organizations cannot be created from self-service")
    expected = SELF_SERVICE_KINDS[ctx.account_role]
    if req.kind != expected:
        raise Forbidden(
            f"A {ctx.account_role.value} account can only create a {expected.value} organization"
        )

    settings = OrgSettings.model_validate(req.settings or {})
    settings.verification_status = VerificationStatus.UNVERIFIED
    org = Organization(
        name=req.name,
        kind=req.kind.value,
        status=OrgStatus.ACTIVE.value,
        settings=settings.model_dump(mode="json"),
    )
    session.add(org)
    await session.flush()

    role = MembershipRole.owner(req.kind)
    session.add(OrgMembership(user_id=ctx.user_id, org_id=org.id, role=role.value))
    await session.flush()

    log.info(
        "org.created",
        org_id=str(org.id),
        kind=org.kind,
        creator=str(ctx.user_id),
        role=role.value,
    )
    return org


async def get_org_for_member(
    ctx: SessionContext, org_id: uuid.UUID, session: AsyncSession
) -> Organization:
    org = await require_org(session, org_id)
    require_standing(ctx, org_id)
    return org


async def deactivate_org(
    ctx: SessionContext, org_id: uuid.UUID, session: AsyncSession
) -> Organization:
    """Deactivate an org (admin action). Orgs are never hard-deleted."""
    org = await require_org(session, org_id)
    membership = require_standing(ctx, org_id, mutate=True)
    if membership.role.privilege != Privilege.ADMIN:
        raise Forbidden("Only an organization admin can deactivate it")

    current = OrgStatus(org.status)
    if OrgStatus.DEACTIVATED not in ORG_TRANSITIONS.get(current, []):
        raise InvalidTransition(org.status, OrgStatus.DEACTIVATED.value)

    org.status = OrgStatus.DEACTIVATED.value
    org.updated_at = datetime.now(timezone.utc)
    session.add(org)
    await session.flush()
    log.info("org.deactivated", org_id=str(org.id), user_id=str(ctx.user_id))
    return org


async def list_providers(
    session: AsyncSession, verified_only: bool = False
) -> list[ProviderDirectoryItem]:
    """Active provider orgs for discovery, sorted by name."""
    result = await session.execute(
        select(Organization)
        .where(
            Organization.kind == OrgKind.PROVIDER.value,
            Organization.status == OrgStatus.ACTIVE.value,
        )
        .order_by(Organization.name)
    )
    items = []
    for org in result.scalars().all():
        verification = OrgSettings.model_validate(org.settings or {}).verification_status
        if verified_only and verification != VerificationStatus.VERIFIED:
            continue
        items.append(
            ProviderDirectoryItem(id=org.id, name=org.name, verification_status=verification)
        )
    return items
