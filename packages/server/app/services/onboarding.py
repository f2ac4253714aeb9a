"""
Onboarding progress tracker.

Each completion upserts the step ledger row and sets the matching flag on
the status record in the same transaction. The step to present is derived
from the flags, not from the stored pointer, so progress made elsewhere
(an email verification link, for instance) shows up on the next read.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionContext
from app.core.errors import InvalidStep
from app.models.base import utcnow
from app.models.membership import OrgMembership
from app.models.onboarding import OnboardingStep, UserOnboarding
from app.models.organization import Organization
from app.services.guards import dialect_insert
from cartcare_shared.schemas.common import AccountRole, MembershipRole, OrgKind
from cartcare_shared.schemas.onboarding import (
    OnboardingStatusResponse,
    OnboardingStepRead,
    finished_step,
    get_step,
    steps_for,
)
from cartcare_shared.schemas.organizations import OrgSettings, OrgStatus, VerificationStatus

log = structlog.get_logger()

onboarding_steps = OnboardingStep.__table__
user_onboarding = UserOnboarding.__table__


def compute_current_step(status: Any, role: AccountRole) -> int:
    """First step whose flag is unset; the finished sentinel once done or skipped."""
    if getattr(status, "onboarding_completed", False) or getattr(status, "skipped_at", None):
        return finished_step(role)
    for step in steps_for(role):
        if not getattr(status, step.flag, False):
            return step.number
    return finished_step(role)


# ---------------------------------------------------------------------------
# Ledger writes
# ---------------------------------------------------------------------------


async def _upsert_step(
    session: AsyncSession,
    user_id: uuid.UUID,
    step_number: int,
    step_name: str,
    payload: Optional[dict] = None,
) -> None:
    """Record a step as completed, keeping the first completion time."""
    now = utcnow()
    stmt = dialect_insert(session, onboarding_steps).values(
        user_id=user_id,
        step_number=step_number,
        step_name=step_name,
        completed=True,
        completed_at=now,
        payload=payload or {},
        created_at=now,
        updated_at=now,
    )
    set_ = {
        "step_name": stmt.excluded.step_name,
        "completed": True,
        "completed_at": func.coalesce(onboarding_steps.c.completed_at, stmt.excluded.completed_at),
        "updated_at": stmt.excluded.updated_at,
    }
    if payload is not None:
        set_["payload"] = stmt.excluded.payload
    await session.execute(
        stmt.on_conflict_do_update(
            index_elements=[onboarding_steps.c.user_id, onboarding_steps.c.step_number],
            set_=set_,
        )
    )


async def _load_status(session: AsyncSession, user_id: uuid.UUID) -> Optional[UserOnboarding]:
    return await session.get(UserOnboarding, user_id, populate_existing=True)


async def get_or_create_status(ctx: SessionContext, session: AsyncSession) -> UserOnboarding:
    """Load the caller's status record, creating it on first use.

    A verified email claim from the identity provider is folded in here,
    flag and ledger row both.
    """
    now = utcnow()
    await session.execute(
        dialect_insert(session, user_onboarding)
        .values(
            user_id=ctx.user_id,
            account_role=ctx.account_role.value,
            email_verified=False,
            profile_completed=False,
            location_completed=False,
            provider_connected=False,
            verification_submitted=False,
            onboarding_completed=False,
            current_step=1,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=[user_onboarding.c.user_id])
    )

    record = await _load_status(session, ctx.user_id)
    changes: dict[str, Any] = {}
    if record.account_role != ctx.account_role.value:
        changes["account_role"] = ctx.account_role.value
    if ctx.email_verified and not record.email_verified:
        first = get_step(ctx.account_role, 1)
        await _upsert_step(session, ctx.user_id, first.number, first.name)
        changes["email_verified"] = True
        changes["current_step"] = _advance_pointer(1)
        log.info("onboarding.email_verified_out_of_band", user_id=str(ctx.user_id))
    if changes:
        changes["updated_at"] = now
        await session.execute(
            update(user_onboarding)
            .where(user_onboarding.c.user_id == ctx.user_id)
            .values(**changes)
        )
        record = await _load_status(session, ctx.user_id)
    await session.commit()
    return record


def _advance_pointer(step_number: int):
    """SQL expression moving current_step to step_number + 1 without ever lowering it."""
    target = step_number + 1
    return case(
        (user_onboarding.c.current_step < target, target),
        else_=user_onboarding.c.current_step,
    )


async def _submit_verification(session: AsyncSession, user_id: uuid.UUID) -> None:
    """Move the caller's unverified provider orgs to `submitted`.

    Only provider admins submit on behalf of an org. `verified` is set by
    operators, never here.
    """
    result = await session.execute(
        select(Organization)
        .join(OrgMembership, OrgMembership.org_id == Organization.id)
        .where(
            OrgMembership.user_id == user_id,
            OrgMembership.role == MembershipRole.owner(OrgKind.PROVIDER).value,
            Organization.kind == OrgKind.PROVIDER.value,
            Organization.status == OrgStatus.ACTIVE.value,
        )
    )
    for org in result.scalars().all():
        org_settings = OrgSettings.model_validate(org.settings or {})
        if org_settings.verification_status != VerificationStatus.UNVERIFIED:
            continue
        org_settings.verification_status = VerificationStatus.SUBMITTED
        org.settings = org_settings.model_dump(mode="json")
        org.updated_at = utcnow()
        session.add(org)
        log.info("org.verification_submitted", org_id=str(org.id), user_id=str(user_id))


async def record_step_complete(
    ctx: SessionContext,
    step_number: int,
    step_name: str,
    session: AsyncSession,
    payload: Optional[dict] = None,
) -> int:
    """Mark a step completed for the caller and return the step to present next.

    Re-completing an earlier step is accepted and keeps its original
    completion time; the stored pointer never moves backwards.
    """
    step = get_step(ctx.account_role, step_number)
    if step is None:
        raise InvalidStep(
            f"Step {step_number} is not part of the {ctx.account_role.value} onboarding sequence"
        )
    if step_name != step.name:
        raise InvalidStep(f"Step {step_number} is {step.name!r}, not {step_name!r}")
    if payload and payload.get("skipped") and not step.skippable:
        raise InvalidStep(f"Step {step_number} ({step.name}) cannot be skipped")

    await get_or_create_status(ctx, session)
    await _upsert_step(session, ctx.user_id, step.number, step.name, payload)
    await session.execute(
        update(user_onboarding)
        .where(user_onboarding.c.user_id == ctx.user_id)
        .values(
            {
                step.flag: True,
                "current_step": _advance_pointer(step.number),
                "updated_at": utcnow(),
            }
        )
    )
    if step.flag == "verification_submitted":
        await _submit_verification(session, ctx.user_id)
    await session.commit()

    record = await _load_status(session, ctx.user_id)
    current = compute_current_step(record, ctx.account_role)
    log.info(
        "onboarding.step_completed",
        user_id=str(ctx.user_id),
        step_number=step.number,
        step_name=step.name,
        skipped=bool(payload and payload.get("skipped")),
        current_step=current,
    )
    return current


async def complete_onboarding(ctx: SessionContext, session: AsyncSession) -> UserOnboarding:
    """Set onboarding_completed; the first completion time is kept."""
    await get_or_create_status(ctx, session)
    now = utcnow()
    await session.execute(
        update(user_onboarding)
        .where(user_onboarding.c.user_id == ctx.user_id)
        .values(
            onboarding_completed=True,
            completed_at=func.coalesce(user_onboarding.c.completed_at, now),
            updated_at=now,
        )
    )
    await session.commit()
    log.info("onboarding.completed", user_id=str(ctx.user_id))
    return await _load_status(session, ctx.user_id)


async def skip_onboarding(ctx: SessionContext, session: AsyncSession) -> UserOnboarding:
    """Set skipped_at; the first skip time is kept."""
    await get_or_create_status(ctx, session)
    now = utcnow()
    await session.execute(
        update(user_onboarding)
        .where(user_onboarding.c.user_id == ctx.user_id)
        .values(
            skipped_at=func.coalesce(user_onboarding.c.skipped_at, now),
            updated_at=now,
        )
    )
    await session.commit()
    log.info("onboarding.skipped", user_id=str(ctx.user_id))
    return await _load_status(session, ctx.user_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_steps(session: AsyncSession, user_id: uuid.UUID) -> list[OnboardingStep]:
    result = await session.execute(
        select(OnboardingStep)
        .where(OnboardingStep.user_id == user_id)
        .order_by(OnboardingStep.step_number)
    )
    return list(result.scalars().all())


async def get_status(ctx: SessionContext, session: AsyncSession) -> OnboardingStatusResponse:
    record = await get_or_create_status(ctx, session)
    role = ctx.account_role
    current = compute_current_step(record, role)
    steps = await list_steps(session, ctx.user_id)
    return OnboardingStatusResponse(
        user_id=record.user_id,
        role=role,
        email_verified=record.email_verified,
        profile_completed=record.profile_completed,
        location_completed=record.location_completed,
        provider_connected=record.provider_connected,
        verification_submitted=record.verification_submitted,
        onboarding_completed=record.onboarding_completed,
        completed_at=record.completed_at,
        skipped_at=record.skipped_at,
        current_step=current,
        total_steps=len(steps_for(role)),
        is_finished=current == finished_step(role),
        steps=[OnboardingStepRead.model_validate(s) for s in steps],
    )


async def peek_status(ctx: SessionContext, session: AsyncSession) -> UserOnboarding:
    """Status for routing without writing: a transient record when none exists yet."""
    record = await _load_status(session, ctx.user_id)
    if record is None:
        return UserOnboarding(
            user_id=ctx.user_id,
            account_role=ctx.account_role.value,
            email_verified=ctx.email_verified,
        )
    if ctx.email_verified and not record.email_verified:
        return UserOnboarding(
            **record.model_dump(exclude={"email_verified"}),
            email_verified=True,
        )
    return record
