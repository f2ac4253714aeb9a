"""
Onboarding API endpoints.

GET    /api/v1/onboarding/status     — Flags, computed current step and step ledger
POST   /api/v1/onboarding/steps      — Record a step completion
POST   /api/v1/onboarding/complete   — Mark onboarding completed
POST   /api/v1/onboarding/skip       — Skip the rest of onboarding
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionContext, get_session_context
from app.core.database import get_session
from app.services import onboarding as onboarding_service
from cartcare_shared.schemas.onboarding import (
    OnboardingCompleteResponse,
    OnboardingSkipResponse,
    OnboardingStatusResponse,
    StepCompleteRequest,
    StepCompleteResponse,
)

router = APIRouter()


@router.get("/status", response_model=OnboardingStatusResponse)
async def get_status(
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    return await onboarding_service.get_status(ctx, session)


@router.post("/steps", response_model=StepCompleteResponse)
async def complete_step(
    body: StepCompleteRequest,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    """Record a step as completed and return the step to present next."""
    current = await onboarding_service.record_step_complete(
        ctx, body.step_number, body.step_name, session, payload=body.payload
    )
    return StepCompleteResponse(current_step=current)


@router.post("/complete", response_model=OnboardingCompleteResponse)
async def complete_onboarding(
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    await onboarding_service.complete_onboarding(ctx, session)
    return OnboardingCompleteResponse()


@router.post("/skip", response_model=OnboardingSkipResponse)
async def skip_onboarding(
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    await onboarding_service.skip_onboarding(ctx, session)
    return OnboardingSkipResponse()
