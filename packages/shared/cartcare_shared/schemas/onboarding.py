"""
Onboarding schemas and the fixed per-role step sequences.

The sequences are code, not data: each step names the OnboardingStatus
flag it sets, and the derived current step is the first step whose flag
is still unset.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .common import AccountRole


@dataclass(frozen=True)
class StepDefinition:
    number: int
    name: str
    flag: str
    skippable: bool = False


STEP_SEQUENCES: dict[AccountRole, tuple[StepDefinition, ...]] = {
    AccountRole.STORE: (
        StepDefinition(1, "email_verification", "email_verified"),
        StepDefinition(2, "profile_details", "profile_completed"),
        StepDefinition(3, "store_location", "location_completed", skippable=True),
        StepDefinition(4, "connect_provider", "provider_connected", skippable=True),
    ),
    AccountRole.MAINTENANCE: (
        StepDefinition(1, "email_verification", "email_verified"),
        StepDefinition(2, "profile_details", "profile_completed"),
        StepDefinition(3, "business_verification", "verification_submitted"),
    ),
}

def steps_for(role: AccountRole) -> tuple[StepDefinition, ...]:
    return STEP_SEQUENCES[role]


def finished_step(role: AccountRole) -> int:
    """Sentinel step number meaning 'nothing left to present'."""
    return len(STEP_SEQUENCES[role]) + 1


def get_step(role: AccountRole, step_number: int) -> Optional[StepDefinition]:
    for step in STEP_SEQUENCES[role]:
        if step.number == step_number:
            return step
    return None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class StepCompleteRequest(BaseModel):
    step_number: int = Field(..., ge=1)
    step_name: str = Field(..., min_length=1, max_length=100)
    payload: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class StepCompleteResponse(BaseModel):
    current_step: int


class OnboardingCompleteResponse(BaseModel):
    completed: bool = True


class OnboardingSkipResponse(BaseModel):
    skipped: bool = True


class OnboardingStepRead(BaseModel):
    step_number: int
    step_name: str
    completed: bool
    completed_at: Optional[datetime] = None
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class OnboardingStatusResponse(BaseModel):
    user_id: uuid.UUID
    role: AccountRole
    email_verified: bool
    profile_completed: bool
    location_completed: bool
    provider_connected: bool
    verification_submitted: bool
    onboarding_completed: bool
    completed_at: Optional[datetime] = None
    skipped_at: Optional[datetime] = None
    current_step: int
    total_steps: int
    is_finished: bool
    steps: list[OnboardingStepRead] = Field(default_factory=list)
