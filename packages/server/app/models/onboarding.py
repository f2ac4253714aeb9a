"""Onboarding models: the append/update-only step ledger and the denormalized status record."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin


class OnboardingStep(TimestampMixin, SQLModel, table=True):
    __tablename__ = "onboarding_steps"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    step_number: int = Field(primary_key=True)
    step_name: str = Field(nullable=False)
    completed: bool = Field(default=False, nullable=False)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    payload: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)


class UserOnboarding(TimestampMixin, SQLModel, table=True):
    """Fast-path onboarding flags read by the role router."""

    __tablename__ = "user_onboarding"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    account_role: str = Field(nullable=False, default="store")
    email_verified: bool = Field(default=False, nullable=False)
    profile_completed: bool = Field(default=False, nullable=False)
    location_completed: bool = Field(default=False, nullable=False)  # store only
    provider_connected: bool = Field(default=False, nullable=False)  # store only
    verification_submitted: bool = Field(default=False, nullable=False)  # maintenance only
    onboarding_completed: bool = Field(default=False, nullable=False)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    skipped_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    current_step: int = Field(default=1, nullable=False)
