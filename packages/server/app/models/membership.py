"""User-Organization membership (join table, unique per user/org pair)."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class OrgMembership(SQLModel, table=True):
    __tablename__ = "org_memberships"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    org_id: uuid.UUID = Field(foreign_key="organizations.id", primary_key=True, index=True)
    role: str = Field(nullable=False)  # corp_admin | store_admin | provider_tech | ...
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
