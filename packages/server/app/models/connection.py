"""Connection ledger: one record per store/provider pair."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Connection(UUIDMixin, SQLModel, table=True):
    __tablename__ = "connections"
    __table_args__ = (
        sa.UniqueConstraint("store_org_id", "provider_org_id", name="uq_connections_pair"),
        sa.CheckConstraint("store_org_id != provider_org_id", name="ck_connections_distinct_orgs"),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'rejected')", name="ck_connections_status"
        ),
    )

    store_org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    provider_org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    status: str = Field(default="pending", nullable=False)  # pending | active | rejected
    initiated_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    requested_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    connected_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
