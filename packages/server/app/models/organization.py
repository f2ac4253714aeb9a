"""Organization model."""

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"
    __table_args__ = (
        sa.CheckConstraint("kind IN ('store', 'provider', 'corporation')", name="ck_organizations_kind"),
        sa.CheckConstraint("status IN ('active', 'deactivated')", name="ck_organizations_status"),
    )

    name: str = Field(nullable=False, index=True)
    kind: str = Field(nullable=False, index=True)  # store | provider | corporation
    status: str = Field(default="active", nullable=False)  # active | deactivated
    settings: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
