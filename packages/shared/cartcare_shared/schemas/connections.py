"""
Connection ledger schemas: lifecycle states, the transition table, request
and response bodies, and the notification event payload.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"


class ConnectionEventKind(str, Enum):
    REQUEST = "request"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Valid state transitions. `rejected` only leaves through a fresh request.
CONNECTION_TRANSITIONS: dict[ConnectionStatus, list[ConnectionStatus]] = {
    ConnectionStatus.PENDING: [ConnectionStatus.ACTIVE, ConnectionStatus.REJECTED],
    ConnectionStatus.ACTIVE: [],
    ConnectionStatus.REJECTED: [ConnectionStatus.PENDING],
}


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class ConnectionRequest(BaseModel):
    store_org_id: uuid.UUID
    provider_org_id: uuid.UUID

    @model_validator(mode="after")
    def _distinct_orgs(self) -> "ConnectionRequest":
        if self.store_org_id == self.provider_org_id:
            raise ValueError("store_org_id and provider_org_id must differ")
        return self


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ConnectionStateResponse(BaseModel):
    connection_id: uuid.UUID
    status: ConnectionStatus


class ConnectionRead(BaseModel):
    id: uuid.UUID
    store_org_id: uuid.UUID
    provider_org_id: uuid.UUID
    status: ConnectionStatus
    requested_at: datetime
    connected_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ConnectionListItem(BaseModel):
    connection_id: uuid.UUID
    counterpart_org_id: uuid.UUID
    counterpart_name: str
    status: ConnectionStatus
    requested_at: datetime
    connected_at: Optional[datetime] = None


class ConnectionListResponse(BaseModel):
    data: list[ConnectionListItem]


# ---------------------------------------------------------------------------
# Notification payload
# ---------------------------------------------------------------------------

class ConnectionEvent(BaseModel):
    """What the notification dispatcher receives after a committed transition."""

    event_kind: ConnectionEventKind
    connection_id: uuid.UUID
    store_org_id: uuid.UUID
    provider_org_id: uuid.UUID
    occurred_at: datetime

    def webhook_payload(self) -> dict:
        """Body understood by the connection-notification function."""
        return {
            "type": self.event_kind.value,
            "storeOrgId": str(self.store_org_id),
            "providerOrgId": str(self.provider_org_id),
            "connectionId": str(self.connection_id),
        }
