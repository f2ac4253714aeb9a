"""
Connection API endpoints.

POST   /api/v1/connections                   — Request a connection (store members)
GET    /api/v1/connections/{id}              — Connection detail (members of either side)
POST   /api/v1/connections/{id}/accept       — Accept a pending request (provider members)
POST   /api/v1/connections/{id}/reject       — Reject a pending request (provider members)
GET    /api/v1/orgs/{org_id}/connections     — Connections of an org with counterpart names
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionContext, get_session_context
from app.core.database import get_session
from app.core.notifications import NotificationDispatcher, get_dispatcher
from app.services import connections as connection_service
from cartcare_shared.schemas.common import ErrorResponse
from cartcare_shared.schemas.connections import (
    ConnectionListResponse,
    ConnectionRead,
    ConnectionRequest,
    ConnectionStateResponse,
)

router = APIRouter(
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    }
)


@router.post(
    "/connections",
    response_model=ConnectionStateResponse,
    status_code=201,
    tags=["Connections"],
)
async def request_connection(
    body: ConnectionRequest,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Request a connection from a store to a provider, or reopen a rejected one."""
    conn = await connection_service.request_connection(ctx, body, session, dispatcher)
    return ConnectionStateResponse(connection_id=conn.id, status=conn.status)


@router.get("/connections/{connection_id}", response_model=ConnectionRead, tags=["Connections"])
async def get_connection(
    connection_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    conn = await connection_service.get_connection(ctx, connection_id, session)
    return ConnectionRead.model_validate(conn)


@router.post(
    "/connections/{connection_id}/accept",
    response_model=ConnectionStateResponse,
    tags=["Connections"],
)
async def accept_connection(
    connection_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Accept a pending request. Accepting an active connection is a no-op."""
    conn = await connection_service.accept_connection(ctx, connection_id, session, dispatcher)
    return ConnectionStateResponse(connection_id=conn.id, status=conn.status)


@router.post(
    "/connections/{connection_id}/reject",
    response_model=ConnectionStateResponse,
    tags=["Connections"],
)
async def reject_connection(
    connection_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Reject a pending request. Rejecting a rejected connection is a no-op."""
    conn = await connection_service.reject_connection(ctx, connection_id, session, dispatcher)
    return ConnectionStateResponse(connection_id=conn.id, status=conn.status)


@router.get(
    "/orgs/{org_id}/connections",
    response_model=ConnectionListResponse,
    tags=["Connections"],
)
async def list_org_connections(
    org_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    """Connections seen from the org's side, newest request first."""
    items = await connection_service.list_for_org(ctx, org_id, session)
    return ConnectionListResponse(data=items)
