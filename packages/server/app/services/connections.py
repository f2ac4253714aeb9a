"""
Connection service: the store/provider relationship ledger.

Handles:
- request: one constrained upsert (create, reopen a rejected record, or AlreadyExists)
- accept / reject: compare-and-swap on the expected prior status
- Listing per org with counterpart names joined at read time
- Notification dispatch after commit, never inside the transaction
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionContext
from app.core.config import get_settings
from app.core.errors import AlreadyExists, Forbidden, InvalidTransition, NotFound
from app.core.notifications import NotificationDispatcher, notify_safely
from app.models.base import utcnow
from app.models.connection import Connection
from app.models.organization import Organization
from app.services.guards import (
    RetryTransition,
    dialect_insert,
    require_org,
    require_standing,
    with_conflict_retry,
)
from cartcare_shared.schemas.common import OrgKind
from cartcare_shared.schemas.connections import (
    CONNECTION_TRANSITIONS,
    ConnectionEvent,
    ConnectionEventKind,
    ConnectionListItem,
    ConnectionRequest,
    ConnectionStatus,
)

log = structlog.get_logger()

connections = Connection.__table__

_EVENT_FOR_STATUS = {
    ConnectionStatus.ACTIVE: ConnectionEventKind.ACCEPTED,
    ConnectionStatus.REJECTED: ConnectionEventKind.REJECTED,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_connection_or_404(
    session: AsyncSession, connection_id: uuid.UUID
) -> Connection:
    conn = await session.get(Connection, connection_id, populate_existing=True)
    if conn is None:
        raise NotFound("Connection not found")
    return conn


def _event(kind: ConnectionEventKind, conn: Connection) -> ConnectionEvent:
    return ConnectionEvent(
        event_kind=kind,
        connection_id=conn.id,
        store_org_id=conn.store_org_id,
        provider_org_id=conn.provider_org_id,
        occurred_at=utcnow(),
    )


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def request_connection(
    ctx: SessionContext,
    req: ConnectionRequest,
    session: AsyncSession,
    dispatcher: NotificationDispatcher,
) -> Connection:
    """Create a pending connection for the pair, or reopen a rejected one.

    The existence check and the write are a single INSERT .. ON CONFLICT
    statement, so concurrent requests for the same pair cannot both insert.
    Raises AlreadyExists while a pending or active record exists. Error paths
    roll the session back, expiring any instances the caller still holds.
    """
    require_standing(ctx, req.store_org_id, mutate=True)
    await require_org(session, req.store_org_id, OrgKind.STORE)
    await require_org(session, req.provider_org_id, OrgKind.PROVIDER)

    async def attempt() -> tuple[uuid.UUID, bool]:
        new_id = uuid.uuid4()
        now = utcnow()
        stmt = dialect_insert(session, connections).values(
            id=new_id,
            store_org_id=req.store_org_id,
            provider_org_id=req.provider_org_id,
            status=ConnectionStatus.PENDING.value,
            initiated_by=ctx.user_id,
            requested_at=now,
            connected_at=None,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[connections.c.store_org_id, connections.c.provider_org_id],
            set_={
                "status": ConnectionStatus.PENDING.value,
                "initiated_by": stmt.excluded.initiated_by,
                "requested_at": stmt.excluded.requested_at,
                "connected_at": None,
                "updated_at": stmt.excluded.updated_at,
            },
            where=connections.c.status == ConnectionStatus.REJECTED.value,
        ).returning(connections.c.id)

        row = (await session.execute(stmt)).first()
        if row is None:
            await session.rollback()
            raise AlreadyExists()
        await session.commit()
        return row.id, row.id == new_id

    connection_id, created = await with_conflict_retry(
        attempt,
        session=session,
        attempts=get_settings().connection_max_attempts,
        label="connection.request",
    )
    conn = await get_connection_or_404(session, connection_id)

    log.info(
        "connection.requested" if created else "connection.reopened",
        connection_id=str(conn.id),
        store_org_id=str(conn.store_org_id),
        provider_org_id=str(conn.provider_org_id),
        user_id=str(ctx.user_id),
    )
    await notify_safely(dispatcher, _event(ConnectionEventKind.REQUEST, conn))
    return conn


async def _transition(
    ctx: SessionContext,
    connection_id: uuid.UUID,
    target: ConnectionStatus,
    session: AsyncSession,
    dispatcher: NotificationDispatcher,
) -> Connection:
    """Move a pending connection to `target`, exactly once.

    The zero-row path rolls the session back, so callers should keep ids
    rather than instances across a failed call.
    """
    conn = await get_connection_or_404(session, connection_id)
    require_standing(ctx, conn.provider_org_id, mutate=True)

    async def attempt() -> bool:
        now = utcnow()
        values = {"status": target.value, "updated_at": now}
        if target == ConnectionStatus.ACTIVE:
            values["connected_at"] = now
        result = await session.execute(
            update(connections)
            .where(
                connections.c.id == connection_id,
                connections.c.status == ConnectionStatus.PENDING.value,
            )
            .values(**values)
            .returning(connections.c.id)
        )
        if result.first() is not None:
            await session.commit()
            return True

        current = await session.scalar(
            select(connections.c.status).where(connections.c.id == connection_id)
        )
        await session.rollback()
        if current is None:
            raise NotFound("Connection not found")
        if current == target.value:
            return False
        if target in CONNECTION_TRANSITIONS[ConnectionStatus(current)]:
            # Reopened between the update and the re-read
            raise RetryTransition()
        raise InvalidTransition(current, target.value)

    applied = await with_conflict_retry(
        attempt,
        session=session,
        attempts=get_settings().connection_max_attempts,
        label=f"connection.{target.value}",
    )
    conn = await get_connection_or_404(session, connection_id)

    if not applied:
        log.info(
            "connection.transition_noop",
            connection_id=str(conn.id),
            status=conn.status,
            user_id=str(ctx.user_id),
        )
        return conn

    log.info(
        "connection.accepted" if target == ConnectionStatus.ACTIVE else "connection.rejected",
        connection_id=str(conn.id),
        store_org_id=str(conn.store_org_id),
        provider_org_id=str(conn.provider_org_id),
        user_id=str(ctx.user_id),
    )
    await notify_safely(dispatcher, _event(_EVENT_FOR_STATUS[target], conn))
    return conn


async def accept_connection(
    ctx: SessionContext,
    connection_id: uuid.UUID,
    session: AsyncSession,
    dispatcher: NotificationDispatcher,
) -> Connection:
    """pending -> active, stamping connected_at. Idempotent on an active record."""
    return await _transition(ctx, connection_id, ConnectionStatus.ACTIVE, session, dispatcher)


async def reject_connection(
    ctx: SessionContext,
    connection_id: uuid.UUID,
    session: AsyncSession,
    dispatcher: NotificationDispatcher,
) -> Connection:
    """pending -> rejected. Idempotent on a rejected record."""
    return await _transition(ctx, connection_id, ConnectionStatus.REJECTED, session, dispatcher)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_connection(
    ctx: SessionContext, connection_id: uuid.UUID, session: AsyncSession
) -> Connection:
    conn = await get_connection_or_404(session, connection_id)
    if not (ctx.is_member(conn.store_org_id) or ctx.is_member(conn.provider_org_id)):
        raise Forbidden("Caller is not a member of either side of this connection")
    return conn


async def _list(
    session: AsyncSession,
    own_column,
    counterpart_column,
    org_id: uuid.UUID,
) -> list[ConnectionListItem]:
    result = await session.execute(
        select(Connection, Organization.name)
        .join(Organization, Organization.id == counterpart_column)
        .where(own_column == org_id)
        .order_by(Connection.requested_at.desc())
    )
    return [
        ConnectionListItem(
            connection_id=conn.id,
            counterpart_org_id=getattr(conn, counterpart_column.key),
            counterpart_name=name,
            status=ConnectionStatus(conn.status),
            requested_at=conn.requested_at,
            connected_at=conn.connected_at,
        )
        for conn, name in result.all()
    ]


async def list_for_store(
    store_org_id: uuid.UUID, session: AsyncSession
) -> list[ConnectionListItem]:
    return await _list(
        session, Connection.store_org_id, Connection.provider_org_id, store_org_id
    )


async def list_for_provider(
    provider_org_id: uuid.UUID, session: AsyncSession
) -> list[ConnectionListItem]:
    return await _list(
        session, Connection.provider_org_id, Connection.store_org_id, provider_org_id
    )


async def list_for_org(
    ctx: SessionContext, org_id: uuid.UUID, session: AsyncSession
) -> list[ConnectionListItem]:
    """Connections of a store or provider org, seen from that org's side."""
    org = await require_org(session, org_id)
    require_standing(ctx, org_id)

    if org.kind == OrgKind.STORE.value:
        return await list_for_store(org_id, session)
    if org.kind == OrgKind.PROVIDER.value:
        return await list_for_provider(org_id, session)
    return []
