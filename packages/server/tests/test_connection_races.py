"""
Concurrency tests for the connection ledger.

Each contender runs in its own session (its own database connection), so
the database's conditional writes decide the winner.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlmodel import select

from app.core.errors import AlreadyExists, Conflict, InvalidTransition
from app.models.connection import Connection
from app.services import connections as svc
from app.services.guards import RetryTransition, with_conflict_retry
from cartcare_shared.schemas.connections import ConnectionRequest


async def test_concurrent_requests_create_one_record(session_factory, pair, dispatcher):
    req = ConnectionRequest(store_org_id=pair.store.id, provider_org_id=pair.provider.id)

    async def contender():
        async with session_factory() as session:
            return await svc.request_connection(pair.store_ctx, req, session, dispatcher)

    results = await asyncio.gather(*(contender() for _ in range(5)), return_exceptions=True)

    created = [r for r in results if isinstance(r, Connection)]
    duplicates = [r for r in results if isinstance(r, AlreadyExists)]
    assert len(created) == 1
    assert len(duplicates) == 4

    async with session_factory() as session:
        rows = (await session.execute(select(Connection))).scalars().all()
    assert len(rows) == 1
    assert rows[0].status == "pending"
    assert dispatcher.kinds() == ["request"]


async def test_concurrent_accept_and_reject_single_winner(session_factory, pair, dispatcher):
    req = ConnectionRequest(store_org_id=pair.store.id, provider_org_id=pair.provider.id)
    async with session_factory() as session:
        conn = await svc.request_connection(pair.store_ctx, req, session, dispatcher)
    dispatcher.events.clear()

    async def run(operation):
        async with session_factory() as session:
            return await operation(pair.provider_ctx, conn.id, session, dispatcher)

    results = await asyncio.gather(
        run(svc.accept_connection),
        run(svc.reject_connection),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, Connection)]
    losers = [r for r in results if isinstance(r, InvalidTransition)]
    assert len(winners) == 1
    assert len(losers) == 1

    async with session_factory() as session:
        final = await session.get(Connection, conn.id)
    assert final.status == winners[0].status
    assert final.status in ("active", "rejected")
    assert len(dispatcher.events) == 1
    if final.status == "rejected":
        assert final.connected_at is None


async def test_concurrent_accepts_notify_once(session_factory, pair, dispatcher):
    req = ConnectionRequest(store_org_id=pair.store.id, provider_org_id=pair.provider.id)
    async with session_factory() as session:
        conn = await svc.request_connection(pair.store_ctx, req, session, dispatcher)
    dispatcher.events.clear()

    async def accept():
        async with session_factory() as session:
            return await svc.accept_connection(pair.provider_ctx, conn.id, session, dispatcher)

    results = await asyncio.gather(*(accept() for _ in range(3)))
    assert all(r.status == "active" for r in results)
    assert dispatcher.kinds() == ["accepted"]


class TestRetryBudget:

    async def test_conflict_after_budget(self):
        session = AsyncMock()
        operation = AsyncMock(side_effect=RetryTransition())
        with pytest.raises(Conflict):
            await with_conflict_retry(operation, session=session, attempts=3, label="test")
        assert operation.await_count == 3
        assert session.rollback.await_count == 3

    async def test_succeeds_within_budget(self):
        session = AsyncMock()
        operation = AsyncMock(side_effect=[RetryTransition(), "done"])
        result = await with_conflict_retry(operation, session=session, attempts=3, label="test")
        assert result == "done"
        assert operation.await_count == 2

    async def test_domain_errors_are_not_retried(self):
        session = AsyncMock()
        operation = AsyncMock(side_effect=AlreadyExists())
        with pytest.raises(AlreadyExists):
            await with_conflict_retry(operation, session=session, attempts=3, label="test")
        assert operation.await_count == 1
