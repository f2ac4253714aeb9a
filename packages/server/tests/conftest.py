"""
Shared fixtures: a per-test SQLite database, seed helpers, a recording
notification dispatcher and an API client wired to both.
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import SessionContext, create_jwt, load_memberships
from app.core.database import get_session
from app.core.notifications import NotificationDispatcher, get_dispatcher
from app.main import app
from app.models.membership import OrgMembership
from app.models.organization import Organization
from app.models.user import User
from cartcare_shared.schemas.common import AccountRole, OrgKind


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every dispatched event in memory."""

    name = "recording"

    def __init__(self):
        self.events = []

    async def dispatch(self, event) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.event_kind.value for e in self.events]


class Seed:
    """Writes fixture rows through its own short-lived sessions."""

    def __init__(self, session_factory):
        self._factory = session_factory

    async def user(self, account_role: str = "store", email: Optional[str] = None) -> User:
        user = User(email=email or f"{uuid.uuid4().hex[:8]}@example.com", account_role=account_role)
        async with self._factory() as session:
            session.add(user)
            await session.commit()
        return user

    async def org(
        self,
        kind: OrgKind,
        name: Optional[str] = None,
        settings: Optional[dict] = None,
        status: str = "active",
    ) -> Organization:
        org = Organization(
            name=name or f"{kind.value}-{uuid.uuid4().hex[:6]}",
            kind=kind.value,
            status=status,
            settings=settings or {},
        )
        async with self._factory() as session:
            session.add(org)
            await session.commit()
        return org

    async def member(self, user: User, org: Organization, role: str) -> None:
        async with self._factory() as session:
            session.add(OrgMembership(user_id=user.id, org_id=org.id, role=role))
            await session.commit()

    async def context(self, user: User, email_verified: bool = False) -> SessionContext:
        """SessionContext with memberships read back from the database."""
        async with self._factory() as session:
            memberships = await load_memberships(user.id, session)
        return SessionContext(
            user_id=user.id,
            account_role=AccountRole.from_metadata(user.account_role),
            email=user.email,
            email_verified=email_verified,
            memberships=memberships,
        )


def auth_headers(user: User, email_verified: bool = False) -> dict:
    token, _ = create_jwt(
        user.id, user.account_role, email=user.email, email_verified=email_verified
    )
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine(tmp_path):
    # A file database so separate sessions get separate connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'coordination.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(session_factory):
    return Seed(session_factory)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
async def pair(seed):
    """Store org S1 and provider org P1, each with an admin."""
    store_admin = await seed.user("store")
    provider_admin = await seed.user("maintenance")
    store = await seed.org(OrgKind.STORE, name="S1 Market")
    provider = await seed.org(
        OrgKind.PROVIDER, name="P1 Refrigeration", settings={"verification_status": "verified"}
    )
    await seed.member(store_admin, store, "store_admin")
    await seed.member(provider_admin, provider, "provider_admin")
    return SimpleNamespace(
        store=store,
        provider=provider,
        store_admin=store_admin,
        provider_admin=provider_admin,
        store_ctx=await seed.context(store_admin),
        provider_ctx=await seed.context(provider_admin),
    )


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
async def client(session_factory, dispatcher):
    async def _get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
