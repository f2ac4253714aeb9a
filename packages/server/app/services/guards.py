"""
Shared validation and idempotency helpers for the ledger services.

- Organization lookups that treat unknown and deactivated orgs alike
- Caller standing checks against the SessionContext
- Dialect-aware INSERT for conditional writes (ON CONFLICT)
- Bounded retry-on-conflict wrapper
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import structlog
from sqlalchemy import Table
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Membership, SessionContext
from app.core.errors import Conflict, Forbidden, NotFound
from app.models.organization import Organization
from cartcare_shared.schemas.common import OrgKind
from cartcare_shared.schemas.organizations import OrgStatus

log = structlog.get_logger()

T = TypeVar("T")


class RetryTransition(Exception):
    """Raised inside a ledger operation when it must run again from the top."""


# ---------------------------------------------------------------------------
# Organizations & standing
# ---------------------------------------------------------------------------

async def require_org(
    session: AsyncSession,
    org_id: uuid.UUID,
    kind: Optional[OrgKind] = None,
) -> Organization:
    """Load an active org, optionally of a given kind; raises NotFound otherwise."""
    org = await session.get(Organization, org_id)
    if org is None or org.status != OrgStatus.ACTIVE.value:
        raise NotFound("Organization not found")
    if kind is not None and org.kind != kind.value:
        raise NotFound(f"No {kind.value} organization with id {org_id}")
    return org


def require_standing(
    ctx: SessionContext,
    org_id: uuid.UUID,
    *,
    mutate: bool = False,
) -> Membership:
    """The caller must be a member of the org; mutations also exclude viewers."""
    membership = ctx.membership_for(org_id)
    if membership is None:
        raise Forbidden("Caller is not a member of this organization")
    if mutate and not membership.role.can_act:
        raise Forbidden("Viewer memberships are read-only")
    return membership


# ---------------------------------------------------------------------------
# Conditional writes
# ---------------------------------------------------------------------------

def dialect_insert(session: AsyncSession, table: Table):
    """INSERT construct supporting ON CONFLICT for the session's dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Conditional writes are not supported on '{dialect}'")
    return insert(table)


async def with_conflict_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    session: AsyncSession,
    attempts: int,
    label: str,
) -> T:
    """Run `operation`, retrying on lost races; raise Conflict once the budget is spent."""
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except (RetryTransition, IntegrityError) as exc:
            await session.rollback()
            log.info("ledger.retry", operation=label, attempt=attempt, reason=type(exc).__name__)
    log.warning("ledger.conflict", operation=label, attempts=attempts)
    raise Conflict()
