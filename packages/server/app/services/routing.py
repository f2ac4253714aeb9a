"""
Role router: where a signed-in user lands.

`route` is pure. Callers fetch memberships and onboarding status first and
pass them in, so the decision is testable without a database.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Optional, Union

from app.core.auth import Membership
from app.services.onboarding import compute_current_step
from cartcare_shared.schemas.common import AccountRole, OrgKind
from cartcare_shared.schemas.routing import Destination, Portal

DASHBOARD_PORTALS: dict[OrgKind, Portal] = {
    OrgKind.CORPORATION: Portal.CORP,
    OrgKind.PROVIDER: Portal.PROVIDER,
    OrgKind.STORE: Portal.STORE,
}

ONBOARDING_PORTALS: dict[AccountRole, Portal] = {
    AccountRole.STORE: Portal.STORE,
    AccountRole.MAINTENANCE: Portal.PROVIDER,
}


def top_membership(memberships: Sequence[Membership]) -> Optional[Membership]:
    """Highest-privilege membership, ties broken corp > provider > store."""
    if not memberships:
        return None
    return min(memberships, key=lambda m: m.role.rank)


def route(
    memberships: Sequence[Membership],
    account_role: Union[AccountRole, str, None],
    onboarding_status: Any = None,
) -> Destination:
    """Map memberships, role metadata and onboarding status to a destination.

    Any membership wins: the top one picks the dashboard. Without one the
    account's self-declared role picks an onboarding entry point, never a
    dashboard, carrying the step to present when a status is supplied.
    """
    top = top_membership(memberships)
    if top is not None:
        return Destination.dashboard(DASHBOARD_PORTALS[top.role.kind])

    role = account_role if isinstance(account_role, AccountRole) else AccountRole.from_metadata(account_role)
    step = 1
    if onboarding_status is not None:
        step = compute_current_step(onboarding_status, role)
    return Destination.onboarding(ONBOARDING_PORTALS[role], step)
