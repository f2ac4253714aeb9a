"""Landing destinations produced by the role router."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class DestinationKind(str, Enum):
    DASHBOARD = "dashboard"
    ONBOARDING = "onboarding"


class Portal(str, Enum):
    STORE = "store"
    PROVIDER = "provider"
    CORP = "corp"


DASHBOARD_PATHS: dict[Portal, str] = {
    Portal.STORE: "/store/dashboard",
    Portal.PROVIDER: "/provider/dashboard",
    Portal.CORP: "/corp/dashboard",
}

ONBOARDING_PATHS: dict[Portal, str] = {
    Portal.STORE: "/onboarding/store",
    Portal.PROVIDER: "/onboarding/provider",
}


class Destination(BaseModel):
    kind: DestinationKind
    portal: Portal
    path: str
    step: Optional[int] = None

    model_config = {"frozen": True}

    @classmethod
    def dashboard(cls, portal: Portal) -> "Destination":
        return cls(kind=DestinationKind.DASHBOARD, portal=portal, path=DASHBOARD_PATHS[portal])

    @classmethod
    def onboarding(cls, portal: Portal, step: Optional[int] = None) -> "Destination":
        return cls(
            kind=DestinationKind.ONBOARDING,
            portal=portal,
            path=ONBOARDING_PATHS[portal],
            step=step,
        )
