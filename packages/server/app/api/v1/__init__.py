"""
API v1 Router

Organization and connection routes carry org ids in their paths; onboarding
and destination routes act on the authenticated caller.
"""

from fastapi import APIRouter

from . import connections, me, onboarding, organizations

router = APIRouter()

router.include_router(organizations.router)
router.include_router(connections.router)
router.include_router(onboarding.router, prefix="/onboarding", tags=["Onboarding"])
router.include_router(me.router, prefix="/me", tags=["Routing"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/orgs",
            "/orgs/{org_id}/connections",
            "/providers",
            "/connections",
            "/onboarding/status",
            "/me/destination",
        ],
    }
