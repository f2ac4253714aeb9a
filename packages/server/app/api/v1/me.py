"""
Caller-scoped endpoints.

GET    /api/v1/me/destination   — Where the caller should land (dashboard or onboarding)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionContext, get_session_context
from app.core.database import get_session
from app.services.onboarding import peek_status
from app.services.routing import route
from cartcare_shared.schemas.routing import Destination

router = APIRouter()


@router.get("/destination", response_model=Destination)
async def get_destination(
    ctx: SessionContext = Depends(get_session_context),
    session: AsyncSession = Depends(get_session),
):
    status = await peek_status(ctx, session)
    return route(ctx.memberships, ctx.account_role, status)
