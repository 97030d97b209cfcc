# backend/routes/cookies.py
from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.logging import get_structlog_logger
from backend.db.session import get_session
from backend.models.cookie_preference import CookiePreference
from backend.routes.deps import get_request_context
from backend.schemas.cookies import CookiePreferencesRequest
from backend.services.auth import RequestContext

logger = get_structlog_logger(__name__)

router = APIRouter(prefix="/cookies", tags=["cookies"])

DEFAULT_PREFERENCES = {
    "necessary": True,
    "analytics": False,
    "marketing": False,
    "preferences": False,
}


@router.post("/preferences")
async def save_preferences(
    payload: CookiePreferencesRequest,
    session: AsyncSession = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    visitor_id = payload.visitor_id or str(uuid4())

    result = await session.execute(
        select(CookiePreference).where(CookiePreference.visitor_id == visitor_id)
    )
    record = result.scalars().first()
    if record is None:
        record = CookiePreference(visitor_id=visitor_id)
        session.add(record)

    record.necessary = True
    record.analytics = payload.analytics
    record.marketing = payload.marketing
    record.preferences = payload.preferences
    record.consent_given = True
    record.ip_address = context.ip_address
    record.user_agent = context.user_agent
    await session.commit()

    logger.info("cookies.preferences_saved", visitor_id=visitor_id[:8])
    return {
        "success": True,
        "visitorId": visitor_id,
        "preferences": record.as_preferences(),
    }


@router.get("/preferences/{visitor_id}")
async def get_preferences(
    visitor_id: str,
    session: AsyncSession = Depends(get_session),
):
    result = await session.execute(
        select(CookiePreference).where(CookiePreference.visitor_id == visitor_id)
    )
    record = result.scalars().first()
    if record is None:
        return {"found": False, "preferences": dict(DEFAULT_PREFERENCES)}

    return {
        "found": True,
        "preferences": {**record.as_preferences(), "consentGiven": bool(record.consent_given)},
    }


@router.delete("/preferences/{visitor_id}")
async def delete_preferences(
    visitor_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Right to be forgotten."""
    await session.execute(delete(CookiePreference).where(CookiePreference.visitor_id == visitor_id))
    await session.commit()
    logger.info("cookies.preferences_deleted", visitor_id=visitor_id[:8])
    return {"success": True, "message": "Preferences deleted"}
