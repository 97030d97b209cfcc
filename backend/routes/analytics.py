# backend/routes/analytics.py
from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.logging import get_structlog_logger
from backend.db.base import utcnow
from backend.db.session import get_session
from backend.models.analytics import EVENT_TYPES, AnalyticsEvent, AnalyticsSession
from backend.routes.deps import get_request_context
from backend.schemas.analytics import HeartbeatRequest, SessionStartRequest, TrackEventRequest
from backend.services.analytics import (
    bounded_event_data,
    clamp_scroll_depth,
    clean_optional,
    parse_user_agent,
    round_position,
)
from backend.services.auth import RequestContext
from backend.services.sanitize import sanitize_string, sanitize_url

logger = get_structlog_logger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


async def _session_exists(session: AsyncSession, session_id: str) -> bool:
    result = await session.execute(
        select(AnalyticsSession.id).where(AnalyticsSession.session_id == session_id)
    )
    return result.first() is not None


@router.post("/session")
async def start_session(
    payload: SessionStartRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    """Start a visitor session. A known session id is echoed back untouched."""
    if payload.session_id:
        return {"success": True, "sessionId": payload.session_id, "visitorId": payload.visitor_id}

    session_id = str(uuid4())
    visitor_id = sanitize_string(payload.visitor_id or "", max_length=64) or str(uuid4())
    user_agent = context.user_agent
    ua_info = parse_user_agent(user_agent)

    session.add(
        AnalyticsSession(
            session_id=session_id,
            visitor_id=visitor_id,
            ip_address=context.ip_address,
            user_agent=user_agent,
            referrer=sanitize_url(request.headers.get("referer") or "")[:500] or None,
            landing_page=sanitize_string(payload.landing_page or "/", max_length=500) or "/",
            device_type=ua_info.device_type,
            browser=ua_info.browser,
            os=ua_info.os,
        )
    )
    await session.commit()

    logger.info("analytics.session_started", session_id=session_id[:8], device=ua_info.device_type)
    return {"success": True, "sessionId": session_id, "visitorId": visitor_id}


@router.post("/track")
async def track_event(
    payload: TrackEventRequest,
    session: AsyncSession = Depends(get_session),
):
    if not payload.session_id:
        raise ValidationError("Session ID is required")

    event_type = sanitize_string(payload.event_type or "", max_length=50, lowercase=True)
    if event_type not in EVENT_TYPES:
        raise ValidationError("Invalid event type", details={"allowed": list(EVENT_TYPES)})

    if not await _session_exists(session, payload.session_id):
        raise NotFoundError("Session not found")

    session.add(
        AnalyticsEvent(
            session_id=payload.session_id,
            event_type=event_type,
            event_data=bounded_event_data(payload.event_data),
            page_url=clean_optional(payload.page_url, 500),
            element_id=clean_optional(payload.element_id, 100),
            element_class=clean_optional(payload.element_class, 200),
            element_text=clean_optional(payload.element_text, 100),
            x_position=round_position(payload.x_position),
            y_position=round_position(payload.y_position),
            scroll_depth=clamp_scroll_depth(payload.scroll_depth),
        )
    )

    if event_type == "page_view":
        await session.execute(
            update(AnalyticsSession)
            .where(AnalyticsSession.session_id == payload.session_id)
            .values(page_views=AnalyticsSession.page_views + 1, ended_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    await session.commit()
    return {"success": True}


@router.post("/heartbeat")
async def heartbeat(
    payload: HeartbeatRequest,
    session: AsyncSession = Depends(get_session),
):
    if not payload.session_id:
        raise ValidationError("Session ID is required")

    total_time = max(0, round(payload.time_on_page or 0))
    result = await session.execute(
        update(AnalyticsSession)
        .where(AnalyticsSession.session_id == payload.session_id)
        .values(total_time_seconds=total_time, ended_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise NotFoundError("Session not found")

    await session.commit()
    return {"success": True}
