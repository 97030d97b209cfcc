# backend/routes/admin.py
from __future__ import annotations

import math
from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.logging import get_structlog_logger
from backend.db.base import utcnow
from backend.db.session import get_session
from backend.middleware.auth import require_role
from backend.models.admin_user import ADMIN_ROLES
from backend.models.analytics import AnalyticsEvent, AnalyticsSession
from backend.models.audit import AuditLogEntry
from backend.models.contact import CONTACT_STATUSES, Contact
from backend.routes.deps import get_audit_logger, get_request_context
from backend.schemas.contact import ContactStatusUpdate
from backend.services.audit import AuditLogger
from backend.services.auth import RequestContext

logger = get_structlog_logger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_role(*ADMIN_ROLES))],
)

CHART_METRICS = ("visitors", "pageviews", "contacts")
MAX_PAGE = 10_000
# Largest value a signed 64-bit INTEGER column holds
MAX_ROW_ID = 2**63 - 1

# Timeline column stamped when a contact enters the given status
STATUS_TIMESTAMPS = {
    "read": "read_at",
    "contacted": "contacted_at",
    "archived": "archived_at",
}


def _pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


async def _scalar(session: AsyncSession, statement) -> Any:
    result = await session.execute(statement)
    return result.scalar()


async def _count(session: AsyncSession, statement) -> int:
    return int(await _scalar(session, select(func.count()).select_from(statement.subquery())) or 0)


async def _find_contact(session: AsyncSession, contact_id: str) -> Optional[Contact]:
    condition = Contact.uuid == contact_id
    if contact_id.isdigit() and int(contact_id) <= MAX_ROW_ID:
        condition = or_(Contact.id == int(contact_id), condition)
    result = await session.execute(select(Contact).where(condition))
    return result.scalars().first()


@router.get("/dashboard")
async def dashboard(session: AsyncSession = Depends(get_session)):
    now = utcnow()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = now - timedelta(days=7)

    distinct_visitors = select(func.count(func.distinct(AnalyticsSession.visitor_id)))
    page_views = select(func.count(AnalyticsEvent.id)).where(AnalyticsEvent.event_type == "page_view")
    contacts = select(func.count(Contact.id))

    avg_duration = await _scalar(
        session,
        select(func.avg(AnalyticsSession.total_time_seconds)).where(AnalyticsSession.total_time_seconds > 0),
    )

    overview = {
        "totalVisitors": await _scalar(session, distinct_visitors) or 0,
        "visitorsToday": await _scalar(session, distinct_visitors.where(AnalyticsSession.started_at >= today_start)) or 0,
        "visitorsWeek": await _scalar(session, distinct_visitors.where(AnalyticsSession.started_at >= week_ago)) or 0,
        "totalPageViews": await _scalar(session, page_views) or 0,
        "pageViewsToday": await _scalar(session, page_views.where(AnalyticsEvent.created_at >= today_start)) or 0,
        "avgSessionDuration": round(float(avg_duration or 0)),
        "totalContacts": await _scalar(session, contacts) or 0,
        "newContacts": await _scalar(session, contacts.where(Contact.status == "new")) or 0,
        "contactsWeek": await _scalar(session, contacts.where(Contact.created_at >= week_ago)) or 0,
    }

    device_rows = await session.execute(
        select(AnalyticsSession.device_type, func.count().label("count"))
        .group_by(AnalyticsSession.device_type)
    )
    browser_count = func.count().label("count")
    browser_rows = await session.execute(
        select(AnalyticsSession.browser, browser_count)
        .group_by(AnalyticsSession.browser)
        .order_by(desc(browser_count))
        .limit(5)
    )
    views = func.count().label("views")
    page_rows = await session.execute(
        select(AnalyticsEvent.page_url, views)
        .where(
            AnalyticsEvent.event_type == "page_view",
            AnalyticsEvent.page_url.is_not(None),
            AnalyticsEvent.page_url != "",
        )
        .group_by(AnalyticsEvent.page_url)
        .order_by(desc(views))
        .limit(10)
    )

    return {
        "success": True,
        "data": {
            "overview": overview,
            "devices": [{"device_type": row.device_type, "count": row.count} for row in device_rows],
            "browsers": [{"browser": row.browser, "count": row.count} for row in browser_rows],
            "topPages": [{"page_url": row.page_url, "views": row.views} for row in page_rows],
        },
    }


@router.get("/contacts")
async def list_contacts(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    session: AsyncSession = Depends(get_session),
):
    statement = select(Contact)
    if status and status != "all":
        statement = statement.where(Contact.status == status)
    if search:
        term = f"%{search}%"
        statement = statement.where(
            or_(
                Contact.first_name.ilike(term),
                Contact.last_name.ilike(term),
                Contact.email.ilike(term),
                Contact.company.ilike(term),
            )
        )

    total = await _count(session, statement)
    result = await session.execute(
        statement.order_by(desc(Contact.created_at), desc(Contact.id))
        .limit(limit)
        .offset((page - 1) * limit)
    )

    return {
        "success": True,
        "data": {
            "contacts": [contact.to_dict() for contact in result.scalars()],
            "pagination": _pagination(page, limit, total),
        },
    }


@router.get("/contacts/{contact_id}")
async def get_contact(
    contact_id: str,
    session: AsyncSession = Depends(get_session),
):
    contact = await _find_contact(session, contact_id)
    if contact is None:
        raise NotFoundError("Contact not found")

    if contact.status == "new":
        contact.status = "read"
        contact.read_at = utcnow()
        await session.commit()

    return {"success": True, "data": contact.to_dict()}


@router.put("/contacts/{contact_id}/status")
async def update_contact_status(
    contact_id: str,
    payload: ContactStatusUpdate,
    user: Dict = Depends(require_role(*ADMIN_ROLES)),
    session: AsyncSession = Depends(get_session),
    audit: AuditLogger = Depends(get_audit_logger),
    context: RequestContext = Depends(get_request_context),
):
    new_status = payload.status.strip().lower()
    if new_status not in CONTACT_STATUSES:
        raise ValidationError("Invalid status", details={"allowed": list(CONTACT_STATUSES)})

    contact = await _find_contact(session, contact_id)
    if contact is None:
        raise NotFoundError("Contact not found")

    old_status = contact.status
    contact.status = new_status
    timestamp_column = STATUS_TIMESTAMPS.get(new_status)
    if timestamp_column and getattr(contact, timestamp_column) is None:
        setattr(contact, timestamp_column, utcnow())
    await session.commit()

    logger.info("contact.status_changed", contact_id=contact.uuid, old=old_status, new=new_status)
    await audit.log(
        "contact_status_changed",
        admin_id=int(user["id"]),
        entity_type="contact",
        entity_id=contact.uuid,
        old_value=old_status,
        new_value=new_status,
        ip_address=context.ip_address,
        user_agent=context.user_agent,
    )
    return {"success": True, "message": "Status updated", "data": {"id": contact.uuid, "status": new_status}}


@router.get("/analytics/sessions")
async def list_sessions(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(50, ge=1, le=200),
    days: int = Query(7, ge=1, le=365),
    session: AsyncSession = Depends(get_session),
):
    since = utcnow() - timedelta(days=days)
    statement = select(AnalyticsSession).where(AnalyticsSession.started_at >= since)

    total = await _count(session, statement)
    result = await session.execute(
        statement.order_by(desc(AnalyticsSession.started_at))
        .limit(limit)
        .offset((page - 1) * limit)
    )

    return {
        "success": True,
        "data": {
            "sessions": [row.to_dict() for row in result.scalars()],
            "pagination": _pagination(page, limit, total),
        },
    }


@router.get("/analytics/events")
async def list_events(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    event_type: Optional[str] = Query(None, alias="eventType"),
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
):
    statement = select(AnalyticsEvent)
    if session_id:
        statement = statement.where(AnalyticsEvent.session_id == session_id)
    if event_type:
        statement = statement.where(AnalyticsEvent.event_type == event_type)

    result = await session.execute(
        statement.order_by(desc(AnalyticsEvent.created_at), desc(AnalyticsEvent.id))
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return {"success": True, "data": {"events": [row.to_dict() for row in result.scalars()]}}


@router.get("/analytics/clicks")
async def click_heatmap(
    days: int = Query(7, ge=1, le=365),
    session: AsyncSession = Depends(get_session),
):
    since = utcnow() - timedelta(days=days)
    click_count = func.count().label("click_count")
    result = await session.execute(
        select(
            AnalyticsEvent.page_url,
            AnalyticsEvent.element_id,
            AnalyticsEvent.element_class,
            func.max(AnalyticsEvent.element_text).label("element_text"),
            click_count,
            func.avg(AnalyticsEvent.x_position).label("avg_x"),
            func.avg(AnalyticsEvent.y_position).label("avg_y"),
        )
        .where(
            AnalyticsEvent.event_type == "click",
            AnalyticsEvent.created_at >= since,
            AnalyticsEvent.x_position.is_not(None),
        )
        .group_by(AnalyticsEvent.page_url, AnalyticsEvent.element_id, AnalyticsEvent.element_class)
        .order_by(desc(click_count))
        .limit(100)
    )

    clicks: List[Dict[str, Any]] = [
        {
            "page_url": row.page_url,
            "element_id": row.element_id,
            "element_class": row.element_class,
            "element_text": row.element_text,
            "click_count": row.click_count,
            "avg_x": round(float(row.avg_x)) if row.avg_x is not None else None,
            "avg_y": round(float(row.avg_y)) if row.avg_y is not None else None,
        }
        for row in result
    ]
    return {"success": True, "data": {"clicks": clicks}}


@router.get("/analytics/chart-data")
async def chart_data(
    days: int = Query(30, ge=1, le=365),
    metric: str = Query("visitors"),
    session: AsyncSession = Depends(get_session),
):
    if metric not in CHART_METRICS:
        raise ValidationError("Invalid metric", details={"allowed": list(CHART_METRICS)})

    since = utcnow() - timedelta(days=days)
    if metric == "visitors":
        day = func.date(AnalyticsSession.started_at).label("date")
        statement = (
            select(day, func.count(func.distinct(AnalyticsSession.visitor_id)).label("value"))
            .where(AnalyticsSession.started_at >= since)
        )
    elif metric == "pageviews":
        day = func.date(AnalyticsEvent.created_at).label("date")
        statement = (
            select(day, func.count().label("value"))
            .where(AnalyticsEvent.event_type == "page_view", AnalyticsEvent.created_at >= since)
        )
    else:
        day = func.date(Contact.created_at).label("date")
        statement = select(day, func.count().label("value")).where(Contact.created_at >= since)

    result = await session.execute(statement.group_by(day).order_by(day))
    return {
        "success": True,
        "data": {
            "metric": metric,
            "chartData": [{"date": str(row.date), "value": row.value} for row in result],
        },
    }


@router.get("/audit-log")
async def audit_log(
    action: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(50, ge=1, le=200),
    user: Dict = Depends(require_role("superadmin")),
    session: AsyncSession = Depends(get_session),
):
    statement = select(AuditLogEntry)
    if action:
        statement = statement.where(AuditLogEntry.action == action)
    if severity:
        statement = statement.where(AuditLogEntry.severity == severity)

    total = await _count(session, statement)
    result = await session.execute(
        statement.order_by(desc(AuditLogEntry.created_at), desc(AuditLogEntry.id))
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return {
        "success": True,
        "data": {
            "entries": [row.to_dict() for row in result.scalars()],
            "pagination": _pagination(page, limit, total),
        },
    }
