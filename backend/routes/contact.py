# backend/routes/contact.py
from __future__ import annotations

import re
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.logging import get_structlog_logger
from backend.db.base import as_utc
from backend.db.session import get_session
from backend.models.contact import Contact
from backend.routes.deps import get_audit_logger, get_notifier, get_request_context
from backend.schemas.contact import ContactRequest, ContactResponse
from backend.services.audit import AuditLogger
from backend.services.auth import RequestContext
from backend.services.notifications import EmailNotifier
from backend.services.sanitize import sanitize_string, validate_contact_form

logger = get_structlog_logger(__name__)

router = APIRouter(tags=["contact"])

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

SUBMITTED_MESSAGE = "Your message has been received. We will get back to you soon."


@router.post("/contact", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
@router.post("/leads", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def submit_contact(
    payload: ContactRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditLogger = Depends(get_audit_logger),
    notifier: EmailNotifier = Depends(get_notifier),
):
    """Store a contact form submission and notify the team."""
    validation = validate_contact_form(payload.model_dump())
    if not validation.is_valid:
        logger.info("contact.validation_failed", errors=validation.errors, ip=context.ip_address)
        raise ValidationError("Validation failed", details=validation.errors)

    data = validation.data
    service_tier = payload.service_tier or None
    contact = Contact(
        uuid=str(uuid4()),
        first_name=data["first_name"],
        last_name=data["last_name"],
        email=data["email"],
        company=data["company"] or None,
        job_title=data["job_title"] or None,
        message=data["message"],
        service_tier=service_tier,
        priority="high" if service_tier == "tier2" else "normal",
        status="new",
        ip_address=context.ip_address,
        user_agent=context.user_agent,
        referrer=sanitize_string(request.headers.get("referer") or "", max_length=500) or None,
    )
    session.add(contact)
    await session.commit()

    logger.info(
        "contact.submitted",
        contact_id=contact.uuid,
        service_tier=service_tier,
        priority=contact.priority,
    )

    if validation.warnings:
        logger.warning(
            "contact.suspicious_input",
            contact_id=contact.uuid,
            warnings=validation.warnings,
            ip=context.ip_address,
        )
        await audit.log(
            "suspicious_contact_submission",
            entity_type="contact",
            entity_id=contact.uuid,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            details={"warnings": validation.warnings},
            severity="critical",
        )

    background_tasks.add_task(notifier.send_contact_notification, contact.to_dict())

    return ContactResponse(message=SUBMITTED_MESSAGE, id=contact.uuid)


@router.get("/contact/status/{submission_id}")
async def contact_status(
    submission_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Let a submitter check on their message. Never changes the status."""
    if not _UUID_PATTERN.match(submission_id):
        raise ValidationError("Invalid submission ID format")

    result = await session.execute(
        select(Contact.uuid, Contact.created_at, Contact.status).where(Contact.uuid == submission_id.lower())
    )
    row = result.first()
    if row is None:
        raise NotFoundError("Submission not found")

    return {
        "success": True,
        "data": {
            "id": row.uuid,
            "submittedAt": as_utc(row.created_at).isoformat(),
            "status": row.status,
        },
    }
