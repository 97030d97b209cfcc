# backend/models/contact.py
from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    func,
)

from backend.db.base import Base, utcnow

CONTACT_STATUSES = ("new", "read", "contacted", "replied", "converted", "archived")
SERVICE_TIERS = ("tier1", "tier2")


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    company = Column(String(200))
    job_title = Column(String(200))
    message = Column(Text, nullable=False)

    service_tier = Column(String(10), nullable=True)
    priority = Column(String(10), nullable=False, server_default="normal")
    status = Column(
        Enum(*CONTACT_STATUSES, name="contact_status"),
        nullable=False,
        server_default="new",
    )

    # Request metadata
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    referrer = Column(String(500))

    # Follow-up timeline
    read_at = Column(DateTime(timezone=True))
    contacted_at = Column(DateTime(timezone=True))
    archived_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_contacts_email", "email"),
        Index("idx_contacts_status", "status"),
        Index("idx_contacts_created_at", "created_at"),
        CheckConstraint("length(email) > 0", name="check_email_not_empty"),
        CheckConstraint(
            f"service_tier IS NULL OR service_tier IN {SERVICE_TIERS!r}",
            name="check_service_tier",
        ),
        CheckConstraint("priority IN ('normal', 'high')", name="check_priority"),
    )
