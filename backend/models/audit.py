# backend/models/audit.py
from __future__ import annotations

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from backend.db.base import Base, utcnow

SEVERITIES = ("debug", "info", "warning", "error", "critical")


class AuditLogEntry(Base):
    """Append-only record of security relevant actions."""

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True)
    admin_id = Column(ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)
    entity_type = Column(String(50))
    entity_id = Column(String(64))
    old_value = Column(Text)
    new_value = Column(Text)
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    details = Column(JSON)
    severity = Column(String(10), nullable=False, server_default="info")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_audit_log_admin", "admin_id"),
        Index("idx_audit_log_action", "action"),
        Index("idx_audit_log_created_at", "created_at"),
        CheckConstraint(
            "severity IN ('debug', 'info', 'warning', 'error', 'critical')",
            name="check_severity",
        ),
    )
