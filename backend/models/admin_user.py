# backend/models/admin_user.py
from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Boolean,
    Index,
    Integer,
    String,
    func,
    true,
)

from backend.db.base import Base, utcnow

ADMIN_ROLES = ("admin", "superadmin")


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    username = Column(String(50), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), unique=True)
    role = Column(String(20), nullable=False, server_default="admin")
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    # Lockout state
    last_login = Column(DateTime(timezone=True))
    failed_attempts = Column(Integer, nullable=False, default=0, server_default="0")
    locked_until = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_admin_users_username", "username"),
        CheckConstraint(f"role IN {ADMIN_ROLES!r}", name="check_role"),
        CheckConstraint("failed_attempts >= 0", name="check_failed_attempts_non_negative"),
    )
