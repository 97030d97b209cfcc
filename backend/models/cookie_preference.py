# backend/models/cookie_preference.py
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String, false, func, true

from backend.db.base import Base, utcnow


class CookiePreference(Base):
    __tablename__ = "cookie_preferences"

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    visitor_id = Column(String(255), nullable=False, unique=True)
    necessary = Column(Boolean, nullable=False, default=True, server_default=true())
    analytics = Column(Boolean, nullable=False, default=False, server_default=false())
    marketing = Column(Boolean, nullable=False, default=False, server_default=false())
    preferences = Column(Boolean, nullable=False, default=False, server_default=false())
    consent_given = Column(Boolean, nullable=False, default=False, server_default=false())

    ip_address = Column(String(45))
    user_agent = Column(String(500))

    def as_preferences(self) -> dict:
        return {
            "necessary": True,
            "analytics": bool(self.analytics),
            "marketing": bool(self.marketing),
            "preferences": bool(self.preferences),
        }
