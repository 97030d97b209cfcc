# backend/models/__init__.py
"""
SQLAlchemy ORM models for database entities.
"""

from backend.models.admin_user import AdminUser
from backend.models.analytics import AnalyticsEvent, AnalyticsSession
from backend.models.audit import AuditLogEntry
from backend.models.contact import Contact
from backend.models.cookie_preference import CookiePreference

__all__ = [
    "AdminUser",
    "AnalyticsEvent",
    "AnalyticsSession",
    "AuditLogEntry",
    "Contact",
    "CookiePreference",
]
