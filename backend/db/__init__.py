# backend/db/__init__.py
"""
Database package for SQLAlchemy setup, session management, and base models.
"""

from backend.db.base import Base
from backend.db.session import Database, get_session

__all__ = [
    "Base",
    "Database",
    "get_session",
]
