# backend/db/base.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Use naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    metadata = MetaData(naming_convention=convention)

    def to_dict(self, exclude: Optional[list[str]] = None) -> Dict[str, Any]:
        """Convert model instance to dictionary."""
        exclude = exclude or []
        result = {}

        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.key)

            # Handle datetime serialization
            if isinstance(value, datetime):
                value = as_utc(value).isoformat()

            result[column.name] = value

        return result

    def __repr__(self) -> str:
        """String representation of model."""
        attrs = []
        for column in self.__table__.columns:
            if column.name in ["created_at", "updated_at", "password_hash"]:
                continue
            value = getattr(self, column.key)
            if value is not None:
                attrs.append(f"{column.name}={repr(value)}")

        return f"<{self.__class__.__name__}({', '.join(attrs)})>"


__all__ = [
    "Base",
    "as_utc",
    "utcnow",
]
