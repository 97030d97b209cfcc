# backend/services/audit.py
from __future__ import annotations

from typing import Any, Dict, Optional

from backend.core.logging import get_structlog_logger
from backend.db.session import Database
from backend.models.audit import SEVERITIES, AuditLogEntry

logger = get_structlog_logger(__name__)


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


class AuditLogger:
    """Best-effort writer for the audit log.

    Each entry is committed in its own session, so callers should log after
    their own transaction has committed. Failures are logged and swallowed;
    an audit write never fails the request that triggered it.
    """

    def __init__(self, database: Database):
        self.database = database

    async def log(
        self,
        action: str,
        *,
        admin_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        entity_id: Any = None,
        old_value: Any = None,
        new_value: Any = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: str = "info",
    ) -> bool:
        if severity not in SEVERITIES:
            severity = "info"

        entry = AuditLogEntry(
            admin_id=admin_id,
            action=action,
            entity_type=entity_type,
            entity_id=_to_text(entity_id),
            old_value=_to_text(old_value),
            new_value=_to_text(new_value),
            ip_address=ip_address or None,
            user_agent=(user_agent or "")[:500] or None,
            details=details,
            severity=severity,
        )

        try:
            async with self.database.session_factory() as session:
                session.add(entry)
                await session.commit()
        except Exception as e:
            logger.error("audit.write_failed", action=action, error=str(e))
            return False

        logger.info(
            "audit.recorded",
            action=action,
            admin_id=admin_id,
            entity_type=entity_type,
            entity_id=entry.entity_id,
            severity=severity,
        )
        return True
