# backend/core/logging.py
"""structlog setup shared by the API process and the CLI."""
from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog

from backend.core.config import Settings

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "aiosqlite", "passlib", "asyncio", "multipart")


def _service_context(service: str, environment: str):
    def add_service(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        event_dict.setdefault("env", environment)
        return event_dict

    return add_service


def configure_structlog(settings: Settings) -> None:
    level = getattr(logging, settings.log_level, logging.INFO)

    if settings.log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _service_context(settings.app_name, settings.environment),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_structlog_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: Optional[str] = None, **fields: Any) -> None:
    """Start a fresh log context for one request."""
    structlog.contextvars.clear_contextvars()
    if request_id:
        fields["request_id"] = request_id
    if fields:
        structlog.contextvars.bind_contextvars(**fields)
