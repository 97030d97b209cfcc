# backend/middleware/logging.py
from __future__ import annotations

import time
from typing import Any, Dict, Mapping

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from backend.core.logging import get_structlog_logger
from backend.middleware.rate_limiter import reported_client_ip

logger = get_structlog_logger(__name__)

QUIET_PATHS = {"/api/health/live", "/api/health/ready", "/metrics"}
SENSITIVE_HEADERS = (
    "authorization",
    "cookie",
    "x-api-key",
    "password",
    "token",
    "secret",
)
SLOW_REQUEST_MS = 1000


def filter_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy of the headers with credentials masked."""
    return {
        key: "[REDACTED]" if any(marker in key.lower() for marker in SENSITIVE_HEADERS) else value
        for key, value in headers.items()
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request and per response, timed."""

    async def dispatch(self, request: Request, call_next):
        quiet = request.url.path in QUIET_PATHS
        started = time.perf_counter()

        if not quiet:
            logger.info(
                "request.received",
                query_params=dict(request.query_params) or None,
                client_ip=reported_client_ip(request),
                user_agent=request.headers.get("user-agent", "unknown"),
                content_length=request.headers.get("content-length", "0"),
                headers=filter_headers(request.headers),
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request.exception",
                response_time_ms=_elapsed_ms(started),
                exception_type=type(e).__name__,
                exception_message=str(e),
            )
            raise

        elapsed_ms = _elapsed_ms(started)
        response.headers["X-Response-Time"] = f"{elapsed_ms / 1000:.3f}"
        if quiet:
            return response

        fields: Dict[str, Any] = {
            "status_code": response.status_code,
            "response_time_ms": elapsed_ms,
            "response_size": response.headers.get("content-length", "0"),
        }
        user = getattr(request.state, "user", None)
        if user:
            fields["user_id"] = user.get("id")

        if response.status_code >= 500:
            logger.error("response.sent", error_type="server_error", **fields)
        elif response.status_code >= 400:
            logger.warning("response.sent", error_type="client_error", **fields)
        elif elapsed_ms > SLOW_REQUEST_MS:
            logger.warning("response.slow", threshold_ms=SLOW_REQUEST_MS, **fields)
        else:
            logger.info("response.sent", **fields)
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
