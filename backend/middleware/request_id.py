# backend/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from typing import Mapping

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from backend.core.logging import bind_request_context

# Caller-supplied ids are echoed in headers and logs, so only plain tokens are accepted
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")
_TRACEPARENT = re.compile(r"^00-([0-9a-f]{32})-[0-9a-f]{16}-[0-9a-f]{2}$")


def resolve_request_id(headers: Mapping[str, str]) -> str:
    """Reuse an upstream id (X-Request-ID, X-Correlation-ID, W3C traceparent) or mint one."""
    for header in ("X-Request-ID", "X-Correlation-ID"):
        candidate = (headers.get(header) or "").strip()
        if _SAFE_ID.match(candidate):
            return candidate

    match = _TRACEPARENT.match((headers.get("traceparent") or "").strip().lower())
    if match:
        return match.group(1)

    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and bind it into the log context."""

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request.headers)
        request.state.request_id = request_id
        bind_request_context(request_id, method=request.method, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
