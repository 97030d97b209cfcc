# backend/middleware/rate_limiter.py
from __future__ import annotations

from typing import List

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from backend.core.config import Settings
from backend.core.exceptions import RateLimitError
from backend.core.logging import get_structlog_logger
from backend.services.rate_limit import RateLimiter

logger = get_structlog_logger(__name__)

LOGIN_PATH_SUFFIX = "/auth/login"


def forwarded_hops(request: Request) -> List[str]:
    forwarded_for = request.headers.get("X-Forwarded-For") or ""
    return [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]


def client_ip(request: Request, trusted_hops: int = 0) -> str:
    """Address that reached the last trusted proxy.

    Every proxy appends the peer it saw to X-Forwarded-For, so only the
    rightmost `trusted_hops` entries were written by infrastructure we run.
    With no trusted proxy the socket peer is the client.
    """
    peer = request.client.host if request.client else "unknown"
    if trusted_hops <= 0:
        return peer
    hops = forwarded_hops(request)
    if not hops:
        return peer
    return hops[-min(trusted_hops, len(hops))]


def reported_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer. Recorded, never trusted."""
    hops = forwarded_hops(request)
    if hops:
        return hops[0]
    return request.client.host if request.client else "unknown"


class RateLimitingMiddleware(BaseHTTPMiddleware):
    """Fixed window rate limiting on the API prefix, stricter on login."""

    def __init__(self, app, settings: Settings, limiter: RateLimiter):
        super().__init__(app)
        self.enabled = settings.rate_limit_enabled
        self.api_prefix = settings.api_prefix
        self.limiter = limiter
        self.trusted_hops = settings.trusted_proxy_hops
        self.rate_limit_requests = settings.rate_limit_requests
        self.rate_limit_period = settings.rate_limit_period
        self.login_limit_requests = settings.login_rate_limit_requests
        self.login_limit_period = settings.login_rate_limit_period

        # Exempt paths from rate limiting
        self.exempt_paths = {
            f"{self.api_prefix}/health",
            f"{self.api_prefix}/health/ready",
            f"{self.api_prefix}/health/live",
        }

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if (
            not self.enabled
            or request.method == "OPTIONS"
            or not path.startswith(self.api_prefix)
            or path in self.exempt_paths
        ):
            return await call_next(request)

        ip = client_ip(request, self.trusted_hops)

        if path == f"{self.api_prefix}{LOGIN_PATH_SUFFIX}" and request.method == "POST":
            login = await self.limiter.hit(f"login:{ip}", self.login_limit_requests, self.login_limit_period)
            if not login.allowed:
                return self._reject(
                    request,
                    ip,
                    login,
                    "Too many login attempts, please try again later.",
                )

        result = await self.limiter.hit(f"api:{ip}", self.rate_limit_requests, self.rate_limit_period)
        if not result.allowed:
            return self._reject(request, ip, result, "Too many requests, please try again later.")

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_at)
        return response

    def _reject(self, request: Request, ip: str, result, message: str) -> JSONResponse:
        logger.warning(
            "rate_limit.exceeded",
            client_ip=ip,
            path=request.url.path,
            method=request.method,
            retry_after=result.retry_after,
        )
        error = RateLimitError(
            message=message,
            retry_after=result.retry_after,
            details={"limit": result.limit, "retryAfter": result.retry_after},
        )
        response = JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=error.headers)
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = "0"
        response.headers["X-RateLimit-Reset"] = str(result.reset_at)
        return response
