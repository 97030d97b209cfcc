from backend.middleware.auth import AuthMiddleware, get_current_user, require_role
from backend.middleware.logging import LoggingMiddleware
from backend.middleware.rate_limiter import RateLimitingMiddleware, client_ip
from backend.middleware.request_id import RequestIdMiddleware
from backend.middleware.security import BodySizeLimitMiddleware, SecurityHeadersMiddleware

__all__ = [
    "AuthMiddleware",
    "BodySizeLimitMiddleware",
    "LoggingMiddleware",
    "RateLimitingMiddleware",
    "RequestIdMiddleware",
    "SecurityHeadersMiddleware",
    "client_ip",
    "get_current_user",
    "require_role",
]
