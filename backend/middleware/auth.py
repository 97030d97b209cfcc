# backend/middleware/auth.py
from __future__ import annotations

from typing import Dict, Iterable, Optional

from fastapi import Depends, Request, status
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError
from starlette.middleware.base import BaseHTTPMiddleware

from backend.core.exceptions import AuthenticationError, AuthorizationError
from backend.core.logging import get_structlog_logger
from backend.services.security import TokenService

logger = get_structlog_logger(__name__)


def _unauthorized(code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"success": False, "error": message, "code": code},
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Bearer token check for protected path prefixes."""

    def __init__(self, app, tokens: TokenService, protected_prefixes: Iterable[str]):
        super().__init__(app)
        self.tokens = tokens
        self.protected_prefixes = tuple(protected_prefixes)

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or not self._is_protected(request.url.path):
            return await call_next(request)

        token = self._extract_token(request)
        if not token:
            logger.warning("auth.missing_token", path=request.url.path, method=request.method)
            return _unauthorized("missing_token", "Authentication token is required")

        try:
            payload = self.tokens.decode(token)
        except ExpiredSignatureError:
            logger.warning("auth.expired_token", path=request.url.path)
            return _unauthorized("expired_token", "Token has expired")
        except Exception as e:
            # Any other decode failure is an invalid token, never a server error
            logger.warning("auth.invalid_token", error=str(e), path=request.url.path)
            return _unauthorized("invalid_token", "Invalid authentication token")

        if payload.get("type") != "access" or not payload.get("sub"):
            logger.warning("auth.invalid_token", error="missing claims", path=request.url.path)
            return _unauthorized("invalid_token", "Invalid authentication token")

        request.state.user = {
            "id": payload.get("sub"),
            "username": payload.get("username"),
            "role": payload.get("role"),
            "jti": payload.get("jti"),
        }
        logger.debug(
            "auth.authenticated",
            user_id=payload.get("sub"),
            role=payload.get("role"),
            path=request.url.path,
        )
        return await call_next(request)

    def _is_protected(self, path: str) -> bool:
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self.protected_prefixes)

    def _extract_token(self, request: Request) -> Optional[str]:
        """Extract token from Authorization header."""
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return None

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None
        return parts[1]


# Helper functions for route dependencies
async def get_current_user(request: Request) -> Dict:
    """Get current user from request state."""
    user = getattr(request.state, "user", None)
    if not user:
        raise AuthenticationError(message="User not authenticated", code="missing_token")
    return user


def require_role(*allowed_roles: str):
    """Dependency factory rejecting users whose role is not allowed."""

    async def _check(user: Dict = Depends(get_current_user)) -> Dict:
        if user.get("role") not in allowed_roles:
            logger.warning("auth.forbidden", user_id=user.get("id"), role=user.get("role"))
            raise AuthorizationError(
                message=f"Requires one of roles: {', '.join(allowed_roles)}",
                details={"userRole": user.get("role"), "allowedRoles": list(allowed_roles)},
            )
        return user

    return _check
