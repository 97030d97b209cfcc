from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional


class BaseAPIException(Exception):
    """Base exception for all API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BaseAPIException):
    """Validation error."""
    def __init__(self, message: str = "Validation failed", **kwargs):
        kwargs.setdefault("code", "validation_error")
        super().__init__(message, status_code=400, **kwargs)


class AuthenticationError(BaseAPIException):
    """Authentication failed."""
    def __init__(self, message: str = "Authentication failed", **kwargs):
        kwargs.setdefault("code", "authentication_failed")
        super().__init__(message, status_code=401, **kwargs)


class InvalidCredentialsError(AuthenticationError):
    """Wrong password for a known account."""

    def __init__(self, attempts_remaining: int, message: str = "Invalid credentials", **kwargs):
        kwargs.setdefault("code", "invalid_credentials")
        super().__init__(message, **kwargs)
        self.attempts_remaining = attempts_remaining

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["attemptsRemaining"] = self.attempts_remaining
        return body


class AuthorizationError(BaseAPIException):
    """Authorization failed."""
    def __init__(self, message: str = "Insufficient permissions", **kwargs):
        kwargs.setdefault("code", "forbidden")
        super().__init__(message, status_code=403, **kwargs)


class NotFoundError(BaseAPIException):
    """Resource not found."""
    def __init__(self, message: str = "Resource not found", **kwargs):
        kwargs.setdefault("code", "not_found")
        super().__init__(message, status_code=404, **kwargs)


class ConflictError(BaseAPIException):
    """Resource conflict."""
    def __init__(self, message: str = "Resource conflict", **kwargs):
        kwargs.setdefault("code", "conflict")
        super().__init__(message, status_code=409, **kwargs)


class PayloadTooLargeError(BaseAPIException):
    """Request body exceeds the configured limit."""
    def __init__(self, message: str = "Request body too large", **kwargs):
        kwargs.setdefault("code", "payload_too_large")
        super().__init__(message, status_code=413, **kwargs)


class AccountLockedError(BaseAPIException):
    """Login refused while the account lockout window is open."""

    def __init__(
        self,
        locked_until: datetime,
        retry_after: int,
        message: str = "Account is temporarily locked. Please try again later.",
        **kwargs,
    ):
        kwargs.setdefault("code", "account_locked")
        kwargs.setdefault("headers", {"Retry-After": str(retry_after)})
        super().__init__(message, status_code=423, **kwargs)
        self.locked_until = locked_until
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["lockedUntil"] = self.locked_until.isoformat()
        body["retryAfter"] = self.retry_after
        return body


class RateLimitError(BaseAPIException):
    """Rate limit exceeded."""
    def __init__(self, message: str = "Too many requests, please try again later.", retry_after: Optional[int] = None, **kwargs):
        kwargs.setdefault("code", "rate_limited")
        if retry_after is not None:
            kwargs.setdefault("headers", {"Retry-After": str(retry_after)})
        super().__init__(message, status_code=429, **kwargs)
        self.retry_after = retry_after


class DatabaseError(BaseAPIException):
    """Database error."""
    def __init__(self, message: str = "Database error", **kwargs):
        kwargs.setdefault("code", "database_error")
        super().__init__(message, status_code=500, **kwargs)
