# backend/schemas/__init__.py
"""
Pydantic request and response models.
"""

from backend.schemas.analytics import HeartbeatRequest, SessionStartRequest, TrackEventRequest
from backend.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    UpdateUsernameRequest,
    UserOut,
)
from backend.schemas.contact import ContactRequest, ContactResponse, ContactStatusUpdate
from backend.schemas.cookies import CookiePreferencesRequest

__all__ = [
    "ChangePasswordRequest",
    "ContactRequest",
    "ContactResponse",
    "ContactStatusUpdate",
    "CookiePreferencesRequest",
    "HeartbeatRequest",
    "LoginRequest",
    "LoginResponse",
    "SessionStartRequest",
    "TrackEventRequest",
    "UpdateUsernameRequest",
    "UserOut",
]
