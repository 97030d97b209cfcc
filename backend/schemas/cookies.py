# backend/schemas/cookies.py
from __future__ import annotations

from typing import Optional

from pydantic import Field, StrictBool

from backend.schemas.common import RequestModel


class CookiePreferencesRequest(RequestModel):
    visitor_id: Optional[str] = Field(default=None, min_length=10, max_length=255)
    analytics: StrictBool
    marketing: StrictBool
    preferences: StrictBool
