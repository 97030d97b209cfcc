# backend/schemas/analytics.py
from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from backend.schemas.common import RequestModel

# Page coordinates in CSS pixels and a week of dwell time
MAX_POSITION = 100_000
MAX_TIME_ON_PAGE = 7 * 24 * 60 * 60


class SessionStartRequest(RequestModel):
    session_id: Optional[str] = None
    visitor_id: Optional[str] = None
    landing_page: Optional[str] = None


class TrackEventRequest(RequestModel):
    session_id: Optional[str] = None
    event_type: Optional[str] = None
    event_data: Optional[Any] = None
    page_url: Optional[str] = None
    element_id: Optional[str] = None
    element_class: Optional[str] = None
    element_text: Optional[str] = None
    x_position: Optional[float] = Field(default=None, ge=0, le=MAX_POSITION, allow_inf_nan=False)
    y_position: Optional[float] = Field(default=None, ge=0, le=MAX_POSITION, allow_inf_nan=False)
    scroll_depth: Optional[float] = Field(default=None, allow_inf_nan=False)


class HeartbeatRequest(RequestModel):
    session_id: Optional[str] = None
    time_on_page: Optional[float] = Field(default=None, ge=0, le=MAX_TIME_ON_PAGE, allow_inf_nan=False)
