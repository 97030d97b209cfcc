# backend/services/analytics.py
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from backend.services.sanitize import sanitize_string

_DEVICE_RULES = [
    (re.compile(r"mobile", re.IGNORECASE), "mobile"),
    (re.compile(r"tablet|ipad", re.IGNORECASE), "tablet"),
]
# First match wins; Edge UAs also contain "Chrome" and "Safari"
_BROWSER_RULES = [
    (re.compile(r"firefox", re.IGNORECASE), "Firefox"),
    (re.compile(r"edg", re.IGNORECASE), "Edge"),
    (re.compile(r"chrome", re.IGNORECASE), "Chrome"),
    (re.compile(r"safari", re.IGNORECASE), "Safari"),
    (re.compile(r"opera|opr", re.IGNORECASE), "Opera"),
]
_OS_RULES = [
    (re.compile(r"windows", re.IGNORECASE), "Windows"),
    (re.compile(r"macintosh|mac os", re.IGNORECASE), "MacOS"),
    (re.compile(r"linux", re.IGNORECASE), "Linux"),
    (re.compile(r"android", re.IGNORECASE), "Android"),
    (re.compile(r"iphone|ipad|ipod", re.IGNORECASE), "iOS"),
]

MAX_EVENT_DATA_CHARS = 1000


@dataclass(frozen=True)
class UserAgentInfo:
    device_type: str
    browser: str
    os: str


def _first_match(rules, value: str, default: str) -> str:
    for pattern, label in rules:
        if pattern.search(value):
            return label
    return default


def parse_user_agent(user_agent: Optional[str]) -> UserAgentInfo:
    if not user_agent:
        return UserAgentInfo(device_type="unknown", browser="unknown", os="unknown")
    return UserAgentInfo(
        device_type=_first_match(_DEVICE_RULES, user_agent, "desktop"),
        browser=_first_match(_BROWSER_RULES, user_agent, "unknown"),
        os=_first_match(_OS_RULES, user_agent, "unknown"),
    )


def clamp_scroll_depth(value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    return min(100, max(0, round(value)))


def round_position(value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    return round(value)


def bounded_event_data(value: Any) -> Any:
    """Return the payload when its JSON form fits the size cap, else None."""
    if value is None:
        return None
    try:
        encoded = json.dumps(value, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError):
        return None
    if len(encoded) > MAX_EVENT_DATA_CHARS:
        return None
    return value


def clean_optional(value: Optional[str], max_length: int) -> Optional[str]:
    cleaned = sanitize_string(value or "", max_length=max_length)
    return cleaned or None
