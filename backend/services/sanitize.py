# backend/services/sanitize.py
"""Input sanitization and contact form validation.

Every function here is pure and total: malformed input yields an empty string
or a failed validation result, never an exception.
"""
from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

import bleach
from email_validator import EmailNotValidError, validate_email
from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

_SCRIPT_STYLE_BLOCK = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_DANGEROUS_FRAGMENTS = [
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"data\s*:\s*text/html", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
]
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_NEWLINES = re.compile(r"[\r\n]+")
_NAME_DISALLOWED = re.compile(r"[^a-zA-ZÀ-ÿ\s'\-\.]")
_WHITESPACE_RUN = re.compile(r"\s+")
_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

SQL_INJECTION_PATTERNS = [
    re.compile(
        r"(\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION|FETCH|DECLARE|TRUNCATE)\b)",
        re.IGNORECASE,
    ),
    re.compile(r"(--|#|\/\*|\*\/)"),
    re.compile(r"\bOR\b\s+\d+\s*=\s*\d+", re.IGNORECASE),
    re.compile(r"\bAND\b\s+\d+\s*=\s*\d+", re.IGNORECASE),
    re.compile(r"(';|\";|`)"),
    re.compile(r"WAITFOR|BENCHMARK|SLEEP", re.IGNORECASE),
]

XSS_PATTERNS = [
    re.compile(r"<script\b[^>]*>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe\b", re.IGNORECASE),
    re.compile(r"<object\b", re.IGNORECASE),
    re.compile(r"<embed\b", re.IGNORECASE),
    re.compile(r"<link\b[^>]*href", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
    re.compile(r"url\s*\(", re.IGNORECASE),
]

_http_url = TypeAdapter(AnyHttpUrl)


def _strip_html(value: str) -> str:
    value = _SCRIPT_STYLE_BLOCK.sub("", value)
    return bleach.clean(value, tags=[], attributes={}, strip=True, strip_comments=True)


def _remove_dangerous_fragments(value: str) -> str:
    # Removing one fragment can splice together another, so repeat until stable
    previous = None
    while previous != value:
        previous = value
        for pattern in _DANGEROUS_FRAGMENTS:
            value = pattern.sub("", value)
    return value


def sanitize_string(
    value: Any,
    max_length: int = 1000,
    allow_newlines: bool = False,
    lowercase: bool = False,
    uppercase: bool = False,
) -> str:
    if not isinstance(value, str):
        return ""

    cleaned = _CONTROL_CHARS.sub("", value)
    cleaned = _strip_html(cleaned)
    cleaned = _remove_dangerous_fragments(cleaned)
    cleaned = cleaned.strip()

    if allow_newlines:
        cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    else:
        cleaned = _NEWLINES.sub(" ", cleaned)

    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length]

    if lowercase:
        cleaned = cleaned.lower()
    elif uppercase:
        cleaned = cleaned.upper()

    return cleaned


def sanitize_name(value: Any) -> str:
    cleaned = sanitize_string(value, max_length=100)
    cleaned = _NAME_DISALLOWED.sub("", cleaned)
    return _WHITESPACE_RUN.sub(" ", cleaned).strip()


def sanitize_email(value: Any) -> str:
    """Return the normalized address, or "" when it is not a valid email."""
    if not isinstance(value, str):
        return ""

    candidate = _strip_html(value.strip().lower())
    if not candidate or not _EMAIL_PATTERN.match(candidate):
        return ""

    try:
        result = validate_email(candidate, check_deliverability=False)
    except EmailNotValidError:
        return ""
    return result.normalized


def sanitize_message(value: Any) -> str:
    return sanitize_string(value, max_length=5000, allow_newlines=True)


def sanitize_ip(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    candidate = value.strip()
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return ""
    return candidate


def sanitize_url(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    candidate = value.strip()
    if not candidate:
        return ""
    try:
        _http_url.validate_python(candidate)
    except PydanticValidationError:
        return ""
    return candidate


def detect_sql_injection(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return any(pattern.search(value) for pattern in SQL_INJECTION_PATTERNS)


def detect_xss(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return any(pattern.search(value) for pattern in XSS_PATTERNS)


@dataclass
class ContactValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    data: Dict[str, str] = field(default_factory=dict)


def validate_contact_form(payload: Mapping[str, Any]) -> ContactValidation:
    """Sanitize and validate a contact submission.

    Injection detection only produces warnings; it never rejects a submission.
    """
    errors: List[str] = []
    warnings: List[str] = []

    data = {
        "first_name": sanitize_name(payload.get("first_name")),
        "last_name": sanitize_name(payload.get("last_name")),
        "email": sanitize_email(payload.get("email")),
        "company": sanitize_string(payload.get("company"), max_length=200),
        "job_title": sanitize_string(payload.get("job_title"), max_length=200),
        "message": sanitize_message(payload.get("message")),
    }

    if len(data["first_name"]) < 2:
        errors.append("First name must be at least 2 characters")
    if len(data["last_name"]) < 2:
        errors.append("Last name must be at least 2 characters")
    if not data["email"]:
        errors.append("Valid email address is required")
    if len(data["message"]) < 10:
        errors.append("Message must be at least 10 characters")

    for key in ("first_name", "last_name", "email", "company", "job_title", "message"):
        raw = payload.get(key)
        if detect_sql_injection(raw):
            warnings.append(f"Potential SQL injection detected in {key}")
        if detect_xss(raw):
            warnings.append(f"Potential XSS detected in {key}")

    return ContactValidation(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        data=data,
    )
