# backend/routes/deps.py
"""FastAPI dependencies resolving the service objects built by create_app."""
from __future__ import annotations

from fastapi import Request

from backend.core.config import Settings
from backend.middleware.rate_limiter import reported_client_ip
from backend.services.audit import AuditLogger
from backend.services.auth import AuthService, RequestContext
from backend.services.notifications import EmailNotifier
from backend.services.sanitize import sanitize_ip, sanitize_string


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_audit_logger(request: Request) -> AuditLogger:
    return request.app.state.audit


def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=sanitize_ip(reported_client_ip(request)) or None,
        user_agent=sanitize_string(request.headers.get("user-agent") or "", max_length=500) or None,
    )
