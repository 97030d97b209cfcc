# backend/main.py
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.core.config import Settings, get_settings
from backend.core.exceptions import BaseAPIException
from backend.core.logging import configure_structlog, get_structlog_logger
from backend.db.session import Database
from backend.middleware.auth import AuthMiddleware
from backend.middleware.logging import LoggingMiddleware
from backend.middleware.rate_limiter import RateLimitingMiddleware
from backend.middleware.request_id import RequestIdMiddleware
from backend.middleware.security import BodySizeLimitMiddleware, SecurityHeadersMiddleware
from backend.routes import admin, analytics, auth, contact, cookies, health
from backend.services.audit import AuditLogger
from backend.services.auth import AuthService
from backend.services.notifications import EmailNotifier
from backend.services.rate_limit import build_rate_limiter
from backend.services.security import PasswordHasher, TokenService

logger = get_structlog_logger(__name__)

PROTECTED_PATHS = (
    "/admin",
    "/auth/logout",
    "/auth/session",
    "/auth/change-password",
    "/auth/update-username",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info("application.starting", environment=settings.environment)

    await database.create_all()

    if settings.admin_password:
        async with database.session() as session:
            await app.state.auth_service.ensure_admin(
                session,
                username=settings.admin_username,
                password=settings.admin_password,
                email=settings.admin_email,
            )
    else:
        logger.warning("auth.admin_bootstrap_skipped", reason="ADMIN_PASSWORD not set")

    # Initialize Sentry if DSN is provided
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            integrations=[
                AsyncioIntegration(),
                FastApiIntegration(),
                StarletteIntegration(),
            ],
            traces_sample_rate=1.0 if settings.is_development else 0.1,
            send_default_pii=False,
        )
        logger.info("sentry.initialized")

    logger.info("application.started")
    yield

    logger.info("application.shutting_down")
    await app.state.rate_limiter.close()
    await database.dispose()
    logger.info("application.shutdown_complete")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BaseAPIException)
    async def api_exception_handler(request: Request, exc: BaseAPIException):
        """Handle custom API exceptions."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "api.exception",
            status_code=exc.status_code,
            code=exc.code,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors."""
        errors = []
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", []) if part != "body"]
            errors.append({
                "field": ".".join(loc),
                "message": error.get("msg", "Validation error"),
                "type": error.get("type", "value_error"),
            })

        logger.warning(
            "validation.error",
            path=request.url.path,
            method=request.method,
            errors=errors,
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "Validation failed",
                "code": "validation_error",
                "details": errors,
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            content = {"success": False, "error": "Endpoint not found", "code": "not_found"}
        else:
            content = {"success": False, "error": str(exc.detail), "code": "http_error"}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        error_id = f"err_{uuid.uuid4().hex[:12]}"
        settings: Settings = request.app.state.settings

        logger.error(
            "unhandled.exception",
            error_id=error_id,
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
            method=request.method,
            exc_info=exc,
        )

        message = f"Internal server error: {exc}" if settings.is_development else "Internal server error"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": message,
                "code": "internal_error",
                "errorId": error_id,
            },
            headers={"X-Error-ID": error_id},
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and every service object it owns."""
    settings = settings or get_settings()
    configure_structlog(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Contact leads, visitor analytics and admin API for the SecurePent site",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    database = Database(settings)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenService(settings)
    audit = AuditLogger(database)
    rate_limiter = build_rate_limiter(settings)

    app.state.settings = settings
    app.state.database = database
    app.state.hasher = hasher
    app.state.tokens = tokens
    app.state.audit = audit
    app.state.rate_limiter = rate_limiter
    app.state.notifier = EmailNotifier(settings)
    app.state.auth_service = AuthService(settings, hasher, tokens, audit)

    # Innermost first: the last middleware added sees the request first
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        AuthMiddleware,
        tokens=tokens,
        protected_prefixes=[f"{settings.api_prefix}{path}" for path in PROTECTED_PATHS],
    )
    app.add_middleware(RateLimitingMiddleware, settings=settings, limiter=rate_limiter)
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.hosts())
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins(),
        allow_credentials=True,
        allow_methods=settings.methods(),
        allow_headers=settings.headers(),
        expose_headers=["X-Request-ID", "X-Response-Time", "Retry-After"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(contact.router, prefix=settings.api_prefix)
    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(analytics.router, prefix=settings.api_prefix)
    app.include_router(cookies.router, prefix=settings.api_prefix)
    app.include_router(admin.router, prefix=settings.api_prefix)

    # Add Prometheus metrics
    if not settings.is_testing:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "health": f"{settings.api_prefix}/health",
        }

    logger.info("application.configured", environment=settings.environment)
    return app


app = create_app()
