# backend/core/config.py
from __future__ import annotations

import secrets
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Runtime configuration, read from the environment and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development", validation_alias="ENVIRONMENT"
    )
    debug: bool = Field(default=False, validation_alias="DEBUG")
    app_name: str = Field(default="SecurePent API", validation_alias="APP_NAME")
    app_version: str = Field(default="1.0.0", validation_alias="APP_VERSION")

    # HTTP
    api_prefix: str = Field(default="/api", validation_alias="API_PREFIX")
    max_body_bytes: int = Field(default=10 * 1024, gt=0, validation_alias="MAX_BODY_BYTES")

    # Database: SQLite file by default, any async SQLAlchemy URL otherwise
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/securepent.db",
        validation_alias="DATABASE_URL",
    )
    database_pool_size: int = Field(default=20, validation_alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=10, validation_alias="DATABASE_MAX_OVERFLOW")
    database_pool_timeout: int = Field(default=30, validation_alias="DATABASE_POOL_TIMEOUT")
    database_pool_recycle: int = Field(default=3600, validation_alias="DATABASE_POOL_RECYCLE")

    # Tokens and passwords
    secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        min_length=32,
        validation_alias=AliasChoices("JWT_SECRET", "SECRET_KEY"),
    )
    algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=24 * 60, gt=0, validation_alias="JWT_EXPIRES_MINUTES")
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, validation_alias="BCRYPT_ROUNDS")
    lockout_max_attempts: int = Field(default=5, ge=1, validation_alias="LOCKOUT_MAX_ATTEMPTS")
    lockout_window_seconds: int = Field(default=15 * 60, ge=1, validation_alias="LOCKOUT_WINDOW_SECONDS")

    # Bootstrap admin, created at startup when a password is configured
    admin_username: str = Field(default="admin", validation_alias="ADMIN_USERNAME")
    admin_password: Optional[str] = Field(default=None, validation_alias="ADMIN_PASSWORD")
    admin_email: Optional[str] = Field(default=None, validation_alias="ADMIN_EMAIL")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="json", validation_alias="LOG_FORMAT")

    # CORS and trusted hosts, comma separated
    allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:8080",
        validation_alias=AliasChoices("ALLOWED_ORIGINS", "FRONTEND_URL"),
    )
    allowed_methods: str = Field(default="GET,POST,PUT,DELETE,OPTIONS", validation_alias="ALLOWED_METHODS")
    allowed_headers: str = Field(default="Content-Type,Authorization,X-Session-ID", validation_alias="ALLOWED_HEADERS")
    allowed_hosts: str = Field(default="*", validation_alias="ALLOWED_HOSTS")

    # Rate limiting: fixed windows, per client IP
    rate_limit_enabled: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")
    rate_limit_storage: Literal["memory", "redis"] = Field(default="memory", validation_alias="RATE_LIMIT_STORAGE")
    rate_limit_requests: int = Field(default=100, validation_alias="RATE_LIMIT_REQUESTS")
    rate_limit_period: int = Field(default=15 * 60, validation_alias="RATE_LIMIT_PERIOD")
    login_rate_limit_requests: int = Field(default=5, validation_alias="LOGIN_RATE_LIMIT_REQUESTS")
    login_rate_limit_period: int = Field(default=15 * 60, validation_alias="LOGIN_RATE_LIMIT_PERIOD")
    # Proxies in front of the app that append to X-Forwarded-For; 0 keys on the socket peer
    trusted_proxy_hops: int = Field(default=0, ge=0, le=10, validation_alias="TRUSTED_PROXY_HOPS")
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    redis_socket_timeout: int = Field(default=5, validation_alias="REDIS_SOCKET_TIMEOUT")

    # Lead notification mail
    smtp_host: Optional[str] = Field(default=None, validation_alias="SMTP_HOST")
    smtp_port: int = Field(default=587, validation_alias="SMTP_PORT")
    smtp_username: Optional[str] = Field(default=None, validation_alias="SMTP_USERNAME")
    smtp_password: Optional[str] = Field(default=None, validation_alias="SMTP_PASSWORD")
    smtp_timeout: int = Field(default=30, validation_alias="SMTP_TIMEOUT")
    notification_email: str = Field(default="team@securepent.com", validation_alias="NOTIFICATION_EMAIL")
    notification_from: Optional[str] = Field(default=None, validation_alias="NOTIFICATION_FROM")

    sentry_dsn: Optional[str] = Field(default=None, validation_alias="SENTRY_DSN")

    @field_validator("log_level")
    def normalize_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {v!r}")
        return level

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_username)

    def origins(self) -> List[str]:
        return _split_csv(self.allowed_origins)

    def methods(self) -> List[str]:
        return _split_csv(self.allowed_methods)

    def headers(self) -> List[str]:
        return _split_csv(self.allowed_headers)

    def hosts(self) -> List[str]:
        return _split_csv(self.allowed_hosts)


@lru_cache
def get_settings() -> Settings:
    return Settings()
