# backend/services/auth.py
"""Admin authentication with brute-force lockout.

The failed-attempt counter is only ever changed by single UPDATE statements,
so concurrent wrong-password requests cannot lose increments.
"""
from __future__ import annotations

import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, NoReturn, Optional

from sqlalchemy import case, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import Settings
from backend.core.exceptions import (
    AccountLockedError,
    AuthenticationError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from backend.core.logging import get_structlog_logger
from backend.db.base import as_utc, utcnow
from backend.models.admin_user import ADMIN_ROLES, AdminUser
from backend.services.audit import AuditLogger
from backend.services.sanitize import sanitize_string
from backend.services.security import PasswordHasher, TokenService

logger = get_structlog_logger(__name__)

MIN_PASSWORD_LENGTH = 8
MIN_USERNAME_LENGTH = 3


@dataclass
class RequestContext:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuthService:
    def __init__(
        self,
        settings: Settings,
        hasher: PasswordHasher,
        tokens: TokenService,
        audit: AuditLogger,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_attempts = settings.lockout_max_attempts
        self.lockout_window = timedelta(seconds=settings.lockout_window_seconds)
        self.hasher = hasher
        self.tokens = tokens
        self.audit = audit
        self.clock = clock
        # Unknown users are verified against this so both paths cost one bcrypt compare
        self.decoy_hash = hasher.hash(secrets.token_urlsafe(16))

    @staticmethod
    def normalize_identifier(value: Optional[str]) -> str:
        return sanitize_string(value or "", max_length=50, lowercase=True)

    async def _find_user(self, session: AsyncSession, identifier: str, by_email: bool) -> Optional[AdminUser]:
        column = AdminUser.email if by_email else AdminUser.username
        result = await session.execute(select(AdminUser).where(func.lower(column) == identifier))
        return result.scalars().first()

    async def login(
        self,
        session: AsyncSession,
        *,
        username: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> Dict[str, Any]:
        context = context or RequestContext()
        by_email = not username and bool(email)
        identifier = self.normalize_identifier(username or email)

        if not identifier or not password:
            raise ValidationError("Username and password are required")

        user = await self._find_user(session, identifier, by_email)

        if user is None or not user.is_active:
            await self.hasher.verify_async(password, self.decoy_hash)
            logger.warning("auth.login_failed", identifier=identifier, reason="user_not_found", ip=context.ip_address)
            await self.audit.log(
                "login_failed",
                entity_type="admin_user",
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                details={"identifier": identifier, "reason": "user_not_found"},
                severity="warning",
            )
            raise AuthenticationError("Invalid credentials", code="invalid_credentials")

        now = self.clock()
        locked_until = as_utc(user.locked_until)
        if locked_until is not None and now < locked_until:
            retry_after = max(1, math.ceil((locked_until - now).total_seconds()))
            logger.warning("auth.login_blocked", user_id=user.id, locked_until=locked_until.isoformat())
            await self.audit.log(
                "login_blocked",
                admin_id=user.id,
                entity_type="admin_user",
                entity_id=user.id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                details={"locked_until": locked_until.isoformat()},
                severity="warning",
            )
            raise AccountLockedError(locked_until=locked_until, retry_after=retry_after)

        if await self.hasher.verify_async(password, user.password_hash):
            return await self._login_succeeded(session, user, now, context)
        await self._register_failure(session, user, now, context)

    async def _login_succeeded(
        self,
        session: AsyncSession,
        user: AdminUser,
        now: datetime,
        context: RequestContext,
    ) -> Dict[str, Any]:
        await session.execute(
            update(AdminUser)
            .where(AdminUser.id == user.id)
            .values(failed_attempts=0, locked_until=None, last_login=now)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

        token = self.tokens.token_for_user(user)
        logger.info("auth.login_success", user_id=user.id, username=user.username)
        await self.audit.log(
            "login_success",
            admin_id=user.id,
            entity_type="admin_user",
            entity_id=user.id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        return {
            "success": True,
            "token": token,
            "user": {"id": user.id, "username": user.username, "role": user.role},
            "expiresIn": self.tokens.expires_in,
        }

    async def _register_failure(
        self,
        session: AsyncSession,
        user: AdminUser,
        now: datetime,
        context: RequestContext,
    ) -> NoReturn:
        attempts_after = AdminUser.failed_attempts + 1
        result = await session.execute(
            update(AdminUser)
            .where(AdminUser.id == user.id)
            .values(
                failed_attempts=attempts_after,
                locked_until=case(
                    (
                        attempts_after >= self.max_attempts,
                        literal(now + self.lockout_window, AdminUser.locked_until.type),
                    ),
                    else_=AdminUser.locked_until,
                ),
            )
            .returning(AdminUser.failed_attempts, AdminUser.locked_until)
            .execution_options(synchronize_session=False)
        )
        failed_attempts, locked_until = result.one()
        await session.commit()

        attempts_remaining = max(0, self.max_attempts - failed_attempts)
        locked_until = as_utc(locked_until)
        logger.warning(
            "auth.login_failed",
            user_id=user.id,
            failed_attempts=failed_attempts,
            attempts_remaining=attempts_remaining,
            ip=context.ip_address,
        )
        await self.audit.log(
            "login_failed",
            admin_id=user.id,
            entity_type="admin_user",
            entity_id=user.id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            details={"failed_attempts": failed_attempts, "reason": "invalid_password"},
            severity="warning",
        )

        if failed_attempts >= self.max_attempts and locked_until is not None and locked_until > now:
            logger.warning("auth.account_locked", user_id=user.id, locked_until=locked_until.isoformat())
            await self.audit.log(
                "account_locked",
                admin_id=user.id,
                entity_type="admin_user",
                entity_id=user.id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                details={"failed_attempts": failed_attempts, "locked_until": locked_until.isoformat()},
                severity="critical",
            )

        raise InvalidCredentialsError(attempts_remaining=attempts_remaining)

    async def get_active_user(self, session: AsyncSession, user_id: Any) -> AdminUser:
        try:
            user = await session.get(AdminUser, int(user_id))
        except (TypeError, ValueError):
            user = None
        if user is None or not user.is_active:
            raise AuthenticationError("User not found or inactive", code="invalid_token")
        return user

    async def change_password(
        self,
        session: AsyncSession,
        user_id: Any,
        current_password: Optional[str],
        new_password: Optional[str],
        context: Optional[RequestContext] = None,
    ) -> None:
        context = context or RequestContext()
        if not current_password or not new_password:
            raise ValidationError("Current password and new password are required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters")

        user = await session.get(AdminUser, int(user_id))
        if user is None:
            raise NotFoundError("User not found")

        if not await self.hasher.verify_async(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect", code="invalid_credentials")

        user.password_hash = await self.hasher.hash_async(new_password)
        await session.commit()

        logger.info("auth.password_changed", user_id=user.id)
        await self.audit.log(
            "password_changed",
            admin_id=user.id,
            entity_type="admin_user",
            entity_id=user.id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

    async def update_username(
        self,
        session: AsyncSession,
        user_id: Any,
        current_password: Optional[str],
        new_username: Optional[str],
        context: Optional[RequestContext] = None,
    ) -> Dict[str, Any]:
        context = context or RequestContext()
        if not current_password or not new_username:
            raise ValidationError("Current password and new username are required")

        username = self.normalize_identifier(new_username)
        if len(username) < MIN_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")

        user = await session.get(AdminUser, int(user_id))
        if user is None:
            raise NotFoundError("User not found")

        if not await self.hasher.verify_async(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect", code="invalid_credentials")

        taken = await session.execute(
            select(AdminUser.id).where(AdminUser.username == username, AdminUser.id != user.id)
        )
        if taken.first() is not None:
            raise ConflictError("Username already taken")

        old_username = user.username
        user.username = username
        await session.commit()

        logger.info("auth.username_changed", user_id=user.id, old=old_username, new=username)
        await self.audit.log(
            "username_changed",
            admin_id=user.id,
            entity_type="admin_user",
            entity_id=user.id,
            old_value=old_username,
            new_value=username,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        return {
            "success": True,
            "message": "Username updated successfully",
            "token": self.tokens.token_for_user(user),
            "user": {"id": user.id, "username": user.username, "role": user.role},
        }

    async def ensure_admin(
        self,
        session: AsyncSession,
        username: str,
        password: str,
        email: Optional[str] = None,
        role: str = "superadmin",
        reset: bool = False,
    ) -> AdminUser:
        """Create the bootstrap admin, or reset its password and lockout when asked."""
        if role not in ADMIN_ROLES:
            raise ValidationError("Invalid role", details={"allowed": list(ADMIN_ROLES)})
        username = self.normalize_identifier(username)
        result = await session.execute(select(AdminUser).where(AdminUser.username == username))
        user = result.scalars().first()

        if user is None:
            user = AdminUser(
                username=username,
                password_hash=await self.hasher.hash_async(password),
                email=email.lower() if email else None,
                role=role,
                is_active=True,
            )
            session.add(user)
            await session.commit()
            logger.info("auth.admin_created", username=username, role=role)
            return user

        if reset:
            user.password_hash = await self.hasher.hash_async(password)
            user.failed_attempts = 0
            user.locked_until = None
            user.is_active = True
            await session.commit()
            logger.info("auth.admin_reset", username=username)

        return user
