# backend/services/security.py
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from jose import jwt
from passlib.context import CryptContext

from backend.core.config import Settings


class PasswordHasher:
    """bcrypt hashing via passlib; async variants run in a worker thread."""

    def __init__(self, rounds: int = 12):
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            # Malformed or unknown hash
            return False

    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, plain_password: str, hashed_password: str) -> bool:
        return await asyncio.to_thread(self.verify, plain_password, hashed_password)


class TokenService:
    """Manager for JWT token operations."""

    def __init__(self, settings: Settings):
        self.secret_key = settings.secret_key
        self.algorithm = settings.algorithm
        self.expire_minutes = settings.access_token_expire_minutes

    @property
    def expires_in(self) -> int:
        return self.expire_minutes * 60

    def create_access_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Create a new access token."""
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta if expires_delta is not None else timedelta(minutes=self.expire_minutes))

        to_encode.update({
            "exp": expire,
            "iat": now,
            "jti": str(uuid4()),
            "type": "access",
        })

        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def token_for_user(self, user) -> str:
        return self.create_access_token({
            "sub": str(user.id),
            "username": user.username,
            "role": user.role,
        })

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify and decode a token. Raises jose errors on failure."""
        return jwt.decode(
            token,
            self.secret_key,
            algorithms=[self.algorithm],
            options={"verify_aud": False},
        )
