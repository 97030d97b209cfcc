# backend/services/rate_limit.py
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

import redis.asyncio as redis

from backend.core.config import Settings
from backend.core.logging import get_structlog_logger

logger = get_structlog_logger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int


def _window(now: float, period: int) -> Tuple[int, int, int]:
    window = int(now // period)
    reset_at = (window + 1) * period
    return window, reset_at, max(1, math.ceil(reset_at - now))


class MemoryRateLimiter:
    """Fixed window counter held in process memory."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._counts: Dict[Tuple[str, int, int], int] = {}

    async def hit(self, key: str, limit: int, period: int) -> RateLimitResult:
        now = self.clock()
        window, reset_at, retry_after = _window(now, period)
        self._prune(now)
        bucket = (key, period, window)
        count = self._counts.get(bucket, 0) + 1
        self._counts[bucket] = count

        return RateLimitResult(
            allowed=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=reset_at,
            retry_after=retry_after,
        )

    def _prune(self, now: float) -> None:
        expired = [
            bucket for bucket in self._counts
            if (bucket[2] + 1) * bucket[1] <= now
        ]
        for bucket in expired:
            del self._counts[bucket]

    async def reset(self) -> None:
        self._counts.clear()

    async def close(self) -> None:
        await self.reset()


class RedisRateLimiter:
    """Fixed window counter shared through Redis."""

    def __init__(self, redis_url: str, socket_timeout: int = 5):
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self._client: Optional[redis.Redis] = None

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                socket_timeout=self.socket_timeout,
                decode_responses=True,
                encoding="utf-8",
            )
        return self._client

    async def hit(self, key: str, limit: int, period: int) -> RateLimitResult:
        window, reset_at, retry_after = _window(time.time(), period)
        redis_key = f"ratelimit:{key}:{period}:{window}"

        try:
            # Use Redis pipeline for atomic operations
            async with self._get_client().pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, period)
                results = await pipe.execute()
            count = results[0]
        except Exception as e:
            logger.error("rate_limit.redis_error", error=str(e), key=key[:50])
            # Allow requests if Redis fails (fail-open)
            return RateLimitResult(allowed=True, limit=limit, remaining=limit, reset_at=reset_at, retry_after=retry_after)

        return RateLimitResult(
            allowed=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=reset_at,
            retry_after=retry_after,
        )

    async def reset(self) -> None:
        client = self._get_client()
        async for redis_key in client.scan_iter(match="ratelimit:*"):
            await client.delete(redis_key)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("redis.connection_closed")


RateLimiter = Union[MemoryRateLimiter, RedisRateLimiter]


def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.rate_limit_storage == "redis":
        logger.info("rate_limit.backend", storage="redis", url=settings.redis_url)
        return RedisRateLimiter(settings.redis_url, settings.redis_socket_timeout)
    logger.info("rate_limit.backend", storage="memory")
    return MemoryRateLimiter()

