"""
Rate Limiting
Sliding-window limits for login, registration and the public job application form.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Optional

import redis.asyncio as aioredis
from fastapi import Depends, Request

from backend.core.config import settings
from backend.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)


# =============================================================================
# Rate Limit Configuration
# =============================================================================


class RateLimitTier(str, Enum):
    """Predefined rate limit tiers for different endpoint types."""

    AUTH = "auth"  # Login, register, public forms


@dataclass
class RateLimitConfig:
    """Rate limit configuration for a tier."""

    requests: int
    window: int  # seconds


RATE_LIMIT_CONFIGS: dict[RateLimitTier, RateLimitConfig] = {
    RateLimitTier.AUTH: RateLimitConfig(
        requests=settings.rate_limit_auth_requests,
        window=settings.rate_limit_auth_window,
    ),
}


# =============================================================================
# Limiters
# =============================================================================


class RedisRateLimiter:
    """
    Redis-based sliding window rate limiter.

    Uses a sorted set of request timestamps per key so that limits hold
    across every API worker.
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._redis: Optional[aioredis.Redis] = None

    async def get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def is_rate_limited(self, key: str, limit: int, window: int) -> tuple[bool, int]:
        """
        Record a request and report whether the key is over its limit.

        Returns:
            Tuple of (is_limited, retry_after_seconds)
        """
        redis = await self.get_redis()
        now = time.time()

        pipe = redis.pipeline()
        pipe.zremrangebyscore(key, "-inf", now - window)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, window + 1)
        pipe.zrange(key, 0, 0, withscores=True)
        results = await pipe.execute()

        current_count = results[1]
        oldest_entries = results[4]

        if current_count >= limit:
            retry_after = window
            if oldest_entries:
                retry_after = int(window - (now - oldest_entries[0][1])) + 1
            return True, retry_after
        return False, 0


class InMemoryRateLimiter:
    """
    In-memory limiter used when Redis is unavailable.

    Only correct for single-instance deployments.
    """

    def __init__(self):
        self._requests: dict[str, list[float]] = {}

    async def is_rate_limited(self, key: str, limit: int, window: int) -> tuple[bool, int]:
        now = time.time()
        timestamps = [ts for ts in self._requests.get(key, []) if ts > now - window]

        if len(timestamps) >= limit:
            self._requests[key] = timestamps
            return True, int(window - (now - min(timestamps))) + 1

        timestamps.append(now)
        self._requests[key] = timestamps
        return False, 0


_rate_limiter: Optional[RedisRateLimiter] = None
_fallback_limiter: Optional[InMemoryRateLimiter] = None
_redis_available: bool = True


def get_rate_limiter() -> RedisRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RedisRateLimiter(settings.redis_url)
    return _rate_limiter


def get_fallback_limiter() -> InMemoryRateLimiter:
    global _fallback_limiter
    if _fallback_limiter is None:
        _fallback_limiter = InMemoryRateLimiter()
    return _fallback_limiter


async def close_rate_limiter() -> None:
    """Close the global rate limiter."""
    global _rate_limiter, _fallback_limiter
    if _rate_limiter:
        await _rate_limiter.close()
        _rate_limiter = None
    _fallback_limiter = None


def get_client_ip(request: Request) -> str:
    """Client IP, honouring the first X-Forwarded-For hop."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# =============================================================================
# Rate Limit Dependency
# =============================================================================


class RateLimitDependency:
    """
    FastAPI dependency for rate limiting.

    Usage:
        @router.post("/login")
        async def login(_rate_limit: RateLimitAuth = None): ...
    """

    def __init__(self, tier: RateLimitTier):
        self.tier = tier

    async def __call__(self, request: Request) -> None:
        if not settings.rate_limit_enabled:
            return

        global _redis_available
        config = RATE_LIMIT_CONFIGS[self.tier]
        key = f"rate_limit:{self.tier.value}:ip_{get_client_ip(request)}"

        try:
            is_limited, retry_after = await get_rate_limiter().is_rate_limited(
                key, config.requests, config.window
            )
            _redis_available = True
        except (aioredis.RedisError, OSError) as e:
            if _redis_available:
                logger.warning(f"Redis rate limiting unavailable, using in-memory fallback: {e}")
                _redis_available = False
            is_limited, retry_after = await get_fallback_limiter().is_rate_limited(
                key, config.requests, config.window
            )

        if is_limited:
            raise RateLimitError(
                f"Too many requests. Please retry after {retry_after} seconds.",
                retry_after=retry_after,
            )


RateLimitAuth = Annotated[None, Depends(RateLimitDependency(RateLimitTier.AUTH))]
