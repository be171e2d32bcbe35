# sessionguard/services/rate_limiter.py
"""
Fixed-window rate limiter for sensitive actions.

Counters live under ``ratelimit:{purpose}:{identity}``. The expiry is armed
only by the increment that creates the key, so a window is never extended by
later attempts. Two known artifacts are accepted:

- concurrent first requests can both see "no expiry" and both arm it; the
  second PEXPIRE writes the same window and is harmless
- a burst straddling a window boundary can pass close to 2x the limit; this
  is advisory throttling, not a hard security boundary

The counter is consumed before the guarded action runs, so failed attempts
count too.
"""
import logging

from sessionguard.core.keys import rate_limit_key
from sessionguard.core.rate_limit_config import (
    RateLimitPolicy,
    get_policy,
    LOGIN,
    PASSWORD_RESET,
    EMAIL_VERIFICATION,
)
from sessionguard.services.redis_service import RedisService

logger = logging.getLogger(__name__)

# PTTL answer for a key that exists without an expiry
NO_EXPIRY = -1


def normalize_identity(value: str) -> str:
    """Lower-case and trim an identity (usually an email address)"""
    return (value or "").strip().lower()


class RateLimiter:
    """Per-key throttling backed by Redis counters"""

    def __init__(self, redis_service: RedisService):
        self.redis = redis_service

    async def is_allowed(self, key: str, limit: int, window_ms: int) -> bool:
        """
        Count one attempt for ``key`` and report whether it is within the limit.

        Args:
            key: Purpose-qualified key, e.g. ``login:user@example.com``
            limit: Max allowed attempts in the window
            window_ms: Window length in milliseconds

        Raises:
            StoreUnavailableError: The store could not be reached; callers
                must treat this as a denial.
        """
        redis_key = rate_limit_key(key)

        def build(pipe):
            pipe.incr(redis_key)
            pipe.pttl(redis_key)

        count, ttl = await self.redis.pipeline(build, operation="rate_limit")

        # First attempt in a new window
        if ttl == NO_EXPIRY:
            await self.redis.pexpire(redis_key, window_ms)

        allowed = int(count) <= limit
        if not allowed:
            logger.info(f"Rate limit hit for {key.split(':', 1)[0]} ({count}/{limit})")
        return allowed

    async def get_remaining_attempts(self, key: str, limit: int) -> int:
        """Attempts left in the current window, without consuming one"""
        count = await self.redis.get(rate_limit_key(key))
        if not count:
            return limit
        return max(0, limit - int(count))

    async def check(self, policy: RateLimitPolicy, identity: str) -> bool:
        """Apply a purpose policy to a raw identity"""
        return await self.is_allowed(
            f"{policy.purpose}:{normalize_identity(identity)}",
            policy.limit,
            policy.window_ms
        )

    async def remaining_for(self, purpose: str, identity: str) -> int:
        policy = get_policy(purpose)
        return await self.get_remaining_attempts(
            f"{policy.purpose}:{normalize_identity(identity)}",
            policy.limit
        )

    async def check_password_reset_limit(self, email: str) -> bool:
        """Max 3 password reset requests per email per hour"""
        return await self.check(get_policy(PASSWORD_RESET), email)

    async def check_email_verification_limit(self, email: str) -> bool:
        """Max 3 verification emails per address per hour"""
        return await self.check(get_policy(EMAIL_VERIFICATION), email)

    async def check_login_limit(self, email: str) -> bool:
        """Max 10 login attempts per email per 15 minutes"""
        return await self.check(get_policy(LOGIN), email)
