# sessionguard/services/session_guard.py
"""
SessionGuard: the per-process entry point of the subsystem.

Constructed once with an injected RedisService and a GuardConfig, closed
explicitly at shutdown. The auth flow talks to it through three calls:

- ``is_allowed`` / ``check_*_limit`` before a sensitive action
- ``track_user_session`` after a session is established
- ``revoke_user_sessions`` after a security event
"""
import logging
from typing import Any, Dict, Optional

from sessionguard.core.config import GuardConfig, Settings
from sessionguard.core.exceptions import StoreUnavailableError
from sessionguard.core.rate_limit_config import get_policy
from sessionguard.core.ttl_policy import TTLPolicy
from sessionguard.services.rate_limiter import RateLimiter
from sessionguard.services.redis_service import RedisService, create_redis_service
from sessionguard.services.revocation import RevocationCoordinator
from sessionguard.services.session_index import SessionIndex
from sessionguard.services.session_store import SessionRecordStore

logger = logging.getLogger(__name__)


class SessionGuard:

    def __init__(self, redis_service: RedisService, config: Optional[GuardConfig] = None):
        self.redis = redis_service
        self.config = config or GuardConfig()

        self.rate_limiter = RateLimiter(redis_service)
        self.sessions = SessionRecordStore(redis_service, self.config)
        self.index = SessionIndex(redis_service, self.config)
        self.revocation = RevocationCoordinator(redis_service, self.config, self.index)
        self.ttl_policy = TTLPolicy(self.config.absolute_ttl_ms)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionGuard":
        redis_service = create_redis_service(
            settings.REDIS_URL,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            shutdown_timeout=settings.REDIS_SHUTDOWN_TIMEOUT,
        )
        return cls(redis_service, GuardConfig.from_settings(settings))

    async def start(self) -> None:
        await self.redis.initialize()
        logger.info(
            f"SessionGuard ready (idle={self.config.idle_ttl_seconds}s, "
            f"absolute={self.config.absolute_ttl_seconds}s, "
            f"scan_fallback={self.config.scan_fallback_enabled}, "
            f"scan_max_keys={self.config.scan_max_keys})"
        )

    async def close(self) -> None:
        await self.redis.shutdown()

    async def __aenter__(self) -> "SessionGuard":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Rate limiting

    async def is_allowed(self, purpose: str, normalized_email: str) -> bool:
        """Consume one attempt of ``purpose`` for an already normalized email"""
        policy = get_policy(purpose)
        return await self.rate_limiter.is_allowed(
            f"{policy.purpose}:{normalized_email}", policy.limit, policy.window_ms
        )

    async def check_login_limit(self, email: str) -> bool:
        return await self.rate_limiter.check_login_limit(email)

    async def check_password_reset_limit(self, email: str) -> bool:
        return await self.rate_limiter.check_password_reset_limit(email)

    async def check_email_verification_limit(self, email: str) -> bool:
        return await self.rate_limiter.check_email_verification_limit(email)

    # Session index and revocation

    async def track_user_session(self, user_id: str, session_id: str) -> bool:
        """
        Index a freshly established session.

        Best-effort: a store failure is logged and reported as False, never
        raised, so it cannot fail the login that called it.
        """
        try:
            await self.index.track_user_session(user_id, session_id)
            return True
        except StoreUnavailableError as e:
            logger.warning(f"Could not index session for user {user_id}: {e.message}")
            return False

    async def revoke_user_sessions(self, user_id: str) -> int:
        """Destroy every session of ``user_id``; store failures propagate"""
        return await self.revocation.revoke_user_sessions(user_id)

    async def health_check(self) -> Dict[str, Any]:
        return await self.redis.health_check()

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self.redis.get_metrics(),
            "revocation": self.revocation.get_metrics(),
        }
