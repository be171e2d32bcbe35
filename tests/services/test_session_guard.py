# tests/services/test_session_guard.py
"""Tests for the SessionGuard facade lifecycle and purpose routing."""

import pytest

from sessionguard.core.config import Settings
from sessionguard.core.rate_limit_config import LOGIN, PASSWORD_RESET
from sessionguard.services.redis_service import RedisService, RedisConfig
from sessionguard.services.session_guard import SessionGuard


class TestLifecycle:

    async def test_context_manager_starts_and_closes(self, fake_redis, guard_config):
        service = RedisService(RedisConfig(url="redis://fake:6379/0"), client=fake_redis)

        async with SessionGuard(service, guard_config) as guard:
            assert guard.redis.is_initialized
            assert "ping" in fake_redis.calls

        assert fake_redis.closed
        assert not service.is_initialized

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            REDIS_URL="redis://sessions:6379/3",
            REDIS_SHUTDOWN_TIMEOUT=0.5,
            SESSION_IDLE_TTL_SECONDS=90,
        )

        guard = SessionGuard.from_settings(settings)

        assert guard.redis.config.url == "redis://sessions:6379/3"
        assert guard.redis.config.shutdown_timeout == 0.5
        assert guard.config.idle_ttl_seconds == 90
        assert not guard.redis.is_initialized


class TestPurposes:

    async def test_is_allowed_keys_by_purpose(self, guard, fake_redis):
        assert await guard.is_allowed(LOGIN, "alice@example.com")
        assert await guard.is_allowed(PASSWORD_RESET, "alice@example.com")

        assert fake_redis.data["ratelimit:login:alice@example.com"] == "1"
        assert fake_redis.data["ratelimit:pwreset:alice@example.com"] == "1"

    async def test_unknown_purpose_rejected(self, guard):
        with pytest.raises(KeyError):
            await guard.is_allowed("signup", "alice@example.com")

    async def test_metrics_include_revocation_counters(self, guard):
        await guard.revoke_user_sessions("nobody")

        metrics = guard.get_metrics()

        assert metrics["initialized"] is True
        assert metrics["revocation"]["skipped_scans"] == 1
