# tests/core/test_config.py
"""Tests for settings parsing and the runtime guard configuration."""

import pytest
from unittest.mock import patch

from sessionguard.core.config import GuardConfig, Settings, validate_required_settings
from sessionguard.core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_environment():
    with patch.dict('os.environ', {}, clear=True):
        yield


class TestSettings:

    def test_defaults(self):
        with patch.dict('os.environ', {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.REDIS_URL == "redis://localhost:6379"
        assert settings.SESSION_REVOKE_SCAN_FALLBACK is False
        assert settings.SESSION_REVOKE_SCAN_MAX_KEYS == 5000
        assert settings.SESSION_IDLE_TTL_SECONDS == 3600
        assert settings.SESSION_ABSOLUTE_TTL_SECONDS == 14 * 24 * 3600

    def test_environment_overrides(self):
        with patch.dict('os.environ', {
            'REDIS_URL': 'redis://sessions:6379/2',
            'SESSION_REVOKE_SCAN_FALLBACK': 'true',
            'SESSION_REVOKE_SCAN_MAX_KEYS': '20000',
        }, clear=True):
            settings = Settings(_env_file=None)

        assert settings.REDIS_URL == 'redis://sessions:6379/2'
        assert settings.SESSION_REVOKE_SCAN_FALLBACK is True
        assert settings.SESSION_REVOKE_SCAN_MAX_KEYS == 20000

    @pytest.mark.parametrize("raw", ["2", "0", "499"])
    def test_scan_budget_has_a_floor(self, raw):
        with patch.dict('os.environ', {'SESSION_REVOKE_SCAN_MAX_KEYS': raw}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.SESSION_REVOKE_SCAN_MAX_KEYS == 500

    def test_cors_origins_split(self):
        settings = Settings(_env_file=None, CORS_ORIGINS="https://a.example, ,https://b.example")
        assert settings.cors_origins == ["https://a.example", "https://b.example"]


class TestGuardConfig:

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            SESSION_REVOKE_SCAN_FALLBACK=True,
            SESSION_REVOKE_SCAN_MAX_KEYS=800,
            SESSION_IDLE_TTL_SECONDS=120,
            SESSION_COOKIE_NAME="portal_sid",
        )

        config = GuardConfig.from_settings(settings)

        assert config.scan_fallback_enabled is True
        assert config.scan_max_keys == 800
        assert config.idle_ttl_seconds == 120
        assert config.cookie_name == "portal_sid"
        assert config.absolute_ttl_ms == 14 * 24 * 3600 * 1000

    def test_production_forces_secure_cookie(self):
        settings = Settings(_env_file=None, ENV="production", SESSION_COOKIE_SECURE=False)
        assert GuardConfig.from_settings(settings).cookie_secure is True

    def test_small_budgets_allowed_when_built_directly(self):
        assert GuardConfig(scan_max_keys=2).scan_max_keys == 2

    @pytest.mark.parametrize("field", ["idle_ttl_seconds", "absolute_ttl_seconds", "scan_max_keys"])
    def test_rejects_non_positive_values(self, field):
        with pytest.raises(ConfigurationError):
            GuardConfig(**{field: 0})


class TestValidateRequiredSettings:

    def test_development_is_always_valid(self):
        assert validate_required_settings(Settings(_env_file=None, ENV="development")) is True

    def test_production_with_localhost_redis_warns(self):
        settings = Settings(_env_file=None, ENV="production", SESSION_COOKIE_SECURE=True)
        assert validate_required_settings(settings) is False
