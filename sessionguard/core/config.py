# sessionguard/core/config.py
import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from sessionguard.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60

# Lowest key budget accepted from the environment for the legacy revocation scan
MIN_SCAN_MAX_KEYS = 500


class Settings(BaseSettings):
    """Process-level settings, read once from the environment at start"""
    APP_NAME: str = "SessionGuard"
    ENV: str = "development"
    DEBUG: bool = False

    # Store
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_SOCKET_TIMEOUT: float = 5.0
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_SHUTDOWN_TIMEOUT: float = 2.0

    # Session lifetimes
    SESSION_IDLE_TTL_SECONDS: int = 60 * 60
    SESSION_ABSOLUTE_TTL_SECONDS: int = 14 * DAY_SECONDS
    SESSION_TRACK_TTL_SECONDS: int = 14 * DAY_SECONDS

    # Legacy revocation scan
    SESSION_REVOKE_SCAN_FALLBACK: bool = False
    SESSION_REVOKE_SCAN_MAX_KEYS: int = 5000

    # Cookie
    SESSION_COOKIE_NAME: str = "sid"
    SESSION_COOKIE_SECURE: bool = False
    COOKIE_DOMAIN: Optional[str] = Field(default=None)

    # Comma-separated list of allowed browser origins
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }

    @field_validator("SESSION_REVOKE_SCAN_MAX_KEYS")
    @classmethod
    def _floor_scan_budget(cls, value: int) -> int:
        return max(value, MIN_SCAN_MAX_KEYS)

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@dataclass(frozen=True)
class GuardConfig:
    """
    Runtime configuration handed to every guard component at construction.

    Built from Settings in production; tests construct it directly to vary
    budgets and lifetimes without touching the environment.
    """
    idle_ttl_seconds: int = 60 * 60
    absolute_ttl_seconds: int = 14 * DAY_SECONDS
    track_ttl_seconds: int = 14 * DAY_SECONDS
    scan_fallback_enabled: bool = False
    scan_max_keys: int = 5000
    scan_page_size: int = 100
    cookie_name: str = "sid"
    cookie_secure: bool = False
    cookie_domain: Optional[str] = None

    def __post_init__(self):
        for name in ("idle_ttl_seconds", "absolute_ttl_seconds", "track_ttl_seconds",
                     "scan_max_keys", "scan_page_size"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(
                    f"{name} must be positive",
                    component="GuardConfig",
                    details={"value": getattr(self, name)}
                )
        if not self.cookie_name:
            raise ConfigurationError("cookie_name must not be empty", component="GuardConfig")

    @property
    def absolute_ttl_ms(self) -> int:
        return self.absolute_ttl_seconds * 1000

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GuardConfig":
        return cls(
            idle_ttl_seconds=settings.SESSION_IDLE_TTL_SECONDS,
            absolute_ttl_seconds=settings.SESSION_ABSOLUTE_TTL_SECONDS,
            track_ttl_seconds=settings.SESSION_TRACK_TTL_SECONDS,
            scan_fallback_enabled=settings.SESSION_REVOKE_SCAN_FALLBACK,
            scan_max_keys=settings.SESSION_REVOKE_SCAN_MAX_KEYS,
            cookie_name=settings.SESSION_COOKIE_NAME,
            cookie_secure=settings.SESSION_COOKIE_SECURE or settings.is_production,
            cookie_domain=settings.COOKIE_DOMAIN,
        )


# Settings available as a singleton
settings = Settings()


def validate_required_settings(current: Optional[Settings] = None) -> bool:
    """Warn about settings that are unsafe in production"""
    current = current or settings
    if not current.is_production:
        return True

    problems = []
    if current.REDIS_URL.startswith("redis://localhost"):
        problems.append("REDIS_URL points at localhost")
    if not current.SESSION_COOKIE_SECURE:
        problems.append("SESSION_COOKIE_SECURE is off (forced on in production)")

    if problems:
        for problem in problems:
            logger.warning(f"Configuration: {problem}")
        return False

    return True
