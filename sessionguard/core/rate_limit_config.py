"""
Rate limiting configuration for SessionGuard.

Two layers guard the auth endpoints:
- per-IP limits enforced by slowapi on the HTTP routes
- per-identity fixed-window limits enforced by RateLimiter in Redis
"""

from dataclasses import dataclass
from typing import Dict

from fastapi import Request
from slowapi.util import get_remote_address

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


def get_real_ip(request: Request) -> str:
    """
    Get the real IP address, considering proxy headers.
    The API runs behind a reverse proxy in production.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Fixed-window policy for one sensitive action"""
    purpose: str
    limit: int
    window_ms: int

    @property
    def window_seconds(self) -> int:
        return self.window_ms // 1000


LOGIN = "login"
PASSWORD_RESET = "pwreset"
EMAIL_VERIFICATION = "emailverify"

# Per-identity limits (keyed by normalized email)
RATE_LIMIT_POLICIES: Dict[str, RateLimitPolicy] = {
    LOGIN: RateLimitPolicy(LOGIN, limit=10, window_ms=15 * MINUTE_MS),
    PASSWORD_RESET: RateLimitPolicy(PASSWORD_RESET, limit=3, window_ms=HOUR_MS),
    EMAIL_VERIFICATION: RateLimitPolicy(EMAIL_VERIFICATION, limit=3, window_ms=HOUR_MS),
}

# Per-IP limits on the HTTP routes (slowapi syntax)
IP_RATE_LIMITS = {
    "login": "20/minute",
    "password_forgot": "5/minute",
    "password_reset": "5/minute",
    "email_verify_request": "3/15minutes",
}

RATE_LIMIT_MESSAGES = {
    "default": "Too many requests. Please wait a moment and try again.",
    LOGIN: "Too many login attempts. Please try again later.",
    PASSWORD_RESET: "Too many password reset requests. Please try again later.",
    EMAIL_VERIFICATION: "Too many verification emails requested. Please try again later.",
}


def get_policy(purpose: str) -> RateLimitPolicy:
    """Look up the policy for a purpose, KeyError if unknown"""
    return RATE_LIMIT_POLICIES[purpose]


def get_rate_limit_message(purpose: str) -> str:
    """Get the client-facing message for a throttled purpose"""
    return RATE_LIMIT_MESSAGES.get(purpose, RATE_LIMIT_MESSAGES["default"])
