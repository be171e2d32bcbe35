# sessionguard/core/ttl_policy.py
"""
Absolute session lifetime.

The idle clock belongs to the store (the record's expiry). The absolute clock
runs from ``createdAt`` in the payload and is checked on every request that
carries a session, however recently the idle clock was touched.
"""
import time
from enum import Enum
from typing import Optional

from sessionguard.models.session_payload import SessionPayload


def now_ms() -> int:
    return int(time.time() * 1000)


class TTLDecision(str, Enum):
    ACTIVE = "active"
    STAMPED = "stamped"
    EXPIRED = "expired"


class TTLPolicy:

    def __init__(self, absolute_ttl_ms: int):
        self.absolute_ttl_ms = absolute_ttl_ms

    def age_ms(self, payload: SessionPayload, now: Optional[int] = None) -> Optional[int]:
        if payload.created_at is None:
            return None
        return (now if now is not None else now_ms()) - payload.created_at

    def evaluate(self, payload: SessionPayload, now: Optional[int] = None) -> TTLDecision:
        """
        Decide the fate of a session on this request.

        A payload without ``createdAt`` is stamped in place and reported as
        STAMPED so the caller persists it. Otherwise EXPIRED once the age is
        strictly above the absolute bound.
        """
        now = now if now is not None else now_ms()

        if payload.created_at is None:
            payload.created_at = now
            return TTLDecision.STAMPED

        if now - payload.created_at > self.absolute_ttl_ms:
            return TTLDecision.EXPIRED

        return TTLDecision.ACTIVE
