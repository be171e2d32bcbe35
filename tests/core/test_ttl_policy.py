# tests/core/test_ttl_policy.py
"""Tests for the absolute session lifetime check."""

from sessionguard.core.ttl_policy import TTLDecision, TTLPolicy
from sessionguard.models.session_payload import SessionPayload

DAY_MS = 24 * 60 * 60 * 1000
ABSOLUTE_MS = 14 * DAY_MS
NOW = 1_800_000_000_000


def make_policy():
    return TTLPolicy(ABSOLUTE_MS)


class TestTTLPolicy:

    def test_missing_created_at_is_stamped(self):
        payload = SessionPayload()

        assert make_policy().evaluate(payload, now=NOW) is TTLDecision.STAMPED
        assert payload.created_at == NOW

    def test_fresh_session_is_active(self):
        payload = SessionPayload(created_at=NOW - DAY_MS)
        assert make_policy().evaluate(payload, now=NOW) is TTLDecision.ACTIVE

    def test_exactly_at_bound_is_still_active(self):
        payload = SessionPayload(created_at=NOW - ABSOLUTE_MS)
        assert make_policy().evaluate(payload, now=NOW) is TTLDecision.ACTIVE

    def test_past_bound_is_expired(self):
        payload = SessionPayload(created_at=NOW - ABSOLUTE_MS - 1)
        assert make_policy().evaluate(payload, now=NOW) is TTLDecision.EXPIRED

    def test_recent_activity_does_not_save_an_old_session(self):
        """Idle clock touched a second ago, absolute clock over 14 days"""
        payload = SessionPayload(created_at=NOW - 15 * DAY_MS)
        policy = make_policy()

        assert policy.evaluate(payload, now=NOW - 1000) is TTLDecision.EXPIRED
        assert policy.evaluate(payload, now=NOW) is TTLDecision.EXPIRED

    def test_stamped_session_ages_from_stamp(self):
        payload = SessionPayload()
        policy = make_policy()
        policy.evaluate(payload, now=NOW)

        assert policy.evaluate(payload, now=NOW + ABSOLUTE_MS) is TTLDecision.ACTIVE
        assert policy.evaluate(payload, now=NOW + ABSOLUTE_MS + 1) is TTLDecision.EXPIRED

    def test_age(self):
        payload = SessionPayload(created_at=NOW - 500)
        assert make_policy().age_ms(payload, now=NOW) == 500
        assert make_policy().age_ms(SessionPayload(), now=NOW) is None
