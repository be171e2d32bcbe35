# tests/services/test_session_store.py
"""Tests for session record reads and writes."""

import json

from sessionguard.models.session_payload import SessionPayload, SessionUser
from sessionguard.services.session_store import SessionRecordStore


def make_store(redis_service, guard_config):
    return SessionRecordStore(redis_service, guard_config)


class TestSessionRecordStore:

    async def test_save_arms_idle_expiry(self, redis_service, guard_config, fake_redis):
        store = make_store(redis_service, guard_config)

        assert await store.save("s1", SessionPayload(user=SessionUser(id="u1"), created_at=5))

        assert json.loads(fake_redis.data["sess:s1"])["createdAt"] == 5
        assert fake_redis.expires_at["sess:s1"] == guard_config.idle_ttl_seconds * 1000

    async def test_refresh_does_not_recreate_deleted_record(self, redis_service, guard_config, fake_redis):
        store = make_store(redis_service, guard_config)
        await store.save("s1", SessionPayload(user=SessionUser(id="u1")))
        await store.destroy("s1")

        written = await store.save("s1", SessionPayload(user=SessionUser(id="u1")), only_if_exists=True)

        assert written is False
        assert "sess:s1" not in fake_redis.data

    async def test_refresh_updates_live_record(self, redis_service, guard_config, fake_redis):
        store = make_store(redis_service, guard_config)
        await store.save("s1", SessionPayload(user=SessionUser(id="u1")))

        assert await store.save("s1", SessionPayload(user=SessionUser(id="u1"), created_at=9), only_if_exists=True)
        assert (await store.load("s1")).created_at == 9

    async def test_unreadable_record_loads_as_missing(self, redis_service, guard_config, fake_redis):
        await fake_redis.set("sess:bad", json.dumps({"user": {"id": 7}}))
        assert await make_store(redis_service, guard_config).load("bad") is None
