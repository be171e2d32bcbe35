# tests/conftest.py
"""
Shared fixtures for SessionGuard tests.

FakeRedis is an in-memory stand-in for the async Redis client covering the
commands the guard uses. Expiry runs on a manual clock (``advance``) so
window and TTL behaviour can be tested without sleeping.
"""

import fnmatch
import pytest
from typing import Any, Dict, List, Optional

from sessionguard.core.config import GuardConfig
from sessionguard.services.redis_service import RedisService, RedisConfig
from sessionguard.services.session_guard import SessionGuard


class FakeConnectionPool:
    def __init__(self):
        self.disconnected = False

    async def disconnect(self, inuse_connections: bool = True):
        self.disconnected = True


class FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._commands = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self._commands.append((name, args, kwargs))
            return self
        return queue

    async def execute(self):
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._commands = []
        return results


class FakeRedis:
    """Minimal async Redis with millisecond expiry on a manual clock"""

    def __init__(self):
        self.now_ms = 0
        self.data: Dict[str, Any] = {}
        self.expires_at: Dict[str, int] = {}
        self.calls: List[str] = []
        self.connection_pool = FakeConnectionPool()
        self.closed = False
        self._scan_positions: Dict[int, str] = {}
        self._scan_seq = 0

    # clock

    def advance(self, ms: int) -> None:
        self.now_ms += ms

    def _alive(self, key: str) -> bool:
        deadline = self.expires_at.get(key)
        if deadline is not None and deadline <= self.now_ms:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)
        return key in self.data

    def _live_keys(self) -> List[str]:
        return sorted(k for k in list(self.data) if self._alive(k))

    # connection

    async def ping(self):
        self.calls.append("ping")
        return True

    async def info(self):
        return {"redis_version": "7.2.0", "connected_clients": 1, "used_memory_human": "1M"}

    async def aclose(self):
        self.closed = True

    def pipeline(self, transaction: bool = True):
        return FakePipeline(self)

    # strings

    async def get(self, key):
        self.calls.append("get")
        return self.data[key] if self._alive(key) else None

    async def set(self, key, value, ex: Optional[int] = None, px: Optional[int] = None, xx: bool = False):
        self.calls.append("set")
        if xx and not self._alive(key):
            return None
        self.data[key] = value if isinstance(value, str) else str(value)
        self.expires_at.pop(key, None)
        if ex is not None:
            self.expires_at[key] = self.now_ms + ex * 1000
        if px is not None:
            self.expires_at[key] = self.now_ms + px
        return True

    async def mget(self, keys):
        self.calls.append("mget")
        return [self.data[k] if self._alive(k) and isinstance(self.data[k], str) else None for k in keys]

    async def incr(self, key):
        self.calls.append("incr")
        value = int(self.data[key]) + 1 if self._alive(key) else 1
        self.data[key] = str(value)
        return value

    # keys

    async def delete(self, *keys):
        self.calls.append("delete")
        removed = 0
        for key in keys:
            if self._alive(key):
                del self.data[key]
                self.expires_at.pop(key, None)
                removed += 1
        return removed

    async def pttl(self, key):
        self.calls.append("pttl")
        if not self._alive(key):
            return -2
        if key not in self.expires_at:
            return -1
        return self.expires_at[key] - self.now_ms

    async def pexpire(self, key, ms):
        self.calls.append("pexpire")
        if not self._alive(key):
            return False
        self.expires_at[key] = self.now_ms + ms
        return True

    async def expire(self, key, seconds):
        self.calls.append("expire")
        return await self.pexpire(key, seconds * 1000)

    async def scan(self, cursor=0, match=None, count=10):
        # Cursors resume after the last returned key, so deleting keys
        # between pages does not skip any (same guarantee as real SCAN)
        self.calls.append("scan")
        after = self._scan_positions.pop(cursor, None) if cursor else None
        keys = [
            k for k in self._live_keys()
            if (after is None or k > after) and (match is None or fnmatch.fnmatchcase(k, match))
        ]
        page, rest = keys[:count], keys[count:]
        if not rest:
            return 0, page
        self._scan_seq += 1
        self._scan_positions[self._scan_seq] = page[-1]
        return self._scan_seq, page

    # sets

    async def sadd(self, key, *members):
        self.calls.append("sadd")
        current = self.data.get(key) if self._alive(key) else None
        if current is None:
            current = set()
            self.data[key] = current
        before = len(current)
        current.update(members)
        return len(current) - before

    async def smembers(self, key):
        self.calls.append("smembers")
        return set(self.data[key]) if self._alive(key) else set()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def guard_config():
    return GuardConfig()


@pytest.fixture
async def redis_service(fake_redis):
    service = RedisService(RedisConfig(url="redis://fake:6379/0"), client=fake_redis)
    await service.initialize()
    return service


@pytest.fixture
async def guard(redis_service, guard_config):
    return SessionGuard(redis_service, guard_config)
