# sessionguard/services/redis_service.py
"""
Redis Service for SessionGuard.

Async wrapper around the shared counter/session store with:
- One long-lived connection pool per process
- Store failures surfaced as StoreUnavailableError (callers fail closed)
- Pipelines for ordered multi-command batches
- Graceful shutdown with a forced-disconnect fallback
- Health checks
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from sessionguard.core.service_base import BaseService
from sessionguard.core.exceptions import config_error, store_error

logger = logging.getLogger(__name__)


@dataclass
class RedisConfig:
    """Configuration for Redis Service"""
    url: Optional[str] = None
    decode_responses: bool = True
    socket_timeout: float = 5.0
    max_connections: int = 20
    retry_on_timeout: bool = True
    health_check_interval: int = 30
    shutdown_timeout: float = 2.0


class RedisService(BaseService[RedisConfig]):
    """
    Async Redis service shared by the rate limiter, the session store,
    the session index and the revocation coordinator.

    Every command either returns the store's answer or raises
    StoreUnavailableError; nothing is silently defaulted.
    """

    def __init__(self, config: RedisConfig, client: Optional[redis.Redis] = None):
        """
        Initialize Redis Service.

        Args:
            config: Redis configuration
            client: Pre-built client to use instead of connecting from the URL
        """
        super().__init__(config, logger)
        self._injected_client = client

    def _validate_config(self) -> None:
        """Validate Redis configuration"""
        super()._validate_config()

        if not self.config.url and self._injected_client is None:
            raise config_error("No Redis URL configured. Set REDIS_URL.", self.service_name)

    async def _connect(self) -> redis.Redis:
        """Create the client and verify the store answers"""
        client = self._injected_client
        if client is None:
            client = redis.from_url(
                self.config.url,
                decode_responses=self.config.decode_responses,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_timeout,
                max_connections=self.config.max_connections,
                retry_on_timeout=self.config.retry_on_timeout,
                health_check_interval=self.config.health_check_interval
            )

        try:
            await client.ping()
        except (RedisError, OSError) as e:
            raise store_error(f"Failed to connect to Redis: {e}", operation="ping") from e

        self.logger.info("Redis connection successful")
        return client

    @asynccontextmanager
    async def _store_call(self, operation: str, key: Optional[str] = None):
        """Translate client failures into StoreUnavailableError"""
        await self.ensure_initialized()
        try:
            yield self.client
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            self.logger.error(f"Redis {operation} failed" + (f" for key '{key}'" if key else "") + f": {e}")
            raise store_error(f"Redis {operation} failed: {e}", key=key, operation=operation) from e

    async def get(self, key: str, deserialize_json: bool = False) -> Any:
        """Raw string at ``key`` (None if missing), JSON-decoded on request"""
        async with self._store_call("get", key) as client:
            value = await client.get(key)

        if value is not None and deserialize_json:
            return json.loads(value)
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        serialize_json: bool = True,
        only_if_exists: bool = False
    ) -> bool:
        """
        Write ``value``; non-strings are JSON-encoded, ``ttl`` is in seconds.

        With ``only_if_exists`` the write is a SET XX: nothing is stored when
        the key is gone, and False is returned.
        """
        if serialize_json and not isinstance(value, (str, bytes)):
            value = json.dumps(value)

        options = {}
        if ttl:
            options["ex"] = ttl
        if only_if_exists:
            options["xx"] = True

        async with self._store_call("set", key) as client:
            return bool(await client.set(key, value, **options))

    async def delete(self, *keys: str) -> int:
        """Number of the given keys that existed and were removed"""
        if not keys:
            return 0

        async with self._store_call("delete", keys[0]) as client:
            return await client.delete(*keys)

    async def pexpire(self, key: str, milliseconds: int) -> bool:
        """Set expiration on a key in milliseconds"""
        async with self._store_call("pexpire", key) as client:
            return bool(await client.pexpire(key, milliseconds))

    async def pttl(self, key: str) -> int:
        """
        Get remaining time to live in milliseconds.

        Returns:
            TTL in ms, -1 if no TTL, -2 if key doesn't exist
        """
        async with self._store_call("pttl", key) as client:
            return await client.pttl(key)

    async def smembers(self, key: str) -> Set[str]:
        """Get all members of a set"""
        async with self._store_call("smembers", key) as client:
            return set(await client.smembers(key))

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        """
        Get multiple raw values at once.

        Returns:
            List of values (None for missing keys), in key order
        """
        if not keys:
            return []

        async with self._store_call("mget", keys[0]) as client:
            return list(await client.mget(keys))

    async def scan(self, cursor: int, match: str, count: int) -> Tuple[int, List[str]]:
        """One page of a cursor-based key-space scan"""
        async with self._store_call("scan") as client:
            next_cursor, keys = await client.scan(cursor=cursor, match=match, count=count)
        return int(next_cursor), [k.decode() if isinstance(k, bytes) else k for k in keys]

    async def pipeline(
        self,
        build: Callable[[Any], None],
        operation: str = "pipeline"
    ) -> List[Any]:
        """
        Run a batch of commands in one round trip.

        The batch is ordered but not transactional: commands that already ran
        stay applied when a later one fails.

        Args:
            build: Callback queuing commands on the pipeline object
            operation: Name used in logs and errors

        Returns:
            One result per queued command
        """
        async with self._store_call(operation) as client:
            async with client.pipeline(transaction=False) as pipe:
                build(pipe)
                return await pipe.execute()

    async def health_check(self) -> Dict[str, Any]:
        """Ping plus a few INFO fields; never raises"""
        try:
            await self.ensure_initialized()
            await self.client.ping()
            info = await self.client.info()

            return {
                "healthy": True,
                "status": "connected",
                "details": {
                    "redis_version": info.get("redis_version", "unknown"),
                    "connected_clients": info.get("connected_clients", 0),
                    "used_memory_human": info.get("used_memory_human", "unknown")
                }
            }

        except Exception as e:
            return {
                "healthy": False,
                "status": "error",
                "details": {
                    "error": str(e)
                }
            }

    async def _disconnect(self) -> None:
        """Close the pool gracefully, force the disconnect if that fails or hangs"""
        client = self._client
        if client is None:
            return

        try:
            await asyncio.wait_for(client.aclose(), timeout=self.config.shutdown_timeout)
        except Exception as e:
            self.logger.warning(f"Graceful Redis close failed ({type(e).__name__}: {e}); forcing disconnect")
            await client.connection_pool.disconnect(inuse_connections=True)


def create_redis_service(url: str, **kwargs) -> RedisService:
    """
    Build an (uninitialized) Redis service for a URL.

    Args:
        url: Redis URL
        **kwargs: Additional RedisConfig parameters
    """
    return RedisService(RedisConfig(url=url, **kwargs))
