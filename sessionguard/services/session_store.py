# sessionguard/services/session_store.py
"""
Session record store: one ``sess:{sessionId}`` JSON entry per session.

Every write re-arms the idle expiry. Reads never touch it; there is no
rolling renewal, which keeps anonymous and read-only traffic from turning
into a store write per request.
"""
import logging
from typing import Optional

from pydantic import ValidationError

from sessionguard.core.config import GuardConfig
from sessionguard.core.keys import session_key
from sessionguard.models.session_payload import SessionPayload
from sessionguard.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class SessionRecordStore:

    def __init__(self, redis_service: RedisService, config: GuardConfig):
        self.redis = redis_service
        self.config = config

    async def load(self, session_id: str) -> Optional[SessionPayload]:
        """
        Read a session payload.

        Returns None when the record expired or was never written. A record
        that no longer fits the schema is treated the same way: the caller
        starts over with a fresh session.
        """
        raw = await self.redis.get(session_key(session_id))
        if raw is None:
            return None
        try:
            return SessionPayload.from_json(raw)
        except ValidationError:
            logger.warning(f"Discarding unreadable session record {session_id[:8]}...")
            return None

    async def save(self, session_id: str, payload: SessionPayload, only_if_exists: bool = False) -> bool:
        """
        Write the payload and (re)arm the idle expiry.

        ``only_if_exists`` refreshes a record without ever recreating it: a
        session revoked or expired since it was loaded stays gone, and False
        is returned.
        """
        return await self.redis.set(
            session_key(session_id),
            payload.to_json(),
            ttl=self.config.idle_ttl_seconds,
            only_if_exists=only_if_exists
        )

    async def destroy(self, session_id: str) -> bool:
        """Delete a session record; True if it existed"""
        return await self.redis.delete(session_key(session_id)) > 0
