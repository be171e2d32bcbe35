# sessionguard/services/session_index.py
"""
Per-user session index.

``user_sessions:{userId}`` holds every session id tracked for a user and
``session_user:{sessionId}`` points back at the owner. Both expire after a
long bound of their own so the index heals itself when nobody cleans it up.
"""
import logging
from typing import Set

from sessionguard.core.config import GuardConfig
from sessionguard.core.keys import user_sessions_key, session_owner_key
from sessionguard.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class SessionIndex:

    def __init__(self, redis_service: RedisService, config: GuardConfig):
        self.redis = redis_service
        self.config = config

    async def track_user_session(self, user_id: str, session_id: str) -> None:
        """
        Register a session under its owner.

        No-op when either id is empty. Store failures propagate; the login
        flow goes through SessionGuard.track_user_session, which absorbs them.
        """
        if not user_id or not session_id:
            return

        index_key = user_sessions_key(user_id)
        ttl = self.config.track_ttl_seconds

        def build(pipe):
            pipe.sadd(index_key, session_id)
            pipe.expire(index_key, ttl)
            pipe.set(session_owner_key(session_id), user_id, ex=ttl)

        await self.redis.pipeline(build, operation="track_user_session")
        logger.debug(f"Tracked session {session_id[:8]}... for user {user_id}")

    async def get_tracked_sessions(self, user_id: str) -> Set[str]:
        return await self.redis.smembers(user_sessions_key(user_id))
