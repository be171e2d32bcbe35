# sessionguard/services/revocation.py
"""
Revocation of every session owned by one user.

Called after a password reset or an equivalent security event. Two paths:

1. Indexed: the user's ``user_sessions`` set names the sessions to delete,
   together with their owner pointers and the set itself.
2. Legacy scan: sessions created before indexing existed are only found by
   scanning ``sess:*`` and reading each payload. The scan is off by default
   and, when enabled, stops after ``scan_max_keys`` inspected keys. Stopping
   early can leave sessions of that user alive; the outcome is logged as a
   warning so operators can raise SESSION_REVOKE_SCAN_MAX_KEYS.

Store failures propagate on both paths: a revocation that raised must be
treated as "not yet safe" and retried. Deletes are batched without a
transaction, so a partial batch can remain after a crash; running the
revocation again is idempotent.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from sessionguard.core.config import GuardConfig
from sessionguard.core.keys import (
    SESSION_KEY_PATTERN,
    session_id_from_key,
    session_key,
    session_owner_key,
    user_sessions_key,
)
from sessionguard.models.session_payload import parse_session_owner
from sessionguard.services.redis_service import RedisService
from sessionguard.services.session_index import SessionIndex

logger = logging.getLogger(__name__)


class RevocationPath(str, Enum):
    INDEXED = "indexed"
    SKIPPED = "skipped"
    SCAN = "scan"


@dataclass
class RevocationOutcome:
    """What a single revocation pass did"""
    user_id: str
    path: RevocationPath
    revoked: int = 0
    inspected: int = 0
    budget_exhausted: bool = False


class RevocationCoordinator:

    def __init__(self, redis_service: RedisService, config: GuardConfig, index: Optional[SessionIndex] = None):
        self.redis = redis_service
        self.config = config
        self.index = index or SessionIndex(redis_service, config)

        self._counts = {
            "indexed_revocations": 0,
            "skipped_scans": 0,
            "scan_revocations": 0,
            "budget_exhaustions": 0,
            "sessions_revoked": 0,
        }

    async def revoke_user_sessions(self, user_id: str) -> int:
        """
        Destroy every session owned by ``user_id``.

        Returns:
            Number of session records actually deleted. Zero is a valid
            answer (nothing tracked, or everything already expired).
        """
        outcome = await self.revoke_user_sessions_detailed(user_id)
        return outcome.revoked

    async def revoke_user_sessions_detailed(self, user_id: str) -> RevocationOutcome:
        tracked = await self.index.get_tracked_sessions(user_id)

        if tracked:
            outcome = await self._revoke_indexed(user_id, sorted(tracked))
        elif not self.config.scan_fallback_enabled:
            await self.redis.delete(user_sessions_key(user_id))
            outcome = RevocationOutcome(user_id, RevocationPath.SKIPPED)
            logger.info(
                f"[SESSION] No indexed sessions found for user {user_id}; "
                f"skipped legacy scan fallback"
            )
        else:
            outcome = await self._revoke_by_scan(user_id)

        self._record(outcome)
        return outcome

    async def _revoke_indexed(self, user_id: str, session_ids: List[str]) -> RevocationOutcome:
        index_key = user_sessions_key(user_id)

        def build(pipe):
            for session_id in session_ids:
                pipe.delete(session_key(session_id))
                pipe.delete(session_owner_key(session_id))
            pipe.delete(index_key)

        results = await self.redis.pipeline(build, operation="revoke_indexed")

        # Even positions hold the session record deletions
        record_deletions = results[:len(session_ids) * 2:2]
        revoked = sum(int(result or 0) for result in record_deletions)

        logger.info(f"[SESSION] Revoked {revoked} sessions for user {user_id} (indexed)")
        return RevocationOutcome(user_id, RevocationPath.INDEXED, revoked=revoked, inspected=len(session_ids))

    async def _revoke_by_scan(self, user_id: str) -> RevocationOutcome:
        budget = self.config.scan_max_keys
        outcome = RevocationOutcome(user_id, RevocationPath.SCAN)
        cursor = 0

        while True:
            cursor, keys = await self.redis.scan(cursor, SESSION_KEY_PATTERN, self.config.scan_page_size)

            if keys:
                batch = keys[:budget - outcome.inspected]
                outcome.inspected += len(batch)
                outcome.revoked += await self._delete_owned(user_id, batch)

                if outcome.inspected >= budget:
                    outcome.budget_exhausted = cursor != 0 or len(batch) < len(keys)
                    break

            if cursor == 0:
                break

        await self.redis.delete(user_sessions_key(user_id))

        logger.info(
            f"[SESSION] Revoked {outcome.revoked} sessions for user {user_id} "
            f"(scan fallback, scanned {outcome.inspected} keys)"
        )
        if outcome.budget_exhausted:
            logger.warning(
                f"[SESSION] Legacy scan for user {user_id} stopped after {budget} keys; "
                f"older sessions may remain. Raise SESSION_REVOKE_SCAN_MAX_KEYS to cover them."
            )
        return outcome

    async def _delete_owned(self, user_id: str, keys: List[str]) -> int:
        """
        Delete the records among ``keys`` whose payload belongs to ``user_id``,
        together with their owner pointers. Returns the record deletions.
        """
        payloads = await self.redis.mget(keys)
        owned = [
            key for key, raw in zip(keys, payloads)
            if parse_session_owner(raw) == user_id
        ]
        if not owned:
            return 0

        def build(pipe):
            for key in owned:
                pipe.delete(key)
                pipe.delete(session_owner_key(session_id_from_key(key)))

        results = await self.redis.pipeline(build, operation="revoke_scan")
        return sum(int(result or 0) for result in results[::2])

    def _record(self, outcome: RevocationOutcome) -> None:
        if outcome.path is RevocationPath.INDEXED:
            self._counts["indexed_revocations"] += 1
        elif outcome.path is RevocationPath.SKIPPED:
            self._counts["skipped_scans"] += 1
        else:
            self._counts["scan_revocations"] += 1
            if outcome.budget_exhausted:
                self._counts["budget_exhaustions"] += 1
        self._counts["sessions_revoked"] += outcome.revoked

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self._counts,
            "scan_fallback_enabled": self.config.scan_fallback_enabled,
            "scan_max_keys": self.config.scan_max_keys,
        }
