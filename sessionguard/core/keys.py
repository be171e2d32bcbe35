# sessionguard/core/keys.py
"""
Redis key layout.

These prefixes are the wire contract with the store. Changing one orphans
every session and index entry written under the old name, so they are
constants and not settings.
"""

SESSION_KEY_PREFIX = "sess:"
USER_SESSION_PREFIX = "user_sessions:"
SESSION_OWNER_PREFIX = "session_user:"
RATE_LIMIT_PREFIX = "ratelimit:"

SESSION_KEY_PATTERN = f"{SESSION_KEY_PREFIX}*"


def session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def user_sessions_key(user_id: str) -> str:
    return f"{USER_SESSION_PREFIX}{user_id}"


def session_owner_key(session_id: str) -> str:
    return f"{SESSION_OWNER_PREFIX}{session_id}"


def rate_limit_key(key: str) -> str:
    """Counter key for an already purpose-qualified key like ``login:a@b.c``"""
    return f"{RATE_LIMIT_PREFIX}{key}"


def session_id_from_key(key: str) -> str:
    """``sess:abc`` -> ``abc``"""
    return key[len(SESSION_KEY_PREFIX):] if key.startswith(SESSION_KEY_PREFIX) else key
