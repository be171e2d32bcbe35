# sessionguard/models/session_state.py

import secrets
from typing import Optional

from sessionguard.models.session_payload import SessionPayload, SessionUser, CURRENT_SCHEMA_VERSION


def generate_session_id() -> str:
    return secrets.token_urlsafe(24)


class SessionState:
    """
    Per-request view of a session, attached to ``request.state.session``.

    Handlers change the payload and call ``mark_modified()``; the session
    middleware persists modified sessions after the response is built. Reads
    never write, so the idle clock only moves on state-changing requests.
    """

    def __init__(self, session_id: str, payload: Optional[SessionPayload] = None, is_new: bool = False):
        self.session_id = session_id
        self.payload = payload or SessionPayload(schema_version=CURRENT_SCHEMA_VERSION)
        self.is_new = is_new
        self.modified = False
        self.destroyed = False
        self.needs_cookie = False
        # A record under session_id was read from or written to the store
        self.stored = not is_new
        # Set when the id was rotated; the old record must be removed
        self.previous_session_id: Optional[str] = None

    @classmethod
    def new(cls) -> "SessionState":
        return cls(generate_session_id(), is_new=True)

    @property
    def user(self) -> Optional[SessionUser]:
        return self.payload.user

    def mark_modified(self) -> None:
        self.modified = True

    def regenerate(self) -> None:
        """New id and empty payload, to prevent session fixation on login"""
        if not self.is_new:
            self.previous_session_id = self.session_id
        self.session_id = generate_session_id()
        self.payload = SessionPayload(schema_version=CURRENT_SCHEMA_VERSION)
        self.stored = False
        self.destroyed = False
        self.modified = True

    def destroy(self) -> None:
        self.destroyed = True
        self.modified = False
