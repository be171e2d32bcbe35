"""
Session middleware: loads the cookie's session, enforces the absolute
lifetime and persists changes after the handler ran.
"""

import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from sessionguard.core.config import GuardConfig
from sessionguard.core.exceptions import SessionExpiredError, StoreUnavailableError
from sessionguard.core.ttl_policy import TTLDecision, now_ms
from sessionguard.models.session_state import SessionState
from sessionguard.services.session_guard import SessionGuard

logger = logging.getLogger(__name__)

STORE_DOWN_BODY = {"error": "Session store unavailable"}


async def save_session(guard: SessionGuard, session: SessionState) -> bool:
    """
    Persist a session now instead of after the response.

    Used by handlers that must know the record exists before continuing
    (login indexes the new id right after writing it). A session that was
    loaded from the store is only refreshed, never recreated: if it was
    revoked while the request ran, nothing is written, the session is marked
    destroyed and False is returned.
    """
    if session.previous_session_id:
        await guard.sessions.destroy(session.previous_session_id)
        session.previous_session_id = None
    if session.payload.created_at is None:
        session.payload.created_at = now_ms()

    written = await guard.sessions.save(
        session.session_id, session.payload, only_if_exists=session.stored
    )
    if not written:
        logger.info(f"Session {session.session_id[:8]}... vanished during the request; not restored")
        session.destroy()
        return False

    session.stored = True
    session.modified = False
    session.needs_cookie = True
    return True


def set_session_cookie(response: Response, session: SessionState, config: GuardConfig) -> None:
    response.set_cookie(
        key=config.cookie_name,
        value=session.session_id,
        max_age=config.idle_ttl_seconds,
        httponly=True,
        secure=config.cookie_secure,
        samesite="lax",
        domain=config.cookie_domain,
    )


def clear_session_cookie(response: Response, config: GuardConfig) -> None:
    response.delete_cookie(
        key=config.cookie_name,
        httponly=True,
        secure=config.cookie_secure,
        samesite="lax",
        domain=config.cookie_domain,
    )


class SessionMiddleware:
    """
    Runs on every request, independent of route.

    Idle expiry is the store's job: a record that timed out is simply gone.
    Absolute expiry is checked here against ``createdAt``; a session past it
    is destroyed and the request rejected with 401, even if the record was
    read a second ago.
    """

    async def __call__(self, request: Request, call_next: Callable) -> Response:
        guard: SessionGuard = request.app.state.session_guard
        config = guard.config

        try:
            session = await self._load(guard, request)
        except StoreUnavailableError:
            logger.error(f"Session store unavailable for {request.url.path}")
            return JSONResponse(status_code=503, content=STORE_DOWN_BODY)

        if session is not None:
            decision = guard.ttl_policy.evaluate(session.payload)

            if decision is TTLDecision.EXPIRED:
                expired = SessionExpiredError(
                    session_id=session.session_id,
                    age_ms=guard.ttl_policy.age_ms(session.payload)
                )
                logger.info(f"⏰ {expired}")
                try:
                    await guard.sessions.destroy(session.session_id)
                except StoreUnavailableError:
                    logger.error(f"Could not destroy expired session {session.session_id[:8]}...")
                response = JSONResponse(status_code=401, content={"error": expired.message})
                clear_session_cookie(response, config)
                return response

            if decision is TTLDecision.STAMPED:
                # First observation without createdAt; persisted after the handler
                session.mark_modified()

        request.state.session = session or SessionState.new()

        response = await call_next(request)

        try:
            await self._commit(guard, request.state.session, response)
        except StoreUnavailableError:
            logger.error("Session changes could not be saved")
            return JSONResponse(status_code=503, content=STORE_DOWN_BODY)
        return response

    async def _load(self, guard: SessionGuard, request: Request):
        session_id = request.cookies.get(guard.config.cookie_name)
        if not session_id:
            return None

        payload = await guard.sessions.load(session_id)
        if payload is None:
            return None
        return SessionState(session_id, payload)

    async def _commit(self, guard: SessionGuard, session: SessionState, response: Response) -> None:
        if session.destroyed:
            if not session.is_new:
                await guard.sessions.destroy(session.session_id)
            clear_session_cookie(response, guard.config)
            return

        if session.modified and not await save_session(guard, session):
            clear_session_cookie(response, guard.config)
            return

        if session.needs_cookie:
            set_session_cookie(response, session, guard.config)
