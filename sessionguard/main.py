# sessionguard/main.py
"""
SessionGuard FastAPI application.

Wires the session middleware in front of every route and exposes the auth
flow that consumes the subsystem: per-email throttling before login,
password reset and email verification, session indexing after login and
revocation after a password reset.
"""

import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from sessionguard.core.config import settings, validate_required_settings
from sessionguard.core.exceptions import RateLimitExceededError, StoreUnavailableError
from sessionguard.core.logging_config import setup_logging
from sessionguard.core.rate_limit_config import (
    EMAIL_VERIFICATION,
    IP_RATE_LIMITS,
    LOGIN,
    PASSWORD_RESET,
    get_policy,
    get_rate_limit_message,
    get_real_ip,
)
from sessionguard.core.ttl_policy import now_ms
from sessionguard.middleware.session_middleware import SessionMiddleware, save_session
from sessionguard.models.auth_models import (
    CredentialBackend,
    LoginRequest,
    PasswordForgotRequest,
    PasswordResetRequest,
)
from sessionguard.models.session_payload import SessionUser
from sessionguard.models.session_state import SessionState
from sessionguard.services.rate_limiter import normalize_identity
from sessionguard.services.session_guard import SessionGuard

logger = setup_logging()

# Per-IP limits on top of the per-email limits kept in Redis
limiter = Limiter(key_func=get_real_ip)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the guard on startup, close it on shutdown"""
    guard: SessionGuard = app.state.session_guard

    logger.info("=" * 60)
    logger.info("🚀 SessionGuard API starting...")

    if not validate_required_settings():
        logger.warning("⚠️ Unsafe production settings - see warnings above")

    try:
        await guard.start()
    except Exception as e:
        logger.error(f"❌ Failed to connect session store: {e}")
        raise

    logger.info("✅ SessionGuard API ready")
    logger.info("=" * 60)

    try:
        yield
    finally:
        logger.info("🛑 SessionGuard API shutting down...")
        await guard.close()


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_guard(request: Request) -> SessionGuard:
    return request.app.state.session_guard


def get_credentials(request: Request) -> CredentialBackend:
    backend = request.app.state.credentials
    if backend is None:
        raise HTTPException(status_code=503, detail="Credential backend not configured")
    return backend


def get_session(request: Request) -> SessionState:
    return request.state.session


async def enforce_identity_limit(guard: SessionGuard, purpose: str, email: str) -> None:
    """Consume one attempt; raise when the identity is over its limit"""
    if not await guard.is_allowed(purpose, normalize_identity(email)):
        policy = get_policy(purpose)
        raise RateLimitExceededError(
            get_rate_limit_message(purpose),
            purpose=purpose,
            retry_after_seconds=policy.window_seconds
        )


# =============================================================================
# AUTH ROUTES
# =============================================================================

router = APIRouter(prefix="/auth")


@router.post("/login")
@limiter.limit(IP_RATE_LIMITS["login"])
async def login(
    request: Request,
    body: LoginRequest,
    guard: SessionGuard = Depends(get_guard),
    credentials: CredentialBackend = Depends(get_credentials),
    session: SessionState = Depends(get_session),
):
    """
    Authenticate and establish a fresh session.

    The login counter is consumed before the credentials are checked, so
    failed attempts count against the limit.
    """
    email = normalize_identity(body.email)
    await enforce_identity_limit(guard, LOGIN, email)

    user = await credentials.authenticate(email, body.password)
    if user is None:
        logger.warning("❌ Failed login attempt")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    # New id against session fixation, new absolute clock
    session.regenerate()
    session.payload.user = SessionUser(
        id=user.id,
        email=user.email,
        is_global_admin=user.is_global_admin,
        email_verified=user.email_verified,
        has_staff_role=user.has_staff_role,
    )
    session.payload.csrf_token = secrets.token_urlsafe(32)
    session.payload.created_at = now_ms()

    await save_session(guard, session)
    await guard.track_user_session(user.id, session.session_id)

    logger.info(f"🔐 User {user.id} logged in (session {session.session_id[:8]}...)")
    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "isGlobalAdmin": user.is_global_admin,
        },
        "csrfToken": session.payload.csrf_token,
        "emailVerified": user.email_verified,
    }


@router.post("/logout")
async def logout(session: SessionState = Depends(get_session)):
    session.destroy()
    return {"message": "Logged out"}


@router.get("/me")
async def me(session: SessionState = Depends(get_session)):
    user = session.user
    if user is None:
        return {"user": None}

    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "isGlobalAdmin": user.is_global_admin,
            "emailVerified": user.email_verified,
            "sessionCreatedAt": session.payload.created_at,
        }
    }


@router.post("/password/forgot")
@limiter.limit(IP_RATE_LIMITS["password_forgot"])
async def password_forgot(
    request: Request,
    body: PasswordForgotRequest,
    guard: SessionGuard = Depends(get_guard),
    credentials: CredentialBackend = Depends(get_credentials),
):
    """Same answer for known and unknown emails"""
    email = normalize_identity(body.email)
    await enforce_identity_limit(guard, PASSWORD_RESET, email)

    await credentials.request_password_reset(email)
    return {"message": "If the email exists, a reset link has been sent."}


@router.post("/password/reset")
@limiter.limit(IP_RATE_LIMITS["password_reset"])
async def password_reset(
    request: Request,
    body: PasswordResetRequest,
    guard: SessionGuard = Depends(get_guard),
    credentials: CredentialBackend = Depends(get_credentials),
    session: SessionState = Depends(get_session),
):
    """
    Set a new password and log the user out everywhere.

    If revocation fails the store error propagates as 503: the password did
    change, but the old sessions are not known to be gone.
    """
    user_id = await credentials.reset_password(body.token, body.password)
    if not user_id:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    revoked = await guard.revoke_user_sessions(user_id)

    if session.user is not None and session.user.id == user_id:
        session.destroy()

    return {
        "message": "Password has been reset successfully.",
        "revokedSessions": revoked,
    }


@router.post("/email/verify/request")
@limiter.limit(IP_RATE_LIMITS["email_verify_request"])
async def request_email_verification(
    request: Request,
    guard: SessionGuard = Depends(get_guard),
    credentials: CredentialBackend = Depends(get_credentials),
    session: SessionState = Depends(get_session),
):
    user = session.user
    if user is None:
        raise HTTPException(status_code=400, detail="Must be logged in to request verification")

    await enforce_identity_limit(guard, EMAIL_VERIFICATION, user.email or user.id)

    await credentials.request_email_verification(user.id)
    return {"message": "Verification email sent."}


# =============================================================================
# HEALTH
# =============================================================================

health_router = APIRouter()


@health_router.get("/", status_code=200)
def read_root():
    return {"status": "ok", "service": "sessionguard"}


@health_router.get("/healthz", response_class=PlainTextResponse, status_code=200)
def healthz():
    """Liveness without touching the store"""
    return "OK"


@health_router.get("/health")
async def health(guard: SessionGuard = Depends(get_guard)):
    """Readiness including the session store"""
    store = await guard.health_check()
    status_code = 200 if store["healthy"] else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "healthy" if store["healthy"] else "unhealthy",
            "timestamp": datetime.now().isoformat(),
            "store": store,
        }
    )


@health_router.get("/health/sessions")
async def session_metrics(guard: SessionGuard = Depends(get_guard)):
    return guard.get_metrics()


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def ip_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Per-IP limit hit (slowapi)"""
    response = JSONResponse(
        status_code=429,
        content={"error": get_rate_limit_message("default")},
    )
    response.headers["Retry-After"] = "60"
    return response


def identity_rate_limit_handler(request: Request, exc: RateLimitExceededError):
    """Per-email limit hit; the guarded action was not performed"""
    response = JSONResponse(status_code=429, content={"error": exc.message})
    if exc.retry_after_seconds:
        response.headers["Retry-After"] = str(exc.retry_after_seconds)
    return response


def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    """Fail closed: no throttling decision, no revocation confirmation"""
    logger.error(f"Session store unavailable during {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"error": "Session store unavailable. Please try again."},
    )


# =============================================================================
# APP FACTORY
# =============================================================================

async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses"""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response


def create_app(
    guard: Optional[SessionGuard] = None,
    credentials: Optional[CredentialBackend] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        guard: Session guard to use; built from the environment if omitted
        credentials: Backend owning users and passwords
    """
    app = FastAPI(
        title="SessionGuard API",
        description="Session lifecycle and rate limiting for the event portal",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )

    app.state.session_guard = guard or SessionGuard.from_settings(settings)
    app.state.credentials = credentials
    # Required by slowapi
    app.state.limiter = limiter

    app.add_exception_handler(RateLimitExceeded, ip_rate_limit_handler)
    app.add_exception_handler(RateLimitExceededError, identity_rate_limit_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)

    # Last added runs first: sessions are resolved inside the header/CORS layers
    app.middleware("http")(SessionMiddleware())
    app.middleware("http")(add_security_headers)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "x-csrf-token", "Authorization"],
    )

    app.include_router(health_router)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn

    port = int(os.getenv("PORT", "3001"))
    logger.info(f"🚀 Starting SessionGuard on port {port}...")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
