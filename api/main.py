"""
api/main.py -- FastAPI application entry point for SessionGate.

Exposes the auth core over HTTP. Every route is a thin adapter: validate the
request body, call one flow, map the Outcome to a response.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter

Identity resolution is NOT middleware: get_auth_context runs as a router
dependency on /api/v1/users and /api/v1/auth, and hands its AuthContext to
handlers through Depends().

Lifespan builds the stores, codec, and flows once at startup and releases the
database engines on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.credentials import CredentialManager
from auth.dependencies import get_auth_context
from auth.notifier import build_notifier
from auth.password_reset import PasswordResetFlow
from auth.passwords import BcryptHasher
from auth.store import SessionStore, UserStore, build_engine
from auth.tokens import TokenCodec
from auth.verification import VerificationFlow
from core.config import get_settings

_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_settings = get_settings()

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessiongate.api")


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def wire_components(
    app: FastAPI,
    users: UserStore,
    sessions: SessionStore,
    settings=None,
    hasher=None,
    notifier=None,
) -> None:
    """Build the codec and flows on top of the given stores and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both wire the same
    object graph. Tests pass a cheap hasher and a recording notifier; the
    server gets bcrypt at full cost and the notifier SMTP settings select.
    """
    settings = settings or get_settings()
    hasher = hasher or BcryptHasher()
    notifier = notifier or build_notifier(settings, logging.getLogger("sessiongate.notifier"))
    codec = TokenCodec.from_settings(settings, sessions, logging.getLogger("sessiongate.tokens"))

    app.state.users = users
    app.state.sessions = sessions
    app.state.codec = codec
    app.state.credentials = CredentialManager(
        users, sessions, codec, hasher, logging.getLogger("sessiongate.credentials")
    )
    app.state.verification = VerificationFlow(
        users, hasher, notifier, logging.getLogger("sessiongate.verification")
    )
    app.state.password_reset = PasswordResetFlow(
        users, sessions, hasher, notifier, logging.getLogger("sessiongate.password_reset")
    )


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Both stores share one engine so a single connection pool serves user and
    session queries.
    """
    logger.info("SessionGate API starting up")
    engine = build_engine(_settings.database_url, _settings.store_timeout_seconds)
    users = UserStore(engine=engine, logger=logging.getLogger("sessiongate.store"))
    sessions = SessionStore(engine=engine, logger=logging.getLogger("sessiongate.store"))
    wire_components(app, users, sessions, _settings)
    logger.info("Stores and token codec initialized")

    yield

    engine.dispose()
    logger.info("SessionGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SessionGate API",
    description="Account registration, email verification, and revocable token sessions.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-Refresh"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
#
# get_auth_context runs on every route in both routers, so a malformed bearer
# token is rejected with 403 even on public endpoints. FastAPI caches the
# dependency per request; handlers that also declare it get the same value.
# ---------------------------------------------------------------------------

app.include_router(users_router, prefix="/api/v1", tags=["Users"], dependencies=[Depends(get_auth_context)])
app.include_router(auth_router, prefix="/api/v1", tags=["Auth"], dependencies=[Depends(get_auth_context)])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the body or path fails validation; 400 when the body is not JSON at all."""
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error=ErrorDetail(code="bad_request", message="Bad request")).model_dump(),
        )
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(errors),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Reached mainly when the session lookup inside get_auth_context fails: the
    request must not proceed as anonymous. The raw exception is logged, never
    returned.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="Internal server error",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable and
# never runs bearer-token resolution. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=_VERSION)
