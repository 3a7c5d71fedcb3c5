"""
api/routes/v1/auth.py -- Session endpoints: login, refresh, logout.

Routes:
  POST /api/v1/auth/login    -- email/password login; returns access + refresh tokens
  POST /api/v1/auth/refresh  -- X-Refresh: <refresh token>; returns a new access token
  POST /api/v1/auth/logout   -- invalidates the caller's session (requires auth)

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [E1] Unknown email and wrong password share one response -- the flow
       guarantees it; never branch on user existence here.
  [M5] Cache-Control: no-store on every response that carries a token.
  Logout takes the session id from the verified access-token claims only.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import AccessTokenResponse, LoginRequest, MessageResponse, TokenPairResponse
from api.responses import error_response, no_store, outcome_response
from auth.credentials import CredentialManager
from auth.dependencies import get_current_claims
from auth.models import AccessTokenClaims
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/refresh:  public -- the refresh token is the credential
# - POST /api/v1/auth/logout:   requires auth (get_current_claims)
router = APIRouter()

_settings = get_settings()


@router.post("/auth/login", response_model=TokenPairResponse, status_code=201)
@limiter.limit(login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; open a session and return both tokens."""
    credentials: CredentialManager = request.app.state.credentials
    outcome = credentials.login(body.email, body.password)
    if not outcome.ok:
        return no_store(error_response(outcome))

    pair = outcome.value
    content = TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=_settings.access_token_ttl_seconds,
    ).model_dump()
    return no_store(JSONResponse(status_code=201, content=content))


@router.post("/auth/refresh", response_model=AccessTokenResponse)
def refresh(request: Request) -> JSONResponse:
    """Exchange the refresh token in the X-Refresh header for a new access token.

    The refresh token is not rotated; the same value keeps working until it
    expires or its session is invalidated.
    """
    credentials: CredentialManager = request.app.state.credentials
    outcome = credentials.refresh(request.headers.get("X-Refresh", "").strip())
    if not outcome.ok:
        return no_store(error_response(outcome))

    content = AccessTokenResponse(
        access_token=outcome.value,
        token_type="bearer",  # noqa: S106 # nosec B106
        expires_in=_settings.access_token_ttl_seconds,
    ).model_dump()
    return no_store(JSONResponse(status_code=200, content=content))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, claims: AccessTokenClaims = Depends(get_current_claims)) -> JSONResponse:
    """Invalidate the session named by the caller's access token."""
    credentials: CredentialManager = request.app.state.credentials
    return outcome_response(credentials.logout(claims.session_id))
