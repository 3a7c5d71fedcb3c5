"""
auth/dependencies.py -- Per-request identity resolution and the auth guard.

Two layers:

  Framework-free core:
    deserialize(codec, authorization) -> AuthContext
    require_auth(context) -> Outcome[AccessTokenClaims]

  FastAPI Depends() wrappers:
    get_auth_context()   -- runs deserialize() on the Authorization header.
                            Registered as a router-level dependency so a
                            malformed bearer token is rejected (403) on every
                            /api/v1 route, public or not.
    get_current_claims() -- require_auth() for protected routes (403 if not
                            authenticated).

The resolved identity travels as a returned AuthContext value through
Depends(), which FastAPI caches per request. Nothing is written to a shared
or per-request mutable slot.

Policy asymmetry (kept as observed, not a deliberate endorsement):
  malformed / expired / wrongly-signed token -> REJECTED (hard failure)
  well-formed token for a revoked session   -> ANONYMOUS (silently ignored)

Layer rule: auth/dependencies.py may import from fastapi (for
Depends/HTTPException/Request) because this module is part of the FastAPI
dependency injection system. No imports from api/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request

from auth.errors import ErrorCode, InvalidTokenError, Outcome
from auth.models import AccessTokenClaims
from auth.tokens import TokenCodec

FORBIDDEN_MESSAGE = "Forbidden"

_logger = logging.getLogger("sessiongate.gate")


class AuthStatus(str, Enum):
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AuthContext:
    """Result of deserialize(). claims is set only when AUTHENTICATED."""

    status: AuthStatus
    claims: AccessTokenClaims | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED


ANONYMOUS = AuthContext(status=AuthStatus.ANONYMOUS)
REJECTED = AuthContext(status=AuthStatus.REJECTED)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' value, else None."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def deserialize(codec: TokenCodec, authorization: str | None, logger: logging.Logger | None = None) -> AuthContext:
    """Resolve the caller's identity from an Authorization header value.

    StoreError from the revocation lookup is not caught: a request whose
    session cannot be checked must fail, not pass as anonymous.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        return ANONYMOUS
    try:
        claims = codec.verify_access_token(token)
    except InvalidTokenError as exc:
        (logger or _logger).info("Rejected bearer token: %s", exc.message)
        return REJECTED
    if claims is None:
        return ANONYMOUS
    return AuthContext(status=AuthStatus.AUTHENTICATED, claims=claims)


def require_auth(context: AuthContext) -> Outcome[AccessTokenClaims]:
    """FORBIDDEN unless the context is authenticated; otherwise pass the claims through."""
    if not context.is_authenticated or context.claims is None:
        return Outcome.failure(ErrorCode.FORBIDDEN, FORBIDDEN_MESSAGE)
    return Outcome.success(context.claims)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def _forbidden() -> HTTPException:
    return HTTPException(
        status_code=403,
        detail={"code": ErrorCode.FORBIDDEN.value, "message": FORBIDDEN_MESSAGE},
    )


def get_auth_context(request: Request) -> AuthContext:
    """Deserialize the bearer token. Raises HTTP 403 if the token is malformed."""
    codec: TokenCodec = request.app.state.codec
    context = deserialize(codec, request.headers.get("Authorization"))
    if context.status is AuthStatus.REJECTED:
        raise _forbidden()
    return context


def get_current_claims(context: AuthContext = Depends(get_auth_context)) -> AccessTokenClaims:
    """Require authentication. Raises HTTP 403 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.post("/protected")
        def route(claims: AccessTokenClaims = Depends(get_current_claims)): ...
    """
    outcome = require_auth(context)
    if not outcome.ok:
        raise _forbidden()
    return outcome.value
