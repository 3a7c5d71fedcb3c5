"""
auth/credentials.py -- Login, token refresh, and logout.

CredentialManager ties the user store, the session store, and the token codec
together. Every public method returns an Outcome; nothing recoverable escapes
as an exception.

Account enumeration:
  [E1] Unknown email and wrong password return the same INVALID_CREDENTIALS
       code and message. The unknown-email path still runs one password
       verification against a dummy digest so response time does not reveal
       whether the email exists.
  [E2] NOT_VERIFIED is reported distinctly for an existing, unverified
       account. This is a residual enumeration signal, kept because clients
       need it to prompt for verification.

Refresh tokens are NOT rotated on use. A refresh token stays usable until it
expires or its session is invalidated; a leaked refresh token therefore
mints access tokens for its whole lifetime with no reuse signal. Logout or a
password reset is the only way to cut it off.
"""

from __future__ import annotations

import logging

from auth.errors import ErrorCode, InvalidTokenError, Outcome, internal_failure
from auth.models import TokenPair
from auth.passwords import PasswordHasher
from auth.store import SessionStore, UserStore
from auth.tokens import TokenCodec

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
NOT_VERIFIED_MESSAGE = "User is not verified"
UNAUTHORIZED_MESSAGE = "Unauthorized"

_DUMMY_PASSWORD = "sessiongate_timing_dummy"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialManager:
    """Orchestrates login, refresh, and logout.

    Usage:
        manager = CredentialManager(users, sessions, codec, BcryptHasher())
        outcome = manager.login("alice@example.com", "S3cret!pass")
        if outcome.ok:
            pair = outcome.value     # TokenPair(access_token, refresh_token, session_id)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        codec: TokenCodec,
        hasher: PasswordHasher,
        logger: logging.Logger | None = None,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._codec = codec
        self._hasher = hasher
        self._logger = logger or logging.getLogger("sessiongate.credentials")
        self._dummy_digest: str | None = None

    def _equalize_timing(self, password: str) -> None:
        """Run one hasher.verify() so the unknown-email path costs what a real check costs [E1]."""
        if self._dummy_digest is None:
            self._dummy_digest = self._hasher.hash(_DUMMY_PASSWORD)
        self._hasher.verify(self._dummy_digest, password)

    def login(self, email: str, password: str) -> Outcome[TokenPair]:
        """Authenticate and open a new session.

        On success the session is created first, then the refresh token
        (sessionID + userID) and the access token (sessionID + user snapshot)
        are minted against it.
        """
        try:
            user = self._users.get_by_email(normalize_email(email))
            if user is None:
                self._equalize_timing(password)
                self._logger.debug("Login failed: unknown email")
                return Outcome.failure(ErrorCode.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

            if not user.is_verified:
                return Outcome.failure(ErrorCode.NOT_VERIFIED, NOT_VERIFIED_MESSAGE)

            if not self._hasher.verify(user.password_hash, password):
                self._logger.info("Login failed: wrong password for user %s", user.id)
                return Outcome.failure(ErrorCode.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

            session = self._sessions.create(user.id)
            refresh_token = self._codec.sign_refresh_token(session)
            access_token = self._codec.sign_access_token(user, session.id)
        except Exception:
            return internal_failure(self._logger, "login")

        self._logger.info("User %s logged in (session %s)", user.id, session.id)
        return Outcome.success(
            TokenPair(access_token=access_token, refresh_token=refresh_token, session_id=session.id),
            message="Session created",
        )

    def refresh(self, refresh_token: str) -> Outcome[str]:
        """Exchange a refresh token for a new access token on the same session.

        Invalid, expired, wrongly-signed, and revoked refresh tokens all map
        to UNAUTHORIZED, as does a token whose user no longer exists. The
        refresh token itself is returned to nobody and is not re-issued.
        """
        if not refresh_token:
            return Outcome.failure(ErrorCode.UNAUTHORIZED, UNAUTHORIZED_MESSAGE)
        try:
            try:
                claims = self._codec.verify_refresh_token(refresh_token)
            except InvalidTokenError:
                return Outcome.failure(ErrorCode.UNAUTHORIZED, UNAUTHORIZED_MESSAGE)
            if claims is None:
                return Outcome.failure(ErrorCode.UNAUTHORIZED, UNAUTHORIZED_MESSAGE)

            user = self._users.get_by_id(claims.user_id)
            if user is None:
                self._logger.info("Refresh for session %s names a missing user", claims.session_id)
                return Outcome.failure(ErrorCode.UNAUTHORIZED, UNAUTHORIZED_MESSAGE)

            access_token = self._codec.sign_access_token(user, claims.session_id)
        except Exception:
            return internal_failure(self._logger, "refresh")

        return Outcome.success(access_token, message="Access token successfully refreshed")

    def logout(self, session_id: str | None) -> Outcome[None]:
        """Invalidate the caller's session.

        session_id must come from already-verified access-token claims, never
        from request input. Logging out an already-invalid session succeeds.
        """
        if not session_id:
            return Outcome.failure(ErrorCode.UNAUTHORIZED, UNAUTHORIZED_MESSAGE)
        try:
            self._sessions.invalidate(session_id)
        except Exception:
            return internal_failure(self._logger, "logout")
        self._logger.info("Session %s logged out", session_id)
        return Outcome.success(message="Successfully logged out")
