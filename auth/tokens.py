"""
auth/tokens.py -- Signed-claims token codec with session-backed revocation.

Security design decisions:
  JWT: python-jose with RS256 for both key classes. Access and refresh tokens
       are signed by separate RSA key pairs, so a token minted for one class
       fails signature verification under the other's public key. The
       algorithm list passed to jwt.decode() is pinned to RS256; a token whose
       header names any other algorithm (including "none" or HS256 signed with
       the public key) is rejected.

  Verification is two layers:
       1. Cryptographic/structural -- signature, expiry, algorithm, required
          claims. Failure raises InvalidTokenError.
       2. Revocation -- the session named by the sessionID claim must exist
          and have is_valid = True. Failure returns None (a revoked result,
          not an error).
       A stateless check alone cannot express revocation, so the store
       lookup runs on every verification.

  Fail closed: a store failure during step 2 propagates as StoreError. It is
       never read as "no revocation found".

  Keys: PEM text decoded from base64 configuration (core.keys.decode_key).
       Missing key material raises SigningError at the point of use.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from jose import ExpiredSignatureError, JOSEError, JWTError, jwt

from auth.errors import InvalidTokenError, SigningError
from auth.models import AccessTokenClaims, RefreshTokenClaims, Session, User
from core.keys import decode_key

if TYPE_CHECKING:
    from auth.store import SessionStore
    from core.config import Settings

_ALGORITHM = "RS256"

DEFAULT_ACCESS_TTL = timedelta(minutes=60)
DEFAULT_REFRESH_TTL = timedelta(days=7)


class KeyClass(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenCodec:
    """Signs and verifies tokens for the access and refresh key classes.

    Usage:
        codec = TokenCodec(access_private, access_public, refresh_private, refresh_public, sessions)
        token = codec.sign({"sessionID": s.id, "userID": u.id}, KeyClass.REFRESH)
        payload = codec.verify(token, KeyClass.REFRESH)   # dict, or None if revoked
    """

    def __init__(
        self,
        access_private_key: str,
        access_public_key: str,
        refresh_private_key: str,
        refresh_public_key: str,
        sessions: SessionStore,
        access_ttl: timedelta = DEFAULT_ACCESS_TTL,
        refresh_ttl: timedelta = DEFAULT_REFRESH_TTL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._private_keys = {KeyClass.ACCESS: access_private_key, KeyClass.REFRESH: refresh_private_key}
        self._public_keys = {KeyClass.ACCESS: access_public_key, KeyClass.REFRESH: refresh_public_key}
        self._ttls = {KeyClass.ACCESS: access_ttl, KeyClass.REFRESH: refresh_ttl}
        self._sessions = sessions
        self._logger = logger or logging.getLogger("sessiongate.tokens")

    @classmethod
    def from_settings(cls, settings: Settings, sessions: SessionStore, logger: logging.Logger | None = None) -> TokenCodec:
        """Build a codec from base64-encoded key settings and configured TTLs."""
        return cls(
            access_private_key=decode_key(settings.access_token_private_key),
            access_public_key=decode_key(settings.access_token_public_key),
            refresh_private_key=decode_key(settings.refresh_token_private_key),
            refresh_public_key=decode_key(settings.refresh_token_public_key),
            sessions=sessions,
            access_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
            refresh_ttl=timedelta(seconds=settings.refresh_token_ttl_seconds),
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Generic sign / verify
    # ------------------------------------------------------------------

    def sign(self, claims: dict[str, Any], key_class: KeyClass, ttl: timedelta | None = None) -> str:
        """Encode claims plus iat/exp with the private key of key_class.

        Raises SigningError if the key is missing or unusable.
        """
        private_key = self._private_keys[key_class]
        if not private_key:
            raise SigningError(f"No {key_class.value} private key configured")

        now = datetime.now(timezone.utc)
        payload = dict(claims)
        payload["iat"] = now
        payload["exp"] = now + (ttl if ttl is not None else self._ttls[key_class])
        try:
            return jwt.encode(payload, private_key, algorithm=_ALGORITHM)
        except (JOSEError, ValueError, TypeError) as exc:
            self._logger.error("Signing %s token failed: %s", key_class.value, exc)
            raise SigningError() from exc

    def verify(self, token: str, key_class: KeyClass) -> dict[str, Any] | None:
        """Verify a token and check its session.

        Returns the payload dict if the token is intact and its session is
        valid, None if the session is missing or invalidated.

        Raises InvalidTokenError on any cryptographic or structural failure,
        SigningError if the public key is not configured, and StoreError if
        the session lookup fails.
        """
        public_key = self._public_keys[key_class]
        if not public_key:
            raise SigningError(f"No {key_class.value} public key configured")

        try:
            payload = jwt.decode(token, public_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise InvalidTokenError("Token has expired") from exc
        except JWTError as exc:
            self._logger.debug("Rejected %s token: %s", key_class.value, exc)
            raise InvalidTokenError() from exc

        session_id = payload.get("sessionID")
        if not isinstance(session_id, str) or not session_id:
            raise InvalidTokenError("Token does not name a session")

        session = self._sessions.get(session_id)
        if session is None or not session.is_valid:
            self._logger.info("Token for revoked session %s presented", session_id)
            return None
        return payload

    # ------------------------------------------------------------------
    # Typed helpers for the two token classes
    # ------------------------------------------------------------------

    def sign_access_token(self, user: User, session_id: str) -> str:
        """Mint an access token carrying session_id and a public user snapshot."""
        return self.sign(AccessTokenClaims.from_user(user, session_id).to_payload(), KeyClass.ACCESS)

    def sign_refresh_token(self, session: Session) -> str:
        """Mint a refresh token carrying only the session and user ids."""
        claims = RefreshTokenClaims(session_id=session.id or "", user_id=session.user_id)
        return self.sign(claims.to_payload(), KeyClass.REFRESH)

    def verify_access_token(self, token: str) -> AccessTokenClaims | None:
        payload = self.verify(token, KeyClass.ACCESS)
        if payload is None:
            return None
        try:
            return AccessTokenClaims.from_payload(payload)
        except KeyError as exc:
            raise InvalidTokenError("Malformed access token payload") from exc

    def verify_refresh_token(self, token: str) -> RefreshTokenClaims | None:
        payload = self.verify(token, KeyClass.REFRESH)
        if payload is None:
            return None
        try:
            return RefreshTokenClaims.from_payload(payload)
        except KeyError as exc:
            raise InvalidTokenError("Malformed refresh token payload") from exc
