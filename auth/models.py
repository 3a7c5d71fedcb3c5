"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero business logic). Stores own
persistence, flows own behavior. The claim classes carry the only mapping
logic here: converting to and from the camelCase wire names used inside
signed tokens.

Session holds user_id as a plain value. Resolving the owner is an explicit
UserStore.get_by_id() call, so there is no User <-> Session object cycle.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Fields that never leave the server. The access-token snapshot is built from
# an explicit allow-list (AccessTokenClaims.from_user), this tuple documents
# what that list leaves out.
PRIVATE_USER_FIELDS = ("password_hash", "verification_code", "password_reset_code", "is_verified")


@dataclass
class User:
    """An account that can log in once its email address is verified.

    email is stored normalized (stripped, lower-cased); the store enforces
    uniqueness on the normalized value.

    verification_code is generated at registration and never cleared -- once
    is_verified is True the code is simply no longer consulted.

    password_reset_code is None unless a reset is pending. Issuing a new code
    overwrites the previous one, so at most one is ever active.
    """

    email: str
    first_name: str
    last_name: str
    password_hash: str
    verification_code: str
    id: str | None = None
    is_verified: bool = False
    password_reset_code: str | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, stamped by store on every update


@dataclass
class Session:
    """Revocation record for one login. Tokens name it by id.

    Sessions are never deleted: invalidation flips is_valid to False and the
    row stays as an audit trail.
    """

    user_id: str
    id: str | None = None
    is_valid: bool = True
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class AccessTokenClaims:
    """Decoded access token: session id plus a public snapshot of the user.

    The snapshot is taken at sign time and is not refreshed until the client
    exchanges its refresh token for a new access token.
    """

    session_id: str
    user_id: str
    email: str
    first_name: str
    last_name: str
    created_at: str
    updated_at: str
    iat: int | None = None
    exp: int | None = None

    @classmethod
    def from_user(cls, user: User, session_id: str) -> AccessTokenClaims:
        return cls(
            session_id=session_id,
            user_id=user.id or "",
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "sessionID": self.session_id,
            "id": self.user_id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AccessTokenClaims:
        """Build claims from a verified payload. Raises KeyError on a missing field."""
        return cls(
            session_id=payload["sessionID"],
            user_id=payload["id"],
            email=payload["email"],
            first_name=payload["firstName"],
            last_name=payload["lastName"],
            created_at=payload["createdAt"],
            updated_at=payload["updatedAt"],
            iat=payload.get("iat"),
            exp=payload.get("exp"),
        )


@dataclass(frozen=True)
class RefreshTokenClaims:
    """Decoded refresh token. Deliberately minimal: no user snapshot."""

    session_id: str
    user_id: str
    iat: int | None = None
    exp: int | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"sessionID": self.session_id, "userID": self.user_id}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RefreshTokenClaims:
        return cls(
            session_id=payload["sessionID"],
            user_id=payload["userID"],
            iat=payload.get("iat"),
            exp=payload.get("exp"),
        )


@dataclass(frozen=True)
class TokenPair:
    """Result of a successful login."""

    access_token: str
    refresh_token: str
    session_id: str
