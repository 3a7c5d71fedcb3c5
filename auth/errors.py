"""
auth/errors.py -- Error taxonomy and the tagged Outcome returned by every flow.

Two mechanisms, used at different depths:

  Exceptions (AuthError and subclasses) are raised inside the auth package --
  by the token codec, the stores, and flow internals. Each carries an
  ErrorCode and a public message that is safe to show a client.

  Outcome is what crosses the package boundary. Every public entry point
  (login, refresh, logout, register, verify_email, forgot_password,
  reset_password, require_auth) returns an Outcome and never lets a
  recoverable condition escape as an exception.

Internal failures (store, crypto, anything unexpected) are logged with full
detail by the flow that caught them and reported outward only as
ErrorCode.INTERNAL with INTERNAL_MESSAGE.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")

INTERNAL_MESSAGE = "Internal server error"


class ErrorCode(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_VERIFIED = "not_verified"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    INTERNAL = "internal_error"


class AuthError(Exception):
    """Base exception for all errors raised inside the auth package."""

    code: ErrorCode = ErrorCode.INTERNAL
    default_message: str = INTERNAL_MESSAGE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidTokenError(AuthError):
    """Raised when a token is malformed, expired, wrongly signed, or uses another algorithm."""

    code = ErrorCode.UNAUTHORIZED
    default_message = "Invalid or expired token"


class SigningError(AuthError):
    """Raised when key material is missing or cannot be used to sign/verify."""

    default_message = "Token key material is unavailable"


class StoreError(AuthError):
    """Raised when the database fails or times out.

    Callers must treat this as a failure, never as "record not found".
    """

    default_message = "Session store unavailable"


class PasswordTooLongError(AuthError):
    """Raised when a password exceeds what the hasher can take (bcrypt: 72 UTF-8 bytes)."""

    code = ErrorCode.BAD_REQUEST
    default_message = "Password must not exceed 72 bytes"


class ConflictError(AuthError):
    """Raised when a unique constraint is violated (duplicate email)."""

    code = ErrorCode.CONFLICT
    default_message = "Account already exists"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Tagged success/error result.

    Exactly one of two shapes:
      success -- error is None, value holds the payload (may be None).
      failure -- error holds an ErrorCode, value is None.

    message is always client-safe text.
    """

    value: T | None = None
    error: ErrorCode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None, message: str = "") -> Outcome[T]:
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, code: ErrorCode, message: str) -> Outcome[T]:
        return cls(error=code, message=message)

    @classmethod
    def from_error(cls, exc: AuthError) -> Outcome[T]:
        return cls(error=exc.code, message=exc.message)


def internal_failure(logger: logging.Logger, operation: str) -> Outcome:
    """Log the exception currently being handled and return a generic INTERNAL outcome.

    Must be called from inside an except block so logger.exception() can
    attach the traceback. The traceback stays in the server log.
    """
    logger.exception("%s failed", operation)
    return Outcome.failure(ErrorCode.INTERNAL, INTERNAL_MESSAGE)
