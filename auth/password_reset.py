"""
auth/password_reset.py -- Forgot-password and reset-password with session revocation.

forgot_password() issues a one-time reset code; reset_password() consumes it,
replaces the password hash, and invalidates every session the user owns.

Ordering in reset_password():
  1. Clear the code and write the new hash in one UPDATE. The code is
     single-use from this point even if step 2 fails.
  2. SessionStore.invalidate_all(user_id). Any token minted before the reset
     fails its next verification once this returns.
  The outcome is returned only after both steps complete. If step 2 fails
  the caller gets INTERNAL, and the failure is logged with the user id so the
  cascade can be re-run.

Account enumeration:
  forgot_password() answers an unknown email with the same success message as
  a real request. An existing but unverified account gets NOT_VERIFIED (the
  same residual signal as login).
"""

from __future__ import annotations

import logging

from auth.credentials import NOT_VERIFIED_MESSAGE, normalize_email
from auth.errors import ErrorCode, Outcome, PasswordTooLongError, internal_failure
from auth.notifier import Notifier, password_reset_message
from auth.passwords import PasswordHasher
from auth.store import SessionStore, UserStore
from auth.verification import codes_match, new_one_time_code

FORGOT_PASSWORD_MESSAGE = "If a user with this email exists, you will receive a password reset email"
BAD_REQUEST_MESSAGE = "Bad request"


class PasswordResetFlow:
    """Issue and consume password reset codes.

    Usage:
        flow = PasswordResetFlow(users, sessions, BcryptHasher(), notifier)
        flow.forgot_password("alice@example.com")
        flow.reset_password(user_id, code_from_email, "N3w!Password")
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        hasher: PasswordHasher,
        notifier: Notifier,
        logger: logging.Logger | None = None,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._hasher = hasher
        self._notifier = notifier
        self._logger = logger or logging.getLogger("sessiongate.password_reset")

    def forgot_password(self, email: str) -> Outcome[None]:
        """Issue a new reset code, overwriting any pending one, and send it.

        A delivery failure is reported as INTERNAL: unlike registration, the
        user has no other way to learn the code.
        """
        try:
            user = self._users.get_by_email(normalize_email(email))
            if user is None:
                self._logger.debug("Password reset requested for unknown email")
                return Outcome.success(message=FORGOT_PASSWORD_MESSAGE)

            if not user.is_verified:
                return Outcome.failure(ErrorCode.NOT_VERIFIED, NOT_VERIFIED_MESSAGE)

            reset_code = new_one_time_code()
            self._users.update_user(user.id, password_reset_code=reset_code)
            self._notifier.send(password_reset_message(user, reset_code))
        except Exception:
            return internal_failure(self._logger, "forgot_password")

        self._logger.info("Password reset code issued for user %s", user.id)
        return Outcome.success(message=FORGOT_PASSWORD_MESSAGE)

    def reset_password(self, user_id: str, code: str, new_password: str) -> Outcome[None]:
        """Consume a reset code, set the new password, and revoke all sessions.

        Unknown user, no pending code, and wrong code all return the same
        BAD_REQUEST.
        """
        try:
            user = self._users.get_by_id(user_id)
            if user is None or not codes_match(user.password_reset_code, code):
                return Outcome.failure(ErrorCode.BAD_REQUEST, BAD_REQUEST_MESSAGE)

            self._users.update_user(
                user.id,
                password_reset_code=None,
                password_hash=self._hasher.hash(new_password),
            )
        except PasswordTooLongError as exc:
            return Outcome.from_error(exc)
        except Exception:
            return internal_failure(self._logger, "reset_password")

        try:
            revoked = self._sessions.invalidate_all(user.id)
        except Exception:
            self._logger.error("Password for user %s was reset but its sessions were not revoked", user.id)
            return internal_failure(self._logger, "reset_password session revocation")

        self._logger.info("Password reset for user %s; %d session(s) revoked", user.id, revoked)
        return Outcome.success(message="Password successfully updated")
