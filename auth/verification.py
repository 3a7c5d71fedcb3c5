"""
auth/verification.py -- Registration and email verification.

Registration creates the user with a random verification code and hands the
code to the notifier. verify() consumes it. Delivery failure does not undo a
registration: the account exists, and a support path or re-registration
attempt (409) tells the user so.
"""

from __future__ import annotations

import hmac
import logging
import uuid

from auth.credentials import normalize_email
from auth.errors import ConflictError, ErrorCode, Outcome, PasswordTooLongError, internal_failure
from auth.models import User
from auth.notifier import Notifier, verification_message
from auth.passwords import PasswordHasher
from auth.store import UserStore

COULD_NOT_VERIFY_MESSAGE = "Could not verify user"


def new_one_time_code() -> str:
    return str(uuid.uuid4())


def codes_match(stored: str | None, supplied: str) -> bool:
    """Exact, constant-time comparison. A missing stored code never matches."""
    if not stored or not supplied:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), supplied.encode("utf-8"))


class VerificationFlow:
    def __init__(
        self,
        users: UserStore,
        hasher: PasswordHasher,
        notifier: Notifier,
        logger: logging.Logger | None = None,
    ) -> None:
        self._users = users
        self._hasher = hasher
        self._notifier = notifier
        self._logger = logger or logging.getLogger("sessiongate.verification")

    def register(self, first_name: str, last_name: str, email: str, password: str) -> Outcome[User]:
        """Create an unverified account and dispatch its verification code.

        Returns CONFLICT if the (normalized) email is already registered,
        BAD_REQUEST if the password is too long to hash.
        """
        try:
            user = self._users.create_user(
                User(
                    email=normalize_email(email),
                    first_name=first_name.strip(),
                    last_name=last_name.strip(),
                    password_hash=self._hasher.hash(password),
                    verification_code=new_one_time_code(),
                )
            )
        except (ConflictError, PasswordTooLongError) as exc:
            return Outcome.from_error(exc)
        except Exception:
            return internal_failure(self._logger, "register")

        try:
            self._notifier.send(verification_message(user))
        except Exception:
            self._logger.exception("Could not send verification code to user %s", user.id)

        self._logger.info("User %s registered", user.id)
        return Outcome.success(user, message="User successfully created")

    def verify(self, user_id: str, code: str) -> Outcome[None]:
        """Consume a verification code.

        Verifying an already-verified account succeeds without looking at the
        code. A wrong code returns BAD_REQUEST and leaves is_verified alone.
        """
        try:
            user = self._users.get_by_id(user_id)
            if user is None:
                self._logger.debug("Verification for unknown user %s", user_id)
                return Outcome.failure(ErrorCode.NOT_FOUND, COULD_NOT_VERIFY_MESSAGE)

            if user.is_verified:
                return Outcome.success(message="User is already verified")

            if not codes_match(user.verification_code, code):
                return Outcome.failure(ErrorCode.BAD_REQUEST, COULD_NOT_VERIFY_MESSAGE)

            self._users.update_user(user.id, is_verified=True)
        except Exception:
            return internal_failure(self._logger, "verify_email")

        self._logger.info("User %s verified", user_id)
        return Outcome.success(message="User successfully verified")
