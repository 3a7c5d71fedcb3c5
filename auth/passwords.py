"""
auth/passwords.py -- Password hashing capability.

The flows never call bcrypt directly. They receive an object satisfying the
PasswordHasher protocol (hash(plain) -> digest, verify(digest, plain) -> bool)
so the algorithm can be swapped without touching login or reset logic.

BcryptHasher is the default implementation. Using bcrypt directly rather than
passlib[bcrypt] because passlib's internal wrap-bug detection creates a
password longer than 72 bytes, which bcrypt 4.x rejects with an explicit
error.

bcrypt only accepts MAX_PASSWORD_BYTES of input, counted in UTF-8 bytes, not
characters: 32 characters of emoji is well over the limit. The API layer
rejects such passwords during validation; hash() raises PasswordTooLongError
for any caller that skips it.
"""

from __future__ import annotations

from typing import Protocol

import bcrypt

from auth.errors import PasswordTooLongError

MAX_PASSWORD_BYTES = 72


class PasswordHasher(Protocol):
    def hash(self, plain: str) -> str: ...

    def verify(self, digest: str, plain: str) -> bool: ...


class BcryptHasher:
    """bcrypt-backed PasswordHasher.

    rounds is the bcrypt cost factor. Tests pass the minimum (4) to keep the
    suite fast; production uses bcrypt's default (12).
    """

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, plain: str) -> str:
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise PasswordTooLongError()
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, digest: str, plain: str) -> bool:
        """Return True if plain matches digest. A malformed digest or over-long input counts as a mismatch."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            return False
