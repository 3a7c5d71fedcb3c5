"""
tests/test_verification.py -- Unit tests for registration and email verification.
"""

from __future__ import annotations

from auth.errors import ErrorCode
from auth.notifier import VERIFICATION_SUBJECT
from auth.verification import codes_match

PASSWORD = "S3cret!pass"
LONG_PASSWORD = "Aa1@" + "\N{GRINNING FACE}" * 28


def _register(verification, email="Alice@Example.com"):
    return verification.register("Alice", "Liddell", email, PASSWORD)


class TestRegister:
    def test_creates_unverified_user(self, verification, user_store):
        outcome = _register(verification)

        assert outcome.ok
        assert outcome.message == "User successfully created"
        stored = user_store.get_by_id(outcome.value.id)
        assert stored.email == "alice@example.com"
        assert stored.is_verified is False
        assert stored.password_hash != PASSWORD
        assert stored.verification_code

    def test_sends_code_to_owner(self, verification, notifier):
        user = _register(verification).value

        assert len(notifier.sent) == 1
        message = notifier.sent[0]
        assert message.to == "alice@example.com"
        assert message.subject == VERIFICATION_SUBJECT
        assert user.verification_code in message.body
        assert user.id in message.body

    def test_duplicate_email_conflicts(self, verification):
        _register(verification)

        outcome = _register(verification, email="ALICE@example.com")

        assert outcome.error is ErrorCode.CONFLICT

    def test_password_over_72_bytes_is_bad_request(self, verification, user_store, notifier):
        outcome = verification.register("Alice", "Liddell", "alice@example.com", LONG_PASSWORD)

        assert outcome.error is ErrorCode.BAD_REQUEST
        assert user_store.get_by_email("alice@example.com") is None
        assert notifier.sent == []

    def test_delivery_failure_keeps_account(self, verification, notifier, user_store):
        notifier.fail = True

        outcome = _register(verification)

        assert outcome.ok
        assert user_store.get_by_email("alice@example.com") is not None


class TestVerify:
    def test_correct_code_verifies(self, verification, user_store):
        user = _register(verification).value

        outcome = verification.verify(user.id, user.verification_code)

        assert outcome.ok
        assert outcome.message == "User successfully verified"
        assert user_store.get_by_id(user.id).is_verified is True

    def test_second_verification_is_a_noop_success(self, verification):
        user = _register(verification).value
        verification.verify(user.id, user.verification_code)

        outcome = verification.verify(user.id, "anything")

        assert outcome.ok
        assert outcome.message == "User is already verified"

    def test_wrong_code(self, verification, user_store):
        user = _register(verification).value

        outcome = verification.verify(user.id, "wrong-code")

        assert outcome.error is ErrorCode.BAD_REQUEST
        assert user_store.get_by_id(user.id).is_verified is False

    def test_unknown_user(self, verification):
        assert verification.verify("no-such-user", "code").error is ErrorCode.NOT_FOUND


def test_codes_match():
    assert codes_match("abc", "abc")
    assert not codes_match("abc", "abd")
    assert not codes_match("abc", "ABC")
    assert not codes_match(None, "abc")
    assert not codes_match("abc", "")
