"""
tests/test_password_reset.py -- Unit tests for PasswordResetFlow.

The central property: after reset_password() returns success, no token
minted before the reset verifies, across every session the user had open.
"""

from __future__ import annotations

from unittest.mock import MagicMock

from auth.errors import ErrorCode, StoreError
from auth.notifier import PASSWORD_RESET_SUBJECT
from auth.password_reset import FORGOT_PASSWORD_MESSAGE, PasswordResetFlow

PASSWORD = "S3cret!pass"
NEW_PASSWORD = "N3w!Passw0rd"
LONG_PASSWORD = "Aa1@" + "\N{GRINNING FACE}" * 28


def _issue_code(password_reset, user_store, email="alice@example.com") -> str:
    assert password_reset.forgot_password(email).ok
    return user_store.get_by_email(email).password_reset_code


class TestForgotPassword:
    def test_issues_and_sends_code(self, password_reset, make_user, user_store, notifier):
        user = make_user()

        outcome = password_reset.forgot_password("Alice@Example.com")

        assert outcome.ok
        assert outcome.message == FORGOT_PASSWORD_MESSAGE
        code = user_store.get_by_id(user.id).password_reset_code
        assert code
        assert notifier.sent[-1].subject == PASSWORD_RESET_SUBJECT
        assert code in notifier.sent[-1].body

    def test_unknown_email_looks_like_success(self, password_reset, notifier):
        outcome = password_reset.forgot_password("nobody@example.com")

        assert outcome.ok
        assert outcome.message == FORGOT_PASSWORD_MESSAGE
        assert notifier.sent == []

    def test_unverified_account(self, password_reset, make_user):
        make_user(verified=False)

        assert password_reset.forgot_password("alice@example.com").error is ErrorCode.NOT_VERIFIED

    def test_new_code_replaces_old(self, password_reset, make_user, user_store):
        user = make_user()
        old_code = _issue_code(password_reset, user_store)
        new_code = _issue_code(password_reset, user_store)

        assert old_code != new_code
        assert password_reset.reset_password(user.id, old_code, NEW_PASSWORD).error is ErrorCode.BAD_REQUEST
        assert password_reset.reset_password(user.id, new_code, NEW_PASSWORD).ok

    def test_delivery_failure_is_internal(self, password_reset, make_user, notifier):
        make_user()
        notifier.fail = True

        assert password_reset.forgot_password("alice@example.com").error is ErrorCode.INTERNAL


class TestResetPassword:
    def test_revokes_every_session(self, password_reset, credentials, make_user, user_store, codec):
        user = make_user()
        laptop = credentials.login("alice@example.com", PASSWORD).value
        phone = credentials.login("alice@example.com", PASSWORD).value
        code = _issue_code(password_reset, user_store)

        outcome = password_reset.reset_password(user.id, code, NEW_PASSWORD)

        assert outcome.ok
        assert outcome.message == "Password successfully updated"
        for pair in (laptop, phone):
            assert codec.verify_access_token(pair.access_token) is None
            assert codec.verify_refresh_token(pair.refresh_token) is None
            assert credentials.refresh(pair.refresh_token).error is ErrorCode.UNAUTHORIZED

    def test_new_password_replaces_old(self, password_reset, credentials, make_user, user_store):
        user = make_user()
        code = _issue_code(password_reset, user_store)

        password_reset.reset_password(user.id, code, NEW_PASSWORD)

        assert credentials.login("alice@example.com", PASSWORD).error is ErrorCode.INVALID_CREDENTIALS
        assert credentials.login("alice@example.com", NEW_PASSWORD).ok

    def test_code_is_single_use(self, password_reset, make_user, user_store):
        user = make_user()
        code = _issue_code(password_reset, user_store)

        assert password_reset.reset_password(user.id, code, NEW_PASSWORD).ok
        assert user_store.get_by_id(user.id).password_reset_code is None
        assert password_reset.reset_password(user.id, code, "An0ther!pass").error is ErrorCode.BAD_REQUEST

    def test_password_over_72_bytes_keeps_code_pending(self, password_reset, credentials, make_user, user_store):
        user = make_user()
        code = _issue_code(password_reset, user_store)
        session = credentials.login("alice@example.com", PASSWORD).value

        outcome = password_reset.reset_password(user.id, code, LONG_PASSWORD)

        assert outcome.error is ErrorCode.BAD_REQUEST
        assert user_store.get_by_id(user.id).password_reset_code == code
        assert credentials.refresh(session.refresh_token).ok
        assert password_reset.reset_password(user.id, code, NEW_PASSWORD).ok

    def test_bad_requests_are_indistinguishable(self, password_reset, make_user, user_store):
        user = make_user()

        no_pending = password_reset.reset_password(user.id, "anything", NEW_PASSWORD)
        _issue_code(password_reset, user_store)
        wrong_code = password_reset.reset_password(user.id, "wrong-code", NEW_PASSWORD)
        unknown_user = password_reset.reset_password("no-such-user", "anything", NEW_PASSWORD)

        assert no_pending.error is ErrorCode.BAD_REQUEST
        assert (no_pending.error, no_pending.message) == (wrong_code.error, wrong_code.message)
        assert (no_pending.error, no_pending.message) == (unknown_user.error, unknown_user.message)

    def test_revocation_failure_is_internal(self, make_user, user_store, hasher, notifier):
        user = make_user()
        sessions = MagicMock()
        sessions.invalidate_all.side_effect = StoreError()
        flow = PasswordResetFlow(user_store, sessions, hasher, notifier)
        code = _issue_code(flow, user_store)

        outcome = flow.reset_password(user.id, code, NEW_PASSWORD)

        assert outcome.error is ErrorCode.INTERNAL
        assert user_store.get_by_id(user.id).password_reset_code is None
