"""
tests/test_dependencies.py -- Unit tests for per-request identity resolution.

Covers the three AuthContext states and the asymmetry between them:
  malformed token        -> REJECTED
  revoked session        -> ANONYMOUS
  valid token + session  -> AUTHENTICATED
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from auth.dependencies import ANONYMOUS, AuthStatus, deserialize, extract_bearer_token, require_auth
from auth.errors import ErrorCode, StoreError

PASSWORD = "S3cret!pass"


@pytest.fixture
def pair(credentials, make_user):
    make_user()
    return credentials.login("alice@example.com", PASSWORD).value


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, None),
        ("", None),
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer   abc.def.ghi ", "abc.def.ghi"),
        ("Bearer", None),
        ("Basic dXNlcjpwYXNz", None),
        ("abc.def.ghi", None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


class TestDeserialize:
    def test_no_header_is_anonymous(self, codec):
        assert deserialize(codec, None) == ANONYMOUS

    def test_valid_token_is_authenticated(self, codec, pair):
        context = deserialize(codec, f"Bearer {pair.access_token}")

        assert context.status is AuthStatus.AUTHENTICATED
        assert context.is_authenticated
        assert context.claims.session_id == pair.session_id

    def test_malformed_token_is_rejected(self, codec):
        assert deserialize(codec, "Bearer not-a-token").status is AuthStatus.REJECTED

    def test_refresh_token_as_bearer_is_rejected(self, codec, pair):
        assert deserialize(codec, f"Bearer {pair.refresh_token}").status is AuthStatus.REJECTED

    def test_revoked_session_is_anonymous(self, codec, credentials, pair):
        credentials.logout(pair.session_id)

        assert deserialize(codec, f"Bearer {pair.access_token}") == ANONYMOUS

    def test_store_failure_propagates(self, codec, session_store, pair, monkeypatch):
        monkeypatch.setattr(session_store, "get", MagicMock(side_effect=StoreError()))

        with pytest.raises(StoreError):
            deserialize(codec, f"Bearer {pair.access_token}")


class TestRequireAuth:
    def test_anonymous_is_forbidden(self):
        outcome = require_auth(ANONYMOUS)

        assert outcome.error is ErrorCode.FORBIDDEN
        assert outcome.message == "Forbidden"

    def test_authenticated_passes_claims_through(self, codec, pair):
        context = deserialize(codec, f"Bearer {pair.access_token}")

        outcome = require_auth(context)

        assert outcome.ok
        assert outcome.value == context.claims
