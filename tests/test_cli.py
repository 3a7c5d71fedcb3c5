"""
tests/test_cli.py -- Tests for the main.py operator commands.

revoke runs against the same named in-memory database as the store
fixtures: the fixture engine keeps its connection open, so the database
survives while the command builds and disposes its own engine.
"""

from __future__ import annotations

import main
from core.config import get_settings
from core.keys import decode_key

PASSWORD = "S3cret!pass"


def _settings_for(engine):
    return get_settings().model_copy(update={"database_url": engine.url.render_as_string(hide_password=False)})


class TestRevoke:
    def test_revokes_every_session(self, engine, credentials, make_user, session_store, capsys):
        user = make_user()
        laptop = credentials.login("alice@example.com", PASSWORD).value
        phone = credentials.login("alice@example.com", PASSWORD).value

        exit_code = main._revoke("Alice@Example.com", _settings_for(engine))

        assert exit_code == 0
        assert session_store.get(laptop.session_id).is_valid is False
        assert session_store.get(phone.session_id).is_valid is False
        assert session_store.list_for_user(user.id, only_valid=True) == []
        assert "2 session(s) revoked" in capsys.readouterr().out

    def test_unknown_email_exits_1(self, engine, make_user, capsys):
        make_user()

        assert main._revoke("nobody@example.com", _settings_for(engine)) == 1
        assert "No account" in capsys.readouterr().out


def test_keygen_prints_two_distinct_pairs(capsys):
    main._keygen(1024)

    lines = capsys.readouterr().out.splitlines()
    values = dict(line.split("=", 1) for line in lines)
    assert set(values) == {
        "ACCESS_TOKEN_PRIVATE_KEY",
        "ACCESS_TOKEN_PUBLIC_KEY",
        "REFRESH_TOKEN_PRIVATE_KEY",
        "REFRESH_TOKEN_PUBLIC_KEY",
    }
    assert values["ACCESS_TOKEN_PRIVATE_KEY"] != values["REFRESH_TOKEN_PRIVATE_KEY"]
    assert "PRIVATE KEY" in decode_key(values["ACCESS_TOKEN_PRIVATE_KEY"])
