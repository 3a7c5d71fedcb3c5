"""
tests/conftest.py -- Shared test fixtures for SessionGate.

This module provides:
  - ACCESS_* / REFRESH_* keys: two independent RSA pairs, generated once per run
  - store / flow fixtures: isolated in-memory DB per test, cheap bcrypt cost
  - RecordingNotifier: captures outgoing messages instead of sending them
  - make_user: factory for registered (optionally verified) accounts
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The key env vars must be set before any api/ import: api.main reads
get_settings() at import time and production mode refuses to start without
all four keys.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

from core.keys import encode_key, generate_key_pair

ACCESS_PRIVATE, ACCESS_PUBLIC = generate_key_pair()
REFRESH_PRIVATE, REFRESH_PUBLIC = generate_key_pair()

# CRITICAL: Set keys before any api/ import so get_settings() validates them
# instead of raising ValueError in production mode.
os.environ["DEBUG"] = "false"
os.environ["ACCESS_TOKEN_PRIVATE_KEY"] = encode_key(ACCESS_PRIVATE)
os.environ["ACCESS_TOKEN_PUBLIC_KEY"] = encode_key(ACCESS_PUBLIC)
os.environ["REFRESH_TOKEN_PRIVATE_KEY"] = encode_key(REFRESH_PRIVATE)
os.environ["REFRESH_TOKEN_PUBLIC_KEY"] = encode_key(REFRESH_PUBLIC)
os.environ["LOGIN_RATE_LIMIT"] = "1000/minute"
os.environ["DATABASE_URL"] = "sqlite:///file:sessiongate_unused?mode=memory&cache=shared&uri=true"

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_components
from auth.credentials import CredentialManager
from auth.models import User
from auth.notifier import Message
from auth.password_reset import PasswordResetFlow
from auth.passwords import BcryptHasher
from auth.store import SessionStore, UserStore, build_engine
from auth.tokens import TokenCodec
from auth.verification import VerificationFlow

PASSWORD = "S3cret!pass"
NEW_PASSWORD = "N3w!Passw0rd"


def memory_db_url(prefix: str = "test") -> str:
    """Unique named shared-memory SQLite URL, so no two tests share state."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


class RecordingNotifier:
    """Notifier that keeps every message in .sent. Set fail=True to make send() raise."""

    def __init__(self) -> None:
        self.sent: list[Message] = []
        self.fail = False

    def send(self, message: Message) -> None:
        if self.fail:
            raise OSError("SMTP relay unreachable")
        self.sent.append(message)


# ---------------------------------------------------------------------------
# Store and flow fixtures -- function scoped, one fresh DB per test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = build_engine(memory_db_url())
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine) -> UserStore:
    return UserStore(engine=engine)


@pytest.fixture
def session_store(engine) -> SessionStore:
    return SessionStore(engine=engine)


@pytest.fixture
def hasher() -> BcryptHasher:
    return BcryptHasher(rounds=4)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def codec(session_store: SessionStore) -> TokenCodec:
    return TokenCodec(ACCESS_PRIVATE, ACCESS_PUBLIC, REFRESH_PRIVATE, REFRESH_PUBLIC, session_store)


@pytest.fixture
def credentials(user_store, session_store, codec, hasher) -> CredentialManager:
    return CredentialManager(user_store, session_store, codec, hasher)


@pytest.fixture
def verification(user_store, hasher, notifier) -> VerificationFlow:
    return VerificationFlow(user_store, hasher, notifier)


@pytest.fixture
def password_reset(user_store, session_store, hasher, notifier) -> PasswordResetFlow:
    return PasswordResetFlow(user_store, session_store, hasher, notifier)


@pytest.fixture
def make_user(user_store: UserStore, hasher: BcryptHasher) -> Callable[..., User]:
    """Return a factory that inserts an account directly through the store."""

    def _make(email: str = "alice@example.com", password: str = PASSWORD, verified: bool = True) -> User:
        return user_store.create_user(
            User(
                email=email,
                first_name="Alice",
                last_name="Liddell",
                password_hash=hasher.hash(password),
                verification_code=str(uuid.uuid4()),
                is_verified=verified,
            )
        )

    return _make


# ---------------------------------------------------------------------------
# HTTP fixtures -- module scoped, one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(users: UserStore, sessions: SessionStore, notifier: RecordingNotifier):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state through the same
    wire_components() the real lifespan uses, with a cheap hasher and a
    recording notifier.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_components(app, users, sessions, hasher=BcryptHasher(rounds=4), notifier=notifier)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore, RecordingNotifier], None, None]:
    """Yield (client, user_store, notifier) for API integration tests.

    user_store lets a test read the verification or reset code the way the
    account owner would read it from their mailbox.
    """
    eng = build_engine(memory_db_url("api"))
    users = UserStore(engine=eng)
    sessions = SessionStore(engine=eng)
    notifier = RecordingNotifier()

    app.router.lifespan_context = _patch_lifespan(users, sessions, notifier)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, users, notifier

    eng.dispose()
