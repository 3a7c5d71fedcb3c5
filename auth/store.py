"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper.
UserStore and SessionStore are the repositories; _row_to_user /
_row_to_session are the mappers. Flow code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Revocation:
  SessionStore is the single source of truth for whether a token is still
  honored. There is no cache in front of it: every get() reads the row, so a
  verification that starts after invalidate() returns sees is_valid = 0.
  invalidate_all() is one UPDATE statement; a reader running concurrently may
  see some of a user's sessions flipped and others not yet, but the end state
  is always "all invalid".

Failure mode:
  Any SQLAlchemy error (including a lock or connect timeout) is logged and
  re-raised as StoreError. A failed lookup is never reported as "no session"
  -- callers fail closed.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ConflictError, StoreError
from auth.models import Session, User

_DEFAULT_TIMEOUT = 5.0

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),  # normalized (lower-cased)
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("verification_code", String(64), nullable=False),
    Column("password_reset_code", String(64)),  # NULL = no reset pending
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(36), primary_key=True),
    # Plain value, not a ForeignKey: sessions outlive nothing and are never
    # cascaded. The owner is resolved with an explicit UserStore lookup.
    Column("user_id", String(36), nullable=False, index=True),
    Column("is_valid", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine setup
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def build_engine(db_url: str, timeout: float = _DEFAULT_TIMEOUT) -> Engine:
    """Create an engine whose calls give up after `timeout` seconds.

    SQLite: timeout is the busy timeout -- how long a statement waits on a
    locked database before raising OperationalError.
    Other drivers: timeout bounds the wait for a pooled connection.
    """
    if db_url.startswith("sqlite"):
        engine = create_engine(db_url, connect_args={"check_same_thread": False, "timeout": timeout})
        event.listen(engine, "connect", _set_wal_mode)
    else:
        engine = create_engine(db_url, pool_timeout=timeout, pool_pre_ping=True)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


class _BaseStore:
    """Shared plumbing for the repositories.

    Stores never create or dispose the engine: one engine built by build_engine()
    is shared by both stores and disposed by whoever built it.
    """

    def __init__(self, engine: Engine, logger: logging.Logger | None = None) -> None:
        self.engine = engine
        self._logger = logger or logging.getLogger("sessiongate.store")

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Translate driver errors into StoreError, logging the detail."""
        try:
            yield
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            self._logger.error("Store operation %s failed: %s", operation, exc)
            raise StoreError() from exc


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class UserStore(_BaseStore):
    """Repository for User records.

    Usage:
        store = UserStore(build_engine(settings.database_url))
        user = store.create_user(User(email="a@example.com", ...))
        store.get_by_email("a@example.com")
    """

    # Columns update_user() may touch. Validated before any SQL is built.
    _MUTABLE_FIELDS: set = {
        "first_name",
        "last_name",
        "password_hash",
        "password_reset_code",
        "is_verified",
    }

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and timestamps assigned.

        Raises ConflictError if the email is already registered.
        """
        now = _now_iso()
        user_id = _new_id()
        with self._guard("create_user"):
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        _users.insert().values(
                            id=user_id,
                            email=user.email,
                            first_name=user.first_name,
                            last_name=user.last_name,
                            password_hash=user.password_hash,
                            verification_code=user.verification_code,
                            password_reset_code=user.password_reset_code,
                            is_verified=1 if user.is_verified else 0,
                            created_at=now,
                            updated_at=now,
                        )
                    )
            except IntegrityError as exc:
                raise ConflictError() from exc
        created = self.get_by_id(user_id)
        if created is None:
            raise StoreError("User not found after write")
        return created

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self._guard("get_user_by_id"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by normalized email. Callers normalize before calling."""
        with self._guard("get_user_by_email"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user and stamp updated_at.

        Accepted fields: see _MUTABLE_FIELDS. Unknown fields raise ValueError.
        is_verified must be passed as bool; this method converts to int.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - self._MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "is_verified" in fields:
            fields["is_verified"] = 1 if fields["is_verified"] else 0
        fields["updated_at"] = _now_iso()
        with self._guard("update_user"), self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        return result.rowcount > 0


class SessionStore(_BaseStore):
    """Repository for Session records -- the revocation index.

    Usage:
        sessions = SessionStore(engine)
        session = sessions.create(user.id)
        sessions.invalidate(session.id)
        sessions.get(session.id).is_valid   # False
    """

    def create(self, user_id: str) -> Session:
        """Insert a new valid session for user_id and return it."""
        now = _now_iso()
        session = Session(user_id=user_id, id=_new_id(), is_valid=True, created_at=now, updated_at=now)
        with self._guard("create_session"), self.engine.begin() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session.id,
                    user_id=session.user_id,
                    is_valid=1,
                    created_at=now,
                    updated_at=now,
                )
            )
        return session

    def get(self, session_id: str) -> Session | None:
        """Return the session, or None if no such id exists."""
        with self._guard("get_session"), self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
        return _row_to_session(row) if row is not None else None

    def invalidate(self, session_id: str) -> None:
        """Mark one session invalid. Idempotent; unknown ids are a no-op."""
        with self._guard("invalidate_session"), self.engine.begin() as conn:
            conn.execute(
                _sessions.update().where(_sessions.c.id == session_id).values(is_valid=0, updated_at=_now_iso())
            )

    def invalidate_all(self, user_id: str) -> int:
        """Mark every session owned by user_id invalid.

        Idempotent. Returns the number of sessions that were still valid.
        """
        with self._guard("invalidate_all_sessions"), self.engine.begin() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.user_id == user_id) & (_sessions.c.is_valid == 1))
                .values(is_valid=0, updated_at=_now_iso())
            )
        return result.rowcount

    def list_for_user(self, user_id: str, only_valid: bool = False) -> list[Session]:
        """Return the user's sessions, oldest first."""
        query = _sessions.select().where(_sessions.c.user_id == user_id)
        if only_valid:
            query = query.where(_sessions.c.is_valid == 1)
        with self._guard("list_sessions"), self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_sessions.c.created_at)).fetchall()
        return [_row_to_session(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        password_hash=row.password_hash,
        verification_code=row.verification_code,
        password_reset_code=row.password_reset_code,
        is_verified=bool(row.is_verified),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        is_valid=bool(row.is_valid),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
