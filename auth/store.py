"""
auth/store.py -- User store contract and its SQLAlchemy Core implementation.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and route code never touch SQL directly.

UserStoreProtocol is the contract the auth core depends on. AuthService and
LockoutPolicy accept anything that satisfies it, so a different persistence
engine can be dropped in without touching the core.

Concurrency:
  Every mutation runs in its own transaction scoped to one row. The failed
  attempt counter is incremented by a single UPDATE (failed = failed + 1),
  never read-modify-write in Python, so concurrent failed logins against the
  same account cannot lose an increment. The lock timestamp is set by a CASE
  expression in that same statement.

Errors:
  IntegrityError on insert becomes DuplicateEmailError. The UNIQUE constraint
  on email is the authoritative guard against two concurrent registrations.
  Every other SQLAlchemyError becomes StoreUnavailableError.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    case,
    create_engine,
    event,
    literal,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateEmailError, StoreUnavailableError
from auth.models import User

logger = logging.getLogger("assistant.auth")

# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class UserStoreProtocol(Protocol):
    """Operations the auth core needs from persistence, independent of engine.

    Emails passed in are already normalized (stripped, lower-cased).
    Implementations raise DuplicateEmailError from create_user on a taken email
    and StoreUnavailableError for any other persistence failure.
    """

    def get_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: int) -> User | None: ...

    def create_user(self, email: str, password_hash: str, name: str | None = None) -> User: ...

    def update_security_fields(self, user_id: int, **fields) -> User: ...

    def register_failed_attempt(self, user_id: int, *, max_attempts: int, lock_until: datetime) -> User: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("name", String(100)),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("email_verified", Boolean, nullable=False, default=False),
    Column("failed_login_attempts", Integer, nullable=False, default=0),
    Column("locked_until", DateTime(timezone=True)),
    Column("last_login_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# Columns update_security_fields() may write. Anything else is rejected before
# SQL is built.
_SECURITY_FIELDS = frozenset({"failed_login_attempts", "locked_until", "last_login_at"})


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite has no timezone storage and returns naive datetimes. Everything
    # is written in UTC, so naive values read back are UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """SQLAlchemy Core repository for User records.

    Usage:
        store = UserStore("sqlite:///auth.db")
        user = store.create_user("alice@example.com", hasher.hash("Passw0rd1"), "Alice")
        store.get_by_email("alice@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        """Yield a connection inside a transaction, committed on clean exit.

        IntegrityError passes through untouched so create_user() can map it to
        DuplicateEmailError. Other database errors become StoreUnavailableError.
        """
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("User store operation failed: %s", exc.__class__.__name__)
            raise StoreUnavailableError() from exc

    def _fetch_by_id(self, conn: Connection, user_id: int) -> User | None:
        row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        with self._transaction() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self._transaction() as conn:
            return self._fetch_by_id(conn, user_id)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by the health check."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(literal(1)))
        except SQLAlchemyError:
            return False
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, email: str, password_hash: str, name: str | None = None) -> User:
        """Insert a new active, unverified user and return the stored record.

        Raises DuplicateEmailError if the email already exists.
        """
        now = _utcnow()
        try:
            with self._transaction() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=email,
                        password_hash=password_hash,
                        name=name,
                        is_active=True,
                        email_verified=False,
                        failed_login_attempts=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
                user = self._fetch_by_id(conn, result.inserted_primary_key[0])
        except IntegrityError as exc:
            raise DuplicateEmailError() from exc
        return user

    def update_security_fields(self, user_id: int, **fields) -> User:
        """Write failed_login_attempts, locked_until and/or last_login_at.

        Unknown field names raise ValueError. Raises StoreUnavailableError if
        the user does not exist, since the caller just read it.
        """
        unknown = set(fields) - _SECURITY_FIELDS
        if unknown:
            raise ValueError(f"Unknown security fields: {sorted(unknown)!r}")
        with self._transaction() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(updated_at=_utcnow(), **fields))
            user = self._fetch_by_id(conn, user_id)
        if user is None:
            raise StoreUnavailableError(detail=f"user {user_id} vanished during update")
        return user

    def register_failed_attempt(self, user_id: int, *, max_attempts: int, lock_until: datetime) -> User:
        """Atomically increment the failure counter, locking at max_attempts.

        Both SET expressions read the pre-update row, so the CASE sees the
        same incremented value that is written to failed_login_attempts.
        """
        incremented = _users.c.failed_login_attempts + 1
        with self._transaction() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(
                    failed_login_attempts=incremented,
                    locked_until=case(
                        (incremented >= max_attempts, literal(lock_until, DateTime(timezone=True))),
                        else_=_users.c.locked_until,
                    ),
                    updated_at=_utcnow(),
                )
            )
            user = self._fetch_by_id(conn, user_id)
        if user is None:
            raise StoreUnavailableError(detail=f"user {user_id} vanished during update")
        return user

    def set_active(self, user_id: int, active: bool) -> bool:
        """Enable or disable an account. Returns False if user_id was not found."""
        with self._transaction() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(is_active=active, updated_at=_utcnow())
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        name=row.name,
        is_active=bool(row.is_active),
        email_verified=bool(row.email_verified),
        failed_login_attempts=row.failed_login_attempts,
        locked_until=_as_utc(row.locked_until),
        last_login_at=_as_utc(row.last_login_at),
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )
