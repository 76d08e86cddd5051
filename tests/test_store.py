"""Unit tests for auth/store.py -- SQLAlchemy Core user store.

Covers:
- create_user() defaults (active, unverified, zero attempts) and timestamps
- DuplicateEmailError from the UNIQUE constraint
- update_security_fields() writes only whitelisted columns
- register_failed_attempt() increments atomically and locks at the threshold
- concurrent failures never lose an increment
- database failures surface as StoreUnavailableError
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from auth.errors import DuplicateEmailError, StoreUnavailableError
from auth.store import UserStore


def test_create_user_sets_defaults(store: UserStore) -> None:
    user = store.create_user("alice@example.com", "hash", "Alice")
    assert user.id is not None
    assert user.email == "alice@example.com"
    assert user.name == "Alice"
    assert user.is_active is True
    assert user.email_verified is False
    assert user.failed_login_attempts == 0
    assert user.locked_until is None
    assert user.last_login_at is None
    assert user.created_at is not None and user.created_at.tzinfo is not None
    assert user.updated_at is not None


def test_lookup_by_email_and_id(store: UserStore) -> None:
    created = store.create_user("bob@example.com", "hash")
    assert store.get_by_email("bob@example.com").id == created.id
    assert store.get_by_id(created.id).email == "bob@example.com"
    assert store.get_by_email("nobody@example.com") is None
    assert store.get_by_id(9999) is None


def test_duplicate_email_rejected(store: UserStore) -> None:
    store.create_user("alice@example.com", "hash")
    with pytest.raises(DuplicateEmailError):
        store.create_user("alice@example.com", "other-hash")


def test_update_security_fields(store: UserStore) -> None:
    user = store.create_user("alice@example.com", "hash")
    now = datetime.now(timezone.utc)
    updated = store.update_security_fields(user.id, failed_login_attempts=3, locked_until=now, last_login_at=now)
    assert updated.failed_login_attempts == 3
    assert abs(updated.locked_until - now) < timedelta(seconds=1)
    assert abs(updated.last_login_at - now) < timedelta(seconds=1)

    cleared = store.update_security_fields(user.id, failed_login_attempts=0, locked_until=None)
    assert cleared.failed_login_attempts == 0
    assert cleared.locked_until is None


def test_update_security_fields_rejects_other_columns(store: UserStore) -> None:
    user = store.create_user("alice@example.com", "hash")
    with pytest.raises(ValueError):
        store.update_security_fields(user.id, password_hash="new")
    with pytest.raises(ValueError):
        store.update_security_fields(user.id, is_active=False)


def test_register_failed_attempt_locks_at_threshold(store: UserStore) -> None:
    user = store.create_user("alice@example.com", "hash")
    lock_until = datetime.now(timezone.utc) + timedelta(hours=2)

    for expected in range(1, 3):
        user = store.register_failed_attempt(user.id, max_attempts=3, lock_until=lock_until)
        assert user.failed_login_attempts == expected
        assert user.locked_until is None

    user = store.register_failed_attempt(user.id, max_attempts=3, lock_until=lock_until)
    assert user.failed_login_attempts == 3
    assert abs(user.locked_until - lock_until) < timedelta(seconds=1)


def test_register_failed_attempt_keeps_existing_lock_below_threshold(store: UserStore) -> None:
    """Below the threshold the CASE keeps whatever locked_until already holds."""
    user = store.create_user("alice@example.com", "hash")
    earlier = datetime.now(timezone.utc) - timedelta(minutes=5)
    store.update_security_fields(user.id, locked_until=earlier)

    updated = store.register_failed_attempt(
        user.id, max_attempts=5, lock_until=datetime.now(timezone.utc) + timedelta(hours=2)
    )
    assert updated.failed_login_attempts == 1
    assert abs(updated.locked_until - earlier) < timedelta(seconds=1)


def test_concurrent_failed_attempts_are_not_lost(tmp_path) -> None:
    """Parallel failures against one account must each be counted once."""
    file_store = UserStore(f"sqlite:///{tmp_path / 'concurrent.db'}")
    try:
        user = file_store.create_user("alice@example.com", "hash")
        lock_until = datetime.now(timezone.utc) + timedelta(hours=2)
        errors: list[Exception] = []

        def fail_once() -> None:
            try:
                file_store.register_failed_attempt(user.id, max_attempts=1000, lock_until=lock_until)
            except Exception as exc:  # surfaced through the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=fail_once) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert file_store.get_by_id(user.id).failed_login_attempts == 10
    finally:
        file_store.close()


def test_set_active(store: UserStore) -> None:
    user = store.create_user("alice@example.com", "hash")
    assert store.set_active(user.id, False) is True
    assert store.get_by_id(user.id).is_active is False
    assert store.set_active(9999, False) is False


def test_ping(store: UserStore) -> None:
    assert store.ping() is True


def test_database_errors_become_store_unavailable(store: UserStore, monkeypatch) -> None:
    def broken_begin():
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store.engine, "begin", broken_begin)
    with pytest.raises(StoreUnavailableError):
        store.get_by_email("alice@example.com")
