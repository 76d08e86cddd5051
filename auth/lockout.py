"""
auth/lockout.py -- Per-account progressive lockout after repeated failed logins.

State machine per user record:

    OPEN   --failure, attempts+1 <  max-->  OPEN     (counter incremented)
    OPEN   --failure, attempts+1 >= max-->  LOCKED   (locked_until = now + duration)
    LOCKED --any attempt---------------->  LOCKED   (rejected before the password is checked)
    any    --successful password-------->  OPEN     (counter 0, lock cleared, last_login_at = now)

"Locked" is evaluated at check time as locked_until > now. An expired lock is
therefore OPEN for the check, but its stale counter and timestamp stay on the
record until the next successful login clears them.

Lockout is keyed on the account, not the client IP. That defends a single
account against credential stuffing, at the cost of letting anyone who knows
an email lock its owner out for the lock duration. Global per-IP throttling is
the API layer's rate limiter, not this module.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from auth.models import User

if TYPE_CHECKING:
    from auth.store import UserStoreProtocol

logger = logging.getLogger("assistant.auth")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_LOCK_DURATION = timedelta(hours=2)


class LockState(str, enum.Enum):
    OPEN = "open"
    LOCKED = "locked"


class LockoutPolicy:
    """Decide and persist lockout transitions for one account at a time.

    The policy holds no per-user state of its own. Counters live on the user
    record, and every mutation goes through a single atomic store call so
    concurrent failures against the same account cannot lose an increment.
    """

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS, lock_duration: timedelta = DEFAULT_LOCK_DURATION) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if lock_duration <= timedelta(0):
            raise ValueError("lock_duration must be positive")
        self.max_attempts = max_attempts
        self.lock_duration = lock_duration

    @classmethod
    def from_milliseconds(cls, max_attempts: int, lock_time_ms: int) -> LockoutPolicy:
        return cls(max_attempts=max_attempts, lock_duration=timedelta(milliseconds=lock_time_ms))

    def state(self, user: User, now: datetime) -> LockState:
        if user.locked_until is not None and user.locked_until > now:
            return LockState.LOCKED
        return LockState.OPEN

    def is_locked(self, user: User, now: datetime) -> bool:
        return self.state(user, now) is LockState.LOCKED

    def record_failure(self, store: UserStoreProtocol, user: User, now: datetime) -> User:
        """Apply the failure transition and return the updated record.

        The store increments the counter and, when the new value reaches
        max_attempts, sets locked_until in the same UPDATE.
        """
        updated = store.register_failed_attempt(
            user.id,
            max_attempts=self.max_attempts,
            lock_until=now + self.lock_duration,
        )
        if self.is_locked(updated, now):
            logger.warning(
                "Account locked after %d failed attempts: user_id=%s until=%s",
                updated.failed_login_attempts,
                updated.id,
                updated.locked_until.isoformat(),
            )
        return updated

    def record_success(self, store: UserStoreProtocol, user: User, now: datetime) -> User:
        """Reset counters and stamp last_login_at, whatever the previous state."""
        return store.update_security_fields(
            user.id,
            failed_login_attempts=0,
            locked_until=None,
            last_login_at=now,
        )
