"""
auth/passwords.py -- Password hashing with bcrypt (direct usage, no passlib wrapper).

Security design decisions:
  bcrypt is the right choice for low-entropy secrets because its cost factor
  makes brute force expensive. The cost (rounds) is configurable; 12 is the
  production default, tests use the minimum of 4.

  verify() never raises. A malformed stored hash, a None value, or an input
  bcrypt refuses all collapse into False, so callers cannot tell an internal
  error apart from a mismatch.

  dummy_verify() exists for timing equalization [C1]: login runs it when the
  email is unknown so response time does not reveal whether an account exists.

  bcrypt only considers the first 72 bytes of a password; recent bcrypt
  releases reject longer inputs outright. The API layer caps passwords at 72
  UTF-8 bytes so hash() never sees one.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import HashingError

logger = logging.getLogger("assistant.auth")

MIN_ROUNDS = 4
MAX_ROUNDS = 31

_DUMMY_PASSWORD = "assistant_timing_dummy"


class PasswordHasher:
    """One-way salted password hashing.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("Passw0rd1")
        hasher.verify("Passw0rd1", stored)  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
            raise ValueError(f"bcrypt rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}, got {rounds}")
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, password: str) -> str:
        """Return a salted bcrypt hash of the plaintext password.

        Raises HashingError on any failure. The original exception is chained
        for server-side logs, but its message is not copied into the error.
        """
        try:
            hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds))
        except Exception as exc:
            raise HashingError() from exc
        return hashed.decode("utf-8")

    def verify(self, password: str, hashed: str | None) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except Exception:
            return False

    def dummy_verify(self, password: str) -> None:
        """Spend one real bcrypt check on a throwaway hash [C1].

        The dummy hash is computed on first use and reused afterwards, so only
        the very first unknown-email login pays for an extra hash().
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(_DUMMY_PASSWORD)
        self.verify(password, self._dummy_hash)
