"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; the store, policy, and service do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A user record as persisted by the user store.

    email is always stored lower-cased and stripped; the service normalizes
    before every lookup or write.

    password_hash never leaves the auth package. Anything returned to a caller
    outside the store goes through auth.service.PublicUser, which has no
    password field at all.

    email_verified is stored but not enforced by login (reserved for a future
    verification flow).
    """

    email: str
    password_hash: str
    id: int | None = None
    name: str | None = None
    is_active: bool = True
    email_verified: bool = False
    failed_login_attempts: int = 0
    locked_until: datetime | None = None  # lock is active while locked_until > now
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class TokenPayload:
    """Verified identity claims carried by a bearer token.

    Tokens are stateless: nothing about them is persisted server side, and
    they stop working only when expires_at passes.
    """

    user_id: int
    email: str
    issued_at: datetime
    expires_at: datetime
