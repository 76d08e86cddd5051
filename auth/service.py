"""
auth/service.py -- Authentication orchestrator: register, login, token lookup.

AuthService composes the user store, password hasher, token issuer, and
lockout policy. It is framework-free: the API layer calls it and renders the
AuthResult it returns.

Result policy:
  register() and login() never raise. Expected outcomes (duplicate email,
  bad credentials, locked, disabled) come back as AuthResult.fail(<AuthError>).
  Internal failures (hasher, store, anything unexpected) are logged here with
  the full traceback and come back as InternalAuthError. The underlying
  exception text is attached as detail only when debug=True.

  get_user_by_id() and get_user_from_token() return None for every failure.
  Expired, forged, and "user deleted" tokens all look the same to the caller.
  The consuming dependency only needs authenticated/unauthenticated, and the
  specific reason is logged at debug level.

Account enumeration [C1]:
  login() returns the same InvalidCredentialsError for an unknown email and a
  wrong password, and spends one bcrypt check in both cases.

Layer rule: no imports from api/. core/ is imported only by from_settings().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from auth.errors import (
    AccountDisabledError,
    AccountLockedError,
    AuthError,
    DuplicateEmailError,
    InternalAuthError,
    InvalidCredentialsError,
    TokenError,
)
from auth.lockout import LockoutPolicy
from auth.models import User
from auth.passwords import PasswordHasher
from auth.store import UserStoreProtocol
from auth.tokens import AuthTokens, TokenIssuer

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("assistant.auth")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """Strip surrounding whitespace and lower-case. Applied before every lookup or write."""
    return email.strip().lower()


class PublicUser(BaseModel):
    """Outward-facing view of a user record. Has no password field by construction.

    Serializes with camelCase keys and ISO 8601 timestamps, which is the shape
    the front end consumes.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    email: str
    name: str | None = None
    is_active: bool = Field(alias="isActive")
    email_verified: bool = Field(alias="emailVerified")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    last_login_at: datetime | None = Field(default=None, alias="lastLoginAt")

    @field_serializer("created_at", "updated_at", "last_login_at")
    def serialize_timestamp(self, value: datetime | None) -> str | None:
        return value.isoformat() if value is not None else None

    @classmethod
    def from_user(cls, user: User) -> PublicUser:
        return cls(
            id=str(user.id),
            email=user.email,
            name=user.name,
            is_active=user.is_active,
            email_verified=user.email_verified,
            created_at=user.created_at,
            updated_at=user.updated_at,
            last_login_at=user.last_login_at,
        )


@dataclass(frozen=True)
class AuthResult:
    """Tagged outcome of register/login.

    Exactly one side is populated: on success user and tokens are set and
    error is None; on failure error is set and user/tokens are None.
    """

    success: bool
    user: PublicUser | None = None
    tokens: AuthTokens | None = None
    error: AuthError | None = None

    @classmethod
    def ok(cls, user: PublicUser, tokens: AuthTokens) -> AuthResult:
        return cls(success=True, user=user, tokens=tokens)

    @classmethod
    def fail(cls, error: AuthError) -> AuthResult:
        return cls(success=False, error=error)


class AuthService:
    """Credential registration and login with progressive account lockout.

    Usage:
        service = AuthService.from_settings(get_settings(), UserStore(url))
        result = service.login("alice@example.com", "Passw0rd1")
        if result.success:
            result.tokens.access_token
    """

    def __init__(
        self,
        store: UserStoreProtocol,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        lockout: LockoutPolicy,
        *,
        debug: bool = False,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.lockout = lockout
        self.debug = debug
        self._clock = clock or _utcnow

    @classmethod
    def from_settings(cls, settings: Settings, store: UserStoreProtocol) -> AuthService:
        """Build a service from application settings. The only place settings reach auth/."""
        return cls(
            store=store,
            hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
            tokens=TokenIssuer(settings.jwt_secret, expires_in=settings.jwt_expires_in),
            lockout=LockoutPolicy.from_milliseconds(settings.max_login_attempts, settings.lock_time_ms),
            debug=settings.debug,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, name: str | None = None) -> AuthResult:
        """Create an active, unverified account and issue its first token."""
        email = normalize_email(email)
        try:
            if self.store.get_by_email(email) is not None:
                logger.info("Registration rejected, email already registered: %s", email)
                return AuthResult.fail(DuplicateEmailError())
            password_hash = self.hasher.hash(password)
            user = self.store.create_user(email, password_hash, name)
        except DuplicateEmailError as exc:
            # Lost a race with a concurrent registration; the UNIQUE constraint caught it.
            logger.info("Registration rejected by unique constraint: %s", email)
            return AuthResult.fail(exc)
        except Exception as exc:
            return AuthResult.fail(self._internal_error("Registration failed", email, exc))

        logger.info("User registered: id=%s email=%s", user.id, email)
        return AuthResult.ok(PublicUser.from_user(user), self.tokens.issue_pair(user.id, user.email))

    def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials, enforcing lockout before the password is checked.

        Check order: unknown email, locked, disabled, password. A locked
        account is rejected without running bcrypt, so "locked with the right
        password" and "locked with a wrong one" are indistinguishable.
        """
        email = normalize_email(email)
        try:
            user = self.store.get_by_email(email)
            if user is None:
                self.hasher.dummy_verify(password)
                logger.info("Login failed, unknown email: %s", email)
                return AuthResult.fail(InvalidCredentialsError())

            now = self._clock()
            if self.lockout.is_locked(user, now):
                logger.info("Login rejected, account locked: id=%s", user.id)
                return AuthResult.fail(AccountLockedError())

            if not user.is_active:
                logger.info("Login rejected, account disabled: id=%s", user.id)
                return AuthResult.fail(AccountDisabledError())

            if not self.hasher.verify(password, user.password_hash):
                self.lockout.record_failure(self.store, user, now)
                logger.info("Login failed, wrong password: id=%s", user.id)
                return AuthResult.fail(InvalidCredentialsError())

            user = self.lockout.record_success(self.store, user, now)
        except Exception as exc:
            return AuthResult.fail(self._internal_error("Login failed", email, exc))

        logger.info("Login succeeded: id=%s", user.id)
        return AuthResult.ok(PublicUser.from_user(user), self.tokens.issue_pair(user.id, user.email))

    def get_user_by_id(self, user_id: int) -> PublicUser | None:
        """Return the public view of a user, or None if missing or the store fails."""
        try:
            user = self.store.get_by_id(user_id)
        except Exception:
            logger.exception("User lookup failed: id=%s", user_id)
            return None
        return PublicUser.from_user(user) if user is not None else None

    def get_user_from_token(self, token: str) -> PublicUser | None:
        """Resolve a bearer token to its user. Any failure yields None."""
        try:
            payload = self.tokens.verify(token)
        except TokenError as exc:
            logger.debug("Token rejected: %s", exc.code)
            return None
        user = self.get_user_by_id(payload.user_id)
        if user is None:
            logger.debug("Token subject no longer exists: id=%s", payload.user_id)
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _internal_error(self, what: str, email: str, exc: Exception) -> InternalAuthError:
        logger.exception("%s for %s", what, email)
        detail = f"{exc.__class__.__name__}: {exc}" if self.debug else None
        return InternalAuthError(detail=detail)
