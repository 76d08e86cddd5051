"""
auth/errors.py -- Error taxonomy for the authentication core.

Every error carries a stable machine-readable code, a user-facing message, and
the HTTP status the API layer maps it to. The core never builds HTTP
responses itself; api/ reads status_code and to_dict() when rendering.

Messages are fixed strings. Nothing derived from user input (in particular
the plaintext password) is ever placed in message or detail.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every authentication outcome that is not a success."""

    code = "auth_error"
    message = "Authentication failed."
    status_code = 401

    def __init__(self, message: str | None = None, *, detail: str | None = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class DuplicateEmailError(AuthError):
    code = "duplicate_email"
    message = "This email address is already registered."
    status_code = 400


class InvalidCredentialsError(AuthError):
    """Raised for both unknown email and wrong password [C1]."""

    code = "invalid_credentials"
    message = "Invalid email or password."
    status_code = 401


class AccountLockedError(AuthError):
    code = "account_locked"
    message = "This account is temporarily locked. Please try again later."
    status_code = 401


class AccountDisabledError(AuthError):
    code = "account_disabled"
    message = "This account has been disabled."
    status_code = 401


# ---------------------------------------------------------------------------
# Token errors -- both subclasses mean "unauthenticated"; the split exists so
# callers can choose between "please log in again" and a flat rejection.
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    code = "invalid_token"
    message = "Invalid access token."
    status_code = 401


class ExpiredTokenError(TokenError):
    code = "token_expired"
    message = "Access token has expired."


class MalformedTokenError(TokenError):
    code = "token_malformed"
    message = "Access token is malformed or has an invalid signature."


# ---------------------------------------------------------------------------
# Internal failures
# ---------------------------------------------------------------------------


class HashingError(AuthError):
    code = "hashing_failed"
    message = "Password hashing failed."
    status_code = 500


class StoreUnavailableError(AuthError):
    """Wraps any persistence failure raised by the user store."""

    code = "store_unavailable"
    message = "User store is unavailable."
    status_code = 500


class InternalAuthError(AuthError):
    """Generic failure surfaced to callers in place of HashingError/StoreUnavailableError."""

    code = "internal_error"
    message = "An internal error occurred."
    status_code = 500
