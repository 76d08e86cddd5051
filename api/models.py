"""
API request and response models for the authentication REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Validation here is the pre-condition the auth core relies on: by the time
AuthService.register() runs, the email is well-formed and lower-cased and the
password meets the strength rules.

Envelope (one canonical shape for every response):
  success: {"success": true,  "data": {...},                          "timestamp": ...}
  failure: {"success": false, "error": {"code", "message", "detail"}, "timestamp": ...}

Wire keys are camelCase (accessToken, isActive, ...) via field aliases; route
handlers serialize with model_dump(by_alias=True).
"""

import re
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.service import PublicUser
from auth.tokens import AuthTokens

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt ignores (older releases) or rejects (newer releases) input past 72 bytes.
MAX_PASSWORD_BYTES = 72

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"\d")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_email(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Password rules: 8-128 characters, at most 72 UTF-8 bytes, and at least one
    upper-case letter, one lower-case letter, and one digit. The password is
    never stripped; whitespace is significant.
    """

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)
    name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        """Strip and lower-case before the pattern check runs."""
        return _normalize_email(value)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("password")
    @classmethod
    def check_strength(cls, value: str) -> str:
        if not (_UPPER.search(value) and _LOWER.search(value) and _DIGIT.search(value)):
            raise ValueError("Password must contain an upper-case letter, a lower-case letter, and a digit.")
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded.")
        return value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    rememberMe is accepted for front-end compatibility and ignored: every
    token gets the configured lifetime.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=128)
    remember_me: bool = Field(default=False, alias="rememberMe")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _normalize_email(value)


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------


class TokensPayload(BaseModel):
    """Token pair as sent to clients. refreshToken equals accessToken."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    expires_in: int = Field(alias="expiresIn")
    token_type: Literal["Bearer"] = Field(default="Bearer", alias="tokenType")

    @classmethod
    def from_tokens(cls, tokens: AuthTokens) -> "TokensPayload":
        return cls(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
            token_type="Bearer",
        )


class AuthPayload(BaseModel):
    """data field of a successful register/login response."""

    model_config = ConfigDict(frozen=True)

    user: PublicUser
    tokens: TokensPayload


class LogoutPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Logged out."
    instruction: str = "Delete the access token on the client."


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class SuccessResponse(BaseModel):
    """Top-level envelope for 2xx responses."""

    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    data: Any
    timestamp: str = Field(default_factory=_now_iso)


class ErrorDetail(BaseModel):
    """Machine-readable error payload. detail is only populated in debug mode."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    success: Literal[False] = False
    error: ErrorDetail
    timestamp: str = Field(default_factory=_now_iso)


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    environment: str
    uptime_seconds: float
    components: dict[str, str]
