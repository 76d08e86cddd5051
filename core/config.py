"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly. The application reads get_settings() once at
startup and hands the values to component constructors; auth/ components
never import this module.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode generates a signing secret with a warning; production
      mode refuses to start without one.

Security notes:
  [M6] JWT_SECRET shorter than 32 chars is rejected outright.

  [M7] In production mode (DEBUG not set or false), a missing JWT_SECRET is a
       hard startup failure. There is no fixed fallback secret.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("assistant.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field except jwt_secret has a working default. The model_validator
    enforces the secret policy at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    jwt_secret: str = ""
    database_url: str = _DEFAULT_DB_URL
    frontend_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    jwt_expires_in: int = Field(default=86400, gt=0)  # seconds
    max_login_attempts: int = Field(default=5, ge=1)
    lock_time_ms: int = Field(default=2 * 60 * 60 * 1000, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    auth_rate_limit: str = "10/15minutes"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy [M7].

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start if JWT_SECRET is missing.

        Both modes: reject secrets shorter than 32 characters [M6].
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Tokens will not remain valid across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self

    @property
    def environment(self) -> str:
        return "development" if self.debug else "production"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
