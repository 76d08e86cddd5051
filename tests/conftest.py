"""
tests/conftest.py -- Shared test fixtures for the auth backend.

This module provides:
  - store:       isolated in-memory UserStore per test
  - hasher:      PasswordHasher at the minimum bcrypt cost (fast tests)
  - issuer:      TokenIssuer with a fixed test secret
  - service:     AuthService wired from the three above
  - api_client:  TestClient against the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for
the API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format shares one in-memory instance
across all connections in the same process.

DEBUG, JWT_SECRET and AUTH_RATE_LIMIT must be set before any api/ import so
get_settings() resolves test-friendly values.
"""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any api/ or core/ import so the cached Settings pick them up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("AUTH_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from auth.lockout import LockoutPolicy
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings

TEST_SECRET = "unit-test-secret-key-at-least-32-chars-long"


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    yield s
    s.close()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, expires_in=3600)


@pytest.fixture
def service(store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer) -> AuthService:
    return AuthService(store, hasher, issuer, LockoutPolicy(max_attempts=5))


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, auth_service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test components into app.state so TestClient routes see
    an isolated test DB rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = user_store
        app.state.auth_service = auth_service
        app.state.started_at = time.monotonic()
        yield

    return test_lifespan


@pytest.fixture
def api_client(hasher: PasswordHasher) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) backed by a fresh shared-memory store.

    Function-scoped so lockout counters and registered emails never leak
    between tests.
    """
    from api.main import app

    user_store = UserStore(f"sqlite:///file:test_api_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    auth_service = AuthService(
        user_store,
        hasher,
        TokenIssuer(get_settings().jwt_secret, expires_in=3600),
        LockoutPolicy(max_attempts=5),
    )
    app.router.lifespan_context = _patch_lifespan(user_store, auth_service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, auth_service

    user_store.close()
