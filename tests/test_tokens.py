"""Unit tests for auth/tokens.py -- JWT issuance and verification.

Covers:
- issue() then verify() round-trips user_id and email
- expired tokens raise ExpiredTokenError
- wrong secret, garbage, and claim-less tokens raise MalformedTokenError
- issue_pair() returns the access token as the refresh token
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import ExpiredTokenError, MalformedTokenError, TokenError
from auth.tokens import ALGORITHM, TokenIssuer

TEST_SECRET = "unit-test-secret-key-at-least-32-chars-long"


def test_round_trip_preserves_identity(issuer: TokenIssuer) -> None:
    token = issuer.issue(42, "alice@example.com")
    payload = issuer.verify(token)
    assert payload.user_id == 42
    assert payload.email == "alice@example.com"
    assert payload.expires_at - payload.issued_at == timedelta(seconds=3600)


def test_claims_include_subject_and_expiry(issuer: TokenIssuer) -> None:
    token = issuer.issue(7, "bob@example.com")
    claims = jwt.get_unverified_claims(token)
    assert claims["sub"] == "7"
    assert claims["user_id"] == 7
    assert claims["exp"] - claims["iat"] == 3600


def test_expired_token_raises_expired_error() -> None:
    """A token issued two hours ago with a one-hour lifetime is expired."""
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    old_issuer = TokenIssuer(TEST_SECRET, expires_in=3600, clock=lambda: past)
    token = old_issuer.issue(1, "alice@example.com")

    with pytest.raises(ExpiredTokenError):
        TokenIssuer(TEST_SECRET).verify(token)


def test_token_from_other_secret_is_malformed(issuer: TokenIssuer) -> None:
    forged = TokenIssuer("a-completely-different-secret-value-000").issue(1, "alice@example.com")
    with pytest.raises(MalformedTokenError):
        issuer.verify(forged)


@pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "Bearer xyz"])
def test_garbage_token_is_malformed(issuer: TokenIssuer, garbage: str) -> None:
    with pytest.raises(MalformedTokenError):
        issuer.verify(garbage)


def test_token_missing_identity_claims_is_malformed(issuer: TokenIssuer) -> None:
    exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
    token = jwt.encode({"email": "alice@example.com", "exp": exp}, TEST_SECRET, algorithm=ALGORITHM)
    with pytest.raises(MalformedTokenError):
        issuer.verify(token)


def test_both_token_errors_share_a_base(issuer: TokenIssuer) -> None:
    """Callers that only care about 'unauthenticated' can catch TokenError."""
    assert issubclass(ExpiredTokenError, TokenError)
    assert issubclass(MalformedTokenError, TokenError)
    assert ExpiredTokenError.status_code == MalformedTokenError.status_code == 401


def test_issue_pair_reuses_access_token(issuer: TokenIssuer) -> None:
    tokens = issuer.issue_pair(3, "carol@example.com")
    assert tokens.refresh_token == tokens.access_token
    assert tokens.expires_in == 3600
    assert tokens.token_type == "Bearer"


def test_constructor_validation() -> None:
    with pytest.raises(ValueError):
        TokenIssuer("")
    with pytest.raises(ValueError):
        TokenIssuer(TEST_SECRET, expires_in=0)
