"""
auth/tokens.py -- Signed bearer token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the configured secret
       and carry user_id, email, issue time, and expiry. They are stateless:
       nothing is persisted, and there is no revocation list, so a token
       stays valid until exp.

  verify() raises rather than returning None so callers can tell an expired
       token (prompt re-login) from a forged or garbled one (reject). Both are
       TokenError subclasses and both mean "unauthenticated".

  The secret is passed in by the caller. This module never reads settings;
  the app wires Settings.jwt_secret in at startup.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ExpiredTokenError, MalformedTokenError
from auth.models import TokenPayload

ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuthTokens:
    """Token pair returned by register and login.

    refresh_token is the same value as access_token. There is no separate
    refresh mechanism; clients log in again once the token expires.
    """

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class TokenIssuer:
    """Issue and verify HS256 JWTs for a single server secret.

    Usage:
        issuer = TokenIssuer(secret, expires_in=86400)
        token = issuer.issue(42, "alice@example.com")
        issuer.verify(token).user_id  # 42
    """

    def __init__(
        self,
        secret: str,
        expires_in: int = 86400,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not secret:
            raise ValueError("TokenIssuer requires a non-empty secret")
        if expires_in <= 0:
            raise ValueError("expires_in must be a positive number of seconds")
        self._secret = secret
        self.expires_in = expires_in
        self._clock = clock or _utcnow

    def issue(self, user_id: int, email: str) -> str:
        """Encode a signed JWT with user identity and the configured expiry."""
        issued_at = self._clock()
        expires_at = issued_at + timedelta(seconds=self.expires_in)
        claims = {
            "sub": str(user_id),
            "user_id": user_id,
            "email": email,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def issue_pair(self, user_id: int, email: str) -> AuthTokens:
        access = self.issue(user_id, email)
        return AuthTokens(access_token=access, refresh_token=access, expires_in=self.expires_in)

    def verify(self, token: str) -> TokenPayload:
        """Decode and verify a JWT.

        Raises:
            ExpiredTokenError:   signature valid but exp has passed.
            MalformedTokenError: bad structure, bad signature, wrong algorithm,
                                 or identity claims missing.
        """
        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError() from exc
        except JWTError as exc:
            raise MalformedTokenError() from exc

        user_id = claims.get("user_id")
        email = claims.get("email")
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(email, str):
            raise MalformedTokenError()
        try:
            issued_at = datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedTokenError() from exc
        return TokenPayload(user_id=user_id, email=email, issued_at=issued_at, expires_at=expires_at)
