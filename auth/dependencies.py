"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer-token authentication.

The only accepted credential is an "Authorization: Bearer <token>" header.
There are no cookies or server-side sessions; a token is valid until it
expires.

try_get_current_user() is the soft variant (returns None on failure) for
routes where authentication is optional.
get_current_user() raises HTTP 401 with a specific code:
  missing_token    -- header absent or not a Bearer scheme
  invalid_token    -- token invalid, expired, or its user no longer exists
  account_disabled -- token valid but the account is inactive

Layer rule: may import from fastapi (Depends/HTTPException/Request) because
this module is part of the FastAPI dependency injection system. No imports
from api/ or core/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.service import AuthService, PublicUser

_BEARER_PREFIX = "Bearer "


def _bearer_token(request: Request) -> str | None:
    """Return the token from the Authorization header, or None if absent/malformed."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        return None
    token = auth_header[len(_BEARER_PREFIX) :].strip()
    return token or None


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService wired into app.state at startup."""
    return request.app.state.auth_service


def try_get_current_user(request: Request) -> PublicUser | None:
    """Authenticate the request if it carries a usable bearer token.

    Returns the active user on success, None on any failure. Never raises.
    """
    token = _bearer_token(request)
    if token is None:
        return None
    user = get_auth_service(request).get_user_from_token(token)
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(request: Request) -> PublicUser:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: PublicUser = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={
                "code": "missing_token",
                "message": "An access token is required. Send it as 'Authorization: Bearer <token>'.",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = get_auth_service(request).get_user_from_token(token)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_token", "message": "The access token is invalid, expired, or its user no longer exists."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=401,
            detail={"code": "account_disabled", "message": "This account has been disabled."},
        )
    return user
