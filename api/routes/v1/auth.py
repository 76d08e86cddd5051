"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; 201 with user + tokens
  POST /api/v1/auth/login      -- password login; 200 with user + tokens
  GET  /api/v1/auth/profile    -- current user (requires bearer token)
  POST /api/v1/auth/logout     -- stateless acknowledgement (requires bearer token)

Status mapping comes from AuthError.status_code:
  duplicate email -> 400; invalid credentials, locked, disabled -> 401;
  internal failure -> 500.

Security:
  [H2] register and login are rate-limited per IP (Settings.auth_rate_limit).
  [C1] login returns the same error for unknown email and wrong password.
  [M5] Cache-Control: no-store on every response that carries a token.

register and login are sync handlers on purpose: FastAPI runs them in its
threadpool, so bcrypt work never blocks the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import auth_rate_limit, limiter
from api.models import (
    AuthPayload,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    LogoutPayload,
    RegisterRequest,
    SuccessResponse,
    TokensPayload,
)
from auth.dependencies import get_auth_service, get_current_user
from auth.service import AuthResult, AuthService, PublicUser

logger = logging.getLogger("assistant.api")

# Auth policy:
# - POST /api/v1/auth/register: public, rate-limited
# - POST /api/v1/auth/login:    public, rate-limited
# - GET  /api/v1/auth/profile:  requires auth (get_current_user)
# - POST /api/v1/auth/logout:   requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=SuccessResponse, status_code=201)
@limiter.limit(auth_rate_limit)  # [H2] callable limits are enforced only by this wrapper; keep it BELOW @router
def register(
    request: Request,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Create a new account and return it with an access token."""
    result = service.register(body.email, body.password, body.name)
    return _render(result, success_status=201)


@router.post("/auth/login", response_model=SuccessResponse)
@limiter.limit(auth_rate_limit)  # [H2]
def login(
    request: Request,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password both produce 401 invalid_credentials [C1].
    """
    result = service.login(body.email, body.password)
    return _render(result, success_status=200)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=SuccessResponse)
async def profile(current_user: PublicUser = Depends(get_current_user)) -> JSONResponse:
    """Return the currently authenticated user."""
    return JSONResponse(
        content=SuccessResponse(data=current_user.model_dump(by_alias=True, mode="json")).model_dump(mode="json")
    )


@router.post("/auth/logout", response_model=SuccessResponse)
async def logout(current_user: PublicUser = Depends(get_current_user)) -> JSONResponse:
    """Acknowledge a logout. Tokens are stateless, so nothing is revoked server side."""
    logger.info("Logout: id=%s", current_user.id)
    return JSONResponse(content=SuccessResponse(data=LogoutPayload().model_dump(mode="json")).model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _render(result: AuthResult, success_status: int) -> JSONResponse:
    """Map an AuthResult onto the response envelope and its status code."""
    if result.success:
        payload = AuthPayload(user=result.user, tokens=TokensPayload.from_tokens(result.tokens))
        resp = JSONResponse(
            status_code=success_status,
            content=SuccessResponse(data=payload.model_dump(by_alias=True, mode="json")).model_dump(mode="json"),
        )
    else:
        error = result.error
        resp = JSONResponse(
            status_code=error.status_code,
            content=ErrorResponse(error=ErrorDetail(**error.to_dict())).model_dump(mode="json"),
        )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
