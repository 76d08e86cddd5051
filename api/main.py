"""
api/main.py -- FastAPI application entry point for the authentication backend.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. log_requests       -- request line, status, and latency per response
  2. SlowAPIMiddleware  -- rate-limit bookkeeping for api.limiter
  3. CORSMiddleware     -- allows the front end origin (Settings.frontend_url)

Per-route limits on register/login are callables, so they are enforced by
the @limiter.limit wrapper on each route, not by the middleware.

Lifespan reads Settings once, builds the UserStore and AuthService, and
stores them on app.state. Nothing below the lifespan reads configuration
again except the rate-limit string.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse, SuccessResponse
from api.routes.v1.auth import router as auth_router
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("assistant.api")

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order: settings first (a missing JWT_SECRET in production must
    fail before anything else is built), then the store, then the service
    that depends on it.
    """
    settings = get_settings()
    logger.info("Auth API starting up (environment=%s)", settings.environment)
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url)
    app.state.auth_service = AuthService.from_settings(settings, app.state.user_store)
    app.state.started_at = time.monotonic()
    logger.info(
        "Auth initialized (token_ttl=%ds, max_attempts=%d, lock_ms=%d)",
        settings.jwt_expires_in,
        settings.max_login_attempts,
        settings.lock_time_ms,
    )

    yield

    app.state.user_store.close()
    logger.info("Auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AI Search Assistant Auth API",
    description="Account registration, login, and bearer-token authentication.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps each new middleware around the existing stack, so the LAST
# one added is the outermost. @app.middleware("http") below counts as added.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Wall-clock time around call_next gives latency per response.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Sync on purpose: SlowAPIMiddleware invokes this handler directly, outside
    Starlette's exception machinery.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many attempts. Please try again later.",
                detail=str(exc.detail),
            )
        ).model_dump(mode="json"),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body fails validation.

    Input values are stripped from the reported errors so a rejected password
    is never echoed back.
    """
    errors = [{"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"], "type": e["type"]} for e in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(errors),
            )
        ).model_dump(mode="json"),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Registered on Starlette's base class so routing 404/405 responses use the
    same envelope as the 401s raised by auth dependencies.

    Dependencies raise HTTPException with detail={"code", "message"}. When the
    detail is already a dict, use it as the error field directly.
    """
    if isinstance(exc.detail, dict):
        error = ErrorDetail(**exc.detail)
    else:
        error = ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=error).model_dump(mode="json"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the server log. The client gets a generic message,
    plus the exception text only when DEBUG is on.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    detail = f"{exc.__class__.__name__}: {exc}" if get_settings().debug else None
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
                detail=detail,
            )
        ).model_dump(mode="json"),
    )


# ---------------------------------------------------------------------------
# Health and index endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    database_ok = request.app.state.user_store.ping()
    return HealthResponse(
        version=VERSION,
        environment=request.app.state.settings.environment,
        uptime_seconds=round(time.monotonic() - request.app.state.started_at, 3),
        components={"app": "ok", "database": "ok" if database_ok else "error"},
    )


@app.get("/api/v1", tags=["Health"])
async def index() -> SuccessResponse:
    """List the available endpoints."""
    return SuccessResponse(
        data={
            "name": app.title,
            "version": VERSION,
            "endpoints": [
                "GET /api/v1/health",
                "POST /api/v1/auth/register",
                "POST /api/v1/auth/login",
                "GET /api/v1/auth/profile",
                "POST /api/v1/auth/logout",
            ],
        }
    )
