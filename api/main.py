"""
api/main.py -- FastAPI application entry point for Libris.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter
  3. SessionMiddleware  -- holds the OAuth state between redirect and callback

Lifespan builds the shared resources once per process and stores them on
app.state: the account store, the book store, the token service (with its
immutable signing config), and the OAuth registry.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse, MessageResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.books import router as books_router
from api.routes.v1.users import router as users_router
from auth.dependencies import get_current_account, require_admin
from auth.errors import AppError
from auth.models import Account
from auth.oauth import oauth as oauth_client
from auth.store import AccountStore
from auth.tokens import TokenConfig, TokenService
from books.store import BookStore
from core.config import get_settings

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("libris.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create shared resources on startup and release them on shutdown.

    The token service is built exactly once here. Its TokenConfig is frozen,
    so concurrent requests read the signing key without locking.
    """
    logger.info("Libris API starting up")
    store_kwargs = {"db_url": _settings.database_url} if _settings.database_url else {}
    app.state.account_store = AccountStore(**store_kwargs)
    app.state.book_store = BookStore(**store_kwargs)
    app.state.tokens = TokenService(TokenConfig.from_settings(_settings))
    app.state.oauth = oauth_client
    logger.info("Stores and token service initialized (token ttl=%ds)", _settings.token_expire_seconds)

    yield

    app.state.account_store.close()
    app.state.book_store.close()
    logger.info("Libris API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Libris API",
    description="Users and Books CRUD with password and Google sign-in, bearer tokens, and role checks.",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/api-docs",
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# authlib keeps the OAuth state value in the session between the redirect to
# Google and the callback; the callback refuses a state it did not issue.
app.add_middleware(SessionMiddleware, secret_key=_settings.secret_key)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    # Path only: the OAuth success page carries the token in its query string.
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
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(books_router, prefix="/api/v1", tags=["Books"])
# The browser OAuth router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude_none=True
        ),
    )
    if status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)
        return _error_response(exc.status_code, exc.code, exc.message)
    return _error_response(exc.status_code, exc.code, exc.message, exc.detail)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with the first failing field.

    Built from loc and msg only. pydantic also records the rejected input,
    which for auth bodies is a password.
    """
    errors = exc.errors()
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else str(err.get("msg", "invalid")))
    message = parts[0] if parts else "Request validation failed."
    return _error_response(400, "validation_error", message, "; ".join(parts[1:]) or None)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = "60"
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The traceback goes to the log only; the client gets a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Root, health, and protected demo routes
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root() -> PlainTextResponse:
    return PlainTextResponse("Welcome to the Libris API. Visit /api-docs for the interactive docs.")


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)


@app.get("/api/v1/secret", response_model=MessageResponse, tags=["Protected"])
def secret(current: Account = Depends(get_current_account)) -> MessageResponse:
    """Any authenticated account."""
    return MessageResponse(message=f"Welcome {current.email}, this is protected.")


@app.delete("/api/v1/admin-only", response_model=MessageResponse, tags=["Protected"])
def admin_only(current: Account = Depends(require_admin)) -> MessageResponse:
    """Admins only."""
    return MessageResponse(message="Admin privilege confirmed.")
