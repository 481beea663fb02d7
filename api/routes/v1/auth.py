"""
api/routes/v1/auth.py -- Token issuance endpoints.

Routes:
  POST /api/v1/auth/register   -- create a password account; 201 with token
  POST /api/v1/auth/login      -- password login; 200 with token
  GET|POST /api/v1/auth/logout -- acknowledge logout (tokens are stateless)
  GET  /api/v1/auth/me         -- current account (requires auth)

The Google sign-in flow is browser-driven and lives in web/routes.py.

Security:
  Login and register are rate-limited per client IP (LOGIN_RATE_LIMIT,
  REGISTER_RATE_LIMIT).
  authenticate() equalizes timing and returns one error for every failure
  mode -- use it, never inline get_by_email() + verify_password().
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AccountSummary, AuthResponse, LoginRequest, MessageResponse, RegisterRequest
from auth.credentials import authenticate, register
from auth.dependencies import get_current_account
from auth.models import Account
from auth.store import AccountStore
from auth.tokens import TokenService
from core.config import get_settings

logger = logging.getLogger("libris.api.auth")

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - GET|POST /api/v1/auth/logout: public -- nothing to revoke server-side
# - GET  /api/v1/auth/me:       requires auth (get_current_account)
router = APIRouter()


def token_response(tokens: TokenService, account: Account, status_code: int) -> JSONResponse:
    """Issue a token for `account` and wrap it in a no-store JSON response."""
    body = AuthResponse(
        token=tokens.issue(account),
        expires_in=tokens.ttl_seconds,
        user=AccountSummary.from_account(account),
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(_settings.register_rate_limit)
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register_account(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a password account and return a token for it.

    409 if the email is already registered.
    """
    store: AccountStore = request.app.state.account_store
    account = register(store, body.to_registration())
    logger.info("Registered account id=%s", account.id)
    return token_response(request.app.state.tokens, account, status_code=201)


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Exchange email and password for a token.

    Wrong password, unknown email, and Google-only accounts all produce the
    same 401 invalid_credentials.
    """
    store: AccountStore = request.app.state.account_store
    account = authenticate(store, body.email, body.password)
    return token_response(request.app.state.tokens, account, status_code=200)


@router.api_route("/auth/logout", methods=["GET", "POST"], response_model=MessageResponse)
def logout() -> MessageResponse:
    """Tokens are stateless; logging out means the client discards its token."""
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=AccountSummary)
def me(current: Account = Depends(get_current_account)) -> AccountSummary:
    return AccountSummary.from_account(current)
