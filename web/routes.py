"""
web/routes.py -- Browser-facing Google sign-in flow.

These routes drive the OAuth redirect dance and end on a small HTML page that
shows the issued bearer token. They share app.state with the API routes (same
account store, token service, OAuth registry).

Route registration order: the /auth/google/* sub-paths are registered before
GET /auth/google so FastAPI never reads "callback" or "fail" as a parameter.

Routes:
  GET /auth/google/callback  -- provider callback; issues a token and redirects to /auth/success
  GET /auth/google/fail      -- JSON 401 oauth_failed
  GET /auth/google           -- redirect to Google's consent screen
  GET /auth/success          -- HTML page showing the token
"""

import logging
from pathlib import Path
from urllib.parse import urlencode

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.oauth import exchange, google_enabled, identity_from_token
from auth.store import AccountStore
from auth.tokens import TokenService
from core.config import get_settings

logger = logging.getLogger("libris.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_FAIL_URL = "/auth/google/fail"


@router.get("/auth/google/callback", name="google_callback")
async def google_callback(request: Request) -> RedirectResponse:
    """Handle Google's redirect back to us.

    Flow:
      1. Exchange the authorization code for a token (authlib checks state).
      2. Extract the verified (email, name) pair -- ValueError if unverified.
      3. Find or create the local account for that email.
      4. Issue a bearer token and redirect to /auth/success.
    """
    if not google_enabled():
        return RedirectResponse(_FAIL_URL, status_code=302)

    client = request.app.state.oauth.create_client("google")
    store: AccountStore = request.app.state.account_store
    tokens: TokenService = request.app.state.tokens

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("Google token exchange failed")
        return RedirectResponse(_FAIL_URL, status_code=302)

    try:
        identity = identity_from_token(token)
    except ValueError as exc:
        logger.warning("Google login rejected: %s", exc)
        return RedirectResponse(_FAIL_URL, status_code=302)

    account = exchange(store, identity)
    logger.info("Google login for account id=%s", account.id)

    resp = RedirectResponse(f"/auth/success?{urlencode({'token': tokens.issue(account)})}", status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/google/fail")
async def google_fail() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": {"code": "oauth_failed", "message": "Google authentication failed."}},
    )


@router.get("/auth/google")
async def google_login(request: Request) -> RedirectResponse:
    """Send the browser to Google. Fails straight to /auth/google/fail when Google is not configured."""
    if not google_enabled():
        return RedirectResponse(_FAIL_URL, status_code=302)
    client = request.app.state.oauth.create_client("google")
    callback = request.url_for("google_callback")
    base = get_settings().public_base_url.rstrip("/")
    redirect_uri = f"{base}{callback.path}" if base else str(callback)
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/success", response_class=HTMLResponse)
def oauth_success(request: Request, token: str = "") -> HTMLResponse:
    """Show the bearer token so the user can copy it into an API client.

    Jinja2 autoescaping keeps a crafted ?token= value from injecting markup.
    """
    resp = templates.TemplateResponse(request, "oauth_success.html", {"token": token})
    resp.headers["Cache-Control"] = "no-store"
    return resp
