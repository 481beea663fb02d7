"""
tests/test_web_oauth.py -- Integration tests for the browser Google sign-in flow.

The OAuth registry on app.state is a MagicMock (see conftest._patch_lifespan),
so these tests drive web/routes.py without any network traffic. We assert on
redirect Location headers directly; the client does not follow redirects.

Coverage:
  - Google not configured -> every entry point lands on /auth/google/fail
  - /auth/google/fail answers JSON 401 oauth_failed
  - Callback with a verified identity -> 302 /auth/success?token=..., account created once
  - Callback with an unverified email or a provider error -> 302 /auth/google/fail
  - /auth/success escapes the token it echoes
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from authlib.integrations.starlette_client import OAuthError
from fastapi.responses import RedirectResponse

import web.routes


@pytest.fixture
def google(api_client, monkeypatch):
    """Enable Google and return the mocked provider client used by the routes."""
    client, _, _ = api_client
    provider = MagicMock()
    registry = MagicMock()
    registry.create_client.return_value = provider
    monkeypatch.setattr(web.routes, "google_enabled", lambda: True)
    monkeypatch.setattr(client.app.state, "oauth", registry)
    return provider


def _userinfo(email: str, verified: bool = True, name: str | None = "Grace Hopper") -> dict:
    info = {"email": email, "email_verified": verified}
    if name is not None:
        info["name"] = name
    return {"access_token": "at", "userinfo": info}


class TestGoogleDisabled:
    def test_login_redirects_to_fail(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/auth/google")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/google/fail"

    def test_callback_redirects_to_fail(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/auth/google/callback?code=abc&state=xyz")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/google/fail"

    def test_fail_route(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/auth/google/fail")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "oauth_failed"


class TestGoogleLogin:
    def test_login_hands_off_to_provider(self, api_client, google) -> None:
        client, _, _ = api_client
        google.authorize_redirect = AsyncMock(
            return_value=RedirectResponse("https://accounts.google.com/o/oauth2/v2/auth?state=s", status_code=302)
        )
        resp = client.get("/auth/google")
        assert resp.status_code == 302
        assert resp.headers["location"].startswith("https://accounts.google.com/")
        redirect_uri = google.authorize_redirect.await_args.args[1]
        assert redirect_uri.endswith("/auth/google/callback")

    def test_callback_url_uses_public_base_url(self, api_client, google, monkeypatch) -> None:
        client, _, _ = api_client
        settings = SimpleNamespace(public_base_url="https://libris.example.org/")
        monkeypatch.setattr(web.routes, "get_settings", lambda: settings)
        google.authorize_redirect = AsyncMock(
            return_value=RedirectResponse("https://accounts.google.com/", status_code=302)
        )
        client.get("/auth/google")
        assert google.authorize_redirect.await_args.args[1] == "https://libris.example.org/auth/google/callback"


class TestGoogleCallback:
    def test_verified_identity_creates_account_and_issues_token(self, api_client, google) -> None:
        client, _, _ = api_client
        google.authorize_access_token = AsyncMock(return_value=_userinfo("grace@x.com"))

        resp = client.get("/auth/google/callback?code=abc&state=xyz")
        assert resp.status_code == 302
        location = urlparse(resp.headers["location"])
        assert location.path == "/auth/success"
        assert resp.headers["Cache-Control"] == "no-store"
        token = parse_qs(location.query)["token"][0]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "grace@x.com"
        assert me.json()["name"] == "Grace Hopper"
        assert me.json()["role"] == "user"

        account = client.app.state.account_store.get_by_email("grace@x.com")
        assert account.password_hash is None

    def test_second_login_reuses_account(self, api_client, google) -> None:
        client, _, _ = api_client
        google.authorize_access_token = AsyncMock(return_value=_userinfo("repeat@x.com", name=None))

        ids = []
        for _ in range(2):
            resp = client.get("/auth/google/callback?code=abc&state=xyz")
            token = parse_qs(urlparse(resp.headers["location"]).query)["token"][0]
            ids.append(client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}).json()["id"])

        assert ids[0] == ids[1]
        assert client.app.state.account_store.get_by_email("repeat@x.com").name == "repeat"

    def test_existing_password_account_is_reused(self, api_client, google) -> None:
        client, _, _ = api_client
        reg = client.post("/api/v1/auth/register", json={"email": "both@x.com", "password": "pw123456"})
        google.authorize_access_token = AsyncMock(return_value=_userinfo("both@x.com"))

        resp = client.get("/auth/google/callback?code=abc&state=xyz")
        token = parse_qs(urlparse(resp.headers["location"]).query)["token"][0]
        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["id"] == reg.json()["user"]["id"]

        login = client.post("/api/v1/auth/login", json={"email": "both@x.com", "password": "pw123456"})
        assert login.status_code == 200, "Google sign-in must not clear the stored password"

    def test_unverified_email_fails(self, api_client, google) -> None:
        client, _, _ = api_client
        google.authorize_access_token = AsyncMock(return_value=_userinfo("unverified@x.com", verified=False))
        resp = client.get("/auth/google/callback?code=abc&state=xyz")
        assert resp.headers["location"] == "/auth/google/fail"
        assert client.app.state.account_store.get_by_email("unverified@x.com") is None

    def test_provider_error_fails(self, api_client, google) -> None:
        client, _, _ = api_client
        google.authorize_access_token = AsyncMock(side_effect=OAuthError(error="mismatching_state"))
        resp = client.get("/auth/google/callback?error=access_denied")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/google/fail"


class TestSuccessPage:
    def test_token_is_shown(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/auth/success?token=abc.def.ghi")
        assert resp.status_code == 200
        assert "abc.def.ghi" in resp.text
        assert resp.headers["Cache-Control"] == "no-store"

    def test_token_is_escaped(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/auth/success", params={"token": "<script>alert(1)</script>"})
        assert "<script>alert(1)</script>" not in resp.text
        assert "&lt;script&gt;" in resp.text

    def test_no_token(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/auth/success")
        assert resp.status_code == 200
        assert "No token" in resp.text
