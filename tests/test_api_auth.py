"""Integration tests for /api/v1/auth/* -- register, login, logout, me.

Uses the module-scoped api_client fixture from conftest.py; every test picks
its own email so the shared database never causes cross-test collisions.
"""

from auth.credentials import register
from auth.models import Account, ManualRegistration


def _me(client, token: str):
    return client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})


class TestRegisterLoginScenario:
    def test_register_then_login_yields_two_working_tokens(self, api_client) -> None:
        client, _, _ = api_client

        reg = client.post(
            "/api/v1/auth/register", json={"email": "a@x.com", "password": "pw123456", "name": "A"}
        )
        assert reg.status_code == 201, reg.text
        body = reg.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] > 0
        assert body["user"]["email"] == "a@x.com"
        assert body["user"]["role"] == "user"
        assert "password" not in reg.text
        t1 = body["token"]

        login = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": "pw123456"})
        assert login.status_code == 200, login.text
        t2 = login.json()["token"]
        assert t1 != t2, "each issue must produce a distinct token"

        me1 = _me(client, t1)
        me2 = _me(client, t2)
        assert me1.status_code == 200
        assert me2.status_code == 200
        assert me1.json() == me2.json()
        assert me1.json()["id"] == body["user"]["id"]

        wrong = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": "wrong-pw"})
        assert wrong.status_code == 401
        assert wrong.json()["error"]["code"] == "invalid_credentials"

        dup = client.post("/api/v1/auth/register", json={"email": "a@x.com", "password": "another123", "name": "B"})
        assert dup.status_code == 409
        assert dup.json()["error"]["code"] == "conflict"

        forbidden = client.delete("/api/v1/admin-only", headers={"Authorization": f"Bearer {t1}"})
        assert forbidden.status_code == 403


class TestRegister:
    def test_token_responses_are_not_cached(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/register", json={"email": "nocache@x.com", "password": "pw123456"})
        assert resp.status_code == 201
        assert resp.headers["Cache-Control"] == "no-store"

    def test_name_defaults_to_local_part(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/register", json={"email": "dora@x.com", "password": "pw123456"})
        assert resp.json()["user"]["name"] == "dora"

    def test_role_can_be_requested(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/v1/auth/register", json={"email": "boss@x.com", "password": "pw123456", "role": "admin"}
        )
        assert resp.status_code == 201
        token = resp.json()["token"]
        assert client.delete("/api/v1/admin-only", headers={"Authorization": f"Bearer {token}"}).status_code == 200

    def test_unknown_role_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/v1/auth/register", json={"email": "odd@x.com", "password": "pw123456", "role": "superuser"}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_invalid_email_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": "pw123456"})
        assert resp.status_code == 400

    def test_short_password_is_400_and_not_echoed(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/register", json={"email": "short@x.com", "password": "s3cr"})
        assert resp.status_code == 400
        assert "password" in resp.json()["error"]["message"]
        assert "s3cr" not in resp.text

    def test_missing_password_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/register", json={"email": "nopw@x.com"})
        assert resp.status_code == 400

    def test_unknown_field_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/v1/auth/register", json={"email": "extra@x.com", "password": "pw123456", "is_admin": True}
        )
        assert resp.status_code == 400


class TestLogin:
    def test_admin_login(self, api_client, admin_credentials) -> None:
        client, _, admin_id = api_client
        resp = client.post("/api/v1/auth/login", json=admin_credentials)
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == admin_id
        assert resp.json()["user"]["role"] == "admin"

    def test_unknown_email_same_error_as_wrong_password(self, api_client, admin_credentials) -> None:
        client, _, _ = api_client
        unknown = client.post("/api/v1/auth/login", json={"email": "nobody@x.com", "password": "pw123456"})
        wrong = client.post("/api/v1/auth/login", json={"email": admin_credentials["email"], "password": "pw123456"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    def test_google_only_account_cannot_password_login(self, api_client) -> None:
        client, _, _ = api_client
        client.app.state.account_store.create_account(Account(email="goog@x.com", name="Goog"))
        resp = client.post("/api/v1/auth/login", json={"email": "goog@x.com", "password": "anything1"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_credentials"

    def test_empty_password_is_400(self, api_client, admin_credentials) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/login", json={"email": admin_credentials["email"], "password": ""})
        assert resp.status_code == 400

    def test_login_finds_account_created_outside_the_api(self, api_client) -> None:
        """Accounts registered by the CLI or Google are stored in the form the login body normalizes to."""
        client, _, _ = api_client
        register(
            client.app.state.account_store,
            ManualRegistration(email="Mixed@Corp.COM", password="pw123456", name="Mixed"),
        )
        resp = client.post("/api/v1/auth/login", json={"email": "Mixed@Corp.COM", "password": "pw123456"})
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["email"] == "Mixed@corp.com"


class TestMeAndLogout:
    def test_me_requires_auth(self, api_client) -> None:
        client, _, _ = api_client
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_me_never_exposes_hash(self, api_client) -> None:
        client, token, _ = api_client
        resp = _me(client, token)
        assert resp.status_code == 200
        assert set(resp.json()) == {"id", "email", "name", "role"}

    def test_logout(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "message": "Logged out."}

    def test_logout_accepts_get(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out."
