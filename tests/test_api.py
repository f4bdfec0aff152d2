"""HTTP-level tests: routing, response envelopes and the SSO round trip"""

import re

from apps_auth.services.end_user_auth import get_end_user_auth_engine
from apps_auth.services.ticket_store import RedisTicketStore, get_ticket_store

from conftest import DEVELOPER_PASSWORD

API = "/api/v1"


def app_headers(secret):
    return {"X-API-Secret": secret}


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "operational"


async def test_health(client):
    response = await client.get(f"{API}/health/")
    data = response.json()

    assert response.status_code == 200
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["ticket_store"] == "connected"
    assert data["service"] == "apps-auth-api"


async def test_health_reports_unreachable_ticket_store(client):
    from apps_auth.main import app
    app.dependency_overrides[get_ticket_store] = lambda: RedisTicketStore()

    data = (await client.get(f"{API}/health/")).json()
    assert data["ticket_store"] == "disconnected"
    assert data["status"] == "unhealthy"


class TestAppCredentials:
    async def test_missing_secret(self, client, app_credentials):
        app, _ = app_credentials
        response = await client.post(f"{API}/{app.api_key}/auth/login",
                                     json={"email": "a@b.c", "password": "x"})

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": "MISSING_CREDENTIALS",
            "message": "API key and secret are required",
        }

    async def test_wrong_key_and_wrong_secret_get_same_response(self, client, app_credentials):
        app, secret = app_credentials
        body = {"email": "a@b.c", "password": "x"}

        wrong_secret = await client.post(f"{API}/{app.api_key}/auth/login", json=body,
                                         headers=app_headers("nope"))
        wrong_key = await client.post(f"{API}/ak_000000000000000000000000/auth/login", json=body,
                                      headers=app_headers(secret))

        assert wrong_secret.status_code == wrong_key.status_code == 401
        assert wrong_secret.json() == wrong_key.json()
        assert wrong_secret.json()["error"] == "INVALID_CREDENTIALS"

    async def test_validation_error_envelope(self, client, app_credentials):
        app, secret = app_credentials
        response = await client.post(f"{API}/{app.api_key}/auth/register", json={"email": "a@b.c"},
                                     headers=app_headers(secret))

        assert response.status_code == 422
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "VALIDATION_ERROR"
        assert any("password" in err["loc"] for err in data["errors"])


class TestEndUserFlow:
    async def test_register_verify_login_profile(self, client, app_credentials, mailer):
        app, secret = app_credentials
        base = f"{API}/{app.api_key}"

        response = await client.post(f"{base}/auth/register", headers=app_headers(secret),
                                     json={"email": "web@example.com", "password": "web-pass", "name": "Web"})
        assert response.status_code == 201
        assert response.json()["success"] is True
        assert response.json()["data"]["user"]["email"] == "web@example.com"

        response = await client.post(f"{base}/auth/login", headers=app_headers(secret),
                                     json={"email": "web@example.com", "password": "web-pass"})
        assert response.status_code == 403
        assert response.json()["error"] == "ACCOUNT_NOT_VERIFIED"

        token = mailer.last_token("web@example.com")
        page = await client.get(f"{API}/auth/verify-email", params={"token": token})
        assert page.status_code == 200
        assert "text/html" in page.headers["content-type"]
        again = await client.get(f"{API}/auth/verify-email", params={"token": token})
        assert again.status_code == 400

        response = await client.post(f"{base}/auth/login", headers=app_headers(secret),
                                     json={"email": "WEB@example.com", "password": "web-pass"})
        assert response.status_code == 200
        access = response.json()["data"]["access_token"]

        auth = dict(app_headers(secret), Authorization=f"Bearer {access}")
        response = await client.get(f"{base}/user/profile", headers=auth)
        assert response.json()["data"]["name"] == "Web"

        response = await client.patch(f"{base}/user/profile", headers=auth, json={"name": "Renamed"})
        assert response.status_code == 200
        assert response.json()["data"]["user"]["name"] == "Renamed"

        response = await client.post(f"{base}/auth/verify-token", headers=app_headers(secret),
                                     json={"token": access})
        assert response.json()["data"]["valid"] is True

    async def test_profile_requires_token(self, client, app_credentials):
        app, secret = app_credentials
        response = await client.get(f"{API}/{app.api_key}/user/profile", headers=app_headers(secret))

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"

    async def test_password_reset_pages(self, client, app_credentials, verified_user, mailer):
        app, secret = app_credentials

        response = await client.post(f"{API}/{app.api_key}/auth/request-password-reset",
                                     headers=app_headers(secret), json={"email": "nobody@example.com"})
        generic = response.json()["message"]
        assert response.status_code == 200
        assert mailer.messages_to("nobody@example.com") == []

        response = await client.post(f"{API}/{app.api_key}/auth/request-password-reset",
                                     headers=app_headers(secret), json={"email": "user@example.com"})
        assert response.json()["message"] == generic
        token = mailer.last_token("user@example.com")

        bad = await client.get(f"{API}/auth/reset-password", params={"token": "0" * 64})
        assert bad.status_code == 400
        form = await client.get(f"{API}/auth/reset-password", params={"token": token})
        assert form.status_code == 200
        assert token in form.text

        done = await client.post(f"{API}/auth/reset-password", json={"token": token, "new_password": "via-web"})
        assert done.status_code == 200
        reused = await client.post(f"{API}/auth/reset-password", json={"token": token, "new_password": "again-pass"})
        assert reused.status_code == 400
        assert reused.json()["error"] == "INVALID_TOKEN"

    async def test_delete_account_pages(self, client, app_credentials, verified_user, mailer):
        app, secret = app_credentials
        await client.post(f"{API}/{app.api_key}/auth/delete-account", headers=app_headers(secret),
                          json={"email": "user@example.com"})
        token = mailer.last_token("user@example.com")

        page = await client.get(f"{API}/auth/verify-delete-email", params={"token": token})
        assert page.status_code == 200
        assert "Test App" in page.text

        wrong = await client.post(f"{API}/auth/verify-delete-email", json={"token": token, "password": "nope"})
        assert wrong.status_code == 401
        done = await client.post(f"{API}/auth/verify-delete-email",
                                 json={"token": token, "password": "user-password"})
        assert done.status_code == 200

        gone = await client.get(f"{API}/auth/verify-delete-email", params={"token": token})
        assert gone.status_code == 400


class TestDeveloperAndCPanel:
    async def _login(self, client, email="dev@example.com", password=DEVELOPER_PASSWORD):
        return await client.post(f"{API}/developer/login", json={"email": email, "password": password})

    async def test_lockout_status(self, client, developer):
        for _ in range(5):
            response = await self._login(client, password="wrong-password")
            assert response.status_code == 401
        response = await self._login(client)
        assert response.status_code == 423
        assert response.json()["error"] == "ACCOUNT_LOCKED"

    async def test_refresh_and_me(self, client, developer):
        tokens = (await self._login(client)).json()["data"]["tokens"]

        me = await client.get(f"{API}/developer/me", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
        assert me.json()["data"]["user"]["id"] == developer.id

        rotated = await client.post(f"{API}/developer/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert rotated.status_code == 200
        replay = await client.post(f"{API}/developer/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert replay.status_code == 401

    async def test_sso_round_trip(self, client, developer):
        access = (await self._login(client)).json()["data"]["tokens"]["accessToken"]

        response = await client.post(f"{API}/developer/cpanel-ticket", headers={"Authorization": f"Bearer {access}"})
        assert response.status_code == 201
        ticket = re.search(r"/sso/([0-9a-f-]+)$", response.json()["data"]["url"]).group(1)

        response = await client.post(f"{API}/cpanel/sso", json={"ticket": ticket})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["developer"]["id"] == developer.id

        cookies = response.headers.get_list("set-cookie")
        access_cookie = next(c for c in cookies if c.startswith("cpanel_access_token="))
        assert any(c.startswith("cpanel_refresh_token=") for c in cookies)
        assert "httponly" in access_cookie.lower()
        assert "samesite=none" in access_cookie.lower()

        cpanel_auth = {"Authorization": f"Bearer {data['token']}"}
        me = await client.get(f"{API}/cpanel/me", headers=cpanel_auth)
        assert me.json()["data"]["developer"]["email"] == developer.email

        replay = await client.post(f"{API}/cpanel/sso", json={"ticket": ticket})
        assert replay.status_code == 401
        assert replay.json()["error"] == "TICKET_REDEEM_FAILED"

        created = await client.post(f"{API}/cpanel/apps", headers=cpanel_auth,
                                    json={"app_name": "From cPanel", "user_edit_permissions": {"name": True}})
        assert created.status_code == 201
        new_app = created.json()["data"]
        assert new_app["api_key"].startswith("ak_")

        response = await client.post(f"{API}/{new_app['api_key']}/auth/register",
                                     headers=app_headers(new_app["api_secret"]),
                                     json={"email": "fresh@example.com", "password": "fresh-pass"})
        assert response.status_code == 201

        rotated = await client.post(f"{API}/cpanel/apps/{new_app['id']}/regenerate-secret", headers=cpanel_auth)
        assert rotated.status_code == 200
        response = await client.post(f"{API}/{new_app['api_key']}/auth/login",
                                     headers=app_headers(new_app["api_secret"]),
                                     json={"email": "fresh@example.com", "password": "fresh-pass"})
        assert response.status_code == 401

    async def test_developer_token_is_not_a_cpanel_session(self, client, developer):
        access = (await self._login(client)).json()["data"]["tokens"]["accessToken"]
        response = await client.get(f"{API}/cpanel/me", headers={"Authorization": f"Bearer {access}"})
        assert response.status_code == 401


class _BrokenEngine:
    async def login(self, *args, **kwargs):
        raise RuntimeError("database on fire")


async def test_unexpected_error_envelope(client, app_credentials):
    from apps_auth.main import app as asgi_app

    app, secret = app_credentials
    asgi_app.dependency_overrides[get_end_user_auth_engine] = lambda: _BrokenEngine()

    response = await client.post(f"{API}/{app.api_key}/auth/login", headers=app_headers(secret),
                                 json={"email": "a@b.c", "password": "x"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "INTERNAL_ERROR", "message": "Internal server error"}
