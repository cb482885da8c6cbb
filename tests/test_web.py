"""Tests for the Litestar routes."""

from __future__ import annotations

from collections.abc import Iterator

import httpx
import pytest
from litestar.testing import TestClient

from lmeve.auth.models import CorporationConfig
from lmeve.auth.provider import AuthProvider
from lmeve.auth.roles import Role
from lmeve.web.auth_routes import SESSION_COOKIE
from lmeve.web.server import create_app
from tests.conftest import CORPORATION_ID, state_from_url


@pytest.fixture()
def client(provider: AuthProvider, monkeypatch) -> Iterator[TestClient]:
    monkeypatch.setenv("LMEVE_ADMIN_PASSWORD", "admin-pw")
    with TestClient(app=create_app(provider=provider)) as test_client:
        yield test_client


def login(client: TestClient, username: str = "admin", password: str = "admin-pw") -> dict:
    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return response.json()


class TestStatus:
    def test_anonymous(self, client: TestClient) -> None:
        data = client.get("/auth/status").json()

        assert data["authenticated"] is False
        assert data["user"] is None
        assert data["tabs"] == ["dashboard"]
        assert data["configured"] is True

    def test_root_without_callback_params(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["authenticated"] is False

    def test_signed_in_admin(self, client: TestClient) -> None:
        login(client)

        data = client.get("/auth/status").json()

        assert data["authenticated"] is True
        assert data["user"]["role"] == "super_admin"
        assert "debug" in data["tabs"]
        assert "access_token" not in data["user"]


class TestCredentials:
    def test_login_sets_session_cookie(self, client: TestClient) -> None:
        response = client.post("/auth/login", json={"username": "admin", "password": "admin-pw"})

        assert response.status_code == 200
        assert SESSION_COOKIE in response.cookies
        assert "httponly" in response.headers["set-cookie"].lower()

    def test_bad_password(self, client: TestClient) -> None:
        response = client.post("/auth/login", json={"username": "admin", "password": "nope"})
        assert response.status_code == 401

    def test_logout(self, client: TestClient) -> None:
        login(client)

        assert client.post("/auth/logout").status_code == 200
        assert client.get("/auth/status").json()["authenticated"] is False


class TestSsoRoutes:
    def test_login_returns_authorize_url(self, client: TestClient) -> None:
        response = client.get("/auth/login", params={"scope_type": "enhanced"})

        assert response.status_code == 200
        assert response.json()["auth_url"].startswith("https://login.eveonline.com/v2/oauth/authorize?")
        assert SESSION_COOKIE in response.cookies

    def test_unknown_scope_tier(self, client: TestClient) -> None:
        assert client.get("/auth/login", params={"scope_type": "god"}).status_code == 400

    def test_not_configured(self, client: TestClient, provider: AuthProvider) -> None:
        provider.config.esi.client_id = ""
        assert client.get("/auth/login").status_code == 400

    def test_callback_without_login(self, client: TestClient) -> None:
        response = client.get("/", params={"code": "c", "state": "s"})
        assert response.status_code == 400

    def test_callback_requires_both_params(self, client: TestClient) -> None:
        assert client.get("/", params={"code": "c"}).status_code == 400

    def test_forged_state(self, client: TestClient) -> None:
        client.get("/auth/login")

        response = client.get("/", params={"code": "c", "state": "forged"})

        assert response.status_code == 400
        assert "CSRF" in response.json()["detail"]

    def test_full_login(self, client: TestClient, provider: AuthProvider, mock_sso) -> None:
        provider.register_corporation(CorporationConfig(CORPORATION_ID, "Test Corp"))
        state = state_from_url(client.get("/auth/login").json()["auth_url"])

        mock_sso(roles=["Accountant"])
        response = client.get("/", params={"code": "c", "state": state})

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "corp_manager"
        status = client.get("/auth/status").json()
        assert status["user"]["character_name"] == "Test Pilot"
        assert status["missing_scopes"] == ["esi-corporations.read_corporation_membership.v1"]
        assert status["token_expired"] is False

    def test_unregistered_member_forbidden(self, client: TestClient, mock_sso) -> None:
        state = state_from_url(client.get("/auth/login").json()["auth_url"])

        mock_sso(roles=[])
        response = client.get("/", params={"code": "c", "state": state})

        assert response.status_code == 403
        assert "not registered" in response.json()["detail"]

    def test_sso_unreachable_during_exchange(self, client: TestClient, mock_sso) -> None:
        state = state_from_url(client.get("/auth/login").json()["auth_url"])

        routes = mock_sso()
        routes["token"].side_effect = httpx.ConnectError("connection refused")
        response = client.get("/", params={"code": "c", "state": state})

        assert response.status_code == 400
        assert "SSO unreachable" in response.json()["detail"]

    def test_character_linked_to_another_user(
        self, client: TestClient, provider: AuthProvider, mock_sso
    ) -> None:
        provider.register_corporation(CorporationConfig(CORPORATION_ID, "Test Corp"))
        mock_sso()
        state = state_from_url(client.get("/auth/login").json()["auth_url"])
        assert client.get("/", params={"code": "c", "state": state}).status_code == 200

        client.cookies.clear()
        login(client)
        state = state_from_url(client.get("/auth/login").json()["auth_url"])
        response = client.get("/", params={"code": "c", "state": state})

        assert response.status_code == 409
        assert client.get("/auth/status").json()["user"]["username"] == "admin"

    def test_refresh_without_session(self, client: TestClient) -> None:
        assert client.post("/auth/refresh").status_code == 401


class TestAdminRoutes:
    def test_requires_sign_in(self, client: TestClient) -> None:
        assert client.get("/api/users").status_code == 401
        assert client.get("/api/corporations").status_code == 401

    def test_requires_permission(self, client: TestClient, provider: AuthProvider) -> None:
        provider.create_manual_user("bob", "pw", Role.CORP_MEMBER)
        login(client, "bob", "pw")

        assert client.get("/api/users").status_code == 403
        assert client.get("/api/corporations").status_code == 403

    def test_corporation_lifecycle(self, client: TestClient) -> None:
        login(client)

        created = client.post(
            "/api/corporations",
            json={"corporation_id": CORPORATION_ID, "corporation_name": "Test Corp"},
        )
        assert created.status_code == 201
        assert created.json()["is_active"] is True

        duplicate = client.post(
            "/api/corporations",
            json={"corporation_id": CORPORATION_ID, "corporation_name": "Test Corp"},
        )
        assert duplicate.status_code == 409

        renamed = client.patch(
            f"/api/corporations/{CORPORATION_ID}", json={"corporation_name": "New Name"}
        )
        assert renamed.json()["corporation_name"] == "New Name"

        deactivated = client.delete(f"/api/corporations/{CORPORATION_ID}")
        assert deactivated.status_code == 200
        listed = client.get("/api/corporations").json()
        assert listed[0]["is_active"] is False

        assert client.delete(f"/api/corporations/{CORPORATION_ID}", params={"hard": "true"}).status_code == 200
        assert client.get("/api/corporations").json() == []
        assert client.delete("/api/corporations/1").status_code == 404

    def test_user_management(self, client: TestClient) -> None:
        admin = login(client)["user"]

        created = client.post(
            "/api/users", json={"username": "carol", "password": "pw", "role": "corp_member"}
        )
        assert created.status_code == 201
        user_id = created.json()["id"]

        assert client.post(
            "/api/users", json={"username": "carol", "password": "pw", "role": "guest"}
        ).status_code == 409

        promoted = client.put(f"/api/users/{user_id}/role", json={"role": "corp_director"})
        assert promoted.json()["permissions"]["can_view_financials"] is True

        assert client.put(f"/api/users/{user_id}/role", json={"role": "emperor"}).status_code == 400
        assert client.delete(f"/api/users/{admin['id']}").status_code == 403
        assert client.delete(f"/api/users/{user_id}").status_code == 200
        assert [u["username"] for u in client.get("/api/users").json()] == ["admin"]
