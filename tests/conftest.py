"""Shared fixtures for LMeve tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from urllib.parse import parse_qs, urlparse

import pytest
import respx
from httpx import Response

from lmeve.auth.provider import AuthProvider
from lmeve.config import AppConfig
from lmeve.database import Database
from lmeve.esi.auth import ESIAuth
from lmeve.esi.client import ESIClient
from lmeve.esi.models import ESIConfig

SSO = "https://login.eveonline.com"
ESI = "https://esi.evetech.net"

CHARACTER_ID = 90000001
CORPORATION_ID = 98000001
ALLIANCE_ID = 99000001


class FakeClock:
    """Controllable stand-in for time.time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def state_from_url(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


@pytest.fixture()
def esi_config() -> ESIConfig:
    return ESIConfig(
        client_id="test-client-id",
        client_secret="",
        sso_base=SSO,
        esi_base=ESI,
        app_origin="http://localhost:8080",
    )


@pytest.fixture()
def app_config(esi_config: ESIConfig) -> AppConfig:
    return AppConfig(esi=esi_config)


@pytest.fixture()
def db(tmp_path) -> Database:
    return Database(tmp_path / "lmeve.db")


@pytest.fixture()
def esi_auth(esi_config: ESIConfig) -> ESIAuth:
    return ESIAuth(esi_config)


@pytest.fixture()
def esi_client(esi_config: ESIConfig, esi_auth: ESIAuth) -> ESIClient:
    return ESIClient(esi_config, esi_auth)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def provider(
    app_config: AppConfig,
    db: Database,
    esi_auth: ESIAuth,
    esi_client: ESIClient,
    clock: FakeClock,
) -> AuthProvider:
    return AuthProvider(app_config, db, esi_auth, esi_client, clock=clock)


@pytest.fixture()
def sso_router() -> Iterator[respx.MockRouter]:
    """Active respx router. Not every route registered on it has to be hit."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture()
def mock_sso(sso_router: respx.MockRouter) -> Callable[..., dict[str, respx.Route]]:
    """Register routes for a complete SSO login and identity lookup."""

    def _mock(
        character_id: int = CHARACTER_ID,
        character_name: str = "Test Pilot",
        corporation_id: int = CORPORATION_ID,
        corporation_name: str = "Test Corp",
        alliance_id: int | None = ALLIANCE_ID,
        roles: list[str] | None = None,
        token_scope: str | None = None,
        verify_scopes: str = "publicData esi-characters.read_corporation_roles.v1",
        statuses: dict[str, int] | None = None,
    ) -> dict[str, respx.Route]:
        statuses = statuses or {}

        def reply(name: str, **kwargs) -> Response:
            return Response(statuses.get(name, 200), **kwargs)

        token_payload = {
            "access_token": f"access-{character_id}",
            "refresh_token": f"refresh-{character_id}",
            "expires_in": 1199,
            "token_type": "Bearer",
        }
        if token_scope is not None:
            token_payload["scope"] = token_scope

        character = {"name": character_name, "corporation_id": corporation_id}
        if alliance_id:
            character["alliance_id"] = alliance_id

        routes = {
            "token": sso_router.post(f"{SSO}/v2/oauth/token").mock(
                return_value=reply("token", json=token_payload)
            ),
            "verify": sso_router.get(f"{SSO}/oauth/verify").mock(
                return_value=reply(
                    "verify",
                    json={
                        "CharacterID": character_id,
                        "CharacterName": character_name,
                        "Scopes": verify_scopes,
                    },
                )
            ),
            "character": sso_router.get(f"{ESI}/latest/characters/{character_id}/").mock(
                return_value=reply("character", json=character)
            ),
            "roles": sso_router.get(f"{ESI}/latest/characters/{character_id}/roles/").mock(
                return_value=reply("roles", json={"roles": roles or []})
            ),
            "corporation": sso_router.get(f"{ESI}/latest/corporations/{corporation_id}/").mock(
                return_value=reply("corporation", json={"name": corporation_name})
            ),
            "revoke": sso_router.post(f"{SSO}/v2/oauth/revoke").mock(
                return_value=reply("revoke")
            ),
        }
        if alliance_id:
            routes["alliance"] = sso_router.get(f"{ESI}/latest/alliances/{alliance_id}/").mock(
                return_value=reply("alliance", json={"name": "Test Alliance"})
            )
        return routes

    return _mock
