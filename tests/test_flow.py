"""Tests for the SSO login round-trip."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from lmeve.auth.flow import LoginFlow, MemoryAuthStateStore
from lmeve.auth.models import AuthMethod, CorporationConfig
from lmeve.auth.roles import Role
from lmeve.esi.auth import ESIAuth
from lmeve.esi.client import ESIClient
from lmeve.esi.exceptions import (
    AuthStateExpiredError,
    CorporationAccessDeniedError,
    ESINotConfiguredError,
    IdentityResolutionError,
    MissingAuthStateError,
    StateMismatchError,
    TokenExchangeError,
)
from lmeve.esi.models import ESIConfig
from lmeve.esi.pkce import compute_challenge
from lmeve.esi.scopes import CORPORATION_SCOPES, ScopeType, get_scopes
from tests.conftest import CHARACTER_ID, CORPORATION_ID, FakeClock, state_from_url

SESSION = "browser-1"


@pytest.fixture()
def store() -> MemoryAuthStateStore:
    return MemoryAuthStateStore()


@pytest.fixture()
def flow(
    esi_config: ESIConfig,
    esi_auth: ESIAuth,
    esi_client: ESIClient,
    store: MemoryAuthStateStore,
    clock: FakeClock,
) -> LoginFlow:
    return LoginFlow(esi_config, esi_auth, esi_client, store, clock=clock)


@pytest.fixture()
def registered() -> list[CorporationConfig]:
    return [CorporationConfig(CORPORATION_ID, "Test Corp")]


class TestInitiateLogin:
    def test_stores_state_matching_url(self, flow: LoginFlow, store: MemoryAuthStateStore) -> None:
        url = flow.initiate_login(SESSION)

        params = parse_qs(urlparse(url).query)
        stored = store.pop_auth_state(SESSION)
        assert stored is not None
        assert params["state"] == [stored.state]
        assert params["code_challenge"] == [compute_challenge(stored.code_verifier)]
        assert params["scope"] == [" ".join(get_scopes(ScopeType.BASIC))]
        assert params["redirect_uri"] == ["http://localhost:8080/"]
        assert stored.timestamp == 1_700_000_000.0

    def test_corporation_tier(self, flow: LoginFlow, store: MemoryAuthStateStore) -> None:
        url = flow.initiate_login(SESSION, "corporation")

        assert parse_qs(urlparse(url).query)["scope"] == [" ".join(CORPORATION_SCOPES)]
        assert store.pop_auth_state(SESSION).scope_type is ScopeType.CORPORATION

    def test_new_login_replaces_previous(self, flow: LoginFlow, store: MemoryAuthStateStore) -> None:
        first = state_from_url(flow.initiate_login(SESSION))
        second = state_from_url(flow.initiate_login(SESSION))

        assert first != second
        assert store.pop_auth_state(SESSION).state == second

    def test_unknown_tier(self, flow: LoginFlow) -> None:
        with pytest.raises(ValueError):
            flow.initiate_login(SESSION, "everything")

    def test_not_configured(self, esi_config: ESIConfig, flow: LoginFlow) -> None:
        esi_config.client_id = ""
        with pytest.raises(ESINotConfiguredError):
            flow.initiate_login(SESSION)


class TestHandleCallback:
    @pytest.mark.asyncio()
    async def test_registered_member(self, flow: LoginFlow, registered, mock_sso) -> None:
        routes = mock_sso(roles=["Factory_Manager"])
        state = state_from_url(flow.initiate_login(SESSION))

        user = await flow.handle_callback(SESSION, "code", state, registered)

        assert user.auth_method is AuthMethod.ESI
        assert user.role is Role.CORP_MANAGER
        assert user.corporation_id == CORPORATION_ID
        assert user.access_token == "access-90000001"
        assert user.scopes == get_scopes(ScopeType.BASIC)
        assert routes["token"].call_count == 1

    @pytest.mark.asyncio()
    async def test_token_scopes_win_over_requested(
        self, flow: LoginFlow, registered, mock_sso
    ) -> None:
        mock_sso(token_scope="publicData")
        state = state_from_url(flow.initiate_login(SESSION, ScopeType.ENHANCED))

        user = await flow.handle_callback(SESSION, "code", state, registered)

        assert user.scopes == ["publicData"]

    @pytest.mark.asyncio()
    async def test_corporation_tier_end_to_end(self, flow: LoginFlow, registered, mock_sso) -> None:
        mock_sso(roles=["Director"])
        state = state_from_url(flow.initiate_login(SESSION, ScopeType.CORPORATION))

        user = await flow.handle_callback(SESSION, "code", state, registered)

        assert user.role is Role.CORP_DIRECTOR
        assert user.scopes == CORPORATION_SCOPES

    @pytest.mark.asyncio()
    async def test_ceo_of_unregistered_corporation(self, flow: LoginFlow, mock_sso) -> None:
        mock_sso(roles=["CEO"])
        state = state_from_url(flow.initiate_login(SESSION))

        user = await flow.handle_callback(SESSION, "code", state, [])

        assert user.role is Role.CORP_ADMIN

    @pytest.mark.asyncio()
    async def test_member_of_unregistered_corporation(self, flow: LoginFlow, mock_sso) -> None:
        routes = mock_sso(roles=["Trader"])
        state = state_from_url(flow.initiate_login(SESSION))

        with pytest.raises(CorporationAccessDeniedError, match="not registered"):
            await flow.handle_callback(SESSION, "code", state, [])

        assert routes["revoke"].call_count == 1
        assert parse_qs(routes["revoke"].calls.last.request.content.decode())["token"] == [
            f"access-{CHARACTER_ID}"
        ]

    @pytest.mark.asyncio()
    async def test_no_login_in_flight(self, flow: LoginFlow, registered) -> None:
        with pytest.raises(MissingAuthStateError):
            await flow.handle_callback(SESSION, "code", "state", registered)

    @pytest.mark.asyncio()
    async def test_state_mismatch_clears_state(
        self, flow: LoginFlow, store: MemoryAuthStateStore, registered, mock_sso
    ) -> None:
        routes = mock_sso()
        flow.initiate_login(SESSION)

        with pytest.raises(StateMismatchError, match="possible CSRF attack"):
            await flow.handle_callback(SESSION, "code", "forged", registered)

        assert store.pop_auth_state(SESSION) is None
        assert routes["token"].call_count == 0

    @pytest.mark.asyncio()
    async def test_state_cannot_be_replayed(self, flow: LoginFlow, registered, mock_sso) -> None:
        mock_sso()
        state = state_from_url(flow.initiate_login(SESSION))
        await flow.handle_callback(SESSION, "code", state, registered)

        with pytest.raises(MissingAuthStateError):
            await flow.handle_callback(SESSION, "code", state, registered)

    @pytest.mark.asyncio()
    async def test_expired_state(
        self, flow: LoginFlow, clock: FakeClock, registered, mock_sso
    ) -> None:
        routes = mock_sso()
        state = state_from_url(flow.initiate_login(SESSION))
        clock.advance(301)

        with pytest.raises(AuthStateExpiredError):
            await flow.handle_callback(SESSION, "code", state, registered)
        assert routes["token"].call_count == 0

    @pytest.mark.asyncio()
    async def test_state_within_ttl(
        self, flow: LoginFlow, clock: FakeClock, registered, mock_sso
    ) -> None:
        mock_sso()
        state = state_from_url(flow.initiate_login(SESSION))
        clock.advance(299)

        user = await flow.handle_callback(SESSION, "code", state, registered)

        assert user.character_name == "Test Pilot"

    @pytest.mark.asyncio()
    async def test_sends_stored_verifier(
        self, flow: LoginFlow, store: MemoryAuthStateStore, registered, mock_sso
    ) -> None:
        routes = mock_sso()
        state = state_from_url(flow.initiate_login(SESSION))
        verifier = store._states[SESSION].code_verifier

        await flow.handle_callback(SESSION, "code", state, registered)

        sent = parse_qs(routes["token"].calls.last.request.content.decode())
        assert sent["code_verifier"] == [verifier]

    @pytest.mark.asyncio()
    async def test_exchange_failure_clears_state(
        self, flow: LoginFlow, store: MemoryAuthStateStore, registered, mock_sso
    ) -> None:
        routes = mock_sso(statuses={"token": 400})
        state = state_from_url(flow.initiate_login(SESSION))

        with pytest.raises(TokenExchangeError):
            await flow.handle_callback(SESSION, "code", state, registered)

        assert store.pop_auth_state(SESSION) is None
        assert routes["verify"].call_count == 0

    @pytest.mark.asyncio()
    async def test_identity_failure(self, flow: LoginFlow, registered, mock_sso) -> None:
        routes = mock_sso(statuses={"verify": 401})
        state = state_from_url(flow.initiate_login(SESSION))

        with pytest.raises(IdentityResolutionError):
            await flow.handle_callback(SESSION, "code", state, registered)
        assert routes["roles"].call_count == 0

    @pytest.mark.asyncio()
    async def test_roles_failure_means_member(self, flow: LoginFlow, registered, mock_sso) -> None:
        mock_sso(statuses={"roles": 403})
        state = state_from_url(flow.initiate_login(SESSION))

        user = await flow.handle_callback(SESSION, "code", state, registered)

        assert user.role is Role.CORP_MEMBER
