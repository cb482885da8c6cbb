"""EVE SSO login round-trip: initiate, callback, refresh, revoke."""

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from ..esi.auth import ESIAuth
from ..esi.client import ESIClient
from ..esi.exceptions import (
    AuthStateExpiredError,
    CorporationAccessDeniedError,
    ESINotConfiguredError,
    MissingAuthStateError,
    StateMismatchError,
)
from ..esi.models import AuthState, ESIConfig, TokenSet
from ..esi.pkce import generate_pkce, generate_state
from ..esi.scopes import ScopeType, get_scopes, parse_scope_type
from .corp_validation import validate_esi_user
from .models import CorporationConfig, User
from .session import SESSION_HOURS, create_session

logger = logging.getLogger(__name__)

AUTH_STATE_TTL = 300  # seconds


class AuthStateStore(Protocol):
    """Holds at most one in-flight AuthState per browser session."""

    def save_auth_state(self, session_id: str, auth_state: AuthState) -> None: ...

    def pop_auth_state(self, session_id: str) -> AuthState | None: ...


class MemoryAuthStateStore:
    """In-process AuthState store."""

    def __init__(self):
        self._states: dict[str, AuthState] = {}
        self._lock = threading.Lock()

    def save_auth_state(self, session_id: str, auth_state: AuthState) -> None:
        with self._lock:
            self._states[session_id] = auth_state

    def pop_auth_state(self, session_id: str) -> AuthState | None:
        with self._lock:
            return self._states.pop(session_id, None)


class LoginFlow:
    """
    Drives one EVE SSO login per browser session.

    Callback stages run strictly in order: token exchange, identity,
    roles, corporation validation, session creation.
    """

    def __init__(
        self,
        config: ESIConfig,
        auth: ESIAuth,
        client: ESIClient,
        store: AuthStateStore,
        state_ttl: float = AUTH_STATE_TTL,
        session_hours: float = SESSION_HOURS,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.auth = auth
        self.client = client
        self.store = store
        self.state_ttl = state_ttl
        self.session_hours = session_hours
        self._clock = clock

    def initiate_login(self, session_id: str, scope_type: ScopeType | str = ScopeType.BASIC) -> str:
        """
        Start a login and return the SSO authorize URL.

        Any unconsumed attempt for the same browser session is replaced.

        Raises:
            ESINotConfiguredError: If no client id is configured
            UnknownScopeTierError: If scope_type is not a known tier
        """
        if not self.config.is_configured:
            raise ESINotConfiguredError()

        scope_type = parse_scope_type(scope_type)
        scopes = get_scopes(scope_type)
        pkce = generate_pkce()
        auth_state = AuthState(
            state=generate_state(),
            code_verifier=pkce.verifier,
            code_challenge=pkce.challenge,
            timestamp=self._clock(),
            scope_type=scope_type,
            scopes=scopes,
        )
        self.store.save_auth_state(session_id, auth_state)

        logger.info("Initiating EVE SSO login with scope type %s", scope_type.value)
        return self.auth.get_authorization_url(scopes, auth_state.code_challenge, auth_state.state)

    async def handle_callback(
        self,
        session_id: str,
        code: str,
        state: str,
        registered_corps: list[CorporationConfig],
    ) -> User:
        """
        Complete a login from the SSO callback.

        The stored AuthState is consumed before anything else, so it is
        cleared on success and on every failure path.

        Args:
            session_id: Browser session that initiated the login
            code: Authorization code from the callback
            state: State from the callback
            registered_corps: Snapshot of registered corporations

        Returns:
            User for the new session. If the corporation is not yet
            registered, the caller must register it.

        Raises:
            MissingAuthStateError: No login in flight for this session
            StateMismatchError: State does not match (CSRF)
            AuthStateExpiredError: Attempt older than the TTL
            TokenExchangeError: Code exchange rejected
            IdentityResolutionError: Character could not be resolved
            CorporationAccessDeniedError: Corporation not allowed
        """
        auth_state = self.store.pop_auth_state(session_id)
        if auth_state is None:
            raise MissingAuthStateError()

        if state != auth_state.state:
            logger.warning("State mismatch on callback (expected %s)", auth_state.state[:8])
            raise StateMismatchError()

        if auth_state.is_expired(self._clock(), self.state_ttl):
            raise AuthStateExpiredError()

        tokens = await self.auth.exchange_code(code, auth_state.code_verifier, self.config.redirect_uri)
        if not tokens.scopes:
            tokens.scopes = list(auth_state.scopes)

        identity = await self.client.resolve_identity(tokens.access_token)
        roles = await self.client.resolve_roles(
            identity.character_id, identity.corporation_id, tokens.access_token
        )

        result = validate_esi_user(identity, roles, registered_corps)
        if not result.is_valid:
            await self.revoke_token(tokens.access_token)
            raise CorporationAccessDeniedError(result.reason)

        user = create_session(identity, result.suggested_role, tokens, session_hours=self.session_hours)
        logger.info(
            "ESI authentication successful: %s of %s as %s",
            user.character_name, user.corporation_name, user.role.value,
        )
        return user

    async def refresh_token(self, refresh_token: str) -> TokenSet:
        """Renew tokens. Raises TokenExchangeError on failure; no retry."""
        return await self.auth.refresh(refresh_token)

    async def revoke_token(self, access_token: str) -> None:
        """Best-effort server-side revocation."""
        await self.auth.revoke_token(access_token)
