"""EVE Online SSO OAuth2 PKCE authentication."""

import logging
import time
from datetime import datetime, timedelta
from urllib.parse import urlencode

import httpx
import jwt

from .exceptions import TokenExchangeError
from .models import ESIConfig, TokenSet

logger = logging.getLogger(__name__)

# EVE SSO endpoints, relative to sso_base
AUTHORIZE_PATH = "/v2/oauth/authorize"
TOKEN_PATH = "/v2/oauth/token"
REVOKE_PATH = "/v2/oauth/revoke"
VERIFY_PATH = "/oauth/verify"
JWKS_PATH = "/oauth/jwks"

JWKS_CACHE_TTL = 3600  # 1 hour
DEFAULT_TOKEN_LIFETIME = 1200  # EVE access tokens live 20 minutes


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: list[str],
    challenge: str,
    state: str,
    sso_base: str = "https://login.eveonline.com",
) -> str:
    """
    Build the EVE SSO authorize URL for a PKCE login.

    Args:
        client_id: Application client id
        redirect_uri: Registered callback URL
        scopes: Ordered scopes to request
        challenge: S256 PKCE code challenge
        state: Anti-CSRF nonce

    Returns:
        Fully encoded authorization URL
    """
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": " ".join(scopes),
        "state": state,
        "code_challenge": challenge,
        "code_challenge_method": "S256",
    }
    return f"{sso_base.rstrip('/')}{AUTHORIZE_PATH}?{urlencode(params)}"


class ESIAuth:
    """Talks to the EVE SSO endpoints: token exchange, refresh, verify, revoke."""

    def __init__(self, config: ESIConfig, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = http_client or httpx.AsyncClient(
            headers={"User-Agent": config.user_agent}
        )
        self._jwks: dict | None = None
        self._jwks_time: float = 0

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.config.sso_base.rstrip('/')}{path}"

    def _client_auth(self) -> tuple[str, str] | None:
        """HTTP Basic credentials for confidential-client deployments."""
        if self.config.client_secret:
            return (self.config.client_id, self.config.client_secret)
        return None

    def get_authorization_url(self, scopes: list[str], challenge: str, state: str) -> str:
        """Authorization URL for this application's client id and redirect URI."""
        url = build_authorization_url(
            self.config.client_id,
            self.config.redirect_uri,
            scopes,
            challenge,
            state,
            sso_base=self.config.sso_base,
        )
        logger.info("Generated authorization URL with state=%s", state[:8])
        return url

    async def exchange_code(
        self, code: str, verifier: str, redirect_uri: str | None = None
    ) -> TokenSet:
        """
        Exchange an authorization code for tokens using PKCE.

        Args:
            code: Authorization code from the callback
            verifier: PKCE code verifier stored at login initiation
            redirect_uri: Callback URL used for the authorize request

        Returns:
            TokenSet with access/refresh tokens and granted scopes

        Raises:
            TokenExchangeError: If the token endpoint rejects the request or
                returns a body without tokens, or SSO is unreachable
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": verifier,
            "redirect_uri": redirect_uri or self.config.redirect_uri,
        }
        payload = await self._token_request(data, "Token exchange")
        tokens = self._to_token_set(payload)
        logger.info("Token exchange successful")
        return tokens

    async def refresh(self, refresh_token: str) -> TokenSet:
        """
        Renew an access token.

        A failure here is terminal for the session; callers must not retry.

        Raises:
            TokenExchangeError: If the token endpoint rejects the refresh token
        """
        data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        payload = await self._token_request(data, "Token refresh")
        tokens = self._to_token_set(payload, previous_refresh=refresh_token)
        logger.debug("Token refresh successful")
        return tokens

    async def _token_request(self, data: dict, operation: str) -> dict:
        auth = self._client_auth()
        if auth is None:
            data = {**data, "client_id": self.config.client_id}

        try:
            response = await self._client.post(
                self._url(TOKEN_PATH),
                data=data,
                auth=auth,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            logger.error("%s failed: could not reach SSO: %s", operation, e)
            raise TokenExchangeError(503, f"SSO unreachable ({e})", operation) from e

        if not response.is_success:
            logger.error("%s failed: %s %s", operation, response.status_code, response.text)
            raise TokenExchangeError(response.status_code, response.text, operation)

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("%s failed: response is not JSON", operation)
            raise TokenExchangeError(response.status_code, "response is not valid JSON", operation) from e

        if not isinstance(payload, dict) or "access_token" not in payload:
            raise TokenExchangeError(response.status_code, "response has no access_token", operation)
        return payload

    def _to_token_set(self, payload: dict, previous_refresh: str = "") -> TokenSet:
        expires_in = int(payload.get("expires_in", DEFAULT_TOKEN_LIFETIME))
        scope = payload.get("scope")
        return TokenSet(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or previous_refresh,
            expires_at=datetime.now() + timedelta(seconds=expires_in),
            scopes=scope.split() if scope else [],
        )

    async def verify_token(self, access_token: str) -> dict:
        """
        Call the SSO verify endpoint.

        Returns:
            Verify payload with CharacterID, CharacterName and Scopes

        Raises:
            httpx.HTTPStatusError: If the token is rejected
        """
        response = await self._client.get(
            self._url(VERIFY_PATH),
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()
        return response.json()

    async def revoke_token(self, access_token: str) -> None:
        """Revoke an access token server-side. Failures are logged, never raised."""
        data = {"token_type_hint": "access_token", "token": access_token}
        auth = self._client_auth()
        if auth is None:
            data["client_id"] = self.config.client_id

        try:
            response = await self._client.post(
                self._url(REVOKE_PATH),
                data=data,
                auth=auth,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()
            logger.info("Token revoked successfully")
        except httpx.HTTPError as e:
            logger.warning("Failed to revoke token: %s", e)

    async def validate_token(self, access_token: str) -> bool:
        """
        Check an access token locally against the SSO signing keys.

        Args:
            access_token: JWT to validate

        Returns:
            True if signature, issuer and expiry all check out
        """
        try:
            jwks = await self._get_jwks()
            kid = jwt.get_unverified_header(access_token).get("kid")

            signing_key = None
            for key in jwt.PyJWKSet.from_dict(jwks).keys:
                if key.key_id == kid:
                    signing_key = key
                    break

            if signing_key is None:
                logger.warning("No matching JWK found for kid=%s", kid)
                return False

            jwt.decode(
                access_token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.config.sso_base.rstrip("/"),
                options={"verify_aud": False},
            )
            return True
        except (jwt.PyJWTError, httpx.HTTPError) as e:
            logger.debug("Access token failed validation: %s", e)
            return False

    async def _get_jwks(self) -> dict:
        if self._jwks is None or (time.time() - self._jwks_time) > JWKS_CACHE_TTL:
            response = await self._client.get(self._url(JWKS_PATH))
            response.raise_for_status()
            self._jwks = response.json()
            self._jwks_time = time.time()
            logger.debug("Fetched JWKS from %s", self._url(JWKS_PATH))
        return self._jwks
