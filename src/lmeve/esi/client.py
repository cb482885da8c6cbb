"""HTTP client for the EVE Online ESI identity and role endpoints."""

import logging

import httpx

from .auth import ESIAuth
from .exceptions import IdentityResolutionError
from .models import CharacterIdentity, ESIConfig

logger = logging.getLogger(__name__)

ESI_DATASOURCE = "tranquility"
UNKNOWN_CORPORATION = "Unknown Corporation"


class ESIClient:
    """Resolves character, corporation, alliance and role data from ESI."""

    def __init__(
        self,
        config: ESIConfig,
        auth: ESIAuth,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.auth = auth
        self._client = http_client or httpx.AsyncClient(
            base_url=config.esi_base,
            headers={"User-Agent": config.user_agent},
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ESIClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def _request(self, path: str, access_token: str | None = None) -> dict:
        """
        Make an ESI GET request.

        Args:
            path: API path (e.g., "/latest/characters/{id}/")
            access_token: Bearer token for authenticated endpoints

        Returns:
            Parsed JSON response
        """
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        response = await self._client.get(
            path,
            params={"datasource": ESI_DATASOURCE},
            headers=headers,
        )

        # Check ESI error limit
        error_remain = response.headers.get("X-ESI-Error-Limit-Remain")
        if error_remain and int(error_remain) < 20:
            logger.warning("ESI error limit low: %s remaining", error_remain)

        if response.status_code == 403:
            raise PermissionError(f"ESI access denied: {response.text}")

        response.raise_for_status()
        return response.json()

    async def get_character(self, character_id: int) -> dict:
        """Get public info for a character."""
        return await self._request(f"/latest/characters/{character_id}/")

    async def get_character_roles(self, character_id: int, access_token: str) -> dict:
        """Get a character's in-corporation roles."""
        return await self._request(f"/latest/characters/{character_id}/roles/", access_token)

    async def get_corporation(self, corporation_id: int) -> dict:
        """Get public info for a corporation."""
        return await self._request(f"/latest/corporations/{corporation_id}/")

    async def get_alliance(self, alliance_id: int) -> dict:
        """Get public info for an alliance."""
        return await self._request(f"/latest/alliances/{alliance_id}/")

    async def resolve_identity(self, access_token: str) -> CharacterIdentity:
        """
        Resolve who the access token belongs to.

        Verify and character lookups are required; corporation and alliance
        names are best-effort.

        Args:
            access_token: Fresh SSO access token

        Returns:
            CharacterIdentity for the authenticated character

        Raises:
            IdentityResolutionError: If the verify or character lookup fails
        """
        try:
            verified = await self.auth.verify_token(access_token)
            character_id = int(verified["CharacterID"])
            character_name = verified["CharacterName"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise IdentityResolutionError(f"Failed to get character info: {e}") from e

        try:
            character = await self.get_character(character_id)
            corporation_id = int(character["corporation_id"])
        except (httpx.HTTPError, PermissionError, KeyError, ValueError) as e:
            raise IdentityResolutionError(
                f"Failed to get character details for {character_id}: {e}"
            ) from e

        alliance_id = character.get("alliance_id")
        scopes = verified.get("Scopes") or ""

        corporation_name = await self._lookup_name(self.get_corporation, corporation_id)
        alliance_name = None
        if alliance_id:
            alliance_name = await self._lookup_name(self.get_alliance, alliance_id)

        logger.info("Character info retrieved: %s (ID: %d)", character_name, character_id)
        return CharacterIdentity(
            character_id=character_id,
            character_name=character_name,
            corporation_id=corporation_id,
            corporation_name=corporation_name or UNKNOWN_CORPORATION,
            alliance_id=alliance_id,
            alliance_name=alliance_name,
            scopes=tuple(scopes.split()),
        )

    async def _lookup_name(self, fetch, entity_id: int) -> str | None:
        try:
            data = await fetch(entity_id)
            return data["name"]
        except (httpx.HTTPError, PermissionError, KeyError, TypeError, ValueError) as e:
            logger.warning("Failed to resolve name for %d: %s", entity_id, e)
            return None

    async def resolve_roles(
        self, character_id: int, corporation_id: int, access_token: str
    ) -> list[str]:
        """
        Get the character's corporation roles.

        Any failure yields an empty list: no roles means ordinary member.
        """
        try:
            data = await self.get_character_roles(character_id, access_token)
            roles = list(data.get("roles", []))
        except (httpx.HTTPError, PermissionError, AttributeError, TypeError, ValueError) as e:
            logger.warning(
                "Failed to get roles for character %d in corporation %d, using default: %s",
                character_id, corporation_id, e,
            )
            return []

        logger.debug("Character roles retrieved: %s", roles)
        return roles
