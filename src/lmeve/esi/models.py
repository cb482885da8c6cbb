"""Data models for EVE Online SSO authentication and the ESI API."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from dotenv import load_dotenv

from .scopes import ScopeType

# Load .env file (no-op if not present)
load_dotenv()


@dataclass
class ESIConfig:
    """ESI OAuth2 configuration. Loads client_id/client_secret from .env file."""

    client_id: str = field(default_factory=lambda: os.getenv("ESI_CLIENT_ID", ""))
    client_secret: str = field(
        default_factory=lambda: os.getenv("ESI_CLIENT_SECRET", ""), repr=False
    )
    sso_base: str = "https://login.eveonline.com"
    esi_base: str = "https://esi.evetech.net"
    app_origin: str = "http://localhost:8080"
    user_agent: str = "LMeve/1.0 (https://github.com/dstevens79/lmeve)"
    default_scope_type: ScopeType = ScopeType.BASIC

    @property
    def redirect_uri(self) -> str:
        """SSO callback: the root of the hosting origin."""
        return f"{self.app_origin.rstrip('/')}/"

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id)


@dataclass
class AuthState:
    """One in-flight login round-trip, keyed by browser session."""

    state: str
    code_verifier: str
    code_challenge: str
    timestamp: float
    scope_type: ScopeType
    scopes: list[str] = field(default_factory=list)

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        """Check whether the attempt is older than the allowed window."""
        return now - self.timestamp > ttl_seconds


@dataclass
class TokenSet:
    """OAuth2 tokens returned by the SSO token endpoint."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    scopes: list[str] = field(default_factory=list)

    def is_expired(self, margin_seconds: float = 0, now: datetime | None = None) -> bool:
        """Check if the access token is expired (or within margin of it)."""
        now = now or datetime.now()
        return now >= self.expires_at - timedelta(seconds=margin_seconds)


@dataclass(frozen=True)
class CharacterIdentity:
    """An authenticated EVE character and its corporation/alliance."""

    character_id: int
    character_name: str
    corporation_id: int
    corporation_name: str
    alliance_id: int | None = None
    alliance_name: str | None = None
    scopes: tuple[str, ...] = ()
