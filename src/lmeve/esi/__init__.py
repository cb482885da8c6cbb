"""EVE Online SSO authentication and ESI identity client."""

from .auth import ESIAuth, build_authorization_url
from .client import ESIClient
from .models import AuthState, CharacterIdentity, ESIConfig, TokenSet
from .scopes import ScopeType, get_scopes

__all__ = [
    "AuthState",
    "CharacterIdentity",
    "ESIAuth",
    "ESIClient",
    "ESIConfig",
    "ScopeType",
    "TokenSet",
    "build_authorization_url",
    "get_scopes",
]
