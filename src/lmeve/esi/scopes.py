"""EVE SSO scope tiers requested at login."""

from enum import Enum

from .exceptions import UnknownScopeTierError


class ScopeType(str, Enum):
    """Login scope tiers. Each tier includes every scope of the one below."""

    BASIC = "basic"
    ENHANCED = "enhanced"
    CORPORATION = "corporation"


# Character identity and in-corporation roles
BASIC_SCOPES: list[str] = [
    "publicData",
    "esi-characters.read_corporation_roles.v1",
]

ENHANCED_SCOPES: list[str] = BASIC_SCOPES + [
    "esi-industry.read_character_jobs.v1",
    "esi-wallet.read_character_wallet.v1",
    "esi-assets.read_assets.v1",
    "esi-characters.read_blueprints.v1",
]

CORPORATION_SCOPES: list[str] = ENHANCED_SCOPES + [
    "esi-corporations.read_corporation_membership.v1",
    "esi-corporations.track_members.v1",
    "esi-corporations.read_titles.v1",
    "esi-corporations.read_divisions.v1",
    "esi-corporations.read_structures.v1",
    "esi-corporations.read_starbases.v1",
    "esi-corporations.read_facilities.v1",
    "esi-corporations.read_blueprints.v1",
    "esi-corporations.read_container_logs.v1",
    "esi-corporations.read_standings.v1",
    "esi-corporations.read_medals.v1",
    "esi-assets.read_corporation_assets.v1",
    "esi-industry.read_corporation_jobs.v1",
    "esi-industry.read_corporation_mining.v1",
    "esi-wallet.read_corporation_wallets.v1",
    "esi-killmails.read_corporation_killmails.v1",
    "esi-contracts.read_corporation_contracts.v1",
    "esi-markets.read_corporation_orders.v1",
    "esi-planets.read_customs_offices.v1",
    "esi-universe.read_structures.v1",
]

SCOPE_TIERS: dict[ScopeType, list[str]] = {
    ScopeType.BASIC: BASIC_SCOPES,
    ScopeType.ENHANCED: ENHANCED_SCOPES,
    ScopeType.CORPORATION: CORPORATION_SCOPES,
}


def parse_scope_type(scope_type: "ScopeType | str") -> ScopeType:
    """
    Normalize a tier name to ScopeType.

    Raises:
        UnknownScopeTierError: If the name is not a known tier
    """
    if isinstance(scope_type, ScopeType):
        return scope_type
    try:
        return ScopeType(scope_type)
    except ValueError:
        raise UnknownScopeTierError(str(scope_type)) from None


def get_scopes(scope_type: "ScopeType | str") -> list[str]:
    """Return a copy of the ordered scope list for a tier."""
    return list(SCOPE_TIERS[parse_scope_type(scope_type)])
