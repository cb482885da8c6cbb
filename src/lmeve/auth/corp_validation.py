"""Corporation whitelist checks for ESI logins.

A character may only sign in when its corporation is registered and
active, or when it holds a management role that allows it to register the
corporation itself.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..esi.models import CharacterIdentity
from .models import CorporationConfig
from .roles import Role, has_management_role, map_eve_roles

logger = logging.getLogger(__name__)

NOT_REGISTERED_REASON = (
    "Corporation is not registered. Contact your corporation leadership "
    "(CEO/Directors) to register with LMeve."
)

DEFAULT_REGISTERED_SCOPES = [
    "esi-characters.read_corporation_roles.v1",
    "esi-corporations.read_corporation_membership.v1",
    "esi-corporations.read_titles.v1",
    "esi-assets.read_corporation_assets.v1",
    "esi-industry.read_corporation_jobs.v1",
    "esi-wallet.read_corporation_wallets.v1",
]

MINIMUM_SCOPES = [
    "esi-characters.read_corporation_roles.v1",
    "esi-corporations.read_corporation_membership.v1",
]


@dataclass
class ValidationResult:
    """Outcome of a corporation access check."""

    is_valid: bool
    reason: str
    suggested_role: Role
    corporation_config: CorporationConfig | None = None

    @property
    def requires_registration(self) -> bool:
        """Valid, but the corporation still has to be registered."""
        return self.is_valid and self.corporation_config is None


@dataclass
class ScopeValidation:
    is_valid: bool
    missing_scopes: list[str] = field(default_factory=list)


def get_corporation_config(
    corporation_id: int, registered_corps: list[CorporationConfig]
) -> CorporationConfig | None:
    """Find the active registration for a corporation."""
    for corp in registered_corps:
        if corp.corporation_id == corporation_id and corp.is_active:
            return corp
    return None


def is_corporation_registered(
    corporation_id: int, registered_corps: list[CorporationConfig]
) -> bool:
    """Check if a corporation has an active registration."""
    return get_corporation_config(corporation_id, registered_corps) is not None


def validate_esi_user(
    identity: CharacterIdentity,
    roles: list[str],
    registered_corps: list[CorporationConfig],
) -> ValidationResult:
    """
    Validate an ESI character against the corporation whitelist.

    Args:
        identity: Resolved character identity
        roles: Character's EVE corporation roles
        registered_corps: Snapshot of registered corporations

    Returns:
        ValidationResult. A valid result without corporation_config means the
        caller must register the corporation.
    """
    corp_config = get_corporation_config(identity.corporation_id, registered_corps)

    if corp_config is None:
        if has_management_role(roles):
            logger.info(
                "%s may self-register corporation %d",
                identity.character_name, identity.corporation_id,
            )
            return ValidationResult(
                is_valid=True,
                reason="Corporation director/CEO can self-register corporation",
                suggested_role=Role.CORP_ADMIN,
            )

        logger.info(
            "Rejected %s: corporation %d not registered",
            identity.character_name, identity.corporation_id,
        )
        return ValidationResult(
            is_valid=False,
            reason=NOT_REGISTERED_REASON,
            suggested_role=Role.GUEST,
        )

    return ValidationResult(
        is_valid=True,
        reason="Valid corporation member",
        suggested_role=map_eve_roles(roles),
        corporation_config=corp_config,
    )


def create_default_corporation_config(
    corporation_id: int, corporation_name: str, now: datetime | None = None
) -> CorporationConfig:
    """Registration record for a corporation registered by its CEO/Director."""
    now = now or datetime.now()
    return CorporationConfig(
        corporation_id=corporation_id,
        corporation_name=corporation_name,
        registered_scopes=list(DEFAULT_REGISTERED_SCOPES),
        is_active=True,
        registration_date=now,
        last_token_refresh=now,
    )


def validate_required_scopes(
    user_scopes: list[str], corporation_config: CorporationConfig | None = None
) -> ScopeValidation:
    """Check that a user granted every scope the corporation registered."""
    if corporation_config and corporation_config.registered_scopes:
        required = corporation_config.registered_scopes
    else:
        required = MINIMUM_SCOPES

    missing = [scope for scope in required if scope not in user_scopes]
    return ScopeValidation(is_valid=not missing, missing_scopes=missing)


def get_validation_error_message(
    result: ValidationResult, scope_validation: ScopeValidation | None = None
) -> str:
    if not result.is_valid:
        return result.reason or "Corporation validation failed"

    if scope_validation and not scope_validation.is_valid:
        return (
            f"Missing required ESI scopes: {', '.join(scope_validation.missing_scopes)}. "
            "Please re-authenticate with the correct scopes."
        )

    return "Validation successful"
