"""Role-based access control for LMeve.

Maps EVE in-game corporation roles onto internal roles, and each internal
role onto a fixed permission set. Unknown roles or permissions deny.
"""

import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Internal user roles."""

    SUPER_ADMIN = "super_admin"
    CORP_ADMIN = "corp_admin"
    CORP_DIRECTOR = "corp_director"
    CORP_MANAGER = "corp_manager"
    CORP_MEMBER = "corp_member"
    GUEST = "guest"


@dataclass(frozen=True)
class RolePermissions:
    """Capability set granted by a role."""

    # System permissions
    can_manage_system: bool = False
    can_manage_multiple_corps: bool = False
    can_configure_esi: bool = False
    can_manage_database: bool = False

    # Corporation permissions
    can_manage_corp: bool = False
    can_manage_users: bool = False
    can_view_financials: bool = False
    can_manage_manufacturing: bool = False
    can_manage_mining: bool = False
    can_manage_assets: bool = False
    can_manage_market: bool = False
    can_view_killmails: bool = False
    can_manage_income: bool = False

    # Data permissions
    can_view_all_members: bool = False
    can_edit_all_data: bool = False
    can_export_data: bool = False
    can_delete_data: bool = False

    def as_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


PERMISSION_NAMES: frozenset[str] = frozenset(f.name for f in fields(RolePermissions))

ROLE_DEFINITIONS: dict[Role, RolePermissions] = {
    Role.SUPER_ADMIN: RolePermissions(**{name: True for name in PERMISSION_NAMES}),
    Role.CORP_ADMIN: RolePermissions(
        can_configure_esi=True,
        can_manage_corp=True,
        can_manage_users=True,
        can_view_financials=True,
        can_manage_manufacturing=True,
        can_manage_mining=True,
        can_manage_assets=True,
        can_manage_market=True,
        can_view_killmails=True,
        can_manage_income=True,
        can_view_all_members=True,
        can_edit_all_data=True,
        can_export_data=True,
    ),
    Role.CORP_DIRECTOR: RolePermissions(
        can_view_financials=True,
        can_manage_manufacturing=True,
        can_manage_mining=True,
        can_manage_assets=True,
        can_manage_market=True,
        can_view_killmails=True,
        can_manage_income=True,
        can_view_all_members=True,
        can_edit_all_data=True,
        can_export_data=True,
    ),
    Role.CORP_MANAGER: RolePermissions(
        can_manage_manufacturing=True,
        can_manage_mining=True,
        can_manage_market=True,
        can_view_killmails=True,
        can_view_all_members=True,
    ),
    Role.CORP_MEMBER: RolePermissions(can_view_killmails=True),
    Role.GUEST: RolePermissions(),
}

# EVE role tiers, lowercase. Checked in this order; first match wins.
CEO_ROLES = frozenset({"ceo", "chief_executive_officer"})
DIRECTOR_ROLES = frozenset({
    "director",
    "personnel_manager",
    "security_officer",
    "communications_officer",
})
MANAGER_ROLES = frozenset(
    {
        "factory_manager",
        "station_manager",
        "accountant",
        "junior_accountant",
        "trader",
        "config_equipment",
        "config_starbase_equipment",
    }
    | {f"hangar_take_{i}" for i in range(1, 8)}
    | {f"container_take_{i}" for i in range(1, 8)}
)

# Roles that may self-register an unregistered corporation
MANAGEMENT_ROLES = frozenset({"ceo", "director", "personnel_manager"})


def get_role_permissions(role: Role | str) -> RolePermissions:
    """Get the permission set for a role."""
    return ROLE_DEFINITIONS[Role(role)]


def _normalize(eve_roles: list[str]) -> set[str]:
    return {role.lower() for role in eve_roles}


def has_management_role(eve_roles: list[str]) -> bool:
    """Check whether the EVE roles allow corporation self-registration."""
    return bool(_normalize(eve_roles) & MANAGEMENT_ROLES)


def map_eve_roles(eve_roles: list[str]) -> Role:
    """
    Map EVE corporation roles to the highest matching internal role.

    Args:
        eve_roles: Role names as returned by the ESI roles endpoint

    Returns:
        corp_admin, corp_director, corp_manager or corp_member
    """
    normalized = _normalize(eve_roles)

    if normalized & CEO_ROLES:
        return Role.CORP_ADMIN
    if any("director" in role for role in normalized) or normalized & DIRECTOR_ROLES:
        return Role.CORP_DIRECTOR
    if normalized & MANAGER_ROLES:
        return Role.CORP_MANAGER
    return Role.CORP_MEMBER


def has_permission(user: Any, permission: str) -> bool:
    """
    Check if a user holds a permission.

    Inactive users, missing users and unknown permission names all deny.
    """
    if user is None or not getattr(user, "is_active", False):
        return False
    if permission not in PERMISSION_NAMES:
        logger.warning("Unknown permission requested: %s", permission)
        return False
    return getattr(user.permissions, permission)


TAB_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "members": ("can_view_all_members",),
    "assets": ("can_manage_assets",),
    "manufacturing": ("can_manage_manufacturing",),
    "mining": ("can_manage_mining",),
    "logistics": ("can_manage_assets",),
    "killmails": ("can_view_killmails",),
    "market": ("can_manage_market",),
    "income": ("can_manage_income", "can_view_financials"),
    "notifications": ("can_manage_corp", "can_manage_system"),
    "corporations": ("can_manage_system", "can_configure_esi"),
    "debug": ("can_manage_system",),
    "settings": ("can_manage_corp", "can_manage_system"),
}

SETTINGS_TAB_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "general": ("can_manage_corp", "can_manage_system"),
    "database": ("can_manage_database",),
    "sde": ("can_manage_system", "can_manage_database"),
    "esi": ("can_configure_esi",),
    "sync": ("can_manage_corp", "can_manage_system"),
    "notifications": ("can_manage_corp",),
    "users": ("can_manage_users",),
    "debug": ("can_manage_system",),
}


def can_access_tab(user: Any, tab: str) -> bool:
    """Check if a user can open a main navigation tab."""
    if user is None or not user.is_active:
        # Only the dashboard is visible without authentication
        return tab == "dashboard"
    if tab == "dashboard":
        return True
    return any(has_permission(user, p) for p in TAB_PERMISSIONS.get(tab, ()))


def can_access_settings_tab(user: Any, tab: str) -> bool:
    """Check if a user can open a settings sub-tab."""
    if user is None or not user.is_active:
        return False
    return any(has_permission(user, p) for p in SETTINGS_TAB_PERMISSIONS.get(tab, ()))
