"""Roles, corporation validation and session handling for LMeve users."""

from .corp_validation import ValidationResult, validate_esi_user
from .models import AuthMethod, CorporationConfig, User
from .roles import Role, RolePermissions, get_role_permissions, map_eve_roles
from .session import create_session, is_session_valid, refresh_session

__all__ = [
    "AuthMethod",
    "CorporationConfig",
    "Role",
    "RolePermissions",
    "User",
    "ValidationResult",
    "create_session",
    "get_role_permissions",
    "is_session_valid",
    "map_eve_roles",
    "refresh_session",
    "validate_esi_user",
]
