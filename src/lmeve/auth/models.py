"""User and corporation records."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .roles import Role, RolePermissions, get_role_permissions


class AuthMethod(str, Enum):
    """How a user signed in."""

    MANUAL = "manual"
    ESI = "esi"


@dataclass
class CorporationConfig:
    """A corporation registered to use the system."""

    corporation_id: int
    corporation_name: str
    registered_scopes: list[str] = field(default_factory=list)
    is_active: bool = True
    registration_date: datetime = field(default_factory=datetime.now)
    last_token_refresh: datetime | None = None


@dataclass
class User:
    """An authenticated principal, from either a manual account or EVE SSO."""

    id: str
    role: Role
    auth_method: AuthMethod
    session_expiry: datetime
    last_login: datetime
    username: str | None = None
    character_id: int | None = None
    character_name: str | None = None
    corporation_id: int | None = None
    corporation_name: str | None = None
    alliance_id: int | None = None
    alliance_name: str | None = None

    # ESI tokens (when applicable)
    access_token: str | None = None
    refresh_token: str | None = None
    token_expiry: datetime | None = None
    scopes: list[str] = field(default_factory=list)

    is_active: bool = True
    created_date: datetime = field(default_factory=datetime.now)
    created_by: str | None = None
    updated_date: datetime = field(default_factory=datetime.now)
    updated_by: str | None = None

    @property
    def permissions(self) -> RolePermissions:
        """Permissions always follow the current role."""
        return get_role_permissions(self.role)

    @property
    def display_name(self) -> str:
        return self.character_name or self.username or self.id

    def to_public_dict(self) -> dict:
        """Serializable view without tokens."""
        return {
            "id": self.id,
            "username": self.username,
            "character_id": self.character_id,
            "character_name": self.character_name,
            "corporation_id": self.corporation_id,
            "corporation_name": self.corporation_name,
            "alliance_id": self.alliance_id,
            "alliance_name": self.alliance_name,
            "auth_method": self.auth_method.value,
            "role": self.role.value,
            "permissions": self.permissions.as_dict(),
            "scopes": list(self.scopes),
            "token_expiry": self.token_expiry.isoformat() if self.token_expiry else None,
            "last_login": self.last_login.isoformat(),
            "session_expiry": self.session_expiry.isoformat(),
            "is_active": self.is_active,
        }
