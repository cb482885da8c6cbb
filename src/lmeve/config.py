"""Configuration management for LMeve."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .esi.models import ESIConfig
from .esi.scopes import ScopeType, parse_scope_type

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_PASSWORD = "12345"


@dataclass
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    session_hours: float = 24
    auth_state_ttl: float = 300
    token_refresh_margin: float = 300
    admin_username: str = "admin"

    esi: ESIConfig = field(default_factory=ESIConfig)

    @property
    def admin_password(self) -> str:
        """Bootstrap admin password from LMEVE_ADMIN_PASSWORD."""
        password = os.getenv("LMEVE_ADMIN_PASSWORD")
        if not password:
            logger.warning("LMEVE_ADMIN_PASSWORD not set, using the default admin password")
            return DEFAULT_ADMIN_PASSWORD
        return password

    @classmethod
    def load(cls, path: Path | str = Path("config.json")) -> "AppConfig":
        """Load configuration from file, or return defaults if not found."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "AppConfig":
        """Create AppConfig from dictionary."""
        config = cls(
            version=data.get("version", cls.version),
            session_hours=data.get("session_hours", 24),
            auth_state_ttl=data.get("auth_state_ttl", 300),
            token_refresh_margin=data.get("token_refresh_margin", 300),
            admin_username=data.get("admin_username", "admin"),
        )

        # Parse ESI config (client_id/client_secret come from .env, not config.json)
        if "esi" in data:
            esi_data = data["esi"]
            defaults = ESIConfig()
            config.esi = ESIConfig(
                sso_base=esi_data.get("sso_base", defaults.sso_base),
                esi_base=esi_data.get("esi_base", defaults.esi_base),
                app_origin=esi_data.get("app_origin", defaults.app_origin),
                user_agent=esi_data.get("user_agent", defaults.user_agent),
                default_scope_type=parse_scope_type(
                    esi_data.get("default_scope_type", ScopeType.BASIC)
                ),
            )

        return config

    def save(self, path: Path | str = Path("config.json")) -> None:
        """Save configuration to file. Secrets are never written."""
        path = Path(path)

        data = {
            "version": self.version,
            "session_hours": self.session_hours,
            "auth_state_ttl": self.auth_state_ttl,
            "token_refresh_margin": self.token_refresh_margin,
            "admin_username": self.admin_username,
            "esi": {
                "sso_base": self.esi.sso_base,
                "esi_base": self.esi.esi_base,
                "app_origin": self.esi.app_origin,
                "user_agent": self.esi.user_agent,
                "default_scope_type": self.esi.default_scope_type.value,
            },
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2)

        logger.info("Saved configuration to %s", path)
