"""Account and session service shared by every front-end."""

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

import httpx

from ..config import AppConfig
from ..database import Database
from ..esi.auth import ESIAuth
from ..esi.client import ESIClient
from ..esi.exceptions import (
    CorporationAccessDeniedError,
    SessionExpiredError,
    TokenExchangeError,
)
from ..esi.scopes import ScopeType
from .corp_validation import create_default_corporation_config, is_corporation_registered
from .exceptions import (
    AuthenticationError,
    CorporationNotFoundError,
    PermissionDeniedError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from .flow import LoginFlow
from .models import AuthMethod, CorporationConfig, User
from .passwords import hash_password, verify_password
from .roles import Role
from .session import create_user_with_role, is_session_valid, is_token_expired, refresh_session

logger = logging.getLogger(__name__)

CORPORATION_FIELDS = frozenset({
    "corporation_name",
    "registered_scopes",
    "is_active",
    "last_token_refresh",
})


class AuthProvider:
    """
    Owns users, corporation registrations and browser sessions.

    Browser sessions are identified by an opaque session id supplied by
    the caller (the web layer uses a cookie).
    """

    def __init__(
        self,
        config: AppConfig,
        db: Database,
        auth: ESIAuth,
        client: ESIClient,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.db = db
        self.auth = auth
        self.flow = LoginFlow(
            config.esi,
            auth,
            client,
            db,
            state_ttl=config.auth_state_ttl,
            session_hours=config.session_hours,
            clock=clock,
        )

    def ensure_default_admin(self) -> User | None:
        """Create the local super_admin account when no users exist."""
        if self.db.count_users():
            return None

        admin = create_user_with_role(
            Role.SUPER_ADMIN,
            username=self.config.admin_username,
            character_name="Local Administrator",
            session_hours=self.config.session_hours,
        )
        self.db.save_user(admin)
        self.db.set_password_hash(admin.username, hash_password(self.config.admin_password))
        logger.info("Created default admin user '%s'", admin.username)
        return admin

    # Sign-in

    def login_with_credentials(self, session_id: str, username: str, password: str) -> User:
        """
        Sign in with a manual account.

        Raises:
            AuthenticationError: Bad credentials or disabled account
        """
        stored_hash = self.db.get_password_hash(username)
        if stored_hash is None or not verify_password(password, stored_hash):
            logger.warning("Manual login failed for %s", username)
            raise AuthenticationError("Invalid username or password")

        user = self.db.get_user_by_username(username)
        if user is None:
            raise AuthenticationError("User not found")
        if not user.is_active:
            raise AuthenticationError("User account is disabled")

        user = refresh_session(user, session_hours=self.config.session_hours)
        self.db.save_user(user)
        self.db.set_session_user(session_id, user.id)
        logger.info("Manual login successful: %s", username)
        return user

    def begin_esi_login(self, session_id: str, scope_type: ScopeType | str | None = None) -> str:
        """Start an EVE SSO login and return the authorize URL."""
        return self.flow.initiate_login(session_id, scope_type or self.config.esi.default_scope_type)

    async def complete_esi_login(self, session_id: str, code: str, state: str) -> User:
        """
        Finish an EVE SSO login.

        Registers the corporation when a CEO/Director signs in for an
        unregistered one, then updates or creates the user record.
        """
        corporations = self.db.get_registered_corporations()
        esi_user = await self.flow.handle_callback(session_id, code, state, corporations)

        if not is_corporation_registered(esi_user.corporation_id, corporations):
            await self._register_for(esi_user)

        current = self.get_current_user(session_id)
        if current is not None and current.auth_method == AuthMethod.MANUAL:
            linked = self.db.get_user_by_character(esi_user.character_id)
            if linked is not None and linked.id != current.id:
                logger.warning(
                    "Character %s is already linked to user %s, refusing to link it to %s",
                    esi_user.character_name, linked.username, current.username,
                )
                await self.flow.revoke_token(esi_user.access_token)
                raise UserAlreadyExistsError("Character is already linked to another user")
            logger.info("Replacing manual login %s with ESI login", current.username)
            user = replace(
                esi_user,
                id=current.id,
                username=current.username,
                created_date=current.created_date,
                created_by=current.created_by,
                updated_by=current.id,
            )
        else:
            existing = self.db.get_user_by_character(esi_user.character_id)
            if existing is not None and not existing.is_active:
                await self.flow.revoke_token(esi_user.access_token)
                raise AuthenticationError("User account is disabled")
            if existing is not None:
                user = replace(
                    esi_user,
                    id=existing.id,
                    username=existing.username,
                    created_date=existing.created_date,
                    created_by=existing.created_by,
                )
                logger.info("Existing ESI user updated: %s", user.character_name)
            else:
                user = esi_user
                logger.info("New ESI user created: %s", user.character_name)

        self.db.save_user(user)
        self.db.set_session_user(session_id, user.id)
        return user

    async def _register_for(self, user: User) -> None:
        corp_config = create_default_corporation_config(user.corporation_id, user.corporation_name)
        if self.db.register_corporation_if_absent(corp_config):
            logger.info(
                "Corporation '%s' registered automatically by %s",
                corp_config.corporation_name, user.character_name,
            )
            return

        existing = self.db.get_corporation(user.corporation_id)
        if existing is not None and not existing.is_active:
            await self.flow.revoke_token(user.access_token)
            raise CorporationAccessDeniedError(
                "Corporation registration has been deactivated. Contact an administrator."
            )

    # Session lifecycle

    def get_current_user(self, session_id: str) -> User | None:
        """
        Get the signed-in user for a browser session.

        Expired sessions are torn down and yield None.
        """
        user_id = self.db.get_session_user_id(session_id)
        if user_id is None:
            return None

        user = self.db.get_user(user_id)
        if user is None or not is_session_valid(user):
            logger.info("User session expired")
            self.db.clear_session(session_id)
            return None
        return user

    async def logout(self, session_id: str) -> None:
        """Revoke the ESI token (best effort) and clear the session."""
        user_id = self.db.get_session_user_id(session_id)
        user = self.db.get_user(user_id) if user_id else None

        if user is not None and user.access_token:
            await self.flow.revoke_token(user.access_token)
            self.db.save_user(replace(user, access_token=None, refresh_token=None, token_expiry=None))

        self.db.clear_session(session_id)
        logger.info("User logged out")

    async def refresh_user_token(self, session_id: str) -> User:
        """
        Refresh the ESI tokens of the signed-in user.

        Raises:
            SessionExpiredError: No valid session, or the refresh failed. A
                failed refresh logs the session out first.
        """
        user = self.get_current_user(session_id)
        if user is None:
            raise SessionExpiredError()
        if user.auth_method != AuthMethod.ESI or not user.refresh_token:
            return user

        try:
            tokens = await self.flow.refresh_token(user.refresh_token)
        except (TokenExchangeError, httpx.HTTPError) as e:
            logger.error("Token refresh failed, logging out: %s", e)
            await self.logout(session_id)
            raise SessionExpiredError("Token refresh failed. Please sign in again.") from e

        user = refresh_session(
            replace(
                user,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                token_expiry=tokens.expires_at,
                scopes=tokens.scopes or user.scopes,
            ),
            session_hours=self.config.session_hours,
        )
        self.db.save_user(user)
        logger.info("Token refreshed for %s", user.character_name)
        return user

    async def ensure_fresh_token(self, session_id: str) -> User:
        """Refresh the access token first if it is expired or about to be."""
        user = self.get_current_user(session_id)
        if user is None:
            raise SessionExpiredError()
        if is_token_expired(user, self.config.token_refresh_margin):
            return await self.refresh_user_token(session_id)
        return user

    async def validate_user_token(self, session_id: str) -> bool:
        """Check the signed-in user's access token against the SSO keys."""
        user = self.get_current_user(session_id)
        if user is None or not user.access_token:
            return False
        return await self.auth.validate_token(user.access_token)

    # User management

    def get_all_users(self) -> list[User]:
        return self.db.get_all_users()

    def create_manual_user(
        self, username: str, password: str, role: Role | str, created_by: str | None = None
    ) -> User:
        """
        Create a username/password account.

        Raises:
            UserAlreadyExistsError: If the username is taken
        """
        if self.db.get_user_by_username(username) or self.db.get_password_hash(username):
            raise UserAlreadyExistsError("Username already exists")

        user = create_user_with_role(
            Role(role),
            username=username,
            character_name=username,
            created_by=created_by,
            session_hours=self.config.session_hours,
        )
        self.db.save_user(user)
        self.db.set_password_hash(username, hash_password(password))
        logger.info("Manual user created: %s", username)
        return user

    def update_user_role(self, user_id: str, role: Role | str, updated_by: str | None = None) -> User:
        """Change a user's role. Permissions follow automatically."""
        user = self.db.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        user = replace(user, role=Role(role), updated_date=datetime.now(), updated_by=updated_by)
        self.db.save_user(user)
        logger.info("Updated role of %s to %s", user.display_name, user.role.value)
        return user

    def delete_user(self, user_id: str, acting_user_id: str | None = None) -> None:
        """Delete a user. Users cannot delete themselves."""
        if self.db.get_user(user_id) is None:
            raise UserNotFoundError(f"User {user_id} not found")
        if acting_user_id == user_id:
            raise PermissionDeniedError("Cannot delete currently logged in user")

        self.db.delete_user(user_id)
        logger.info("Deleted user %s", user_id)

    # Corporation management

    def get_registered_corporations(self) -> list[CorporationConfig]:
        return self.db.get_registered_corporations()

    def register_corporation(self, config: CorporationConfig) -> CorporationConfig:
        """
        Register a corporation.

        Raises:
            CorporationAlreadyRegisteredError: If already registered
        """
        self.db.add_corporation(config)
        logger.info("Registered corporation: %s", config.corporation_name)
        return config

    def update_corporation(self, corporation_id: int, **updates) -> CorporationConfig:
        """Update registration fields. Deactivating signs out its users."""
        existing = self.db.get_corporation(corporation_id)
        if existing is None:
            raise CorporationNotFoundError(f"Corporation {corporation_id} not found")

        unknown = set(updates) - CORPORATION_FIELDS
        if unknown:
            raise ValueError(f"Cannot update corporation fields: {', '.join(sorted(unknown))}")

        updated = replace(existing, **updates)
        self.db.save_corporation(updated)
        if existing.is_active and not updated.is_active:
            terminated = self.db.clear_sessions_for_corporation(corporation_id)
            logger.info("Signed out %d sessions of deactivated corporation", terminated)
        return updated

    def delete_corporation(self, corporation_id: int, hard: bool = False) -> int:
        """
        Remove a corporation's access.

        By default the registration is deactivated and kept for audit. With
        hard=True the registration and its users are deleted. Either way
        every session of that corporation's users ends.

        Returns:
            Number of sessions (soft) or users (hard) removed
        """
        existing = self.db.get_corporation(corporation_id)
        if existing is None:
            raise CorporationNotFoundError(f"Corporation {corporation_id} not found")

        if hard:
            self.db.delete_corporation(corporation_id)
            removed = self.db.delete_users_by_corporation(corporation_id)
            logger.info(
                "Deleted corporation %s and %d of its users", existing.corporation_name, removed
            )
            return removed

        self.db.save_corporation(replace(existing, is_active=False))
        removed = self.db.clear_sessions_for_corporation(corporation_id)
        logger.info(
            "Deactivated corporation %s, signed out %d sessions", existing.corporation_name, removed
        )
        return removed
