"""Corporation registry and user management routes."""

import logging
from dataclasses import dataclass

from litestar import Controller, Request, delete, get, patch, post, put
from litestar.connection import ASGIConnection
from litestar.exceptions import NotAuthorizedException, PermissionDeniedException
from litestar.handlers.base import BaseRouteHandler

from ..auth.corp_validation import DEFAULT_REGISTERED_SCOPES
from ..auth.exceptions import (
    CorporationAlreadyRegisteredError,
    CorporationNotFoundError,
    PermissionDeniedError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from ..auth.models import CorporationConfig, User
from ..auth.provider import AuthProvider
from ..auth.roles import has_permission
from .auth_routes import SESSION_COOKIE
from .errors import to_http_exception

logger = logging.getLogger(__name__)


@dataclass
class CorporationPayload:
    corporation_id: int
    corporation_name: str
    registered_scopes: list[str] | None = None


@dataclass
class CorporationUpdatePayload:
    corporation_name: str | None = None
    registered_scopes: list[str] | None = None
    is_active: bool | None = None


@dataclass
class NewUserPayload:
    username: str
    password: str
    role: str


@dataclass
class RolePayload:
    role: str


def corporation_to_dict(corp: CorporationConfig) -> dict:
    return {
        "corporation_id": corp.corporation_id,
        "corporation_name": corp.corporation_name,
        "registered_scopes": corp.registered_scopes,
        "is_active": corp.is_active,
        "registration_date": corp.registration_date.isoformat(),
        "last_token_refresh": corp.last_token_refresh.isoformat() if corp.last_token_refresh else None,
    }


def create_admin_routes(provider: AuthProvider) -> list:
    """
    Create admin route handlers with injected dependencies.

    Args:
        provider: Account and session service

    Returns:
        List of route handler classes
    """

    def current_user(connection: ASGIConnection) -> User | None:
        session_id = connection.cookies.get(SESSION_COOKIE)
        return provider.get_current_user(session_id) if session_id else None

    def require_any(*permissions: str):
        """Guard allowing users holding at least one of the permissions."""

        def guard(connection: ASGIConnection, _: BaseRouteHandler) -> None:
            user = current_user(connection)
            if user is None:
                raise NotAuthorizedException(detail="Sign in required")
            if not any(has_permission(user, p) for p in permissions):
                raise PermissionDeniedException(detail="Insufficient permissions")

        return guard

    class CorporationController(Controller):
        """Registered corporation management."""

        path = "/api/corporations"
        guards = [require_any("can_manage_system", "can_configure_esi")]

        @get("/")
        async def list_corporations(self) -> list[dict]:
            """List every registration, including deactivated ones."""
            return [corporation_to_dict(c) for c in provider.get_registered_corporations()]

        @post("/", status_code=201)
        async def register_corporation(self, data: CorporationPayload) -> dict:
            """Register a corporation."""
            config = CorporationConfig(
                corporation_id=data.corporation_id,
                corporation_name=data.corporation_name,
                registered_scopes=data.registered_scopes or list(DEFAULT_REGISTERED_SCOPES),
            )
            try:
                provider.register_corporation(config)
            except CorporationAlreadyRegisteredError as e:
                raise to_http_exception(e) from e
            return corporation_to_dict(config)

        @patch("/{corporation_id:int}")
        async def update_corporation(
            self, corporation_id: int, data: CorporationUpdatePayload
        ) -> dict:
            """Update a registration. Deactivation signs out its users."""
            updates = {k: v for k, v in vars(data).items() if v is not None}
            try:
                updated = provider.update_corporation(corporation_id, **updates)
            except (CorporationNotFoundError, ValueError) as e:
                raise to_http_exception(e) from e
            return corporation_to_dict(updated)

        @delete("/{corporation_id:int}", status_code=200)
        async def delete_corporation(self, corporation_id: int, hard: bool = False) -> dict:
            """Deactivate (default) or delete a registration."""
            try:
                removed = provider.delete_corporation(corporation_id, hard=hard)
            except CorporationNotFoundError as e:
                raise to_http_exception(e) from e
            return {
                "status": "ok",
                "message": f"{'Deleted' if hard else 'Deactivated'} corporation {corporation_id}",
                "removed": removed,
            }

    class UserController(Controller):
        """User account management."""

        path = "/api/users"
        guards = [require_any("can_manage_users")]

        @get("/")
        async def list_users(self) -> list[dict]:
            """List all users."""
            return [u.to_public_dict() for u in provider.get_all_users()]

        @post("/", status_code=201)
        async def create_user(self, request: Request, data: NewUserPayload) -> dict:
            """Create a manual account."""
            actor = current_user(request)
            try:
                user = provider.create_manual_user(
                    data.username, data.password, data.role, created_by=actor.id if actor else None
                )
            except (UserAlreadyExistsError, ValueError) as e:
                raise to_http_exception(e) from e
            return user.to_public_dict()

        @put("/{user_id:str}/role")
        async def update_role(self, request: Request, user_id: str, data: RolePayload) -> dict:
            """Change a user's role."""
            actor = current_user(request)
            try:
                user = provider.update_user_role(user_id, data.role, updated_by=actor.id if actor else None)
            except (UserNotFoundError, ValueError) as e:
                raise to_http_exception(e) from e
            return user.to_public_dict()

        @delete("/{user_id:str}", status_code=200)
        async def delete_user(self, request: Request, user_id: str) -> dict:
            """Delete a user. You cannot delete yourself."""
            actor = current_user(request)
            try:
                provider.delete_user(user_id, acting_user_id=actor.id if actor else None)
            except (UserNotFoundError, PermissionDeniedError) as e:
                raise to_http_exception(e) from e
            return {"status": "ok", "message": f"Deleted user {user_id}"}

    return [CorporationController, UserController]
