"""Authentication routes: EVE SSO, manual login, session status."""

import logging
import secrets
from dataclasses import dataclass

from litestar import Controller, Request, Response, get, post
from litestar.datastructures import Cookie
from litestar.params import Parameter

from ..auth.corp_validation import validate_required_scopes
from ..auth.exceptions import AuthenticationError, UserAlreadyExistsError
from ..auth.provider import AuthProvider
from ..auth.roles import TAB_PERMISSIONS, can_access_tab
from ..auth.session import is_token_expired
from ..config import AppConfig
from ..esi.exceptions import ESIAuthError, SessionExpiredError
from .errors import to_http_exception

logger = logging.getLogger(__name__)

SESSION_COOKIE = "lmeve_session"


@dataclass
class CredentialsPayload:
    username: str
    password: str


def get_session_id(request: Request) -> str | None:
    """Browser session id from the session cookie."""
    return request.cookies.get(SESSION_COOKIE)


def create_auth_routes(config: AppConfig, provider: AuthProvider) -> list:
    """
    Create authentication route handlers with injected dependencies.

    Args:
        config: App configuration
        provider: Account and session service

    Returns:
        List of route handler classes
    """

    def session_cookie(session_id: str) -> Cookie:
        return Cookie(
            key=SESSION_COOKIE,
            value=session_id,
            httponly=True,
            samesite="lax",
            secure=config.esi.app_origin.startswith("https"),
            max_age=int(config.session_hours * 3600),
        )

    async def status_payload(session_id: str | None, verify: bool = False) -> dict:
        user = provider.get_current_user(session_id) if session_id else None
        payload = {
            "configured": config.esi.is_configured,
            "authenticated": user is not None,
            "user": user.to_public_dict() if user else None,
            "tabs": ["dashboard"] + [t for t in TAB_PERMISSIONS if can_access_tab(user, t)],
        }
        if user is not None and user.corporation_id is not None:
            corporation = provider.db.get_corporation(user.corporation_id)
            payload["missing_scopes"] = validate_required_scopes(user.scopes, corporation).missing_scopes
            payload["token_expired"] = is_token_expired(user, config.token_refresh_margin)
        if verify:
            payload["token_valid"] = await provider.validate_user_token(session_id) if user else False
        return payload

    class CallbackController(Controller):
        """SSO callback. The registered redirect URI is the site root."""

        path = "/"

        @get()
        async def index(
            self,
            request: Request,
            code: str | None = None,
            oauth_state: str | None = Parameter(query="state", default=None),
        ) -> Response:
            """Complete an SSO login when code/state are present, else report status."""
            session_id = get_session_id(request)

            if code is None and oauth_state is None:
                return Response(content=await status_payload(session_id))

            if not code or not oauth_state:
                raise to_http_exception(ValueError("Callback requires both code and state"))

            try:
                user = await provider.complete_esi_login(session_id or "", code, oauth_state)
            except (ESIAuthError, AuthenticationError, UserAlreadyExistsError) as e:
                logger.warning("ESI callback rejected: %s", e)
                raise to_http_exception(e) from e

            logger.info("ESI callback: signed in %s (ID: %d)", user.character_name, user.character_id)
            return Response(content={"status": "ok", "user": user.to_public_dict()})

    class AuthController(Controller):
        """Sign-in, sign-out and token endpoints."""

        path = "/auth"

        @get("/login")
        async def esi_login(self, request: Request, scope_type: str | None = None) -> Response:
            """Start an EVE SSO login and return the authorize URL."""
            session_id = get_session_id(request) or secrets.token_urlsafe(32)

            try:
                auth_url = provider.begin_esi_login(session_id, scope_type)
            except (ESIAuthError, ValueError) as e:
                raise to_http_exception(e) from e

            return Response(
                content={
                    "status": "ok",
                    "message": "Redirect to EVE SSO to sign in",
                    "auth_url": auth_url,
                },
                cookies=[session_cookie(session_id)],
            )

        @post("/login", status_code=200)
        async def credentials_login(self, request: Request, data: CredentialsPayload) -> Response:
            """Sign in with username and password."""
            session_id = get_session_id(request) or secrets.token_urlsafe(32)

            try:
                user = provider.login_with_credentials(session_id, data.username, data.password)
            except AuthenticationError as e:
                raise to_http_exception(e) from e

            return Response(
                content={"status": "ok", "user": user.to_public_dict()},
                cookies=[session_cookie(session_id)],
            )

        @post("/logout", status_code=200)
        async def logout(self, request: Request) -> dict:
            """Sign out and revoke the ESI token."""
            session_id = get_session_id(request)
            if session_id:
                await provider.logout(session_id)
            return {"status": "ok", "message": "Signed out"}

        @post("/refresh", status_code=200)
        async def refresh(self, request: Request) -> dict:
            """Refresh the ESI access token. A failure signs the user out."""
            session_id = get_session_id(request)
            try:
                if not session_id:
                    raise SessionExpiredError()
                user = await provider.refresh_user_token(session_id)
            except SessionExpiredError as e:
                raise to_http_exception(e) from e

            return {"status": "ok", "user": user.to_public_dict()}

        @get("/status")
        async def status(self, request: Request, verify: bool = False) -> dict:
            """Current user, permissions, accessible tabs and scope health."""
            return await status_payload(get_session_id(request), verify)

    return [CallbackController, AuthController]
