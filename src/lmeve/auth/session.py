"""Session lifecycle for authenticated users."""

import uuid
from dataclasses import replace
from datetime import datetime, timedelta

from ..esi.models import CharacterIdentity, TokenSet
from .models import AuthMethod, User
from .roles import Role

SESSION_HOURS = 24
TOKEN_REFRESH_MARGIN = 300  # seconds


def new_user_id() -> str:
    return f"user_{uuid.uuid4().hex[:16]}"


def create_user_with_role(
    role: Role,
    auth_method: AuthMethod = AuthMethod.MANUAL,
    now: datetime | None = None,
    session_hours: float = SESSION_HOURS,
    **fields,
) -> User:
    """
    Assemble a user record with a fresh session.

    Args:
        role: Internal role; permissions follow from it
        auth_method: manual or esi
        now: Current time (defaults to datetime.now())
        session_hours: Session lifetime
        **fields: Any other User fields (username, character_id, ...)

    Returns:
        New active User
    """
    now = now or datetime.now()
    fields.setdefault("id", new_user_id())
    fields.setdefault("created_date", now)
    return User(
        role=role,
        auth_method=auth_method,
        last_login=now,
        session_expiry=now + timedelta(hours=session_hours),
        is_active=True,
        updated_date=now,
        **fields,
    )


def create_session(
    identity: CharacterIdentity,
    role: Role,
    tokens: TokenSet,
    now: datetime | None = None,
    session_hours: float = SESSION_HOURS,
) -> User:
    """Build the user record for a completed ESI login."""
    return create_user_with_role(
        role,
        auth_method=AuthMethod.ESI,
        now=now,
        session_hours=session_hours,
        character_id=identity.character_id,
        character_name=identity.character_name,
        corporation_id=identity.corporation_id,
        corporation_name=identity.corporation_name,
        alliance_id=identity.alliance_id,
        alliance_name=identity.alliance_name,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_expiry=tokens.expires_at,
        scopes=list(tokens.scopes or identity.scopes),
    )


def is_session_valid(user: User, now: datetime | None = None) -> bool:
    """A session is valid while the user is active and not past expiry."""
    if not user.is_active:
        return False
    return (now or datetime.now()) < user.session_expiry


def refresh_session(
    user: User, now: datetime | None = None, session_hours: float = SESSION_HOURS
) -> User:
    """Extend a session. Identity and role are left untouched."""
    now = now or datetime.now()
    return replace(
        user,
        last_login=now,
        session_expiry=now + timedelta(hours=session_hours),
        updated_date=now,
    )


def is_token_expired(
    user: User, margin_seconds: float = TOKEN_REFRESH_MARGIN, now: datetime | None = None
) -> bool:
    """Check if an ESI user's access token needs refreshing."""
    if user.auth_method != AuthMethod.ESI or user.token_expiry is None:
        return False
    now = now or datetime.now()
    return user.token_expiry - now < timedelta(seconds=margin_seconds)
