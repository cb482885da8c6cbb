"""Translate auth errors into HTTP errors."""

from litestar.exceptions import HTTPException

from ..auth.exceptions import (
    AuthenticationError,
    CorporationAlreadyRegisteredError,
    CorporationNotFoundError,
    PermissionDeniedError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from ..esi.exceptions import (
    CorporationAccessDeniedError,
    ESIAuthError,
    ESINotConfiguredError,
    SessionExpiredError,
)

STATUS_CODES: list[tuple[type[Exception], int]] = [
    (SessionExpiredError, 401),
    (AuthenticationError, 401),
    (CorporationAccessDeniedError, 403),
    (PermissionDeniedError, 403),
    (UserNotFoundError, 404),
    (CorporationNotFoundError, 404),
    (UserAlreadyExistsError, 409),
    (CorporationAlreadyRegisteredError, 409),
    (ESINotConfiguredError, 400),
    (ESIAuthError, 400),
    (ValueError, 400),
]


def to_http_exception(error: Exception) -> HTTPException:
    """Map an auth/account error to an HTTPException with a readable detail."""
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail="Internal error")
