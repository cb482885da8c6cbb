"""Exceptions raised by the EVE SSO login flow."""


class ESIAuthError(Exception):
    """Base class for EVE SSO authentication failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ESINotConfiguredError(ESIAuthError):
    """No ESI client id has been configured."""

    def __init__(self, message: str = "ESI is not configured: set ESI_CLIENT_ID"):
        super().__init__(message)


class UnknownScopeTierError(ESIAuthError, ValueError):
    """Requested scope tier does not exist."""

    def __init__(self, scope_type: str):
        super().__init__(f"Unknown scope type: {scope_type!r}")
        self.scope_type = scope_type


class MissingAuthStateError(ESIAuthError):
    """Callback arrived with no login attempt in flight."""

    def __init__(self, message: str = "No stored authentication state found"):
        super().__init__(message)


class StateMismatchError(ESIAuthError):
    """Returned state does not match the stored one."""

    def __init__(self, message: str = "Invalid state parameter - possible CSRF attack"):
        super().__init__(message)


class AuthStateExpiredError(ESIAuthError):
    """Login attempt is older than the allowed window."""

    def __init__(self, message: str = "Authentication state has expired, please sign in again"):
        super().__init__(message)


class TokenExchangeError(ESIAuthError):
    """SSO token endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, error_text: str, operation: str = "Token exchange"):
        super().__init__(f"{operation} failed: {status_code} {error_text}".rstrip())
        self.status_code = status_code
        self.error_text = error_text


class IdentityResolutionError(ESIAuthError):
    """Character identity could not be resolved from the access token."""


class CorporationAccessDeniedError(ESIAuthError):
    """Character's corporation is not allowed to use the system."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SessionExpiredError(ESIAuthError):
    """Session has been torn down and the user must sign in again."""

    def __init__(self, message: str = "Session expired. Please sign in again."):
        super().__init__(message)
