"""Exceptions for account and corporation management."""


class AuthenticationError(Exception):
    """Credentials rejected or account disabled."""


class PermissionDeniedError(Exception):
    """Acting user may not perform the operation."""


class UserNotFoundError(LookupError):
    """No user with the given id."""


class UserAlreadyExistsError(ValueError):
    """Username is already taken."""


class CorporationNotFoundError(LookupError):
    """No registered corporation with the given id."""


class CorporationAlreadyRegisteredError(ValueError):
    """Corporation id is already registered."""
