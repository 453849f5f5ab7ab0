"""
Exceptions for accounts app.
"""


class UserAlreadyExistsError(Exception):
    """The single local user has already been created."""

    pass


class SessionTokenError(Exception):
    """Base exception for session token errors."""

    pass


class InvalidTokenError(SessionTokenError):
    """Token is malformed or its signature does not verify."""

    pass


class TokenExpiredError(SessionTokenError):
    """Token was valid but has expired."""

    pass
