"""
Exceptions for devices app.

Custom exceptions for the cross-origin session handoff.
"""


class RedirectError(Exception):
    """Base exception for redirect handoff errors."""

    pass


class RedirectTokenInvalidError(RedirectError):
    """Token is malformed, badly signed, or bound to another origin."""

    pass


class RedirectTokenNotFoundError(RedirectError):
    """Token is unknown or has already been used."""

    pass


class RedirectTokenExpiredError(RedirectError):
    """Token has expired."""

    pass
