"""
Constants for devices app.
"""

from enum import StrEnum


class JWTAction(StrEnum):
    """
    JWT action claim values for device-related tokens.

    Session tokens carry no ``action`` claim, so a redirect token can never
    be presented as a session.
    """

    LOGIN_REDIRECT = "login_redirect"


REDIRECT_COMPLETE_PATH = "/api/auth/redirect/complete"
