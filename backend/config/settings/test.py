"""
Test settings.

In-memory database and deterministic WebAuthn configuration.
"""

from .base import *  # noqa: F403

DEBUG = False
ALLOWED_HOSTS = ["*"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

LOG_JSON = False
LOG_LEVEL = "WARNING"

WEBAUTHN_RP_ID = "localhost"
WEBAUTHN_RP_NAME = "den"
WEBAUTHN_ORIGIN = "http://localhost:3000"
WEBAUTHN_ALLOWED_HOSTS = ["fujin:3000", "https://den.example.com"]
WEBAUTHN_CHALLENGE_TTL_SECONDS = 300
WEBAUTHN_SIGN_COUNT_POLICY = "lenient"

DEN_SESSION_COOKIE_NAME = "den_session"
SESSION_TOKEN_LIFETIME_DAYS = 7
REDIRECT_TOKEN_TTL_SECONDS = 60
