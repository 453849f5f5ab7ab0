"""
Base Django settings for den.

Shared configuration for all environments.
"""

from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-based configuration using pydantic-settings."""

    SECRET_KEY: str = "django-insecure-change-me-in-production"
    DEBUG: bool = False
    DATABASE_PATH: str = "den.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # WebAuthn relying party
    WEBAUTHN_RP_ID: str = "localhost"
    WEBAUTHN_RP_NAME: str = "den"
    WEBAUTHN_ORIGIN: str = "http://localhost:3000"
    WEBAUTHN_ALLOWED_HOSTS: list[str] = []
    WEBAUTHN_CHALLENGE_TTL_SECONDS: int = 300
    WEBAUTHN_CEREMONY_TIMEOUT_MS: int = 60000
    WEBAUTHN_SIGN_COUNT_POLICY: Literal["lenient", "strict"] = "lenient"

    # Sessions
    SESSION_COOKIE_NAME: str = "den_session"
    SESSION_TOKEN_LIFETIME_DAYS: int = 7

    # Device redirect
    REDIRECT_TOKEN_TTL_SECONDS: int = 60

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()


def _hostname(value: str) -> str | None:
    """Extract a bare hostname from an origin or host[:port] entry."""
    candidate = value.strip()
    if not candidate:
        return None
    if "://" not in candidate:
        candidate = f"http://{candidate}"
    try:
        return urlsplit(candidate).hostname
    except ValueError:
        return None


# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = settings.SECRET_KEY

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = settings.DEBUG

# Every host that may legitimately serve the app: the canonical origin plus
# the alternate hosts used for device redirects.
ALLOWED_HOSTS = sorted(
    {
        host
        for host in map(_hostname, [settings.WEBAUTHN_ORIGIN, *settings.WEBAUTHN_ALLOWED_HOSTS])
        if host
    }
)

# Application definition
INSTALLED_APPS = [
    # Local apps
    "apps.core",
    "apps.accounts",
    "apps.passkeys",
    "apps.devices",
]

MIDDLEWARE = [
    "apps.core.middleware.RequestContextMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "apps.core.middleware.CanonicalAuthOriginMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

WSGI_APPLICATION = "config.wsgi.application"

# Database
# Single-file SQLite database, path configured via DATABASE_PATH
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": settings.DATABASE_PATH,
        "OPTIONS": {
            "timeout": 20,
            "transaction_mode": "IMMEDIATE",
        },
    }
}

# Logging is configured by apps.core (structlog), not by Django's dictConfig
LOGGING_CONFIG = None
LOG_LEVEL = settings.LOG_LEVEL
LOG_JSON = settings.LOG_JSON

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# WebAuthn
WEBAUTHN_RP_ID = settings.WEBAUTHN_RP_ID
WEBAUTHN_RP_NAME = settings.WEBAUTHN_RP_NAME
WEBAUTHN_ORIGIN = settings.WEBAUTHN_ORIGIN
WEBAUTHN_ALLOWED_HOSTS = settings.WEBAUTHN_ALLOWED_HOSTS
WEBAUTHN_CHALLENGE_TTL_SECONDS = settings.WEBAUTHN_CHALLENGE_TTL_SECONDS
WEBAUTHN_CEREMONY_TIMEOUT_MS = settings.WEBAUTHN_CEREMONY_TIMEOUT_MS
WEBAUTHN_SIGN_COUNT_POLICY = settings.WEBAUTHN_SIGN_COUNT_POLICY

# Session tokens (signed with the persisted SigningKey, not SECRET_KEY)
DEN_SESSION_COOKIE_NAME = settings.SESSION_COOKIE_NAME
SESSION_TOKEN_LIFETIME_DAYS = settings.SESSION_TOKEN_LIFETIME_DAYS

# Device redirect tokens
REDIRECT_TOKEN_TTL_SECONDS = settings.REDIRECT_TOKEN_TTL_SECONDS
