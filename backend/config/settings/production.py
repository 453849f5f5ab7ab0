"""
Production settings.

Security-hardened settings for deployed environments.
All secrets are read from environment variables.
"""

from .base import *  # noqa: F403
from .base import settings

DEBUG = False

SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_CONTENT_TYPE_NOSNIFF = True

# The dashboard sits behind a reverse proxy that terminates TLS; the
# canonical-origin middleware relies on the forwarded headers.
USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

if settings.SECRET_KEY.startswith("django-insecure"):
    raise RuntimeError("SECRET_KEY must be set in production")
