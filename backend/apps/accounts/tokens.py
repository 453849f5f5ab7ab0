"""
Session token issuer.

Sessions are stateless HS256 JWTs (``sub`` = user ID, ``iat``, ``exp``)
signed with the persisted ``SigningKey`` secret. A token is valid if its
signature verifies and it has not expired; there is no server-side session
table, so logout only discards the client's copy and a leaked token stays
valid until it expires.
"""

import secrets
import time
import uuid
from functools import lru_cache
from typing import Any

import jwt
from django.conf import settings
from django.http import HttpResponse

from apps.accounts.exceptions import InvalidTokenError, TokenExpiredError
from apps.accounts.models import SIGNING_KEY_ID, SigningKey
from apps.core.logging import get_logger
from apps.core.origin import get_origin_policy

logger = get_logger(__name__)

SESSION_TOKEN_ALGORITHM = "HS256"
SIGNING_SECRET_BYTES = 64


@lru_cache(maxsize=1)
def get_signing_secret() -> bytes:
    """
    Load the signing secret, creating it on first use.

    ``get_or_create`` tolerates two processes racing to create the row:
    the losing insert hits the primary key and reads the winner's secret
    back. Cached since the secret never changes while the process runs.

    Returns:
        Raw secret bytes
    """
    key, created = SigningKey.objects.get_or_create(
        id=SIGNING_KEY_ID,
        defaults={"secret": secrets.token_bytes(SIGNING_SECRET_BYTES)},
    )
    if created:
        logger.info("signing_key_generated")
    else:
        logger.info("signing_key_loaded")
    return bytes(key.secret)


def session_lifetime_seconds() -> int:
    return int(getattr(settings, "SESSION_TOKEN_LIFETIME_DAYS", 7)) * 24 * 60 * 60


def issue_session_token(user_id: str | uuid.UUID) -> str:
    """
    Mint a session token for a user.

    Args:
        user_id: ID of the authenticated user

    Returns:
        Signed JWT string
    """
    now = int(time.time())
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + session_lifetime_seconds(),
    }
    return jwt.encode(payload, get_signing_secret(), algorithm=SESSION_TOKEN_ALGORITHM)


def verify_session_token(token: str) -> str:
    """
    Verify a session token and return its subject.

    Tokens minted for other purposes with the same secret (device redirect
    tokens carry ``aud`` and ``action``) are rejected.

    Returns:
        User ID from the ``sub`` claim

    Raises:
        TokenExpiredError: Token signature is valid but it has expired
        InvalidTokenError: Token is malformed, tampered with, or not a session token
    """
    try:
        payload = jwt.decode(
            token,
            get_signing_secret(),
            algorithms=[SESSION_TOKEN_ALGORITHM],
            options={"require": ["sub", "iat", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Session has expired") from None
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(f"Invalid session token: {e}") from None

    if "action" in payload:
        raise InvalidTokenError("Not a session token")
    return str(payload["sub"])


def session_cookie_name() -> str:
    return getattr(settings, "DEN_SESSION_COOKIE_NAME", "den_session")


def set_session_cookie(response: HttpResponse, token: str, secure: bool) -> None:
    """Attach the session cookie (HttpOnly, SameSite=Strict) to a response."""
    response.set_cookie(
        session_cookie_name(),
        token,
        max_age=session_lifetime_seconds(),
        path="/",
        secure=secure,
        httponly=True,
        samesite="Strict",
    )


def clear_session_cookie(response: HttpResponse) -> None:
    response.delete_cookie(
        session_cookie_name(),
        path="/",
        samesite="Strict",
    )


def session_cookie_secure(meta: dict) -> bool:
    """
    Whether the session cookie for this request should be ``Secure``.

    Follows the origin the request arrived on (``X-Forwarded-Proto``
    aware), so an alternate host served over plain http on the LAN still
    receives a usable cookie.
    """
    policy = get_origin_policy()
    origin = policy.origin_of(meta)
    if origin is None:
        return policy.rp_scheme == "https"
    return origin.startswith("https://")
