"""
Device redirect services.

Hands a session from the canonical origin to an allowed alternate origin:
after a passkey login the canonical origin mints a short-lived, single-use
signed token and sends the browser (or a second device, via QR code) to
``<target origin>/api/auth/redirect/complete?token=...``. The target origin
exchanges the token for its own session cookie.
"""

import hashlib
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import jwt
from django.conf import settings
from django.utils import timezone

from apps.accounts.models import User
from apps.accounts.tokens import SESSION_TOKEN_ALGORITHM, get_signing_secret, issue_session_token
from apps.core.logging import get_logger
from apps.core.origin import InvalidOriginError, get_origin_policy, normalize_origin, normalize_redirect_path
from apps.devices.constants import REDIRECT_COMPLETE_PATH, JWTAction
from apps.devices.exceptions import (
    RedirectTokenExpiredError,
    RedirectTokenInvalidError,
    RedirectTokenNotFoundError,
)
from apps.devices.models import RedirectToken

logger = get_logger(__name__)


@dataclass
class RedirectTokenResult:
    """Result of minting a redirect token."""

    redirect_url: str
    expires_at: datetime
    token_record: RedirectToken


@dataclass
class RedirectCompleteResult:
    """Result of exchanging a redirect token for a session."""

    user: User
    session_token: str
    redirect_path: str


def _hash_token(token: str) -> str:
    """Create SHA-256 hash of token for storage."""
    return hashlib.sha256(token.encode()).hexdigest()


def redirect_token_ttl_seconds() -> int:
    return int(getattr(settings, "REDIRECT_TOKEN_TTL_SECONDS", 60))


def create_redirect_token(
    user: User,
    redirect_origin: str,
    redirect_path: str | None = None,
) -> RedirectTokenResult:
    """
    Mint a redirect token for ``user`` bound to ``redirect_origin``.

    Args:
        user: User who just authenticated
        redirect_origin: Origin that will complete the handoff
        redirect_path: Path to land on there; unsafe values become ``/``

    Returns:
        RedirectTokenResult with the URL to send the browser to

    Raises:
        InvalidOriginError: If ``redirect_origin`` is malformed or not allowed
    """
    policy = get_origin_policy()
    target_origin = policy.canonicalize(redirect_origin)
    target_path = normalize_redirect_path(redirect_path)

    ttl = redirect_token_ttl_seconds()
    now = int(time.time())
    expires_at = timezone.now() + timedelta(seconds=ttl)

    payload: dict[str, Any] = {
        "iss": policy.rp_origin,
        "aud": target_origin,
        "sub": str(user.id),
        "path": target_path,
        "iat": now,
        "exp": now + ttl,
        "jti": uuid.uuid4().hex,
        "action": JWTAction.LOGIN_REDIRECT.value,
    }
    token = jwt.encode(payload, get_signing_secret(), algorithm=SESSION_TOKEN_ALGORITHM)

    token_record = RedirectToken.objects.create(
        user=user,
        token_hash=_hash_token(token),
        target_origin=target_origin,
        target_path=target_path,
        expires_at=expires_at,
    )

    redirect_url = f"{target_origin}{REDIRECT_COMPLETE_PATH}?{urlencode({'token': token})}"

    logger.info(
        "redirect_token_created",
        user_id=str(user.id),
        token_id=str(token_record.id),
        target_origin=target_origin,
        expires_at=expires_at.isoformat(),
    )

    return RedirectTokenResult(
        redirect_url=redirect_url,
        expires_at=expires_at,
        token_record=token_record,
    )


def create_redirect(user: User, redirect_origin: str, redirect_path: str | None = None) -> str:
    """Mint a redirect token and return only the URL carrying it."""
    return create_redirect_token(user, redirect_origin, redirect_path).redirect_url


def _decode_redirect_token(token: str, request_origin: str | None) -> dict[str, Any]:
    policy = get_origin_policy()
    try:
        payload = jwt.decode(
            token,
            get_signing_secret(),
            algorithms=[SESSION_TOKEN_ALGORITHM],
            issuer=policy.rp_origin,
            options={
                "require": ["iss", "aud", "sub", "iat", "exp", "jti", "action"],
                "verify_aud": False,
            },
        )
    except jwt.ExpiredSignatureError:
        # A token that was already exchanged stays "not found" after it expires
        if RedirectToken.objects.filter(
            token_hash=_hash_token(token), used_at__isnull=False
        ).exists():
            logger.warning("redirect_token_not_found", used=True)
            raise RedirectTokenNotFoundError(
                "Redirect token not found or already used."
            ) from None
        logger.warning("redirect_token_expired")
        raise RedirectTokenExpiredError("Redirect token has expired. Please log in again.") from None
    except jwt.InvalidTokenError as e:
        logger.warning("redirect_token_invalid", error=str(e))
        raise RedirectTokenInvalidError("Invalid redirect token.") from None

    if payload.get("action") != JWTAction.LOGIN_REDIRECT:
        raise RedirectTokenInvalidError("Invalid token type.")

    audience = payload.get("aud")
    if not isinstance(audience, str):
        raise RedirectTokenInvalidError("Invalid redirect token audience.")
    try:
        if policy.canonicalize(audience) != audience:
            raise RedirectTokenInvalidError("Invalid redirect token audience.")
    except InvalidOriginError:
        logger.warning("redirect_token_audience_not_allowed", audience=audience)
        raise RedirectTokenInvalidError("Redirect token audience is not allowed.") from None

    if request_origin is not None and normalize_origin(request_origin) != audience:
        logger.warning(
            "redirect_token_origin_mismatch",
            audience=audience,
            request_origin=request_origin,
        )
        raise RedirectTokenInvalidError("Redirect token was issued for another origin.")

    return payload


def complete_redirect(token: str, request_origin: str | None = None) -> RedirectCompleteResult:
    """
    Exchange a redirect token for a session on the target origin.

    The token's stored row is flipped to used with a conditional UPDATE, so
    of two concurrent exchanges exactly one succeeds.

    Args:
        token: Signed token from the redirect URL
        request_origin: Origin the exchange request arrived on, if known;
            must equal the token's audience

    Returns:
        RedirectCompleteResult with the session token and landing path

    Raises:
        RedirectTokenInvalidError: Bad signature/claims or wrong origin
        RedirectTokenExpiredError: Token has expired
        RedirectTokenNotFoundError: Token unknown or already used
    """
    payload = _decode_redirect_token(token, request_origin)

    token_hash = _hash_token(token)
    now = timezone.now()
    claimed = RedirectToken.objects.filter(
        token_hash=token_hash,
        used_at__isnull=True,
        expires_at__gt=now,
    ).update(used_at=now)

    if claimed == 0:
        record = RedirectToken.objects.filter(token_hash=token_hash).first()
        if record is not None and not record.is_used and record.is_expired:
            raise RedirectTokenExpiredError("Redirect token has expired. Please log in again.")
        logger.warning("redirect_token_not_found", used=record is not None)
        raise RedirectTokenNotFoundError("Redirect token not found or already used.")

    record = RedirectToken.objects.select_related("user").get(token_hash=token_hash)
    if str(record.user_id) != payload["sub"]:
        raise RedirectTokenInvalidError("Invalid redirect token subject.")

    user = record.user

    logger.info(
        "redirect_completed",
        user_id=str(user.id),
        token_id=str(record.id),
        target_origin=record.target_origin,
    )

    return RedirectCompleteResult(
        user=user,
        session_token=issue_session_token(user.id),
        redirect_path=record.target_path,
    )
