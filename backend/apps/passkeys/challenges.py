"""
Challenge store for in-flight WebAuthn ceremonies.

WebAuthn is a challenge-response protocol: the server issues random
challenge bytes, the browser has the authenticator sign over them, and the
server verifies the result in a second request. The state between the two
requests lives in ``AuthChallenge`` rows.

Guarantees:
- a challenge is consumed at most once, even if two completions race
  (the row delete decides the winner)
- expiry is evaluated when the challenge is consumed; no background timer
  is needed for correctness, ``purge_expired_challenges`` only reclaims
  space
"""

import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from django.conf import settings
from django.utils import timezone
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url, generate_challenge

from apps.core.logging import get_logger
from apps.passkeys.exceptions import (
    ChallengeExpiredError,
    ChallengeKindMismatchError,
    ChallengeNotFoundError,
)
from apps.passkeys.models import AuthChallenge, ChallengeKind

logger = get_logger(__name__)

DEFAULT_CHALLENGE_TTL_SECONDS = 300  # 5 minutes


@dataclass
class CeremonyState:
    """Server-held state for one ceremony."""

    challenge: bytes
    context: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        return {"challenge": bytes_to_base64url(self.challenge), "context": self.context}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "CeremonyState":
        return cls(
            challenge=base64url_to_bytes(data["challenge"]),
            context=dict(data.get("context") or {}),
        )


def challenge_ttl_seconds() -> int:
    return int(getattr(settings, "WEBAUTHN_CHALLENGE_TTL_SECONDS", DEFAULT_CHALLENGE_TTL_SECONDS))


def begin_challenge(
    kind: ChallengeKind,
    context: dict[str, Any] | None = None,
) -> tuple[str, CeremonyState]:
    """
    Start a ceremony: generate challenge bytes and persist them.

    Args:
        kind: Ceremony type the challenge may later be consumed for
        context: JSON-serializable server context needed to finish the ceremony

    Returns:
        Tuple of (challenge_id, ceremony state)
    """
    challenge_id = secrets.token_urlsafe(32)
    state = CeremonyState(challenge=generate_challenge(), context=context or {})
    expires_at = timezone.now() + timedelta(seconds=challenge_ttl_seconds())

    AuthChallenge.objects.create(
        id=challenge_id,
        kind=kind,
        state=state.to_json(),
        expires_at=expires_at,
    )

    logger.debug("challenge_created", kind=str(kind), expires_at=expires_at.isoformat())
    return challenge_id, state


def consume_challenge(challenge_id: str, expected_kind: ChallengeKind) -> CeremonyState:
    """
    Consume a challenge exactly once.

    A challenge of the wrong kind is left in place for its own ceremony.
    Otherwise the row is deleted before any other check, and only the
    request whose DELETE removed the row may continue.

    Raises:
        ChallengeNotFoundError: Unknown or already consumed
        ChallengeKindMismatchError: Challenge belongs to the other ceremony
        ChallengeExpiredError: Past its expiry (the row is deleted anyway)
    """
    record = AuthChallenge.objects.filter(id=challenge_id).first()
    if record is None:
        raise ChallengeNotFoundError("Challenge not found or already used")

    if record.kind != expected_kind:
        logger.warning("challenge_kind_mismatch", expected=str(expected_kind), actual=record.kind)
        raise ChallengeKindMismatchError(f"Challenge is not a {expected_kind} challenge")

    deleted, _ = AuthChallenge.objects.filter(id=challenge_id).delete()
    if deleted == 0:
        # Another request consumed it between our read and delete
        raise ChallengeNotFoundError("Challenge not found or already used")

    if record.is_expired:
        logger.info("challenge_expired", kind=record.kind)
        raise ChallengeExpiredError("Challenge expired")

    return CeremonyState.from_json(record.state)


def purge_expired_challenges() -> int:
    """
    Delete expired challenges.

    Returns:
        Number of rows deleted
    """
    deleted, _ = AuthChallenge.objects.filter(expires_at__lte=timezone.now()).delete()
    if deleted:
        logger.info("expired_challenges_purged", count=deleted)
    return deleted
