"""
Accounts models - the dashboard owner and the session signing key.
"""

import uuid

from django.db import models

from apps.core.models import TimestampedModel

# The dashboard is single-user: every User row carries the same slot value,
# so the unique constraint admits at most one row.
USER_SLOT = 1
SIGNING_KEY_ID = 1


class User(TimestampedModel):
    """
    The single local user of the dashboard.

    Created by the first passkey registration. There is no password;
    the user authenticates with passkeys only.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Opaque user ID, also used as the WebAuthn user handle",
    )
    name = models.CharField(
        max_length=255,
        help_text="Display name chosen at setup",
    )
    slot = models.PositiveSmallIntegerField(
        default=USER_SLOT,
        unique=True,
        editable=False,
        help_text="Constant value; the unique index allows exactly one user",
    )

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(slot=USER_SLOT),
                name="accounts_user_single_slot",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class SigningKey(models.Model):
    """
    Process-wide secret used to sign session and redirect tokens.

    Exactly one row (id=1). Generated lazily the first time a token is
    issued or verified, and never rotated by running code: rotating it
    would invalidate every session.
    """

    id = models.PositiveSmallIntegerField(primary_key=True, default=SIGNING_KEY_ID)
    secret = models.BinaryField(help_text="Random HMAC secret")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(id=SIGNING_KEY_ID),
                name="accounts_signingkey_singleton",
            ),
        ]

    def __str__(self) -> str:
        return f"SigningKey created {self.created_at:%Y-%m-%d}"
