"""
Device redirect models - session handoff between origins.
"""

import uuid

from django.db import models
from django.utils import timezone


class RedirectToken(models.Model):
    """
    One-time token handing a fresh login to another origin.

    Minted after a passkey login on the canonical origin when the user came
    from an allowed alternate origin (e.g. a LAN hostname, or a second device
    via QR code). Only the SHA-256 hash of the signed token is stored.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    user = models.ForeignKey(
        "accounts.User",
        on_delete=models.CASCADE,
        related_name="redirect_tokens",
        help_text="User the session is handed to",
    )
    token_hash = models.CharField(
        max_length=64,
        unique=True,
        help_text="SHA-256 hash of the JWT token",
    )
    target_origin = models.CharField(
        max_length=255,
        help_text="Origin that must complete the handoff",
    )
    target_path = models.CharField(
        max_length=2048,
        default="/",
        help_text="Path to land on after the handoff",
    )
    expires_at = models.DateTimeField(
        db_index=True,
        help_text="Token expiration timestamp",
    )
    used_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when token was used. NULL = unused.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        status = "used" if self.is_used else ("expired" if self.is_expired else "valid")
        return f"RedirectToken {self.id} -> {self.target_origin} ({status})"

    @property
    def is_used(self) -> bool:
        """Check if token has been used."""
        return self.used_at is not None

    @property
    def is_expired(self) -> bool:
        """Check if token has expired."""
        return timezone.now() >= self.expires_at
