"""
Passkey (WebAuthn) models.

Stores the user's bound credentials and the short-lived server state of
in-flight registration/authentication ceremonies.
"""

from django.db import models
from django.utils import timezone
from webauthn.helpers import bytes_to_base64url


class Passkey(models.Model):
    """
    WebAuthn credential bound to the local user.

    Each passkey represents a registered authenticator (device). Credentials
    are bound to the relying party and cannot be used on other sites. The
    user must always keep at least one passkey.
    """

    user = models.ForeignKey(
        "accounts.User",
        on_delete=models.CASCADE,
        related_name="passkeys",
        help_text="User who owns this passkey",
    )
    name = models.CharField(
        max_length=100,
        help_text="User-friendly name (e.g., 'laptop', 'YubiKey')",
    )

    # WebAuthn credential data needed for future verification
    credential_id = models.BinaryField(
        unique=True,
        help_text="Raw credential ID from the authenticator",
    )
    public_key = models.BinaryField(
        help_text="COSE public key for signature verification",
    )
    sign_count = models.PositiveBigIntegerField(
        default=0,
        help_text="Signature counter for replay detection (0 = authenticator has no counter)",
    )
    aaguid = models.CharField(
        max_length=36,
        blank=True,
        default="",
        help_text="Authenticator Attestation GUID (identifies authenticator model)",
    )
    transports = models.JSONField(
        default=list,
        blank=True,
        help_text="Supported transports: usb, nfc, ble, internal, hybrid",
    )
    backup_eligible = models.BooleanField(
        default=False,
        help_text="Whether the credential may be synced (e.g., iCloud Keychain)",
    )
    backup_state = models.BooleanField(
        default=False,
        help_text="Whether the credential is currently backed up",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    last_used_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time this passkey was used to log in",
    )

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="passkeys_user_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.user_id})"

    @property
    def credential_id_b64(self) -> str:
        """Return credential ID as base64url string."""
        return bytes_to_base64url(bytes(self.credential_id))


class ChallengeKind(models.TextChoices):
    REGISTRATION = "registration", "Registration"
    AUTHENTICATION = "authentication", "Authentication"


class AuthChallenge(models.Model):
    """
    Server-side state of one WebAuthn ceremony.

    Lifecycle is create -> consume once (or expire) -> delete. Rows are
    never updated. The ID is the correlation token handed to the client.
    """

    id = models.CharField(
        primary_key=True,
        max_length=64,
        help_text="Random challenge ID returned to the client",
    )
    kind = models.CharField(
        max_length=20,
        choices=ChallengeKind.choices,
    )
    state = models.JSONField(
        help_text="Expected challenge bytes (base64url) and ceremony context",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(db_index=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(kind__in=ChallengeKind.values),
                name="passkeys_authchallenge_kind_valid",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.kind} challenge {self.id[:8]}"

    @property
    def is_expired(self) -> bool:
        """Check if the challenge has expired."""
        return timezone.now() >= self.expires_at
