import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AuthChallenge",
            fields=[
                (
                    "id",
                    models.CharField(
                        help_text="Random challenge ID returned to the client",
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[("registration", "Registration"), ("authentication", "Authentication")],
                        max_length=20,
                    ),
                ),
                (
                    "state",
                    models.JSONField(help_text="Expected challenge bytes (base64url) and ceremony context"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("expires_at", models.DateTimeField(db_index=True)),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("kind__in", ["registration", "authentication"])),
                        name="passkeys_authchallenge_kind_valid",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Passkey",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="User-friendly name (e.g., 'laptop', 'YubiKey')", max_length=100)),
                (
                    "credential_id",
                    models.BinaryField(help_text="Raw credential ID from the authenticator", unique=True),
                ),
                ("public_key", models.BinaryField(help_text="COSE public key for signature verification")),
                (
                    "sign_count",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Signature counter for replay detection (0 = authenticator has no counter)",
                    ),
                ),
                (
                    "aaguid",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Authenticator Attestation GUID (identifies authenticator model)",
                        max_length=36,
                    ),
                ),
                (
                    "transports",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Supported transports: usb, nfc, ble, internal, hybrid",
                    ),
                ),
                (
                    "backup_eligible",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the credential may be synced (e.g., iCloud Keychain)",
                    ),
                ),
                (
                    "backup_state",
                    models.BooleanField(default=False, help_text="Whether the credential is currently backed up"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "last_used_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Last time this passkey was used to log in",
                        null=True,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who owns this passkey",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="passkeys",
                        to="accounts.user",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["user", "created_at"], name="passkeys_user_created_idx")
                ],
            },
        ),
    ]
