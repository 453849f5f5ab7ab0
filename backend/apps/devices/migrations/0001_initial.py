import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="RedirectToken",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "token_hash",
                    models.CharField(help_text="SHA-256 hash of the JWT token", max_length=64, unique=True),
                ),
                (
                    "target_origin",
                    models.CharField(help_text="Origin that must complete the handoff", max_length=255),
                ),
                (
                    "target_path",
                    models.CharField(default="/", help_text="Path to land on after the handoff", max_length=2048),
                ),
                ("expires_at", models.DateTimeField(db_index=True, help_text="Token expiration timestamp")),
                (
                    "used_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Timestamp when token was used. NULL = unused.",
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User the session is handed to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="redirect_tokens",
                        to="accounts.user",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
