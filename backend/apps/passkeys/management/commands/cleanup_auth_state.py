"""
Management command to clean up expired authentication state.

Deletes expired WebAuthn challenges and expired or used redirect tokens.
Begin endpoints already purge expired challenges opportunistically; run
this periodically via cron or a scheduled task to catch the rest.
Example: ./manage.py cleanup_auth_state --dry-run
"""

from django.core.management.base import BaseCommand
from django.db.models import Q
from django.utils import timezone

from apps.devices.models import RedirectToken
from apps.passkeys.models import AuthChallenge


class Command(BaseCommand):
    help = "Delete expired WebAuthn challenges and expired or used redirect tokens"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        now = timezone.now()

        challenges = AuthChallenge.objects.filter(expires_at__lte=now)
        redirect_tokens = RedirectToken.objects.filter(
            Q(used_at__isnull=False) | Q(expires_at__lte=now)
        )

        if dry_run:
            self.stdout.write(
                self.style.WARNING(
                    f"[DRY RUN] Would delete {challenges.count()} challenges "
                    f"and {redirect_tokens.count()} redirect tokens"
                )
            )
            return

        deleted_challenges, _ = challenges.delete()
        deleted_tokens, _ = redirect_tokens.delete()
        self.stdout.write(
            self.style.SUCCESS(
                f"Successfully deleted {deleted_challenges} challenges "
                f"and {deleted_tokens} redirect tokens"
            )
        )
