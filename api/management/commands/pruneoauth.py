import datetime

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from api.models import AccessToken, AuthorizationCode


class Command(BaseCommand):
    help = "Deletes authorization codes and access tokens that can no longer be used"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            "-d",
            type=int,
            default=None,
            help="Keep dead codes and tokens for this many days (for auditing)",
        )

    def handle(self, days: int | None, *args, **options):
        if days is None:
            days = settings.SETUP.PRUNE_RETENTION_DAYS
        horizon = timezone.now() - datetime.timedelta(days=days)
        self.stdout.write(f"Pruning codes and tokens dead since before {horizon}...")
        codes, _ = AuthorizationCode.objects.dead(horizon).delete()
        self.stdout.write(f"  deleted {codes} authorization codes")
        tokens, _ = AccessToken.objects.dead(horizon).delete()
        self.stdout.write(f"  deleted {tokens} access tokens")
