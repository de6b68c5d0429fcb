from django.core.management.base import BaseCommand, CommandError

from checkout.config import get_checkout_settings
from checkout.errors import CheckoutError
from checkout.reconcile import reconcile_submitted


class Command(BaseCommand):
    help = 'Mark submitted crypto payments complete or failed from their on-chain receipts.'

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=None,
                            help='Maximum number of payments to check.')

    def handle(self, *args, **options):
        try:
            summary = reconcile_submitted(get_checkout_settings(), limit=options['limit'])
        except CheckoutError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(
            f'checked={summary.checked} completed={summary.completed} '
            f'failed={summary.failed} pending={summary.pending} errors={summary.errors}'
        )
