"""
Management command to release expired held carts.

Usage:
    python manage.py release_expired_holds
    python manage.py release_expired_holds --dry-run
"""

from django.core.management.base import BaseCommand

from storeman.models import Invoice
from storeman.services import Checkout


class Command(BaseCommand):
    """Release expired holds command."""

    help = 'Release held carts past their expiry and return their reservations'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show how many holds would be released without releasing them'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            expired = Invoice.objects.expired().count()
            self.stdout.write(f'{expired} hold(s) would be released')
        else:
            count = Checkout.release_expired()
            self.stdout.write(
                self.style.SUCCESS(f'{count} hold(s) released')
            )
