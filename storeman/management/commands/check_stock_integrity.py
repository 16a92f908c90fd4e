"""
Management command to audit stock records against their movement trail.

Usage:
    python manage.py check_stock_integrity
    python manage.py check_stock_integrity --store 3

Exits with status 1 when a mismatch is found. Nothing is corrected:
fix a mismatch with an explicit adjustment.
"""

from django.core.management.base import BaseCommand, CommandError

from storeman.models import StockRecord


class Command(BaseCommand):

    help = 'Verify every stock record equals the sum of its movements'

    def add_arguments(self, parser):
        parser.add_argument('--store', type=int, help='Only check this store')

    def handle(self, *args, **options):
        qs = StockRecord.objects.order_by('store_id', 'variant_id')
        if options['store'] is not None:
            qs = qs.filter(store_id=options['store'])

        checked = 0
        broken = []
        for record in qs.iterator():
            checked += 1
            if not record.verify():
                broken.append(record)
                self.stdout.write(self.style.ERROR(f'MISMATCH {record}'))

        if broken:
            raise CommandError(f'{len(broken)} of {checked} record(s) do not match their movements')

        self.stdout.write(self.style.SUCCESS(f'{checked} record(s) verified'))
