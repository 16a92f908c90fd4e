"""
Shift model — a cashier's open/closed till session at a store.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from storeman.models.enums import ShiftStatus


class Shift(models.Model):
    """
    Cashier shift.

    At most one open shift per (store, cashier), enforced by a partial
    unique constraint.
    """

    store_id = models.PositiveIntegerField(verbose_name=_('Store'))
    cashier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('Cashier'),
    )
    status = models.CharField(
        max_length=10,
        choices=ShiftStatus.choices,
        default=ShiftStatus.OPEN,
        db_index=True,
    )

    opening_cash = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    closing_cash = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    expected_cash = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    discrepancy = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True, default='')

    opened_at = models.DateTimeField(default=timezone.now)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Shift')
        verbose_name_plural = _('Shifts')
        ordering = ['-opened_at']
        constraints = [
            models.UniqueConstraint(
                fields=['store_id', 'cashier'],
                condition=Q(status='open'),
                name='unique_open_shift_per_cashier',
            ),
        ]

    def __str__(self) -> str:
        return f"Shift {self.pk} store {self.store_id} ({self.status})"
