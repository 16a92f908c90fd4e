"""
StockRecord model — per (store, variant) balance.
"""

import logging
from decimal import Decimal

from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

logger = logging.getLogger('storeman')


class StockRecordManager(models.Manager):
    """Manager with helper methods for StockRecord queries."""

    def for_pair(self, store_id: int, variant_id: int):
        return self.filter(store_id=store_id, variant_id=variant_id)

    def at_store(self, store_id: int):
        return self.filter(store_id=store_id)

    def low(self):
        """Records with nothing left to sell."""
        return self.filter(quantity__lte=F('reserved'))


class StockRecord(models.Model):
    """
    Quantity of a product variant held by one store.

    Invariant: 0 <= reserved <= quantity, enforced here by check
    constraints and by the ledger before every write.

    Only storeman.services.ledger.Ledger writes to this table. Records are
    created on first receive or transfer-in and never deleted.
    """

    store_id = models.PositiveIntegerField(verbose_name=_('Store'))
    variant_id = models.PositiveIntegerField(verbose_name=_('Variant'))

    quantity = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Quantity'),
    )
    reserved = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Reserved'),
        help_text=_('Promised to holds and pending transfers.'),
    )
    last_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Last cost'),
    )

    created_at = models.DateTimeField(default=timezone.now)
    last_updated_at = models.DateTimeField(default=timezone.now)

    objects = StockRecordManager()

    class Meta:
        verbose_name = _('Stock record')
        verbose_name_plural = _('Stock records')
        constraints = [
            models.UniqueConstraint(
                fields=['store_id', 'variant_id'],
                name='unique_stock_record_pair',
            ),
            models.CheckConstraint(
                condition=Q(reserved__gte=0),
                name='stock_record_reserved_gte_0',
            ),
            models.CheckConstraint(
                condition=Q(reserved__lte=F('quantity')),
                name='stock_record_reserved_lte_qty',
            ),
        ]
        indexes = [
            models.Index(fields=['variant_id'], name='storeman_sr_variant_idx'),
        ]

    @property
    def available(self) -> Decimal:
        """Quantity that may still be reserved or sold."""
        return self.quantity - self.reserved

    @property
    def pair(self) -> tuple[int, int]:
        return (self.store_id, self.variant_id)

    def verify(self) -> bool:
        """
        Check this record against its movement trail.

        Use for:
        - Integrity audit (check_stock_integrity command)
        - Debug

        Returns:
            True when quantity equals the sum of movement changes and
            0 <= reserved <= quantity. Mismatches are logged, never corrected.
        """
        from storeman.models.movement import StockMovement

        # Summed in Python: SQLite aggregates decimal columns as floats.
        changes = StockMovement.objects.for_pair(self.store_id, self.variant_id).values_list('change', flat=True)
        total = sum(changes, Decimal('0'))

        ok = total == self.quantity and Decimal('0') <= self.reserved <= self.quantity
        if not ok:
            logger.error(
                "ledger.integrity.mismatch",
                extra={
                    "store_id": self.store_id,
                    "variant_id": self.variant_id,
                    "quantity": str(self.quantity),
                    "reserved": str(self.reserved),
                    "movement_total": str(total),
                },
            )
        return ok

    def __str__(self) -> str:
        return (
            f"store {self.store_id} / variant {self.variant_id}: "
            f"{self.quantity} ({self.reserved} reserved)"
        )
