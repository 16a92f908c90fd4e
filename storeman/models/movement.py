"""
StockMovement model — Immutable ledger of quantity changes.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from storeman.models.enums import MovementType


class StockMovementQuerySet(models.QuerySet):

    def for_pair(self, store_id: int, variant_id: int):
        return self.filter(store_id=store_id, variant_id=variant_id)

    def for_reference(self, reference_id: str):
        return self.filter(reference_id=str(reference_id))


class StockMovement(models.Model):
    """
    Immutable record of a quantity change.

    Rules:
    - NEVER update() or delete()
    - Corrections are new movements (an adjustment)
    - Written by the ledger in the same transaction as the balance change

    Pure reservations (reserve/release) change StockRecord.reserved only and
    have no movement.
    """

    store_id = models.PositiveIntegerField(verbose_name=_('Store'))
    variant_id = models.PositiveIntegerField(verbose_name=_('Variant'))

    change = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        verbose_name=_('Change'),
        help_text=_('Positive = in, negative = out'),
    )
    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        verbose_name=_('Type'),
    )

    # Free-form link to the causing order / invoice / transfer / refund
    reference_id = models.CharField(
        max_length=64,
        blank=True,
        default='',
        db_index=True,
        verbose_name=_('Reference'),
    )
    reason = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Reason'))

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Created by'),
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = StockMovementQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock movement')
        verbose_name_plural = _('Stock movements')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['store_id', 'variant_id', 'created_at'], name='storeman_mv_pair_idx'),
        ]

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValueError(
                "Stock movements are immutable. "
                "Record a correcting adjustment instead."
            )
        if not self.change:
            raise ValueError("A movement must change the quantity")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(
            "Stock movements are immutable. "
            "Record a correcting adjustment instead."
        )

    def __str__(self) -> str:
        signal = '+' if self.change > 0 else ''
        return f"{signal}{self.change} {self.movement_type} | {self.reference_id or self.reason}"
