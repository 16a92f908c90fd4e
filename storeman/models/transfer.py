"""
Transfer model — stock moved between two stores.
"""

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from storeman.models.enums import TransferStatus


class Transfer(models.Model):
    """
    Inter-store transfer.

    LIFECYCLE:

        pending ──dispatch()──► in_transit ──receive()──► completed
           │
           └──cancel()──► cancelled

    pending:    quantities reserved at the origin
    in_transit: origin quantity and reservation consumed (transfer_out)
    completed:  destination quantity incremented (transfer_in)
    cancelled:  origin reservation released, nothing moved
    """

    transfer_number = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Transfer number'))
    from_store_id = models.PositiveIntegerField(verbose_name=_('From store'))
    to_store_id = models.PositiveIntegerField(verbose_name=_('To store'))

    status = models.CharField(
        max_length=20,
        choices=TransferStatus.choices,
        default=TransferStatus.PENDING,
        db_index=True,
        verbose_name=_('Status'),
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(default=timezone.now)
    dispatched_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Transfer')
        verbose_name_plural = _('Transfers')
        ordering = ['-id']
        constraints = [
            models.CheckConstraint(
                condition=~Q(from_store_id=F('to_store_id')),
                name='transfer_distinct_stores',
            ),
        ]

    @property
    def number(self) -> str:
        return self.transfer_number or f"TR-{self.pk:06d}"

    def __str__(self) -> str:
        return f"{self.number} {self.from_store_id}→{self.to_store_id} ({self.status})"


class TransferItem(models.Model):
    transfer = models.ForeignKey(
        Transfer,
        on_delete=models.CASCADE,
        related_name='items',
    )
    variant_id = models.PositiveIntegerField(verbose_name=_('Variant'))
    quantity = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Quantity'))

    # Origin last_cost captured at dispatch, applied at the destination
    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_('Unit cost'),
    )

    class Meta:
        verbose_name = _('Transfer item')
        verbose_name_plural = _('Transfer items')
        ordering = ['variant_id', 'id']

    def __str__(self) -> str:
        return f"{self.quantity}x variant {self.variant_id}"
