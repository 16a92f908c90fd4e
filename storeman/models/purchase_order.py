"""
PurchaseOrder model — supplier orders received into a store.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from storeman.models.enums import PurchaseOrderStatus


class PurchaseOrder(models.Model):
    """
    Order of goods from a supplier for one store.

    LIFECYCLE:

        draft ──► submitted ──► approved ──► received
          │           │            │
          └───────────┴────────────┴──────► cancelled

    Items may be edited until the order is received or cancelled.
    Receiving calls Ledger.receive() for every item in one transaction.
    """

    order_number = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Order number'))
    store_id = models.PositiveIntegerField(verbose_name=_('Store'))
    supplier_id = models.PositiveIntegerField(null=True, blank=True, verbose_name=_('Supplier'))

    status = models.CharField(
        max_length=20,
        choices=PurchaseOrderStatus.choices,
        default=PurchaseOrderStatus.DRAFT,
        db_index=True,
        verbose_name=_('Status'),
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Total'),
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    received_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Purchase order')
        verbose_name_plural = _('Purchase orders')
        ordering = ['-id']

    @property
    def number(self) -> str:
        return self.order_number or f"PO-{self.pk:06d}"

    @property
    def is_locked(self) -> bool:
        return self.status == PurchaseOrderStatus.RECEIVED

    def recalculate_total(self) -> Decimal:
        """Recompute total_amount from items and save it."""
        total = sum(
            (item.quantity * item.unit_cost for item in self.items.all()),
            Decimal('0'),
        )
        self.total_amount = total.quantize(Decimal('0.01'))
        self.save(update_fields=['total_amount', 'updated_at'])
        return self.total_amount

    def __str__(self) -> str:
        return f"{self.number} ({self.status})"


class PurchaseOrderItem(models.Model):
    order = models.ForeignKey(
        PurchaseOrder,
        on_delete=models.CASCADE,
        related_name='items',
    )
    variant_id = models.PositiveIntegerField(verbose_name=_('Variant'))
    quantity = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Quantity'))
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, verbose_name=_('Unit cost'))

    class Meta:
        verbose_name = _('Purchase order item')
        verbose_name_plural = _('Purchase order items')
        ordering = ['variant_id', 'id']

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_cost

    def __str__(self) -> str:
        return f"{self.quantity}x variant {self.variant_id} @ {self.unit_cost}"
