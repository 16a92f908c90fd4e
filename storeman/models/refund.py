"""
Refund model — return of sold goods against a finalized invoice.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from storeman.models.enums import RefundStatus


class Refund(models.Model):
    """
    Refund of some lines of a sale.

    LIFECYCLE:

        request() ──► completed                        (small, or approver given)
        request() ──► pending_approval ──approve()──► completed
                              │
                              └──reject()──► rejected

    Stock is restocked only on entering completed, and only if restock=True.
    """

    invoice = models.ForeignKey(
        'storeman.Invoice',
        on_delete=models.PROTECT,
        related_name='refunds',
    )
    store_id = models.PositiveIntegerField(verbose_name=_('Store'))

    status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        db_index=True,
        verbose_name=_('Status'),
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Amount'),
    )
    reason = models.CharField(max_length=255, blank=True, default='')
    restock = models.BooleanField(default=True, verbose_name=_('Return to stock'))

    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    rejection_reason = models.CharField(max_length=255, blank=True, default='')

    created_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Refund')
        verbose_name_plural = _('Refunds')
        ordering = ['-id']

    @property
    def refund_number(self) -> str:
        return f"R{self.store_id}-{self.created_at:%Y%m%d}-{self.pk:06d}"

    @property
    def requires_approval(self) -> bool:
        return self.status == RefundStatus.PENDING_APPROVAL

    def __str__(self) -> str:
        return f"{self.refund_number} ({self.status}) {self.amount}"


class RefundItem(models.Model):
    refund = models.ForeignKey(
        Refund,
        on_delete=models.CASCADE,
        related_name='items',
    )
    invoice_item = models.ForeignKey(
        'storeman.InvoiceItem',
        on_delete=models.PROTECT,
        related_name='refund_items',
    )
    variant_id = models.PositiveIntegerField(verbose_name=_('Variant'))
    quantity = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Quantity'))
    amount = models.DecimalField(max_digits=12, decimal_places=2, verbose_name=_('Amount'))

    class Meta:
        verbose_name = _('Refund item')
        verbose_name_plural = _('Refund items')
        ordering = ['id']

    def __str__(self) -> str:
        return f"{self.quantity}x variant {self.variant_id} ({self.amount})"
