"""
Invoice model — POS held cart or finalized sale.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from storeman.models.enums import InvoiceStatus, PaymentMethod


class InvoiceQuerySet(models.QuerySet):

    def held(self):
        return self.filter(status=InvoiceStatus.HELD)

    def expired(self):
        """Held carts past their expiry (still holding a reservation)."""
        return self.held().filter(expires_at__lt=timezone.now())

    def active_holds(self):
        return self.held().filter(
            Q(expires_at__isnull=True) | Q(expires_at__gte=timezone.now())
        )

    def sales(self):
        return self.filter(status=InvoiceStatus.FINALIZED)


class Invoice(models.Model):
    """
    A POS cart: either held (reserved, uncommitted) or a finalized sale.

    LIFECYCLE:

        checkout() ─────────────────────────► finalized
        hold() ──► held ──resume()──────────► finalized
                     │
                     └──cancel_hold() / expiry──► released

    A held cart is durable: its expiry lives in expires_at and the sweep
    (release_expired_holds command) or any lookup releases it once expired.
    """

    store_id = models.PositiveIntegerField(verbose_name=_('Store'))
    cashier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Cashier'),
    )
    shift = models.ForeignKey(
        'storeman.Shift',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invoices',
    )

    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.HELD,
        db_index=True,
        verbose_name=_('Status'),
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CASH,
        verbose_name=_('Payment method'),
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Total'),
    )

    # Whether this hold put a reservation on its lines
    reserves_stock = models.BooleanField(default=True)

    expires_at = models.DateTimeField(null=True, blank=True, db_index=True, verbose_name=_('Expires at'))
    created_at = models.DateTimeField(default=timezone.now)
    finalized_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    release_reason = models.CharField(max_length=255, blank=True, default='')

    objects = InvoiceQuerySet.as_manager()

    class Meta:
        verbose_name = _('Invoice')
        verbose_name_plural = _('Invoices')
        ordering = ['-id']
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='storeman_inv_status_exp_idx'),
        ]

    @property
    def hold_id(self) -> str:
        """Return hold identifier in standard format."""
        return f"hold:{self.pk}"

    @property
    def sale_number(self) -> str:
        return f"S{self.store_id}-{self.created_at:%Y%m%d}-{self.pk:06d}"

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return timezone.now() > self.expires_at

    def __str__(self) -> str:
        label = self.sale_number if self.status == InvoiceStatus.FINALIZED else self.hold_id
        return f"{label} ({self.status}) {self.total_amount}"


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='items',
    )
    variant_id = models.PositiveIntegerField(verbose_name=_('Variant'))
    quantity = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Quantity'))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, verbose_name=_('Unit price'))

    class Meta:
        verbose_name = _('Invoice item')
        verbose_name_plural = _('Invoice items')
        ordering = ['id']

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price

    def __str__(self) -> str:
        return f"{self.quantity}x variant {self.variant_id} @ {self.unit_price}"
