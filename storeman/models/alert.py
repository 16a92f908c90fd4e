"""
StockAlert model — configurable low-stock trigger per (store, variant).

Usage:
    # Set alert threshold
    StockAlert.objects.create(store_id=1, variant_id=10, min_quantity=5)

    # The ledger notifies when available drops below min_quantity.
    # A full sweep (periodic task) is also available:
    from storeman.services.alerts import check_alerts
    triggered = check_alerts()
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class StockAlertQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)


class StockAlert(models.Model):
    """
    Low-stock threshold for one variant at one store.

    When available quantity drops below min_quantity, the alert is
    considered triggered and the configured LowStockNotifier is called
    after the transaction commits.
    """

    store_id = models.PositiveIntegerField(verbose_name=_('Store'))
    variant_id = models.PositiveIntegerField(verbose_name=_('Variant'))

    min_quantity = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        verbose_name=_('Minimum quantity'),
        help_text=_('Alert fires when available < this value'),
    )

    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    last_triggered_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Last triggered'),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockAlertQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock alert')
        verbose_name_plural = _('Stock alerts')
        constraints = [
            models.UniqueConstraint(
                fields=['store_id', 'variant_id'],
                name='unique_stock_alert_pair',
            ),
        ]

    def __str__(self) -> str:
        return f"Alert: store {self.store_id} / variant {self.variant_id} < {self.min_quantity}"
