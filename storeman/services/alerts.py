"""
Stock alerts — low-stock detection and notification.

Usage:
    from storeman.services.alerts import check_alerts

    # Run periodically (celery beat, cron)
    triggered = check_alerts()
    # Returns list of (StockAlert, current_available) tuples

The ledger also calls check_low_stock() after every mutation, which
notifies once when available crosses below an alert's threshold.
"""

import functools
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from storeman.adapters.notifications import get_low_stock_notifier
from storeman.models.alert import StockAlert
from storeman.models.stock_record import StockRecord

logger = logging.getLogger('storeman')


def check_low_stock(record: StockRecord, before_available: Decimal) -> bool:
    """
    Schedule a notification if this change crossed an alert threshold.

    Must run inside the transaction that changed the record. Delivery
    happens after commit and can never fail the stock operation.

    Returns:
        True if a notification was scheduled.
    """
    after = record.available
    if after >= before_available:
        return False

    alert = StockAlert.objects.active().filter(
        store_id=record.store_id,
        variant_id=record.variant_id,
    ).first()
    if alert is None:
        return False

    if not (before_available >= alert.min_quantity > after):
        return False

    alert.last_triggered_at = timezone.now()
    alert.save(update_fields=['last_triggered_at', 'updated_at'])
    logger.warning(
        "stock.alert.triggered",
        extra={
            "alert_id": alert.pk,
            "store_id": record.store_id,
            "variant_id": record.variant_id,
            "min_quantity": str(alert.min_quantity),
            "available": str(after),
        },
    )
    transaction.on_commit(functools.partial(
        _deliver, record.store_id, record.variant_id, after, alert.min_quantity,
    ))
    return True


def _deliver(store_id: int, variant_id: int, available: Decimal, min_quantity: Decimal) -> None:
    try:
        get_low_stock_notifier().notify(store_id, variant_id, available, min_quantity)
    except Exception:
        logger.exception(
            "stock.alert.delivery_failed",
            extra={"store_id": store_id, "variant_id": variant_id},
        )


def check_alerts(store_id: int | None = None) -> list[tuple[StockAlert, Decimal]]:
    """
    Check all active alerts and return those that are triggered.

    An alert is triggered when available quantity < min_quantity.
    A pair with no stock record counts as 0 available.

    Args:
        store_id: Optional store to check alerts for (None = all).

    Returns:
        List of (alert, current_available) tuples for triggered alerts.
    """
    qs = StockAlert.objects.active()
    if store_id is not None:
        qs = qs.filter(store_id=store_id)

    triggered = []
    now = timezone.now()

    for alert in qs.order_by('store_id', 'variant_id'):
        record = StockRecord.objects.for_pair(alert.store_id, alert.variant_id).first()
        available = record.available if record else Decimal('0')

        if available < alert.min_quantity:
            alert.last_triggered_at = now
            alert.save(update_fields=['last_triggered_at', 'updated_at'])
            triggered.append((alert, available))
            logger.warning(
                "stock.alert.triggered",
                extra={
                    "alert_id": alert.pk,
                    "store_id": alert.store_id,
                    "variant_id": alert.variant_id,
                    "min_quantity": str(alert.min_quantity),
                    "available": str(available),
                },
            )

    return triggered
