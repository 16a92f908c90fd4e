"""
Tests for low-stock alerts.
"""

from decimal import Decimal

import pytest

from storeman import ledger
from storeman.models import StockAlert
from storeman.services.alerts import check_alerts
from storeman.tests.conftest import OTHER_VARIANT, STORE, VARIANT


pytestmark = pytest.mark.django_db


@pytest.fixture
def alert(stocked):
    return StockAlert.objects.create(store_id=STORE, variant_id=VARIANT, min_quantity=Decimal('10'))


class TestLowStockNotification:
    """The notifier is called after commit when available crosses the threshold."""

    def test_crossing_notifies_after_commit(self, alert, notifier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            ledger.commit(STORE, VARIANT, Decimal('95'))

        assert len(callbacks) == 1
        assert notifier.calls == [(STORE, VARIANT, Decimal('5'), Decimal('10'))]
        alert.refresh_from_db()
        assert alert.last_triggered_at is not None

    def test_reservation_counts_as_crossing(self, alert, notifier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            ledger.reserve(STORE, VARIANT, Decimal('91'))

        assert notifier.calls == [(STORE, VARIANT, Decimal('9'), Decimal('10'))]

    def test_notifies_once_while_below(self, alert, notifier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            ledger.commit(STORE, VARIANT, Decimal('95'))
            ledger.commit(STORE, VARIANT, Decimal('1'))

        assert len(notifier.calls) == 1

    def test_no_notification_above_threshold(self, alert, notifier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            ledger.commit(STORE, VARIANT, Decimal('90'))
            ledger.receive(STORE, VARIANT, Decimal('5'))

        assert callbacks == []
        assert notifier.calls == []

    def test_inactive_alert_is_silent(self, alert, notifier, django_capture_on_commit_callbacks):
        alert.is_active = False
        alert.save()

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            ledger.commit(STORE, VARIANT, Decimal('95'))

        assert callbacks == []

    def test_rolled_back_change_never_notifies(self, alert, notifier, django_capture_on_commit_callbacks):
        from django.db import transaction

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(RuntimeError):
                with transaction.atomic():
                    ledger.commit(STORE, VARIANT, Decimal('95'))
                    raise RuntimeError('abort')

        assert callbacks == []
        assert notifier.calls == []

    def test_notifier_failure_does_not_fail_the_operation(self, alert, monkeypatch, django_capture_on_commit_callbacks, caplog):
        class BrokenNotifier:
            def notify(self, *args):
                raise ConnectionError('push service down')

        monkeypatch.setattr('storeman.adapters.notifications._notifier', BrokenNotifier())

        with django_capture_on_commit_callbacks(execute=True):
            record = ledger.commit(STORE, VARIANT, Decimal('95'))

        assert record.quantity == Decimal('5')
        assert 'stock.alert.delivery_failed' in caplog.text

    def test_default_notifier_logs(self, alert, django_capture_on_commit_callbacks, caplog):
        with django_capture_on_commit_callbacks(execute=True):
            ledger.commit(STORE, VARIANT, Decimal('95'))

        assert 'stock.low' in caplog.text


class TestCheckAlerts:
    """Tests for the periodic sweep."""

    def test_check_alerts(self, alert):
        StockAlert.objects.create(store_id=STORE, variant_id=OTHER_VARIANT, min_quantity=Decimal('5'))
        StockAlert.objects.create(store_id=STORE, variant_id=999, min_quantity=Decimal('1'))
        ledger.commit(STORE, VARIANT, Decimal('95'))

        triggered = check_alerts()

        assert [(a.variant_id, available) for a, available in triggered] == [
            (VARIANT, Decimal('5')),
            (999, Decimal('0')),
        ]

    def test_check_alerts_by_store(self, alert):
        ledger.commit(STORE, VARIANT, Decimal('95'))

        assert check_alerts(store_id=STORE + 1) == []
        assert len(check_alerts(store_id=STORE)) == 1
