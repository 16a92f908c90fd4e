"""
Concurrency tests.

The threaded tests rely on the database serialising writers: row locks
on PostgreSQL, IMMEDIATE transactions on the SQLite test database. The
retry policy is tested by injecting serialization failures.
"""

import threading
from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.db import OperationalError, connections
from django.utils import timezone

from storeman import ledger
from storeman.exceptions import ConcurrencyConflict, InsufficientStock
from storeman.models import Invoice, InvoiceStatus, Transfer
from storeman.services import Checkout, Ledger, Refunds, Transfers
from storeman.tests.conftest import OTHER_STORE, STORE, VARIANT


def run_concurrently(*funcs):
    """Run each func in its own thread and connection, released together."""
    barrier = threading.Barrier(len(funcs))
    results = [None] * len(funcs)

    def runner(index, func):
        try:
            barrier.wait()
            results[index] = func()
        except Exception as exc:
            results[index] = exc
        finally:
            connections.close_all()

    threads = [threading.Thread(target=runner, args=(i, f)) for i, f in enumerate(funcs)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results


@pytest.mark.django_db(transaction=True)
class TestConcurrentReservations:
    """Two callers racing for the same row never oversell."""

    def test_reserve_3_and_4_of_5(self):
        ledger.receive(STORE, VARIANT, Decimal('5'))

        results = run_concurrently(
            lambda: ledger.reserve(STORE, VARIANT, Decimal('3')),
            lambda: ledger.reserve(STORE, VARIANT, Decimal('4')),
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientStock)
        record = ledger.get_record(STORE, VARIANT)
        assert record.reserved in (Decimal('3'), Decimal('4'))

    def test_concurrent_checkouts_sell_each_unit_once(self):
        ledger.receive(STORE, VARIANT, Decimal('10'))
        cart = [{'variant_id': VARIANT, 'quantity': Decimal('1'), 'unit_price': Decimal('1.00')}]

        results = run_concurrently(*[lambda: Checkout.checkout(STORE, cart) for _ in range(15)])

        sold = [r for r in results if not isinstance(r, Exception)]
        assert len(sold) == 10
        assert all(isinstance(r, InsufficientStock) for r in results if isinstance(r, Exception))
        record = ledger.get_record(STORE, VARIANT)
        assert record.quantity == Decimal('0')
        assert record.verify()

    def test_resume_races_the_sweep(self):
        ledger.receive(STORE, VARIANT, Decimal('10'))
        held = Checkout.hold(STORE, [{'variant_id': VARIANT, 'quantity': Decimal('4'), 'unit_price': Decimal('1.00')}])
        Invoice.objects.filter(pk=held.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

        run_concurrently(
            lambda: Checkout.resume(held.hold_id),
            Checkout.release_expired,
        )

        record = ledger.get_record(STORE, VARIANT)
        assert record.reserved == Decimal('0')
        assert record.quantity == Decimal('10')
        assert Invoice.objects.get(pk=held.pk).status == InvoiceStatus.RELEASED


def locked_db(*args):
    raise OperationalError('database is locked')


def fail_first_lock(calls):
    """Patch Ledger._lock so that its first call hits a locked database."""
    real_lock = Ledger._lock.__func__

    def flaky_lock(cls, store_id, variant_id):
        calls.append((store_id, variant_id))
        if len(calls) == 1:
            locked_db()
        return real_lock(cls, store_id, variant_id)

    return mock.patch.object(Ledger, '_lock', classmethod(flaky_lock))


@pytest.mark.django_db(transaction=True)
class TestConflictRetry:
    """Outermost calls retry serialization failures with backoff."""

    def test_transient_conflict_is_retried(self, caplog):
        ledger.receive(STORE, VARIANT, Decimal('5'))
        calls = []

        with fail_first_lock(calls):
            record = ledger.reserve(STORE, VARIANT, Decimal('2'))

        assert len(calls) == 2
        assert record.reserved == Decimal('2')
        assert 'tx.conflict.retry' in caplog.text

    def test_retries_are_bounded(self, settings, caplog):
        settings.STOREMAN = {'CONFLICT_RETRIES': 4, 'CONFLICT_BACKOFF_SECONDS': 0}
        ledger.receive(STORE, VARIANT, Decimal('5'))

        with mock.patch.object(Ledger, '_lock', side_effect=locked_db) as lock:
            with pytest.raises(ConcurrencyConflict) as exc:
                ledger.reserve(STORE, VARIANT, Decimal('2'))

        assert lock.call_count == 4
        assert exc.value.attempts == 4
        assert exc.value.code == 'CONCURRENCY_CONFLICT'
        assert 'tx.conflict.exhausted' in caplog.text
        assert ledger.get_record(STORE, VARIANT).reserved == Decimal('0')

    def test_other_database_errors_propagate(self):
        ledger.receive(STORE, VARIANT, Decimal('5'))

        with mock.patch.object(Ledger, '_lock', side_effect=OperationalError('no such table')) as lock:
            with pytest.raises(OperationalError):
                ledger.reserve(STORE, VARIANT, Decimal('2'))

        assert lock.call_count == 1

    def test_workflow_retries_as_a_unit(self):
        """A conflict deep inside checkout re-runs the whole sale once."""
        ledger.receive(STORE, VARIANT, Decimal('5'))
        calls = []

        with fail_first_lock(calls):
            invoice = Checkout.checkout(STORE, [
                {'variant_id': VARIANT, 'quantity': Decimal('2'), 'unit_price': Decimal('1.00')},
            ])

        assert len(calls) == 2
        assert ledger.get_record(STORE, VARIANT).quantity == Decimal('3')
        assert invoice.items.count() == 1
        assert ledger.movements(STORE, VARIANT).count() == 2


@pytest.mark.django_db(transaction=True)
class TestRetryWithGeneratorItems:
    """Items given as a one-shot iterator are read once, before any retry."""

    def test_checkout(self):
        ledger.receive(STORE, VARIANT, Decimal('5'))
        cart = [{'variant_id': VARIANT, 'quantity': Decimal('2'), 'unit_price': Decimal('1.00')}]
        calls = []

        with fail_first_lock(calls):
            invoice = Checkout.checkout(STORE, (line for line in cart))

        assert len(calls) == 2
        assert invoice.items.count() == 1
        assert ledger.get_record(STORE, VARIANT).quantity == Decimal('3')

    def test_transfer_create(self, caplog):
        ledger.receive(STORE, VARIANT, Decimal('5'))
        lines = [{'variant_id': VARIANT, 'quantity': Decimal('2')}]
        calls = []

        with fail_first_lock(calls):
            transfer = Transfers.create(STORE, OTHER_STORE, (line for line in lines))

        assert 'tx.conflict.retry' in caplog.text
        assert Transfer.objects.count() == 1
        assert transfer.items.count() == 1
        assert ledger.get_record(STORE, VARIANT).reserved == Decimal('2')

    def test_refund_request(self):
        ledger.receive(STORE, VARIANT, Decimal('5'))
        sale = Checkout.checkout(STORE, [
            {'variant_id': VARIANT, 'quantity': Decimal('2'), 'unit_price': Decimal('1.00')},
        ])
        lines = [{'variant_id': VARIANT, 'quantity': Decimal('1')}]
        calls = []

        with fail_first_lock(calls):
            refund = Refunds.request(sale.pk, (line for line in lines))

        assert len(calls) == 2
        assert refund.items.count() == 1
        assert ledger.get_record(STORE, VARIANT).quantity == Decimal('4')


@pytest.mark.django_db
class TestNestedConflict:

    def test_nested_conflict_surfaces_immediately(self):
        """Inside an open transaction there is nothing to retry."""
        ledger.receive(STORE, VARIANT, Decimal('5'))

        with mock.patch.object(Ledger, '_lock', side_effect=locked_db) as lock:
            with pytest.raises(ConcurrencyConflict):
                ledger.reserve(STORE, VARIANT, Decimal('2'))

        assert lock.call_count == 1
