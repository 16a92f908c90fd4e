"""
Tests for refunds.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from storeman import StockError, ledger
from storeman.exceptions import InvalidState
from storeman.models import Invoice, MovementType, RefundStatus, StockMovement
from storeman.services import Checkout, Refunds
from storeman.tests.conftest import OTHER_VARIANT, STORE, VARIANT


pytestmark = pytest.mark.django_db


@pytest.fixture
def sale(stocked, cashier):
    """A sale of 10 x variant 10 at 20.00 and 2 x variant 11 at 1.50."""
    return Checkout.checkout(STORE, [
        {'variant_id': VARIANT, 'quantity': Decimal('10'), 'unit_price': Decimal('20.00')},
        {'variant_id': OTHER_VARIANT, 'quantity': Decimal('2'), 'unit_price': Decimal('1.50')},
    ], user=cashier)


def quantity(variant_id=VARIANT):
    return ledger.get_record(STORE, variant_id).quantity


class TestRefundRequest:
    """Tests for Refunds.request()."""

    def test_small_refund_completes_and_restocks(self, sale, cashier):
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('2')}], user=cashier, reason='Wrong size')

        assert refund.status == RefundStatus.COMPLETED
        assert refund.amount == Decimal('40.00')
        assert refund.resolved_at is not None
        assert quantity() == Decimal('92')

        [move] = StockMovement.objects.for_reference(refund.refund_number)
        assert move.movement_type == MovementType.REFUND
        assert move.change == Decimal('2')
        assert move.created_by == cashier

    def test_refund_number_format(self, sale):
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('1')}])

        assert refund.refund_number == f"R{STORE}-{refund.created_at:%Y%m%d}-{refund.pk:06d}"

    def test_large_refund_waits_for_approval(self, sale, cashier, manager):
        """Above the threshold without an approver: pending, stock untouched."""
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('6')}], user=cashier)

        assert refund.status == RefundStatus.PENDING_APPROVAL
        assert refund.requires_approval
        assert refund.amount == Decimal('120.00')
        assert quantity() == Decimal('90')
        assert not StockMovement.objects.filter(movement_type=MovementType.REFUND).exists()

        refund = Refunds.approve(refund.pk, approver=manager)

        assert refund.status == RefundStatus.COMPLETED
        assert refund.approved_by == manager
        assert quantity() == Decimal('96')

    def test_threshold_is_inclusive(self, sale, settings):
        settings.STOREMAN = {'REFUND_APPROVAL_THRESHOLD': Decimal('40.00')}

        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('2')}])

        assert refund.status == RefundStatus.PENDING_APPROVAL

    def test_approver_supplied_up_front(self, sale, manager):
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('10')}], approver=manager)

        assert refund.status == RefundStatus.COMPLETED
        assert quantity() == Decimal('100')

    def test_refund_by_invoice_item(self, sale):
        item = sale.items.get(variant_id=OTHER_VARIANT)

        refund = Refunds.request(sale.pk, [{'invoice_item_id': item.pk, 'quantity': Decimal('1')}])

        assert refund.amount == Decimal('1.50')
        assert quantity(OTHER_VARIANT) == Decimal('49')

    def test_refund_without_restock(self, sale):
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('1')}], restock=False, reason='Damaged')

        assert refund.status == RefundStatus.COMPLETED
        assert quantity() == Decimal('90')

    def test_cannot_refund_more_than_sold(self, sale):
        with pytest.raises(StockError) as exc:
            Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('11')}])

        assert exc.value.code == 'REFUND_EXCEEDS_SOLD'
        assert exc.value.refundable == Decimal('10')

    def test_earlier_refunds_count(self, sale, manager):
        Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('4')}])
        Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('5')}])  # pending

        with pytest.raises(StockError) as exc:
            Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('2')}], approver=manager)

        assert exc.value.code == 'REFUND_EXCEEDS_SOLD'
        assert exc.value.refundable == Decimal('1')

    def test_rejected_refunds_free_the_quantity(self, sale, manager):
        pending = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('10')}])
        Refunds.reject(pending.pk, user=manager, reason='No receipt')

        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('10')}], approver=manager)

        assert refund.status == RefundStatus.COMPLETED

    def test_return_window(self, sale, settings):
        Invoice.objects.filter(pk=sale.pk).update(finalized_at=timezone.now() - timedelta(hours=73))

        with pytest.raises(StockError) as exc:
            Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('1')}])
        assert exc.value.code == 'RETURN_WINDOW_EXPIRED'

        settings.STOREMAN = {'RETURN_WINDOW_HOURS': 96}
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('1')}])
        assert refund.status == RefundStatus.COMPLETED

    def test_only_finalized_sales(self, stocked):
        held = Checkout.hold(STORE, [{'variant_id': VARIANT, 'quantity': Decimal('1'), 'unit_price': Decimal('1.00')}])

        with pytest.raises(InvalidState):
            Refunds.request(held.pk, [{'variant_id': VARIANT, 'quantity': Decimal('1')}])

    def test_variant_spreads_over_split_lines(self, stocked):
        """A cart can carry the same variant on several lines."""
        split = Checkout.checkout(STORE, [
            {'variant_id': VARIANT, 'quantity': Decimal('2'), 'unit_price': Decimal('3.00')},
            {'variant_id': VARIANT, 'quantity': Decimal('3'), 'unit_price': Decimal('2.00')},
        ])

        refund = Refunds.request(split.pk, [{'variant_id': VARIANT, 'quantity': Decimal('4')}])

        assert [item.quantity for item in refund.items.order_by('invoice_item_id')] == [Decimal('2'), Decimal('2')]
        assert refund.amount == Decimal('10.00')
        assert quantity() == Decimal('99')

        with pytest.raises(StockError) as exc:
            Refunds.request(split.pk, [{'variant_id': VARIANT, 'quantity': Decimal('2')}])
        assert exc.value.code == 'REFUND_EXCEEDS_SOLD'
        assert exc.value.refundable == Decimal('1')

    def test_variant_lines_skip_explicitly_refunded_items(self, stocked):
        split = Checkout.checkout(STORE, [
            {'variant_id': VARIANT, 'quantity': Decimal('2'), 'unit_price': Decimal('3.00')},
            {'variant_id': VARIANT, 'quantity': Decimal('3'), 'unit_price': Decimal('2.00')},
        ])
        first, second = split.items.order_by('id')

        refund = Refunds.request(split.pk, [
            {'invoice_item_id': first.pk, 'quantity': Decimal('2')},
            {'variant_id': VARIANT, 'quantity': Decimal('3')},
        ])

        quantities = {item.invoice_item_id: item.quantity for item in refund.items.all()}
        assert quantities == {first.pk: Decimal('2'), second.pk: Decimal('3')}
        assert refund.amount == Decimal('12.00')

    def test_variant_not_on_invoice(self, sale):
        with pytest.raises(StockError) as exc:
            Refunds.request(sale.pk, [{'variant_id': 999, 'quantity': Decimal('1')}])

        assert exc.value.code == 'NOT_FOUND'


class TestRefundResolution:
    """Tests for approve() / reject()."""

    def test_reject_leaves_stock_alone(self, sale, manager):
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('6')}])

        refund = Refunds.reject(refund.pk, user=manager, reason='Used item')

        assert refund.status == RefundStatus.REJECTED
        assert refund.rejection_reason == 'Used item'
        assert quantity() == Decimal('90')

    def test_resolve_only_once(self, sale, manager):
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('6')}])
        Refunds.approve(refund.pk, approver=manager)

        with pytest.raises(InvalidState):
            Refunds.approve(refund.pk, approver=manager)
        with pytest.raises(InvalidState):
            Refunds.reject(refund.pk, user=manager)
        assert quantity() == Decimal('96')

    def test_approve_needs_approver(self, sale):
        refund = Refunds.request(sale.pk, [{'variant_id': VARIANT, 'quantity': Decimal('6')}])

        with pytest.raises(InvalidState):
            Refunds.approve(refund.pk, approver=None)
