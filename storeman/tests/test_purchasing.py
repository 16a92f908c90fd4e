"""
Tests for purchase orders.
"""

from decimal import Decimal
from unittest import mock

import pytest
from django.db import OperationalError

from storeman import StockError, ledger
from storeman.exceptions import InvalidQuantity, InvalidState, OrderLocked
from storeman.models import MovementType, PurchaseOrder, PurchaseOrderStatus, StockMovement, StockRecord
from storeman.protocols import VariantValidationResult
from storeman.services import Ledger, PurchaseOrders
from storeman.tests.conftest import OTHER_VARIANT, STORE, VARIANT


pytestmark = pytest.mark.django_db


ITEMS = [
    {'variant_id': VARIANT, 'quantity': Decimal('10'), 'unit_cost': Decimal('2.50')},
    {'variant_id': OTHER_VARIANT, 'quantity': Decimal('4'), 'unit_cost': Decimal('1.25')},
]


def approved_order(**kwargs):
    order = PurchaseOrders.create(STORE, ITEMS, **kwargs)
    PurchaseOrders.submit(order.pk)
    return PurchaseOrders.approve(order.pk)


class TestPurchaseOrderCreate:
    """Tests for PurchaseOrders.create()."""

    def test_create_draft_with_total(self, user):
        order = PurchaseOrders.create(STORE, ITEMS, supplier_id=7, user=user)

        assert order.status == PurchaseOrderStatus.DRAFT
        assert order.total_amount == Decimal('30.00')
        assert order.items.count() == 2
        assert order.number == f'PO-{order.pk:06d}'

    def test_create_keeps_given_number(self):
        order = PurchaseOrders.create(STORE, ITEMS, order_number='SUP-42')

        assert order.number == 'SUP-42'

    def test_create_rejects_empty_order(self):
        with pytest.raises(InvalidState):
            PurchaseOrders.create(STORE, [])

    def test_create_rejects_bad_quantity(self):
        with pytest.raises(InvalidQuantity):
            PurchaseOrders.create(STORE, [{'variant_id': VARIANT, 'quantity': 0, 'unit_cost': 1}])

    def test_create_validates_variants_when_enabled(self, settings):
        settings.STOREMAN = {
            'VALIDATE_INPUT_VARIANTS': True,
            'VARIANT_VALIDATOR': 'storeman.tests.test_purchasing.OddOnlyValidator',
        }

        with pytest.raises(StockError) as exc:
            PurchaseOrders.create(STORE, ITEMS)

        assert exc.value.code == 'UNKNOWN_VARIANT'
        assert exc.value.variant_ids == [VARIANT]


class OddOnlyValidator:
    """Catalog stub that knows only odd variant ids."""

    def validate_variant(self, variant_id):
        return VariantValidationResult(valid=bool(variant_id % 2), variant_id=variant_id)

    def validate_variants(self, variant_ids):
        return {variant_id: self.validate_variant(variant_id) for variant_id in variant_ids}


class TestPurchaseOrderEdits:
    """Item edits recompute the total until the order is received."""

    def test_add_update_remove_item(self):
        order = PurchaseOrders.create(STORE, ITEMS)

        item = PurchaseOrders.add_item(order.pk, 12, Decimal('2'), Decimal('10.00'))
        order.refresh_from_db()
        assert order.total_amount == Decimal('50.00')

        PurchaseOrders.update_item(item.pk, quantity=Decimal('3'))
        order.refresh_from_db()
        assert order.total_amount == Decimal('60.00')

        PurchaseOrders.remove_item(item.pk)
        order.refresh_from_db()
        assert order.total_amount == Decimal('30.00')

    def test_edit_allowed_while_approved(self):
        order = approved_order()

        PurchaseOrders.add_item(order.pk, 12, Decimal('1'), Decimal('1.00'))

        order.refresh_from_db()
        assert order.total_amount == Decimal('31.00')

    def test_received_order_is_locked(self):
        order = approved_order()
        PurchaseOrders.receive(order.pk)
        item = order.items.first()

        with pytest.raises(OrderLocked) as exc:
            PurchaseOrders.add_item(order.pk, 12, Decimal('1'), Decimal('1.00'))
        assert exc.value.code == 'ORDER_LOCKED'

        with pytest.raises(OrderLocked):
            PurchaseOrders.update_item(item.pk, quantity=Decimal('1'))
        with pytest.raises(OrderLocked):
            PurchaseOrders.remove_item(item.pk)

    def test_cancelled_order_cannot_be_edited(self):
        order = PurchaseOrders.create(STORE, ITEMS)
        PurchaseOrders.cancel(order.pk)

        with pytest.raises(InvalidState) as exc:
            PurchaseOrders.add_item(order.pk, 12, Decimal('1'), Decimal('1.00'))
        assert exc.value.code == 'INVALID_STATE'


class TestPurchaseOrderTransitions:
    """Tests for the status state machine."""

    def test_happy_path(self, user):
        order = approved_order()
        order = PurchaseOrders.receive(order.pk, user=user)

        assert order.status == PurchaseOrderStatus.RECEIVED
        assert order.received_at is not None

        record = ledger.get_record(STORE, VARIANT)
        assert record.quantity == Decimal('10')
        assert record.last_cost == Decimal('2.50')

        moves = StockMovement.objects.for_reference(order.number)
        assert moves.count() == 2
        assert {m.movement_type for m in moves} == {MovementType.RECEIVE}
        assert all(m.created_by == user for m in moves)

    @pytest.mark.parametrize('status', ['draft', 'submitted'])
    def test_receive_requires_approval(self, status):
        order = PurchaseOrders.create(STORE, ITEMS)
        if status == 'submitted':
            PurchaseOrders.submit(order.pk)

        with pytest.raises(InvalidState):
            PurchaseOrders.receive(order.pk)

        assert not StockRecord.objects.exists()

    def test_cannot_skip_submission(self):
        order = PurchaseOrders.create(STORE, ITEMS)

        with pytest.raises(InvalidState):
            PurchaseOrders.approve(order.pk)

    def test_cancel_from_each_open_state(self):
        for steps in ([], ['submit'], ['submit', 'approve']):
            order = PurchaseOrders.create(STORE, ITEMS)
            for step in steps:
                getattr(PurchaseOrders, step)(order.pk)

            assert PurchaseOrders.cancel(order.pk).status == PurchaseOrderStatus.CANCELLED

    def test_received_is_terminal(self):
        order = approved_order()
        PurchaseOrders.receive(order.pk)

        with pytest.raises(OrderLocked):
            PurchaseOrders.cancel(order.pk)
        with pytest.raises(OrderLocked):
            PurchaseOrders.receive(order.pk)

    def test_unknown_order(self):
        with pytest.raises(StockError) as exc:
            PurchaseOrders.submit(123456)

        assert exc.value.code == 'NOT_FOUND'


class TestPurchaseOrderAtomicity:
    """A failing line leaves no trace of the receipt."""

    def test_mid_receipt_failure_rolls_back_everything(self, stocked):
        order = approved_order()
        before = {
            r.pair: (r.quantity, r.reserved, r.last_cost)
            for r in StockRecord.objects.all()
        }
        moves_before = StockMovement.objects.count()

        real_receive = Ledger.receive.__func__
        calls = []

        def failing_receive(cls, *args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError('disk on fire')
            return real_receive(cls, *args, **kwargs)

        with mock.patch.object(Ledger, 'receive', classmethod(failing_receive)):
            with pytest.raises(RuntimeError):
                PurchaseOrders.receive(order.pk)

        assert len(calls) == 2
        order.refresh_from_db()
        assert order.status == PurchaseOrderStatus.APPROVED
        assert order.received_at is None
        assert StockMovement.objects.count() == moves_before
        assert {
            r.pair: (r.quantity, r.reserved, r.last_cost)
            for r in StockRecord.objects.all()
        } == before


@pytest.mark.django_db(transaction=True)
def test_create_from_generator_survives_a_retry(caplog):
    real_create = PurchaseOrder.objects.create
    calls = []

    def flaky_create(**kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            raise OperationalError('database is locked')
        return real_create(**kwargs)

    with mock.patch.object(PurchaseOrder.objects, 'create', side_effect=flaky_create):
        order = PurchaseOrders.create(STORE, (item for item in ITEMS))

    assert len(calls) == 2
    assert order.items.count() == 2
    assert order.total_amount == Decimal('30.00')
    assert 'tx.conflict.retry' in caplog.text
