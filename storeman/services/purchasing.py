"""
Purchase orders — supplier order lifecycle.

State machine:
    draft → submitted → approved → received (terminal)
    cancelled reachable from any non-terminal state

receive() calls Ledger.receive() for every item inside one transaction:
if any line fails, nothing is received and the order keeps its status.
"""

import logging

from django.db import transaction
from django.utils import timezone

from storeman.adapters.catalog import validate_variants
from storeman.exceptions import InvalidState, OrderLocked, StockError
from storeman.models.enums import PurchaseOrderStatus
from storeman.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from storeman.services.ledger import Ledger, to_money, to_positive
from storeman.tx import retry_on_conflict

logger = logging.getLogger('storeman')

TRANSITIONS = {
    PurchaseOrderStatus.DRAFT: {PurchaseOrderStatus.SUBMITTED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.SUBMITTED: {PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.APPROVED: {PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.RECEIVED: set(),
    PurchaseOrderStatus.CANCELLED: set(),
}


def _parse_items(items) -> list[tuple[int, object, object]]:
    """Validate raw item dicts: (variant_id, quantity > 0, unit_cost >= 0)."""
    parsed = []
    for item in items:
        parsed.append((
            int(item['variant_id']),
            to_positive(item['quantity']),
            to_money(item.get('unit_cost', 0), field='unit_cost'),
        ))
    return parsed


class PurchaseOrders:
    """Purchase order workflow."""

    @classmethod
    def _lock(cls, order_id: int) -> PurchaseOrder:
        try:
            return PurchaseOrder.objects.select_for_update().get(pk=order_id)
        except PurchaseOrder.DoesNotExist:
            raise StockError('NOT_FOUND', purchase_order_id=order_id) from None

    @classmethod
    def _lock_editable(cls, order_id: int) -> PurchaseOrder:
        order = cls._lock(order_id)
        if order.status == PurchaseOrderStatus.RECEIVED:
            raise OrderLocked(purchase_order_id=order.pk)
        if order.status == PurchaseOrderStatus.CANCELLED:
            raise InvalidState('Cancelled orders cannot be edited', purchase_order_id=order.pk)
        return order

    @classmethod
    def _transition(cls, order: PurchaseOrder, target: str) -> None:
        if target not in TRANSITIONS[order.status]:
            if order.status == PurchaseOrderStatus.RECEIVED:
                raise OrderLocked(purchase_order_id=order.pk)
            raise InvalidState(
                purchase_order_id=order.pk,
                current=order.status,
                target=target,
            )
        order.status = target

    # ══════════════════════════════════════════════════════════════
    # CREATION AND EDITS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def create(cls, store_id: int, items, supplier_id: int | None = None,
               user=None, order_number: str = '') -> PurchaseOrder:
        """
        Create a draft order.

        Args:
            items: iterable of dicts {variant_id, quantity, unit_cost}

        Raises:
            InvalidQuantity: If any quantity <= 0 or unit_cost < 0
            InvalidState: If items is empty
            StockError('UNKNOWN_VARIANT'): If catalog validation is on and fails
        """
        parsed = _parse_items(items)
        if not parsed:
            raise InvalidState('A purchase order needs at least one item')
        validate_variants(variant_id for variant_id, _, _ in parsed)
        return cls._create(store_id, parsed, supplier_id, user, order_number)

    @classmethod
    @retry_on_conflict
    def _create(cls, store_id: int, parsed, supplier_id, user, order_number: str) -> PurchaseOrder:
        with transaction.atomic():
            order = PurchaseOrder.objects.create(
                store_id=store_id,
                supplier_id=supplier_id,
                order_number=order_number,
                created_by=user,
            )
            PurchaseOrderItem.objects.bulk_create([
                PurchaseOrderItem(order=order, variant_id=variant_id, quantity=qty, unit_cost=cost)
                for variant_id, qty, cost in parsed
            ])
            order.recalculate_total()

        logger.info(
            "purchase_order.created",
            extra={
                "purchase_order_id": order.pk,
                "store_id": store_id,
                "items": len(parsed),
                "total": str(order.total_amount),
            },
        )
        return order

    @classmethod
    @retry_on_conflict
    def add_item(cls, order_id: int, variant_id: int, quantity, unit_cost) -> PurchaseOrderItem:
        """
        Raises:
            OrderLocked: If the order was received
            InvalidState: If the order was cancelled
        """
        [(variant_id, qty, cost)] = _parse_items([
            {'variant_id': variant_id, 'quantity': quantity, 'unit_cost': unit_cost}
        ])
        validate_variants([variant_id])

        with transaction.atomic():
            order = cls._lock_editable(order_id)
            item = PurchaseOrderItem.objects.create(
                order=order, variant_id=variant_id, quantity=qty, unit_cost=cost,
            )
            order.recalculate_total()
            return item

    @classmethod
    @retry_on_conflict
    def update_item(cls, item_id: int, quantity=None, unit_cost=None) -> PurchaseOrderItem:
        with transaction.atomic():
            try:
                item = PurchaseOrderItem.objects.select_related('order').get(pk=item_id)
            except PurchaseOrderItem.DoesNotExist:
                raise StockError('NOT_FOUND', purchase_order_item_id=item_id) from None

            order = cls._lock_editable(item.order_id)
            if quantity is not None:
                item.quantity = to_positive(quantity)
            if unit_cost is not None:
                item.unit_cost = to_money(unit_cost, field='unit_cost')
            item.save(update_fields=['quantity', 'unit_cost'])
            order.recalculate_total()
            return item

    @classmethod
    @retry_on_conflict
    def remove_item(cls, item_id: int) -> PurchaseOrder:
        with transaction.atomic():
            try:
                item = PurchaseOrderItem.objects.get(pk=item_id)
            except PurchaseOrderItem.DoesNotExist:
                raise StockError('NOT_FOUND', purchase_order_item_id=item_id) from None

            order = cls._lock_editable(item.order_id)
            item.delete()
            order.recalculate_total()
            return order

    # ══════════════════════════════════════════════════════════════
    # TRANSITIONS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    @retry_on_conflict
    def submit(cls, order_id: int) -> PurchaseOrder:
        return cls._set_status(order_id, PurchaseOrderStatus.SUBMITTED)

    @classmethod
    @retry_on_conflict
    def approve(cls, order_id: int) -> PurchaseOrder:
        return cls._set_status(order_id, PurchaseOrderStatus.APPROVED)

    @classmethod
    @retry_on_conflict
    def cancel(cls, order_id: int) -> PurchaseOrder:
        return cls._set_status(order_id, PurchaseOrderStatus.CANCELLED)

    @classmethod
    def _set_status(cls, order_id: int, target: str) -> PurchaseOrder:
        with transaction.atomic():
            order = cls._lock(order_id)
            previous = order.status
            cls._transition(order, target)
            order.save(update_fields=['status', 'updated_at'])

        logger.info(
            "purchase_order.status",
            extra={"purchase_order_id": order.pk, "from": previous, "to": target},
        )
        return order

    @classmethod
    @retry_on_conflict
    def receive(cls, order_id: int, user=None, reason: str = 'Receive purchase order') -> PurchaseOrder:
        """
        Receive every item into the order's store (approved → received).

        All-or-nothing: a failing line aborts the whole receipt and the
        order stays approved.

        Raises:
            InvalidState: If the order is not approved
            OrderLocked: If the order was already received
        """
        with transaction.atomic():
            order = cls._lock(order_id)
            cls._transition(order, PurchaseOrderStatus.RECEIVED)

            items = list(order.items.order_by('variant_id', 'id'))
            if not items:
                raise InvalidState('Cannot receive an order without items', purchase_order_id=order.pk)

            Ledger.lock_records((order.store_id, item.variant_id) for item in items)
            for item in items:
                Ledger.receive(
                    order.store_id,
                    item.variant_id,
                    item.quantity,
                    unit_cost=item.unit_cost,
                    reference=order.number,
                    user=user,
                    reason=reason,
                )

            order.received_at = timezone.now()
            order.save(update_fields=['status', 'received_at', 'updated_at'])

        logger.info(
            "purchase_order.received",
            extra={
                "purchase_order_id": order.pk,
                "store_id": order.store_id,
                "items": len(items),
            },
        )
        return order
