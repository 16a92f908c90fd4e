"""
Transfers — moving stock between stores.

State machine:
    pending → in_transit → completed (terminal)
    cancelled reachable only from pending

Each transition runs in one transaction covering every line. Origin rows
are locked up front in (store_id, variant_id) order.
"""

import logging
from collections import defaultdict
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from storeman.adapters.catalog import validate_variants
from storeman.exceptions import InvalidState, RecordNotFound, StockError
from storeman.models.enums import MovementType, TransferStatus
from storeman.models.transfer import Transfer, TransferItem
from storeman.services.ledger import Ledger, to_positive
from storeman.tx import retry_on_conflict

logger = logging.getLogger('storeman')


def aggregate_lines(items) -> dict[int, Decimal]:
    """Sum quantities per variant, validating each line."""
    totals: dict[int, Decimal] = defaultdict(Decimal)
    for item in items:
        totals[int(item['variant_id'])] += to_positive(item['quantity'])
    return dict(sorted(totals.items()))


class Transfers:
    """Inter-store transfer workflow."""

    @classmethod
    def _lock(cls, transfer_id: int, expected: str) -> Transfer:
        try:
            transfer = Transfer.objects.select_for_update().get(pk=transfer_id)
        except Transfer.DoesNotExist:
            raise StockError('NOT_FOUND', transfer_id=transfer_id) from None

        if transfer.status != expected:
            raise InvalidState(
                transfer_id=transfer.pk,
                current=transfer.status,
                expected=expected,
            )
        return transfer

    @classmethod
    def create(cls, from_store_id: int, to_store_id: int, items,
               user=None, transfer_number: str = '') -> Transfer:
        """
        Create a pending transfer and reserve every line at the origin.

        All lines are reserved or none are: a line that cannot be reserved
        rolls back the reservations already made and the transfer itself.

        Args:
            items: iterable of dicts {variant_id, quantity}

        Raises:
            InvalidState: If from_store_id == to_store_id or items is empty
            RecordNotFound / InsufficientStock: From the failing line
        """
        if from_store_id == to_store_id:
            raise InvalidState(
                'Origin and destination must differ',
                from_store_id=from_store_id,
                to_store_id=to_store_id,
            )
        lines = aggregate_lines(items)
        if not lines:
            raise InvalidState('A transfer needs at least one item')
        validate_variants(lines)
        return cls._create(from_store_id, to_store_id, lines, user, transfer_number)

    @classmethod
    @retry_on_conflict
    def _create(cls, from_store_id: int, to_store_id: int, lines, user, transfer_number: str) -> Transfer:
        with transaction.atomic():
            transfer = Transfer.objects.create(
                from_store_id=from_store_id,
                to_store_id=to_store_id,
                transfer_number=transfer_number,
                created_by=user,
            )
            TransferItem.objects.bulk_create([
                TransferItem(transfer=transfer, variant_id=variant_id, quantity=qty)
                for variant_id, qty in lines.items()
            ])

            Ledger.lock_records((from_store_id, variant_id) for variant_id in lines)
            for variant_id, qty in lines.items():
                Ledger.reserve(from_store_id, variant_id, qty)

        logger.info(
            "transfer.created",
            extra={
                "transfer_id": transfer.pk,
                "from_store_id": from_store_id,
                "to_store_id": to_store_id,
                "items": len(lines),
            },
        )
        return transfer

    @classmethod
    @retry_on_conflict
    def dispatch(cls, transfer_id: int, user=None, reference=None,
                 reason: str = 'Dispatch transfer') -> Transfer:
        """
        Goods leave the origin (pending → in_transit).

        Consumes each line's reservation and origin quantity, logging
        transfer_out. The origin last_cost is captured on the line.
        """
        with transaction.atomic():
            transfer = cls._lock(transfer_id, TransferStatus.PENDING)
            items = list(transfer.items.order_by('variant_id', 'id'))

            records = Ledger.lock_records((transfer.from_store_id, item.variant_id) for item in items)
            for item in items:
                record = records.get((transfer.from_store_id, item.variant_id))
                if record is None:
                    raise RecordNotFound(store_id=transfer.from_store_id, variant_id=item.variant_id)

                Ledger.commit(
                    transfer.from_store_id,
                    item.variant_id,
                    item.quantity,
                    MovementType.TRANSFER_OUT,
                    reference=reference or transfer.number,
                    user=user,
                    reason=reason,
                    from_reserved=True,
                )
                item.unit_cost = record.last_cost
                item.save(update_fields=['unit_cost'])

            transfer.status = TransferStatus.IN_TRANSIT
            transfer.dispatched_at = timezone.now()
            transfer.save(update_fields=['status', 'dispatched_at'])

        logger.info("transfer.dispatched", extra={"transfer_id": transfer.pk})
        return transfer

    @classmethod
    @retry_on_conflict
    def receive(cls, transfer_id: int, user=None, reference=None,
                reason: str = 'Receive transfer') -> Transfer:
        """
        Goods arrive at the destination (in_transit → completed).

        Increments destination quantity per line, creating the record if
        the destination never held the variant, logging transfer_in.
        """
        with transaction.atomic():
            transfer = cls._lock(transfer_id, TransferStatus.IN_TRANSIT)
            items = list(transfer.items.order_by('variant_id', 'id'))

            Ledger.lock_records((transfer.to_store_id, item.variant_id) for item in items)
            for item in items:
                Ledger.restock(
                    transfer.to_store_id,
                    item.variant_id,
                    item.quantity,
                    MovementType.TRANSFER_IN,
                    reference=reference or transfer.number,
                    user=user,
                    reason=reason,
                    unit_cost=item.unit_cost,
                )

            transfer.status = TransferStatus.COMPLETED
            transfer.completed_at = timezone.now()
            transfer.save(update_fields=['status', 'completed_at'])

        logger.info("transfer.completed", extra={"transfer_id": transfer.pk})
        return transfer

    @classmethod
    @retry_on_conflict
    def cancel(cls, transfer_id: int) -> Transfer:
        """
        Cancel a pending transfer, releasing the origin reservations.

        Nothing moved physically, so no movement is written.

        Raises:
            InvalidState: If the transfer is not pending
        """
        with transaction.atomic():
            transfer = cls._lock(transfer_id, TransferStatus.PENDING)
            items = list(transfer.items.order_by('variant_id', 'id'))

            Ledger.lock_records((transfer.from_store_id, item.variant_id) for item in items)
            for item in items:
                Ledger.release(transfer.from_store_id, item.variant_id, item.quantity)

            transfer.status = TransferStatus.CANCELLED
            transfer.cancelled_at = timezone.now()
            transfer.save(update_fields=['status', 'cancelled_at'])

        logger.info("transfer.cancelled", extra={"transfer_id": transfer.pk})
        return transfer
