"""
Ledger — the reservation engine. Sole writer of StockRecord and StockMovement.

Every primitive runs under transaction.atomic() with the StockRecord row
locked by select_for_update(), so the read-validate-write sequence for a
(store, variant) pair is indivisible. Called inside a caller's atomic
block, a primitive becomes part of the caller's unit of work: any later
failure rolls it back too.

Usage:
    from storeman import ledger

    ledger.receive(1, 10, Decimal('100'), unit_cost=Decimal('5.00'))
    ledger.reserve(1, 10, Decimal('30'))
    ledger.commit(1, 10, Decimal('30'), MovementType.SALE, from_reserved=True)
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from storeman.exceptions import (
    InsufficientStock,
    IntegrityViolation,
    InvalidQuantity,
    InvalidState,
    RecordNotFound,
    ReservationMismatch,
    StockError,
)
from storeman.models.enums import MovementType
from storeman.models.movement import StockMovement
from storeman.models.stock_record import StockRecord
from storeman.services.alerts import check_low_stock
from storeman.services.queries import StockQueries
from storeman.tx import retry_on_conflict

logger = logging.getLogger('storeman')

QUANTITY_STEP = Decimal('0.001')
MONEY_STEP = Decimal('0.01')

OUTBOUND_TYPES = frozenset({MovementType.SALE, MovementType.TRANSFER_OUT})
INBOUND_TYPES = frozenset({MovementType.REFUND, MovementType.TRANSFER_IN})


def to_decimal(value, step: Decimal = QUANTITY_STEP, field: str = 'quantity') -> Decimal:
    """
    Coerce an exact amount to Decimal.

    Accepts Decimal, int and numeric strings. Floats are refused: they
    cannot represent most decimal amounts exactly. Values with more places
    than the column stores are refused rather than rounded.
    """
    if isinstance(value, (bool, float)) or not isinstance(value, (Decimal, int, str)):
        raise InvalidQuantity(**{field: value})
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidQuantity(**{field: value}) from None
    if not amount.is_finite() or amount != amount.quantize(step):
        raise InvalidQuantity(**{field: value})
    return amount


def to_positive(value, field: str = 'quantity') -> Decimal:
    amount = to_decimal(value, field=field)
    if amount <= 0:
        raise InvalidQuantity(**{field: amount})
    return amount


def to_money(value, field: str = 'amount') -> Decimal:
    amount = to_decimal(value, step=MONEY_STEP, field=field)
    if amount < 0:
        raise InvalidQuantity(**{field: amount})
    return amount


class Ledger(StockQueries):
    """
    Atomic stock primitives: receive, reserve, release, commit, restock, adjust.

    Parameter convention: (store_id, variant_id, quantity, ...)

    Movement pairing: every change to quantity writes exactly one
    StockMovement in the same transaction. reserve/release change only
    reserved and write no movement.
    """

    # ══════════════════════════════════════════════════════════════
    # LOCKING
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def lock_records(cls, pairs) -> dict[tuple[int, int], StockRecord]:
        """
        Lock every existing record for the given (store, variant) pairs.

        Locks are taken in ascending (store_id, variant_id) order so that
        multi-line operations never deadlock each other. Must be called
        inside transaction.atomic().

        Returns:
            Dict (store_id, variant_id) -> locked StockRecord. Missing pairs
            are absent from the dict.
        """
        pairs = sorted(set(pairs))
        if not pairs:
            return {}

        condition = Q()
        for store_id, variant_id in pairs:
            condition |= Q(store_id=store_id, variant_id=variant_id)

        records = (
            StockRecord.objects.select_for_update()
            .filter(condition)
            .order_by('store_id', 'variant_id')
        )
        return {record.pair: record for record in records}

    @classmethod
    def _lock(cls, store_id: int, variant_id: int) -> StockRecord:
        try:
            record = StockRecord.objects.select_for_update().get(
                store_id=store_id,
                variant_id=variant_id,
            )
        except StockRecord.DoesNotExist:
            raise RecordNotFound(store_id=store_id, variant_id=variant_id) from None
        cls._check_integrity(record)
        return record

    @classmethod
    def _lock_or_create(cls, store_id: int, variant_id: int) -> StockRecord:
        record, created = StockRecord.objects.select_for_update().get_or_create(
            store_id=store_id,
            variant_id=variant_id,
        )
        if created:
            logger.info(
                "ledger.record.created",
                extra={"store_id": store_id, "variant_id": variant_id},
            )
        cls._check_integrity(record)
        return record

    @classmethod
    def _check_integrity(cls, record: StockRecord) -> None:
        """Refuse to operate on a record whose invariant is already broken."""
        if Decimal('0') <= record.reserved <= record.quantity:
            return
        logger.error(
            "ledger.integrity.violation",
            extra={
                "store_id": record.store_id,
                "variant_id": record.variant_id,
                "quantity": str(record.quantity),
                "reserved": str(record.reserved),
            },
        )
        raise IntegrityViolation(
            store_id=record.store_id,
            variant_id=record.variant_id,
            quantity=record.quantity,
            reserved=record.reserved,
        )

    @classmethod
    def _save(cls, record: StockRecord, before_available: Decimal, change: Decimal = Decimal('0'),
              movement_type: str = '', reference=None, reason: str = '', user=None) -> StockRecord:
        """Write the new balance, its movement (if quantity changed) and alerts."""
        record.last_updated_at = timezone.now()
        record.save(update_fields=['quantity', 'reserved', 'last_cost', 'last_updated_at'])

        if change:
            StockMovement.objects.create(
                store_id=record.store_id,
                variant_id=record.variant_id,
                change=change,
                movement_type=movement_type,
                reference_id='' if reference is None else str(reference),
                reason=reason,
                created_by=user,
            )

        check_low_stock(record, before_available)
        return record

    # ══════════════════════════════════════════════════════════════
    # PRIMITIVES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    @retry_on_conflict
    def receive(cls, store_id: int, variant_id: int, quantity, unit_cost=Decimal('0'),
                reference=None, user=None, reason: str = 'Receive') -> StockRecord:
        """
        Stock entry from a supplier.

        Creates the record if absent, increments quantity, sets last_cost,
        appends a receive movement.

        Raises:
            InvalidQuantity: If quantity <= 0 or unit_cost < 0
        """
        qty = to_positive(quantity)
        cost = to_money(unit_cost, field='unit_cost')

        with transaction.atomic():
            record = cls._lock_or_create(store_id, variant_id)
            before = record.available

            record.quantity += qty
            record.last_cost = cost
            cls._save(record, before, qty, MovementType.RECEIVE, reference, reason, user)

            logger.info(
                "ledger.receive",
                extra={
                    "store_id": store_id,
                    "variant_id": variant_id,
                    "qty": str(qty),
                    "unit_cost": str(cost),
                    "reference": str(reference),
                },
            )
            return record

    @classmethod
    @retry_on_conflict
    def reserve(cls, store_id: int, variant_id: int, quantity) -> StockRecord:
        """
        Provisionally hold stock. No movement is written.

        Raises:
            InvalidQuantity: If quantity <= 0
            RecordNotFound: If the pair has no record
            InsufficientStock: If available < quantity
        """
        qty = to_positive(quantity)

        with transaction.atomic():
            record = cls._lock(store_id, variant_id)
            before = record.available

            if before < qty:
                raise InsufficientStock(
                    store_id=store_id,
                    variant_id=variant_id,
                    available=before,
                    requested=qty,
                )

            record.reserved += qty
            cls._save(record, before)

            logger.info(
                "ledger.reserve",
                extra={"store_id": store_id, "variant_id": variant_id, "qty": str(qty)},
            )
            return record

    @classmethod
    @retry_on_conflict
    def release(cls, store_id: int, variant_id: int, quantity) -> StockRecord:
        """
        Give back a reservation. No movement is written.

        Raises:
            InvalidQuantity: If quantity <= 0
            RecordNotFound: If the pair has no record
            InvalidState: If reserved < quantity
        """
        qty = to_positive(quantity)

        with transaction.atomic():
            record = cls._lock(store_id, variant_id)
            before = record.available

            if record.reserved < qty:
                raise InvalidState(
                    'Release exceeds reserved quantity',
                    store_id=store_id,
                    variant_id=variant_id,
                    reserved=record.reserved,
                    requested=qty,
                )

            record.reserved -= qty
            cls._save(record, before)

            logger.info(
                "ledger.release",
                extra={"store_id": store_id, "variant_id": variant_id, "qty": str(qty)},
            )
            return record

    @classmethod
    @retry_on_conflict
    def commit(cls, store_id: int, variant_id: int, quantity,
               movement_type: str = MovementType.SALE, reference=None, user=None,
               reason: str = '', from_reserved: bool = False) -> StockRecord:
        """
        Consume stock (sale, transfer out).

        from_reserved=True consumes a reservation made earlier by reserve():
        both quantity and reserved drop. Otherwise this is a direct sale
        from free stock and needs available >= quantity.

        Raises:
            InvalidQuantity: If quantity <= 0
            RecordNotFound: If the pair has no record
            ReservationMismatch: If from_reserved and reserved < quantity
            InsufficientStock: If not from_reserved and available < quantity
        """
        if movement_type not in OUTBOUND_TYPES:
            raise ValueError(f"commit() cannot record movement type {movement_type!r}")
        qty = to_positive(quantity)

        with transaction.atomic():
            record = cls._lock(store_id, variant_id)
            before = record.available

            if from_reserved:
                if record.reserved < qty:
                    raise ReservationMismatch(
                        store_id=store_id,
                        variant_id=variant_id,
                        reserved=record.reserved,
                        requested=qty,
                    )
                record.reserved -= qty
            elif before < qty:
                raise InsufficientStock(
                    store_id=store_id,
                    variant_id=variant_id,
                    available=before,
                    requested=qty,
                )

            record.quantity -= qty
            cls._save(record, before, -qty, movement_type, reference, reason, user)

            logger.info(
                "ledger.commit",
                extra={
                    "store_id": store_id,
                    "variant_id": variant_id,
                    "qty": str(qty),
                    "movement_type": str(movement_type),
                    "from_reserved": from_reserved,
                    "reference": str(reference),
                },
            )
            return record

    @classmethod
    @retry_on_conflict
    def restock(cls, store_id: int, variant_id: int, quantity,
                movement_type: str = MovementType.REFUND, reference=None, user=None,
                reason: str = '', unit_cost=None) -> StockRecord:
        """
        Return stock (refund) or take in a transfer.

        A transfer-in creates the destination record when it is the first
        time the store holds the variant. A refund requires the record.

        Raises:
            InvalidQuantity: If quantity <= 0
            RecordNotFound: If a refund targets a pair with no record
        """
        if movement_type not in INBOUND_TYPES:
            raise ValueError(f"restock() cannot record movement type {movement_type!r}")
        qty = to_positive(quantity)
        cost = None if unit_cost is None else to_money(unit_cost, field='unit_cost')

        with transaction.atomic():
            if movement_type == MovementType.TRANSFER_IN:
                record = cls._lock_or_create(store_id, variant_id)
            else:
                record = cls._lock(store_id, variant_id)
            before = record.available

            record.quantity += qty
            if cost is not None:
                record.last_cost = cost
            cls._save(record, before, qty, movement_type, reference, reason, user)

            logger.info(
                "ledger.restock",
                extra={
                    "store_id": store_id,
                    "variant_id": variant_id,
                    "qty": str(qty),
                    "movement_type": str(movement_type),
                    "reference": str(reference),
                },
            )
            return record

    @classmethod
    @retry_on_conflict
    def adjust(cls, store_id: int, variant_id: int, delta=None, set_to=None,
               reason: str = '', reference=None, user=None) -> StockRecord:
        """
        Inventory adjustment (count correction, damage, shrinkage).

        Exactly one of delta (signed) or set_to (absolute target) must be
        given. The result may not drop below reserved: stock promised to
        holds and transfers cannot be adjusted away. A zero effective
        change writes nothing.

        Raises:
            InvalidQuantity: If neither or both of delta/set_to are given
            StockError('REASON_REQUIRED'): If reason is empty
            RecordNotFound: If the pair has no record
            InsufficientStock: If the result would be < reserved (or < 0)
        """
        if (delta is None) == (set_to is None):
            raise InvalidQuantity('Exactly one of delta or set_to is required', delta=delta, set_to=set_to)
        if not reason:
            raise StockError('REASON_REQUIRED')

        if delta is not None:
            delta = to_decimal(delta, field='delta')
        else:
            set_to = to_decimal(set_to, field='set_to')
            if set_to < 0:
                raise InvalidQuantity(set_to=set_to)

        with transaction.atomic():
            record = cls._lock(store_id, variant_id)
            before = record.available

            new_quantity = record.quantity + delta if delta is not None else set_to
            if new_quantity < record.reserved:
                raise InsufficientStock(
                    'Adjustment would drop quantity below reserved',
                    store_id=store_id,
                    variant_id=variant_id,
                    available=before,
                    reserved=record.reserved,
                    requested=new_quantity,
                )

            change = new_quantity - record.quantity
            if change == 0:
                return record

            record.quantity = new_quantity
            cls._save(record, before, change, MovementType.ADJUSTMENT, reference, reason, user)

            logger.info(
                "ledger.adjust",
                extra={
                    "store_id": store_id,
                    "variant_id": variant_id,
                    "delta": str(change),
                    "reason": reason,
                },
            )
            return record
