"""
POS checkout and held carts.

Checkout sells a cart in one transaction. Holds park a cart with a
reservation on every line until resumed, cancelled or expired.

Usage:
    from storeman.services import Checkout

    invoice = Checkout.checkout(store_id, [{'variant_id': 10, 'quantity': 2, 'unit_price': '4.50'}])

    held = Checkout.hold(store_id, items, user=cashier)
    Checkout.resume(held.hold_id, user=cashier)
"""

import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from storeman.adapters.catalog import validate_variants
from storeman.conf import storeman_settings
from storeman.exceptions import HoldNotFound, InsufficientStock, IntegrityViolation, InvalidState
from storeman.models.enums import InvoiceStatus, MovementType, PaymentMethod, ShiftStatus
from storeman.models.invoice import Invoice, InvoiceItem
from storeman.services.ledger import Ledger, to_money, to_positive
from storeman.tx import retry_on_conflict

logger = logging.getLogger('storeman')


def _parse_hold_id(hold_id) -> int:
    """Extract PK from hold_id ("hold:{pk}" or the pk itself)."""
    if isinstance(hold_id, int) and not isinstance(hold_id, bool):
        return hold_id
    if isinstance(hold_id, str) and hold_id.startswith('hold:'):
        try:
            return int(hold_id.split(':')[1])
        except (IndexError, ValueError):
            pass
    raise HoldNotFound(hold_id=hold_id)


def _parse_lines(items) -> list[tuple[int, Decimal, Decimal]]:
    lines = []
    for item in items:
        lines.append((
            int(item['variant_id']),
            to_positive(item['quantity']),
            to_money(item['unit_price'], field='unit_price'),
        ))
    if not lines:
        raise InvalidState('A cart needs at least one item')
    return lines


def _per_variant(lines) -> dict[int, Decimal]:
    totals: dict[int, Decimal] = defaultdict(Decimal)
    for variant_id, qty, _ in lines:
        totals[variant_id] += qty
    return dict(sorted(totals.items()))


class Checkout:
    """POS-facing cart workflow."""

    @classmethod
    def _create_invoice(cls, store_id: int, lines, status: str, user=None, shift=None,
                        payment_method: str = PaymentMethod.CASH, **fields) -> Invoice:
        if shift is not None and (shift.status != ShiftStatus.OPEN or shift.store_id != store_id):
            raise InvalidState('Shift is not open at this store', shift_id=shift.pk)

        total = sum((qty * price for _, qty, price in lines), Decimal('0'))
        invoice = Invoice.objects.create(
            store_id=store_id,
            cashier=user,
            shift=shift,
            status=status,
            payment_method=payment_method,
            total_amount=total.quantize(Decimal('0.01')),
            **fields,
        )
        InvoiceItem.objects.bulk_create([
            InvoiceItem(invoice=invoice, variant_id=variant_id, quantity=qty, unit_price=price)
            for variant_id, qty, price in lines
        ])
        return invoice

    @classmethod
    def _invoice_lines(cls, invoice: Invoice) -> dict[int, Decimal]:
        return _per_variant(
            (item.variant_id, item.quantity, item.unit_price)
            for item in invoice.items.all()
        )

    # ══════════════════════════════════════════════════════════════
    # CHECKOUT
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def checkout(cls, store_id: int, items, user=None, shift=None,
                 payment_method: str = PaymentMethod.CASH) -> Invoice:
        """
        Sell a cart.

        1. Read-time check: every line must be available (no mutation yet)
        2. One transaction: lock all rows, commit() every line as a sale

        If a concurrent sale consumed stock after the check, the failing
        commit rolls back the whole sale.

        Args:
            items: iterable of dicts {variant_id, quantity, unit_price}

        Raises:
            InsufficientStock: naming the first variant that cannot be sold
        """
        lines = _parse_lines(items)
        per_variant = _per_variant(lines)
        validate_variants(per_variant)
        return cls._sell(store_id, lines, per_variant, user, shift, payment_method)

    @classmethod
    @retry_on_conflict
    def _sell(cls, store_id: int, lines, per_variant, user, shift, payment_method) -> Invoice:
        for variant_id, qty in per_variant.items():
            available = Ledger.available(store_id, variant_id)
            if available < qty:
                raise InsufficientStock(
                    store_id=store_id,
                    variant_id=variant_id,
                    available=available,
                    requested=qty,
                )

        with transaction.atomic():
            now = timezone.now()
            invoice = cls._create_invoice(
                store_id, lines, InvoiceStatus.FINALIZED,
                user=user, shift=shift, payment_method=payment_method,
                finalized_at=now,
            )

            Ledger.lock_records((store_id, variant_id) for variant_id in per_variant)
            for variant_id, qty in per_variant.items():
                Ledger.commit(
                    store_id, variant_id, qty, MovementType.SALE,
                    reference=invoice.sale_number, user=user, reason='POS sale',
                )

        logger.info(
            "checkout.sale",
            extra={
                "invoice_id": invoice.pk,
                "store_id": store_id,
                "total": str(invoice.total_amount),
                "lines": len(lines),
            },
        )
        return invoice

    # ══════════════════════════════════════════════════════════════
    # HOLDS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def hold(cls, store_id: int, items, user=None, ttl_minutes: int | None = None) -> Invoice:
        """
        Park a cart and reserve its lines.

        With HOLDS_RESERVE_STOCK disabled the cart is parked without a
        reservation and resume() sells from free stock. A TTL of 0 parks
        the cart without expiry.

        Raises:
            RecordNotFound / InsufficientStock: From the failing line (nothing is reserved)
        """
        lines = _parse_lines(items)
        per_variant = _per_variant(lines)
        validate_variants(per_variant)
        ttl = storeman_settings.HOLD_TTL_MINUTES if ttl_minutes is None else ttl_minutes
        return cls._park(store_id, lines, per_variant, user, ttl)

    @classmethod
    @retry_on_conflict
    def _park(cls, store_id: int, lines, per_variant, user, ttl: int) -> Invoice:
        reserves = storeman_settings.HOLDS_RESERVE_STOCK
        expires_at = timezone.now() + timedelta(minutes=ttl) if ttl else None

        with transaction.atomic():
            invoice = cls._create_invoice(
                store_id, lines, InvoiceStatus.HELD, user=user,
                expires_at=expires_at,
                reserves_stock=reserves,
            )

            if reserves:
                Ledger.lock_records((store_id, variant_id) for variant_id in per_variant)
                for variant_id, qty in per_variant.items():
                    Ledger.reserve(store_id, variant_id, qty)

        logger.info(
            "checkout.hold.created",
            extra={
                "hold_id": invoice.hold_id,
                "store_id": store_id,
                "expires_at": invoice.expires_at.isoformat() if invoice.expires_at else None,
                "reserves_stock": reserves,
            },
        )
        return invoice

    @classmethod
    def _lock_held(cls, hold_id, store_id: int | None) -> Invoice:
        pk = _parse_hold_id(hold_id)
        invoice = Invoice.objects.select_for_update().filter(pk=pk).first()
        if (invoice is None
                or invoice.status != InvoiceStatus.HELD
                or (store_id is not None and invoice.store_id != store_id)):
            raise HoldNotFound(hold_id=hold_id)
        return invoice

    @classmethod
    def _release(cls, invoice: Invoice, reason: str) -> Invoice:
        """Release the hold's reservation and close it. Caller holds the row lock."""
        if invoice.reserves_stock:
            lines = cls._invoice_lines(invoice)
            Ledger.lock_records((invoice.store_id, variant_id) for variant_id in lines)
            for variant_id, qty in lines.items():
                Ledger.release(invoice.store_id, variant_id, qty)

        invoice.status = InvoiceStatus.RELEASED
        invoice.released_at = timezone.now()
        invoice.release_reason = reason
        invoice.save(update_fields=['status', 'released_at', 'release_reason'])
        logger.info(
            "checkout.hold.released",
            extra={"hold_id": invoice.hold_id, "reason": reason},
        )
        return invoice

    @classmethod
    @retry_on_conflict
    def get_held(cls, hold_id, store_id: int | None = None) -> Invoice:
        """
        Look up a live hold.

        An expired hold is released on the spot and reported as not found.

        Raises:
            HoldNotFound: If missing, resolved or expired
        """
        with transaction.atomic():
            invoice = cls._lock_held(hold_id, store_id)
            if not invoice.is_expired:
                return invoice
            cls._release(invoice, 'Expired')
        raise HoldNotFound(hold_id=hold_id, expired=True)

    @classmethod
    @retry_on_conflict
    def resume(cls, hold_id, store_id: int | None = None, user=None, shift=None,
               payment_method: str | None = None) -> Invoice:
        """
        Sell a held cart (held → finalized).

        Each line's reservation is converted into a sale. The reservation
        already guarantees capacity, so a shortfall found here means the
        invariant was broken elsewhere and raises IntegrityViolation.

        A hold can be resumed once: afterwards, or once expired, this
        raises HoldNotFound (an expired hold is released as a side effect).

        Raises:
            HoldNotFound: If missing, resolved or expired
            IntegrityViolation: If the reserved stock is no longer there
            InsufficientStock: Only for holds created without a reservation
        """
        with transaction.atomic():
            invoice = cls._lock_held(hold_id, store_id)

            if not invoice.is_expired:
                if shift is not None and (shift.status != ShiftStatus.OPEN or shift.store_id != invoice.store_id):
                    raise InvalidState('Shift is not open at this store', shift_id=shift.pk)

                lines = cls._invoice_lines(invoice)
                records = Ledger.lock_records((invoice.store_id, variant_id) for variant_id in lines)
                reference = invoice.sale_number

                for variant_id, qty in lines.items():
                    if invoice.reserves_stock:
                        record = records.get((invoice.store_id, variant_id))
                        if record is None or record.reserved < qty or record.quantity < qty:
                            logger.error(
                                "checkout.hold.integrity",
                                extra={
                                    "hold_id": invoice.hold_id,
                                    "variant_id": variant_id,
                                    "requested": str(qty),
                                    "reserved": str(record.reserved) if record else None,
                                    "quantity": str(record.quantity) if record else None,
                                },
                            )
                            raise IntegrityViolation(
                                'Held reservation is no longer backed by stock',
                                hold_id=invoice.hold_id,
                                variant_id=variant_id,
                                requested=qty,
                            )
                    Ledger.commit(
                        invoice.store_id, variant_id, qty, MovementType.SALE,
                        reference=reference, user=user, reason='POS sale (resumed hold)',
                        from_reserved=invoice.reserves_stock,
                    )

                invoice.status = InvoiceStatus.FINALIZED
                invoice.finalized_at = timezone.now()
                update_fields = ['status', 'finalized_at']
                if user is not None:
                    invoice.cashier = user
                    update_fields.append('cashier')
                if shift is not None:
                    invoice.shift = shift
                    update_fields.append('shift')
                if payment_method is not None:
                    invoice.payment_method = payment_method
                    update_fields.append('payment_method')
                invoice.save(update_fields=update_fields)

                logger.info(
                    "checkout.hold.resumed",
                    extra={"hold_id": invoice.hold_id, "total": str(invoice.total_amount)},
                )
                return invoice

            cls._release(invoice, 'Expired')
        raise HoldNotFound(hold_id=hold_id, expired=True)

    @classmethod
    @retry_on_conflict
    def cancel_hold(cls, hold_id, store_id: int | None = None, reason: str = 'Cancelled') -> Invoice:
        """
        Discard a held cart, releasing its reservation.

        Raises:
            HoldNotFound: If missing or already resolved
        """
        with transaction.atomic():
            invoice = cls._lock_held(hold_id, store_id)
            return cls._release(invoice, reason)

    @classmethod
    def release_expired(cls) -> int:
        """
        Release all expired holds in batches.

        Returns:
            Number of holds released

        Concurrency:
            - Each batch runs under its own transaction.atomic()
            - Uses select_for_update() with SKIP LOCKED: a hold being
              resumed right now is left to that request
            - Safe for multiple instances
        """
        total = 0
        batch_size = storeman_settings.EXPIRED_BATCH_SIZE

        while True:
            with transaction.atomic():
                batch = list(
                    Invoice.objects.select_for_update(skip_locked=True)
                    .expired()
                    .order_by('id')[:batch_size]
                )

                if not batch:
                    break

                for invoice in batch:
                    cls._release(invoice, 'Expired')
                total += len(batch)

        if total:
            logger.info(
                "checkout.holds.expired_released",
                extra={"released": total},
            )
        return total
