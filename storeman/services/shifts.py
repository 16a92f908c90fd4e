"""
Cashier shifts — open/close a till session and reconcile cash.
"""

import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import DecimalField, Sum
from django.utils import timezone

from storeman.exceptions import InvalidState, StockError
from storeman.models.enums import InvoiceStatus, PaymentMethod, ShiftStatus
from storeman.models.shift import Shift
from storeman.services.ledger import to_money
from storeman.tx import retry_on_conflict

logger = logging.getLogger('storeman')


class Shifts:

    @classmethod
    def current(cls, store_id: int, cashier) -> Shift | None:
        return Shift.objects.filter(store_id=store_id, cashier=cashier, status=ShiftStatus.OPEN).first()

    @classmethod
    @retry_on_conflict
    def open_shift(cls, store_id: int, cashier, opening_cash=Decimal('0'), notes: str = '') -> Shift:
        """
        Raises:
            InvalidState: If the cashier already has an open shift at this store
        """
        opening = to_money(opening_cash, field='opening_cash')

        try:
            with transaction.atomic():
                shift = Shift.objects.create(
                    store_id=store_id,
                    cashier=cashier,
                    opening_cash=opening,
                    notes=notes,
                )
        except IntegrityError:
            raise InvalidState(
                'Cashier already has an open shift',
                store_id=store_id,
                cashier_id=cashier.pk,
            ) from None

        logger.info(
            "shift.opened",
            extra={"shift_id": shift.pk, "store_id": store_id, "cashier_id": cashier.pk},
        )
        return shift

    @classmethod
    @retry_on_conflict
    def close_shift(cls, shift_id: int, closing_cash, notes: str = '') -> Shift:
        """
        Close a shift and compute its cash discrepancy.

        expected_cash = opening_cash + cash sales finalized in this shift.

        Raises:
            InvalidState: If the shift is already closed
        """
        closing = to_money(closing_cash, field='closing_cash')

        with transaction.atomic():
            try:
                shift = Shift.objects.select_for_update().get(pk=shift_id)
            except Shift.DoesNotExist:
                raise StockError('NOT_FOUND', shift_id=shift_id) from None
            if shift.status != ShiftStatus.OPEN:
                raise InvalidState(shift_id=shift.pk, current=shift.status)

            cash_sales = shift.invoices.filter(
                status=InvoiceStatus.FINALIZED,
                payment_method=PaymentMethod.CASH,
            ).aggregate(
                total=Sum('total_amount', output_field=DecimalField(max_digits=12, decimal_places=2))
            )['total'] or Decimal('0')

            shift.status = ShiftStatus.CLOSED
            shift.closing_cash = closing
            shift.expected_cash = shift.opening_cash + cash_sales
            shift.discrepancy = closing - shift.expected_cash
            shift.closed_at = timezone.now()
            if notes:
                shift.notes = f"{shift.notes}\n{notes}".strip()
            shift.save()

        if shift.discrepancy:
            logger.warning(
                "shift.discrepancy",
                extra={
                    "shift_id": shift.pk,
                    "expected": str(shift.expected_cash),
                    "counted": str(closing),
                    "discrepancy": str(shift.discrepancy),
                },
            )
        logger.info("shift.closed", extra={"shift_id": shift.pk})
        return shift
