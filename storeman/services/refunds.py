"""
Refunds — returns against a finalized sale.

A refund at or above REFUND_APPROVAL_THRESHOLD without an approver is
parked in pending_approval and touches no stock until approve().
"""

import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import DecimalField, Sum
from django.utils import timezone

from storeman.conf import storeman_settings
from storeman.exceptions import InvalidState, StockError
from storeman.models.enums import InvoiceStatus, MovementType, RefundStatus
from storeman.models.invoice import Invoice
from storeman.models.refund import Refund, RefundItem
from storeman.services.ledger import Ledger, to_positive
from storeman.tx import retry_on_conflict

logger = logging.getLogger('storeman')


def _refunded_quantities(invoice: Invoice) -> dict[int, Decimal]:
    """Quantity already claimed per invoice item by pending or completed refunds."""
    rows = (
        RefundItem.objects
        .filter(
            refund__invoice=invoice,
            refund__status__in=[RefundStatus.PENDING_APPROVAL, RefundStatus.COMPLETED],
        )
        .values('invoice_item_id')
        .annotate(total=Sum('quantity', output_field=DecimalField(max_digits=12, decimal_places=3)))
    )
    return {row['invoice_item_id']: row['total'] for row in rows}


def _parse_refund_lines(items) -> list[tuple[int | None, int | None, Decimal]]:
    """(invoice_item_id, variant_id, quantity > 0); exactly one of the ids is set."""
    lines = []
    for line in items:
        qty = to_positive(line['quantity'])
        if line.get('invoice_item_id') is not None:
            lines.append((int(line['invoice_item_id']), None, qty))
        else:
            lines.append((None, int(line['variant_id']), qty))
    if not lines:
        raise InvalidState('A refund needs at least one item')
    return lines


class Refunds:
    """Refund workflow."""

    @classmethod
    def _lock_invoice(cls, invoice_id: int) -> Invoice:
        try:
            invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
        except Invoice.DoesNotExist:
            raise StockError('NOT_FOUND', invoice_id=invoice_id) from None
        if invoice.status != InvoiceStatus.FINALIZED:
            raise InvalidState('Only finalized sales can be refunded', invoice_id=invoice.pk, current=invoice.status)
        return invoice

    @classmethod
    def _lock_pending(cls, refund_id: int) -> Refund:
        try:
            refund = Refund.objects.select_for_update().get(pk=refund_id)
        except Refund.DoesNotExist:
            raise StockError('NOT_FOUND', refund_id=refund_id) from None
        if refund.status != RefundStatus.PENDING_APPROVAL:
            raise InvalidState(refund_id=refund.pk, current=refund.status, expected=RefundStatus.PENDING_APPROVAL)
        return refund

    @classmethod
    def _complete(cls, refund: Refund, approver=None) -> Refund:
        """Restock every line (unless restock=False) and mark completed."""
        if refund.restock:
            lines: dict[int, Decimal] = defaultdict(Decimal)
            for item in refund.items.all():
                lines[item.variant_id] += item.quantity

            Ledger.lock_records((refund.store_id, variant_id) for variant_id in lines)
            for variant_id, qty in sorted(lines.items()):
                Ledger.restock(
                    refund.store_id, variant_id, qty, MovementType.REFUND,
                    reference=refund.refund_number,
                    user=approver or refund.requested_by,
                    reason=refund.reason or 'Refund',
                )

        refund.status = RefundStatus.COMPLETED
        refund.approved_by = approver
        refund.resolved_at = timezone.now()
        refund.save(update_fields=['status', 'approved_by', 'resolved_at'])
        return refund

    @classmethod
    def request(cls, invoice_id: int, items, user=None, approver=None,
                reason: str = '', restock: bool = True) -> Refund:
        """
        Refund lines of a sale.

        Args:
            items: iterable of dicts {invoice_item_id | variant_id, quantity}.
                A variant_id line is spread over that variant's invoice
                lines in order, up to what each line has left to refund.
            approver: user signing off a refund above the threshold

        Returns:
            Refund in completed or pending_approval status

        Raises:
            StockError('RETURN_WINDOW_EXPIRED'): If the sale is too old
            StockError('REFUND_EXCEEDS_SOLD'): If a line asks for more than is refundable
            InvalidState: If the invoice is not a finalized sale or items is empty
        """
        lines = _parse_refund_lines(items)
        return cls._request(invoice_id, lines, user, approver, reason, restock)

    @classmethod
    @retry_on_conflict
    def _request(cls, invoice_id: int, lines, user, approver, reason: str, restock: bool) -> Refund:
        with transaction.atomic():
            invoice = cls._lock_invoice(invoice_id)

            window = timedelta(hours=storeman_settings.RETURN_WINDOW_HOURS)
            sold_at = invoice.finalized_at or invoice.created_at
            if timezone.now() - sold_at > window:
                raise StockError(
                    'RETURN_WINDOW_EXPIRED',
                    invoice_id=invoice.pk,
                    sold_at=sold_at.isoformat(),
                    window_hours=storeman_settings.RETURN_WINDOW_HOURS,
                )

            invoice_items = list(invoice.items.order_by('id'))
            by_id = {item.pk: item for item in invoice_items}
            already = _refunded_quantities(invoice)
            remaining = {item.pk: item.quantity - already.get(item.pk, Decimal('0')) for item in invoice_items}

            requested: dict[int, Decimal] = defaultdict(Decimal)
            per_variant: dict[int, Decimal] = defaultdict(Decimal)
            for invoice_item_id, variant_id, qty in lines:
                if invoice_item_id is None:
                    per_variant[variant_id] += qty
                elif invoice_item_id in by_id:
                    requested[invoice_item_id] += qty
                else:
                    raise StockError('NOT_FOUND', invoice_id=invoice.pk, invoice_item_id=invoice_item_id)

            for item_id, qty in requested.items():
                if qty > remaining[item_id]:
                    raise StockError(
                        'REFUND_EXCEEDS_SOLD',
                        invoice_id=invoice.pk,
                        variant_id=by_id[item_id].variant_id,
                        refundable=remaining[item_id],
                        requested=qty,
                    )
                remaining[item_id] -= qty

            for variant_id, qty in per_variant.items():
                candidates = [item for item in invoice_items if item.variant_id == variant_id]
                if not candidates:
                    raise StockError('NOT_FOUND', invoice_id=invoice.pk, variant_id=variant_id)
                refundable = sum((remaining[item.pk] for item in candidates), Decimal('0'))
                if qty > refundable:
                    raise StockError(
                        'REFUND_EXCEEDS_SOLD',
                        invoice_id=invoice.pk,
                        variant_id=variant_id,
                        refundable=refundable,
                        requested=qty,
                    )
                for item in candidates:
                    take = min(qty, remaining[item.pk])
                    if take > 0:
                        requested[item.pk] += take
                        remaining[item.pk] -= take
                        qty -= take

            amount = Decimal('0')
            refund_lines = []
            for item_id, qty in sorted(requested.items()):
                invoice_item = by_id[item_id]
                line_amount = (qty * invoice_item.unit_price).quantize(Decimal('0.01'))
                amount += line_amount
                refund_lines.append((invoice_item, qty, line_amount))

            needs_approval = amount >= storeman_settings.REFUND_APPROVAL_THRESHOLD and approver is None

            refund = Refund.objects.create(
                invoice=invoice,
                store_id=invoice.store_id,
                status=RefundStatus.PENDING_APPROVAL,
                amount=amount,
                reason=reason,
                restock=restock,
                requested_by=user,
            )
            RefundItem.objects.bulk_create([
                RefundItem(
                    refund=refund,
                    invoice_item=invoice_item,
                    variant_id=invoice_item.variant_id,
                    quantity=qty,
                    amount=line_amount,
                )
                for invoice_item, qty, line_amount in refund_lines
            ])

            if not needs_approval:
                cls._complete(refund, approver)

        if needs_approval:
            logger.info(
                "refund.pending_approval",
                extra={
                    "refund_id": refund.pk,
                    "invoice_id": invoice.pk,
                    "amount": str(amount),
                    "threshold": str(storeman_settings.REFUND_APPROVAL_THRESHOLD),
                },
            )
        else:
            logger.info(
                "refund.completed",
                extra={"refund_id": refund.pk, "invoice_id": invoice.pk, "amount": str(amount), "restock": restock},
            )
        return refund

    @classmethod
    @retry_on_conflict
    def approve(cls, refund_id: int, approver) -> Refund:
        """
        Sign off a pending refund: restock and complete.

        Raises:
            InvalidState: If the refund is not pending or approver is None
        """
        if approver is None:
            raise InvalidState('An approver is required', refund_id=refund_id)

        with transaction.atomic():
            refund = cls._lock_pending(refund_id)
            cls._complete(refund, approver)

        logger.info(
            "refund.approved",
            extra={"refund_id": refund.pk, "approver_id": approver.pk, "amount": str(refund.amount)},
        )
        return refund

    @classmethod
    @retry_on_conflict
    def reject(cls, refund_id: int, user=None, reason: str = '') -> Refund:
        """Close a pending refund without touching stock."""
        with transaction.atomic():
            refund = cls._lock_pending(refund_id)
            refund.status = RefundStatus.REJECTED
            refund.approved_by = user
            refund.rejection_reason = reason
            refund.resolved_at = timezone.now()
            refund.save(update_fields=['status', 'approved_by', 'rejection_reason', 'resolved_at'])

        logger.info(
            "refund.rejected",
            extra={"refund_id": refund.pk, "reason": reason},
        )
        return refund
