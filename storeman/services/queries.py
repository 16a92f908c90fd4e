"""
Stock queries — balances and movement trail, read-only.

All methods are classmethods and use no locking. Every call reads the
database: balances are never cached across requests.
"""

from decimal import Decimal

from storeman.models.movement import StockMovement
from storeman.models.stock_record import StockRecord


class StockQueries:
    """Read-only stock query methods."""

    @classmethod
    def get_record(cls, store_id: int, variant_id: int) -> StockRecord | None:
        """Get the record for a (store, variant) pair, or None."""
        return StockRecord.objects.for_pair(store_id, variant_id).first()

    @classmethod
    def available(cls, store_id: int, variant_id: int) -> Decimal:
        """
        Available quantity for sale/reservation.

        available = quantity - reserved (0 when no record exists)
        """
        record = cls.get_record(store_id, variant_id)
        if record is None:
            return Decimal('0')
        return record.available

    @classmethod
    def movements(cls, store_id: int, variant_id: int):
        """Movement trail for a pair, oldest first."""
        return StockMovement.objects.for_pair(store_id, variant_id).order_by('created_at', 'id')

    @classmethod
    def list_records(cls, store_id: int | None = None, variant_id: int | None = None,
                     include_empty: bool = False):
        """List records with filters."""
        qs = StockRecord.objects.all()

        if store_id is not None:
            qs = qs.filter(store_id=store_id)

        if variant_id is not None:
            qs = qs.filter(variant_id=variant_id)

        if not include_empty:
            qs = qs.filter(quantity__gt=0)

        return qs.order_by('store_id', 'variant_id')
