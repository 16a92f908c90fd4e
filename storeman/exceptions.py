"""
Exceptions for Storeman.

All errors are StockError with a structured code for programmatic handling.
Typed subclasses exist for the failures callers branch on most often, so
both styles work:

    try:
        ledger.reserve(store_id, variant_id, Decimal('3'))
    except InsufficientStock as e:
        print(f"Only {e.available} available")

    try:
        ledger.reserve(store_id, variant_id, Decimal('3'))
    except StockError as e:
        if e.code == 'INSUFFICIENT_STOCK':
            ...
"""

from decimal import Decimal
from typing import Any


class StockError(Exception):
    """
    Structured exception for stock operations.

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    default_code = 'STOCK_ERROR'

    _default_messages = {
        'STOCK_ERROR': 'Stock operation failed',
        'INVALID_QUANTITY': 'Invalid quantity (must be a positive decimal)',
        'RECORD_NOT_FOUND': 'No stock record for this store and variant',
        'INSUFFICIENT_STOCK': 'Requested quantity is not available',
        'RESERVATION_MISMATCH': 'Requested quantity exceeds the held reservation',
        'INVALID_STATE': 'Operation not allowed in the current state',
        'ORDER_LOCKED': 'Order is locked and can no longer be edited',
        'HOLD_NOT_FOUND': 'Hold not found, expired or already resolved',
        'CONCURRENCY_CONFLICT': 'Concurrent modification detected',
        'INTEGRITY_VIOLATION': 'Stock data integrity violation',
        'REASON_REQUIRED': 'A reason is required',
        'UNKNOWN_VARIANT': 'Unknown product variant',
        'RETURN_WINDOW_EXPIRED': 'Return window has expired',
        'REFUND_EXCEEDS_SOLD': 'Refund quantity exceeds quantity sold',
        'NOT_FOUND': 'Object not found',
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(self.message)

    def __getattr__(self, name):
        # Only called when normal lookup fails: expose context data as attributes.
        data = self.__dict__.get('data') or {}
        if name in data:
            return data[name]
        raise AttributeError(name)

    def __str__(self) -> str:
        if self.data:
            details = ', '.join(f"{k}={v}" for k, v in self.data.items())
            return f"[{self.code}] {self.message} ({details})"
        return f"[{self.code}] {self.message}"

    @property
    def available(self) -> Decimal:
        """Shortcut for data['available']."""
        return self.data.get('available', Decimal('0'))

    @property
    def requested(self) -> Decimal:
        """Shortcut for data['requested']."""
        return self.data.get('requested', Decimal('0'))

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }


class _TypedStockError(StockError):
    """StockError whose code is fixed by the subclass."""

    def __init__(self, message: str | None = None, **data):
        super().__init__(self.default_code, message, **data)


class InvalidQuantity(_TypedStockError):
    default_code = 'INVALID_QUANTITY'


class RecordNotFound(_TypedStockError):
    default_code = 'RECORD_NOT_FOUND'


class InsufficientStock(_TypedStockError):
    default_code = 'INSUFFICIENT_STOCK'


class ReservationMismatch(_TypedStockError):
    default_code = 'RESERVATION_MISMATCH'


class InvalidState(_TypedStockError):
    default_code = 'INVALID_STATE'


class OrderLocked(InvalidState):
    default_code = 'ORDER_LOCKED'


class HoldNotFound(_TypedStockError):
    default_code = 'HOLD_NOT_FOUND'


class ConcurrencyConflict(_TypedStockError):
    default_code = 'CONCURRENCY_CONFLICT'


class IntegrityViolation(_TypedStockError):
    """
    An invariant was found broken in stored data.

    Never a normal business failure: it means something wrote around the
    ledger. Always logged at ERROR before being raised.
    """

    default_code = 'INTEGRITY_VIOLATION'
