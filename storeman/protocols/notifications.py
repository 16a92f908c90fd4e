"""
Low-stock Notification Protocol.

Delivery is best-effort: the ledger calls notify() after the stock
transaction commits and logs, never propagates, any exception it raises.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable


@runtime_checkable
class LowStockNotifier(Protocol):

    def notify(self, store_id: int, variant_id: int,
               available: Decimal, min_quantity: Decimal) -> None:
        """
        Called when available drops below an alert's min_quantity.

        Args:
            store_id: Store of the record
            variant_id: Variant of the record
            available: Available quantity after the change
            min_quantity: Alert threshold that was crossed
        """
        ...
