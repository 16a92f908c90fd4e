"""
Noop adapters — stubs for development and testing.

Usage in settings.py:
    STOREMAN = {
        "VARIANT_VALIDATOR": "storeman.adapters.noop.NoopVariantValidator",
        "LOW_STOCK_NOTIFIER": "storeman.adapters.noop.LoggingNotifier",
    }

WARNING: NoopVariantValidator performs no real validation and accepts any
variant id. Do NOT use it in production.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from storeman.protocols.catalog import VariantValidationResult

logger = logging.getLogger('storeman')


class NoopVariantValidator:
    """
    No-operation variant validator for development and testing.

    Every variant is valid. Implements the ``VariantValidator`` protocol
    without any external dependencies.
    """

    def validate_variant(self, variant_id: int) -> VariantValidationResult:
        return VariantValidationResult(valid=True, variant_id=variant_id)

    def validate_variants(self, variant_ids: list[int]) -> dict[int, VariantValidationResult]:
        return {variant_id: self.validate_variant(variant_id) for variant_id in variant_ids}


class LoggingNotifier:
    """LowStockNotifier that only writes a log record."""

    def notify(self, store_id: int, variant_id: int,
               available: Decimal, min_quantity: Decimal) -> None:
        logger.warning(
            "stock.low",
            extra={
                "store_id": store_id,
                "variant_id": variant_id,
                "available": str(available),
                "min_quantity": str(min_quantity),
            },
        )
