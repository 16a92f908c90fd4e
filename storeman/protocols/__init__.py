"""
Storeman Protocols.

Defines interfaces for external system integration.
"""

from storeman.protocols.catalog import (
    VariantValidationResult,
    VariantValidator,
)
from storeman.protocols.notifications import LowStockNotifier

__all__ = [
    "LowStockNotifier",
    "VariantValidationResult",
    "VariantValidator",
]
