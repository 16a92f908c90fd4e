"""
Storeman Adapters.

Implementations of protocols for external systems.
"""

from storeman.adapters.catalog import (
    get_variant_validator,
    reset_variant_validator,
    validate_variants,
)
from storeman.adapters.notifications import (
    get_low_stock_notifier,
    reset_low_stock_notifier,
)

__all__ = [
    "get_variant_validator",
    "reset_variant_validator",
    "validate_variants",
    "get_low_stock_notifier",
    "reset_low_stock_notifier",
]
