"""
Storeman configuration.

Usage in settings.py:
    STOREMAN = {
        "HOLD_TTL_MINUTES": 30,
        "RETURN_WINDOW_HOURS": 72,
        "REFUND_APPROVAL_THRESHOLD": Decimal("100.00"),
        "LOW_STOCK_NOTIFIER": "myproject.notifications.PushNotifier",
    }
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.conf import settings


@dataclass
class StoremanSettings:
    """Storeman configuration settings."""

    # Default hold TTL in minutes (0 = no expiry)
    HOLD_TTL_MINUTES: int = 30

    # Whether a held cart reserves stock (excluded from available) while held.
    # False: holds are bookkeeping only and resume sells from free stock.
    HOLDS_RESERVE_STOCK: bool = True

    # Batch size for release_expired processing
    EXPIRED_BATCH_SIZE: int = 200

    # Refund policy
    RETURN_WINDOW_HOURS: int = 72
    REFUND_APPROVAL_THRESHOLD: Decimal = field(default_factory=lambda: Decimal('100.00'))

    # Serialization failure retries (outermost call only)
    CONFLICT_RETRIES: int = 3
    CONFLICT_BACKOFF_SECONDS: float = 0.05

    # Catalog lookup backend (dotted path)
    VARIANT_VALIDATOR: str = ""

    # Validate variant ids via the catalog backend when orders, transfers and carts are created
    VALIDATE_INPUT_VARIANTS: bool = False

    # Low-stock notification backend (dotted path, empty = log only)
    LOW_STOCK_NOTIFIER: str = ""


def get_storeman_settings() -> StoremanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOREMAN", {})
    return StoremanSettings(**{
        k: v for k, v in user_settings.items()
        if k in StoremanSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_storeman_settings(), name)


storeman_settings = _LazySettings()
