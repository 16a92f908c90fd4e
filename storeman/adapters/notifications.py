"""
Storeman Notification Adapter — loads the configured LowStockNotifier.

Settings:
    STOREMAN = {
        "LOW_STOCK_NOTIFIER": "myproject.notifications.PushNotifier",
    }

If LOW_STOCK_NOTIFIER is empty, low-stock events are only logged.
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from storeman.adapters.noop import LoggingNotifier
from storeman.conf import storeman_settings
from storeman.protocols.notifications import LowStockNotifier

logger = logging.getLogger(__name__)


_lock = threading.Lock()
_notifier: LowStockNotifier | None = None


def get_low_stock_notifier() -> LowStockNotifier:
    """Return the configured notifier (LoggingNotifier when unset)."""
    global _notifier

    if _notifier is None:
        with _lock:
            if _notifier is None:
                notifier_path = storeman_settings.LOW_STOCK_NOTIFIER

                if not notifier_path:
                    _notifier = LoggingNotifier()
                else:
                    try:
                        _notifier = import_string(notifier_path)()
                        logger.debug("Loaded low-stock notifier: %s", notifier_path)
                    except ImportError as e:
                        raise ImproperlyConfigured(
                            f"Failed to import low-stock notifier '{notifier_path}': {e}"
                        ) from e

    return _notifier


def reset_low_stock_notifier() -> None:
    """Reset the cached notifier. Useful for testing."""
    global _notifier
    _notifier = None
