"""
Storeman Catalog Adapter — variant validation via the catalog service.

This adapter loads the configured VariantValidator from settings.

Usage:
    from storeman.adapters import get_variant_validator

    validator = get_variant_validator()
    result = validator.validate_variant(10)

Settings:
    STOREMAN = {
        "VARIANT_VALIDATOR": "catalog.adapters.CatalogVariantValidator",
    }

If VARIANT_VALIDATOR is not configured, get_variant_validator() raises ImproperlyConfigured.
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from storeman.conf import storeman_settings
from storeman.exceptions import StockError
from storeman.protocols.catalog import VariantValidator

logger = logging.getLogger(__name__)


# Cached validator instance
_lock = threading.Lock()
_variant_validator: VariantValidator | None = None


def get_variant_validator() -> VariantValidator:
    """
    Return the configured variant validator.

    Raises:
        ImproperlyConfigured: If VARIANT_VALIDATOR is not configured or import fails
    """
    global _variant_validator

    if _variant_validator is None:
        with _lock:
            if _variant_validator is None:  # double-checked
                validator_path = storeman_settings.VARIANT_VALIDATOR

                if not validator_path:
                    raise ImproperlyConfigured(
                        "STOREMAN['VARIANT_VALIDATOR'] must be configured when "
                        "VALIDATE_INPUT_VARIANTS is enabled. "
                        "Example: 'storeman.adapters.noop.NoopVariantValidator'"
                    )

                try:
                    validator_class = import_string(validator_path)
                    _variant_validator = validator_class()
                    logger.debug("Loaded variant validator: %s", validator_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import variant validator '{validator_path}': {e}"
                    ) from e

    return _variant_validator


def reset_variant_validator() -> None:
    """Reset the cached validator. Useful for testing."""
    global _variant_validator
    _variant_validator = None


def validate_variants(variant_ids) -> None:
    """
    Raise StockError('UNKNOWN_VARIANT') if any id is rejected by the catalog.

    No-op unless VALIDATE_INPUT_VARIANTS is enabled.
    """
    if not storeman_settings.VALIDATE_INPUT_VARIANTS:
        return

    ids = sorted(set(variant_ids))
    results = get_variant_validator().validate_variants(ids)
    invalid = [
        variant_id for variant_id in ids
        if variant_id not in results or not results[variant_id].valid
    ]
    if invalid:
        raise StockError('UNKNOWN_VARIANT', variant_ids=invalid)
