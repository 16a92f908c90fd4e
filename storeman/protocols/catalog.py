"""
Catalog Lookup Protocol — Interface for product variant validation.

Storeman defines this protocol, the catalog service implements it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class VariantValidationResult:
    """Result of variant validation."""

    valid: bool
    variant_id: int
    message: str | None = None
    sku: str | None = None
    is_active: bool = True
    error_code: str | None = None  # "not_found", "inactive", etc.


@runtime_checkable
class VariantValidator(Protocol):
    """
    Protocol for variant validation.

    The ledger does not own the catalog: an unknown variant id is a caller
    error, checked here only as a referential lookup.
    """

    def validate_variant(self, variant_id: int) -> VariantValidationResult:
        """
        Validate that a variant exists and is active.

        Args:
            variant_id: Catalog variant id

        Returns:
            VariantValidationResult with status and details
        """
        ...

    def validate_variants(self, variant_ids: list[int]) -> dict[int, VariantValidationResult]:
        """
        Validate multiple variants at once.

        Args:
            variant_ids: Catalog variant ids

        Returns:
            Dict[variant_id, VariantValidationResult]
        """
        ...
