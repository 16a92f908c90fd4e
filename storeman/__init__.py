"""
Django Storeman — multi-store inventory ledger and reservation engine.

Usage:
    from storeman import ledger, StockError

    ledger.receive(store_id, variant_id, Decimal('100'), unit_cost=Decimal('2.50'))
    ledger.reserve(store_id, variant_id, Decimal('5'))
    ledger.available(store_id, variant_id)  # 95
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'ledger':
        from storeman.services.ledger import Ledger
        return Ledger
    elif name == 'StockError':
        from storeman.exceptions import StockError
        return StockError
    elif name in ('PurchaseOrders', 'Transfers', 'Checkout', 'Refunds', 'Shifts'):
        from storeman import services
        return getattr(services, name)
    elif name in ('StockRecord', 'StockMovement', 'StockAlert', 'MovementType'):
        from storeman import models
        return getattr(models, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'ledger',
    'StockError',
    'PurchaseOrders',
    'Transfers',
    'Checkout',
    'Refunds',
    'Shifts',
    'StockRecord',
    'StockMovement',
    'StockAlert',
    'MovementType',
]

__version__ = '0.1.0'
