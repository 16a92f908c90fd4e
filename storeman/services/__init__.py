"""
Storeman services.

    from storeman.services import Ledger, PurchaseOrders, Transfers, Checkout, Refunds, Shifts

Ledger is the only writer of StockRecord/StockMovement; every workflow
service routes its stock changes through it.
"""

from storeman.services.checkout import Checkout
from storeman.services.ledger import Ledger
from storeman.services.purchasing import PurchaseOrders
from storeman.services.queries import StockQueries
from storeman.services.refunds import Refunds
from storeman.services.shifts import Shifts
from storeman.services.transfers import Transfers

__all__ = [
    'StockQueries',
    'Ledger',
    'PurchaseOrders',
    'Transfers',
    'Checkout',
    'Refunds',
    'Shifts',
]
