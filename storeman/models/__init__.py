"""
Storeman Models.

Core models:
- StockRecord: per (store, variant) quantity and reservation balance
- StockMovement: immutable ledger of quantity changes
- StockAlert: low-stock trigger per (store, variant)

Workflow models (each routes stock changes through the ledger):
- PurchaseOrder / PurchaseOrderItem
- Transfer / TransferItem
- Invoice / InvoiceItem: POS held carts and finalized sales
- Refund / RefundItem
- Shift
"""

from storeman.models.alert import StockAlert
from storeman.models.enums import (
    InvoiceStatus,
    MovementType,
    PaymentMethod,
    PurchaseOrderStatus,
    RefundStatus,
    ShiftStatus,
    TransferStatus,
)
from storeman.models.invoice import Invoice, InvoiceItem
from storeman.models.movement import StockMovement
from storeman.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from storeman.models.refund import Refund, RefundItem
from storeman.models.shift import Shift
from storeman.models.stock_record import StockRecord
from storeman.models.transfer import Transfer, TransferItem

__all__ = [
    'MovementType',
    'PurchaseOrderStatus',
    'TransferStatus',
    'InvoiceStatus',
    'PaymentMethod',
    'RefundStatus',
    'ShiftStatus',
    'StockRecord',
    'StockMovement',
    'StockAlert',
    'PurchaseOrder',
    'PurchaseOrderItem',
    'Transfer',
    'TransferItem',
    'Invoice',
    'InvoiceItem',
    'Refund',
    'RefundItem',
    'Shift',
]
