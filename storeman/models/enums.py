"""
Enums for Storeman models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MovementType(models.TextChoices):
    """Why a stock quantity changed."""
    RECEIVE = 'receive', _('Receive')
    SALE = 'sale', _('Sale')
    ADJUSTMENT = 'adjustment', _('Adjustment')
    REFUND = 'refund', _('Refund')
    TRANSFER_OUT = 'transfer_out', _('Transfer out')
    TRANSFER_IN = 'transfer_in', _('Transfer in')


class PurchaseOrderStatus(models.TextChoices):
    """Purchase order lifecycle status."""
    DRAFT = 'draft', _('Draft')
    SUBMITTED = 'submitted', _('Submitted')
    APPROVED = 'approved', _('Approved')
    CANCELLED = 'cancelled', _('Cancelled')   # Terminal
    RECEIVED = 'received', _('Received')      # Terminal, items locked


class TransferStatus(models.TextChoices):
    """Transfer lifecycle status."""
    PENDING = 'pending', _('Pending')         # Reserved at origin
    IN_TRANSIT = 'in_transit', _('In transit')  # Left origin
    COMPLETED = 'completed', _('Completed')   # Arrived at destination
    CANCELLED = 'cancelled', _('Cancelled')   # Reservation released


class InvoiceStatus(models.TextChoices):
    """Held cart / sale lifecycle status."""
    HELD = 'held', _('Held')                  # Reserved, not committed
    FINALIZED = 'finalized', _('Finalized')   # Sold, stock committed
    RELEASED = 'released', _('Released')      # Cancelled or expired


class PaymentMethod(models.TextChoices):
    CASH = 'cash', _('Cash')
    CARD = 'card', _('Card')
    MOBILE = 'mobile', _('Mobile')
    VOUCHER = 'voucher', _('Voucher')


class RefundStatus(models.TextChoices):
    """Refund lifecycle status."""
    PENDING_APPROVAL = 'pending_approval', _('Pending approval')
    COMPLETED = 'completed', _('Completed')
    REJECTED = 'rejected', _('Rejected')


class ShiftStatus(models.TextChoices):
    OPEN = 'open', _('Open')
    CLOSED = 'closed', _('Closed')
