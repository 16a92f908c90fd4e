"""
Storeman Admin.

Read-only views for production debugging. Stock only changes through the
services, so records, movements and workflow documents cannot be edited
here:
- StockRecord: quantity, reserved, available per (store, variant)
- StockMovement: immutable audit trail
- Invoice: held carts and sales, with a "release holds" action
- PurchaseOrder, Transfer, Refund, Shift: read-only
- StockAlert: editable low-stock thresholds
"""

import logging

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from storeman.models import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    PurchaseOrder,
    PurchaseOrderItem,
    Refund,
    RefundItem,
    Shift,
    StockAlert,
    StockMovement,
    StockRecord,
    Transfer,
    TransferItem,
)

logger = logging.getLogger(__name__)


class ReadOnlyAdminMixin:

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ReadOnlyInline(ReadOnlyAdminMixin, admin.TabularInline):
    extra = 0


# =========================================================================
# STOCK RECORD ADMIN (read-only)
# =========================================================================

@admin.register(StockRecord)
class StockRecordAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """StockRecord admin — read-only. Balances only change via the ledger."""

    list_display = ['store_id', 'variant_id', 'quantity', 'reserved',
                    'available_display', 'last_cost', 'last_updated_at']
    list_filter = ['store_id']
    search_fields = ['=variant_id']
    ordering = ['store_id', 'variant_id']

    @admin.display(description=_('Available'))
    def available_display(self, obj):
        return obj.available


# =========================================================================
# MOVEMENT ADMIN (read-only audit trail)
# =========================================================================

@admin.register(StockMovement)
class StockMovementAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """StockMovement admin — read-only. Movements are never edited."""

    list_display = ['created_at', 'store_id', 'variant_id', 'change',
                    'movement_type', 'reference_id', 'created_by']
    list_filter = ['movement_type', 'store_id']
    search_fields = ['reference_id', 'reason', '=variant_id']
    date_hierarchy = 'created_at'


# =========================================================================
# INVOICE ADMIN (read-only with release action)
# =========================================================================

class InvoiceItemInline(ReadOnlyInline):
    model = InvoiceItem


@admin.register(Invoice)
class InvoiceAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Invoice admin — read-only with a release action for held carts."""

    list_display = ['id', 'store_id', 'status', 'payment_method', 'total_amount',
                    'cashier', 'expires_at', 'created_at']
    list_filter = ['status', 'payment_method', 'store_id']
    date_hierarchy = 'created_at'
    inlines = [InvoiceItemInline]
    actions = ['release_holds']

    @admin.action(description=_('Release selected holds'))
    def release_holds(self, request, queryset):
        from storeman.services import Checkout

        count = 0
        for invoice in queryset.filter(status=InvoiceStatus.HELD):
            try:
                Checkout.cancel_hold(invoice.hold_id, reason='Released via admin')
                count += 1
            except Exception as exc:
                logger.warning("release_holds: failed to release %s: %s", invoice.hold_id, exc)

        self.message_user(request, _('{count} hold(s) released.').format(count=count))


# =========================================================================
# WORKFLOW DOCUMENTS (read-only)
# =========================================================================

class PurchaseOrderItemInline(ReadOnlyInline):
    model = PurchaseOrderItem


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['__str__', 'store_id', 'supplier_id', 'status', 'total_amount', 'created_at']
    list_filter = ['status', 'store_id']
    search_fields = ['order_number']
    inlines = [PurchaseOrderItemInline]


class TransferItemInline(ReadOnlyInline):
    model = TransferItem


@admin.register(Transfer)
class TransferAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['__str__', 'from_store_id', 'to_store_id', 'status',
                    'created_at', 'dispatched_at', 'completed_at']
    list_filter = ['status']
    search_fields = ['transfer_number']
    inlines = [TransferItemInline]


class RefundItemInline(ReadOnlyInline):
    model = RefundItem


@admin.register(Refund)
class RefundAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['id', 'invoice', 'store_id', 'status', 'amount', 'restock',
                    'requested_by', 'approved_by', 'created_at']
    list_filter = ['status', 'store_id']
    inlines = [RefundItemInline]


@admin.register(Shift)
class ShiftAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['id', 'store_id', 'cashier', 'status', 'opening_cash',
                    'expected_cash', 'closing_cash', 'discrepancy', 'opened_at', 'closed_at']
    list_filter = ['status', 'store_id']


# =========================================================================
# STOCK ALERT ADMIN
# =========================================================================

@admin.register(StockAlert)
class StockAlertAdmin(admin.ModelAdmin):
    """StockAlert admin — editable low-stock thresholds."""

    list_display = ['__str__', 'min_quantity', 'is_active', 'last_triggered_at']
    list_filter = ['is_active', 'store_id']
    search_fields = ['=variant_id']
    readonly_fields = ['last_triggered_at', 'created_at', 'updated_at']
