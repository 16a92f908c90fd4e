"""
Initial migration for Storeman models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create the ledger tables and the workflow documents that drive them."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StockRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('store_id', models.PositiveIntegerField(verbose_name='Store')),
                ('variant_id', models.PositiveIntegerField(verbose_name='Variant')),
                ('quantity', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=12, verbose_name='Quantity')),
                ('reserved', models.DecimalField(decimal_places=3, default=Decimal('0'), help_text='Promised to holds and pending transfers.', max_digits=12, verbose_name='Reserved')),
                ('last_cost', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, verbose_name='Last cost')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('last_updated_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'verbose_name': 'Stock record',
                'verbose_name_plural': 'Stock records',
                'indexes': [models.Index(fields=['variant_id'], name='storeman_sr_variant_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('store_id', 'variant_id'), name='unique_stock_record_pair'),
                    models.CheckConstraint(condition=models.Q(('reserved__gte', 0)), name='stock_record_reserved_gte_0'),
                    models.CheckConstraint(condition=models.Q(('reserved__lte', models.F('quantity'))), name='stock_record_reserved_lte_qty'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('store_id', models.PositiveIntegerField(verbose_name='Store')),
                ('variant_id', models.PositiveIntegerField(verbose_name='Variant')),
                ('change', models.DecimalField(decimal_places=3, help_text='Positive = in, negative = out', max_digits=12, verbose_name='Change')),
                ('movement_type', models.CharField(choices=[('receive', 'Receive'), ('sale', 'Sale'), ('adjustment', 'Adjustment'), ('refund', 'Refund'), ('transfer_out', 'Transfer out'), ('transfer_in', 'Transfer in')], max_length=20, verbose_name='Type')),
                ('reference_id', models.CharField(blank=True, db_index=True, default='', max_length=64, verbose_name='Reference')),
                ('reason', models.CharField(blank=True, default='', max_length=255, verbose_name='Reason')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Created by')),
            ],
            options={
                'verbose_name': 'Stock movement',
                'verbose_name_plural': 'Stock movements',
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['store_id', 'variant_id', 'created_at'], name='storeman_mv_pair_idx')],
            },
        ),
        migrations.CreateModel(
            name='StockAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('store_id', models.PositiveIntegerField(verbose_name='Store')),
                ('variant_id', models.PositiveIntegerField(verbose_name='Variant')),
                ('min_quantity', models.DecimalField(decimal_places=3, help_text='Alert fires when available < this value', max_digits=12, verbose_name='Minimum quantity')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('last_triggered_at', models.DateTimeField(blank=True, null=True, verbose_name='Last triggered')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Stock alert',
                'verbose_name_plural': 'Stock alerts',
                'constraints': [
                    models.UniqueConstraint(fields=('store_id', 'variant_id'), name='unique_stock_alert_pair'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PurchaseOrder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(blank=True, default='', max_length=50, verbose_name='Order number')),
                ('store_id', models.PositiveIntegerField(verbose_name='Store')),
                ('supplier_id', models.PositiveIntegerField(blank=True, null=True, verbose_name='Supplier')),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('submitted', 'Submitted'), ('approved', 'Approved'), ('cancelled', 'Cancelled'), ('received', 'Received')], db_index=True, default='draft', max_length=20, verbose_name='Status')),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, verbose_name='Total')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('received_at', models.DateTimeField(blank=True, null=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Purchase order',
                'verbose_name_plural': 'Purchase orders',
                'ordering': ['-id'],
            },
        ),
        migrations.CreateModel(
            name='PurchaseOrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('variant_id', models.PositiveIntegerField(verbose_name='Variant')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=12, verbose_name='Quantity')),
                ('unit_cost', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Unit cost')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='storeman.purchaseorder')),
            ],
            options={
                'verbose_name': 'Purchase order item',
                'verbose_name_plural': 'Purchase order items',
                'ordering': ['variant_id', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Transfer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transfer_number', models.CharField(blank=True, default='', max_length=50, verbose_name='Transfer number')),
                ('from_store_id', models.PositiveIntegerField(verbose_name='From store')),
                ('to_store_id', models.PositiveIntegerField(verbose_name='To store')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_transit', 'In transit'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('dispatched_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Transfer',
                'verbose_name_plural': 'Transfers',
                'ordering': ['-id'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('from_store_id', models.F('to_store_id')), _negated=True), name='transfer_distinct_stores'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TransferItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('variant_id', models.PositiveIntegerField(verbose_name='Variant')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=12, verbose_name='Quantity')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Unit cost')),
                ('transfer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='storeman.transfer')),
            ],
            options={
                'verbose_name': 'Transfer item',
                'verbose_name_plural': 'Transfer items',
                'ordering': ['variant_id', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Shift',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('store_id', models.PositiveIntegerField(verbose_name='Store')),
                ('status', models.CharField(choices=[('open', 'Open'), ('closed', 'Closed')], db_index=True, default='open', max_length=10)),
                ('opening_cash', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('closing_cash', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('expected_cash', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('discrepancy', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('opened_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('cashier', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Cashier')),
            ],
            options={
                'verbose_name': 'Shift',
                'verbose_name_plural': 'Shifts',
                'ordering': ['-opened_at'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'open')), fields=('store_id', 'cashier'), name='unique_open_shift_per_cashier'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('store_id', models.PositiveIntegerField(verbose_name='Store')),
                ('status', models.CharField(choices=[('held', 'Held'), ('finalized', 'Finalized'), ('released', 'Released')], db_index=True, default='held', max_length=20, verbose_name='Status')),
                ('payment_method', models.CharField(choices=[('cash', 'Cash'), ('card', 'Card'), ('mobile', 'Mobile'), ('voucher', 'Voucher')], default='cash', max_length=20, verbose_name='Payment method')),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, verbose_name='Total')),
                ('reserves_stock', models.BooleanField(default=True)),
                ('expires_at', models.DateTimeField(blank=True, db_index=True, null=True, verbose_name='Expires at')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('finalized_at', models.DateTimeField(blank=True, null=True)),
                ('released_at', models.DateTimeField(blank=True, null=True)),
                ('release_reason', models.CharField(blank=True, default='', max_length=255)),
                ('cashier', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Cashier')),
                ('shift', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to='storeman.shift')),
            ],
            options={
                'verbose_name': 'Invoice',
                'verbose_name_plural': 'Invoices',
                'ordering': ['-id'],
                'indexes': [models.Index(fields=['status', 'expires_at'], name='storeman_inv_status_exp_idx')],
            },
        ),
        migrations.CreateModel(
            name='InvoiceItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('variant_id', models.PositiveIntegerField(verbose_name='Variant')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=12, verbose_name='Quantity')),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Unit price')),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='storeman.invoice')),
            ],
            options={
                'verbose_name': 'Invoice item',
                'verbose_name_plural': 'Invoice items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='Refund',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('store_id', models.PositiveIntegerField(verbose_name='Store')),
                ('status', models.CharField(choices=[('pending_approval', 'Pending approval'), ('completed', 'Completed'), ('rejected', 'Rejected')], db_index=True, max_length=20, verbose_name='Status')),
                ('amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, verbose_name='Amount')),
                ('reason', models.CharField(blank=True, default='', max_length=255)),
                ('restock', models.BooleanField(default=True, verbose_name='Return to stock')),
                ('rejection_reason', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='refunds', to='storeman.invoice')),
                ('requested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Refund',
                'verbose_name_plural': 'Refunds',
                'ordering': ['-id'],
            },
        ),
        migrations.CreateModel(
            name='RefundItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('variant_id', models.PositiveIntegerField(verbose_name='Variant')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=12, verbose_name='Quantity')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Amount')),
                ('invoice_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='refund_items', to='storeman.invoiceitem')),
                ('refund', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='storeman.refund')),
            ],
            options={
                'verbose_name': 'Refund item',
                'verbose_name_plural': 'Refund items',
                'ordering': ['id'],
            },
        ),
    ]
