"""
Pytest fixtures for Storeman tests.
"""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from storeman.adapters import reset_low_stock_notifier, reset_variant_validator
from storeman.services import Ledger


User = get_user_model()

STORE = 1
OTHER_STORE = 2
VARIANT = 10
OTHER_VARIANT = 11


class RecordingNotifier:
    """LowStockNotifier that remembers every call."""

    def __init__(self):
        self.calls = []

    def notify(self, store_id, variant_id, available, min_quantity):
        self.calls.append((store_id, variant_id, available, min_quantity))


@pytest.fixture(autouse=True)
def _reset_adapters():
    reset_low_stock_notifier()
    reset_variant_validator()
    yield
    reset_low_stock_notifier()
    reset_variant_validator()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='testuser',
        password='testpass123'
    )


@pytest.fixture
def cashier(db):
    return User.objects.create_user(username='cashier', password='testpass123')


@pytest.fixture
def manager(db):
    return User.objects.create_user(username='manager', password='testpass123')


@pytest.fixture
def stocked(db):
    """Store 1 holds 100 of variant 10 and 50 of variant 11."""
    Ledger.receive(STORE, VARIANT, Decimal('100'), unit_cost=Decimal('5.00'))
    Ledger.receive(STORE, OTHER_VARIANT, Decimal('50'), unit_cost=Decimal('2.00'))


@pytest.fixture
def notifier(monkeypatch):
    """Install a RecordingNotifier as the low-stock notifier."""
    recorder = RecordingNotifier()
    monkeypatch.setattr('storeman.adapters.notifications._notifier', recorder)
    return recorder
