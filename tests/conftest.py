"""
Pytest configuration and fixtures for dj_settlements tests.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

# ============================================================================
# User Fixtures
# ============================================================================


@pytest.fixture()
def user_factory(db):
    """Factory for creating test users."""
    from tests.test_app.models import User

    def create_user(username=None, **kwargs):
        if username is None:
            username = f"user_{uuid.uuid4().hex[:8]}"
        return User.objects.create_user(
            username=username,
            email=f"{username}@example.com",
            password="testpass123",
            **kwargs,
        )

    return create_user


@pytest.fixture()
def seller(user_factory):
    """A seller owning the default shop."""
    return user_factory()


@pytest.fixture()
def admin_user(user_factory):
    """A staff user allowed to drive payouts."""
    return user_factory(is_staff=True)


# ============================================================================
# Shop / Order Fixtures
# ============================================================================


@pytest.fixture()
def shop_factory(user_factory):
    """Factory for creating shops. Commission defaults to the platform rate."""
    from tests.test_app.models import Shop

    def create_shop(seller=None, commission_percent=None, name=None):
        if seller is None:
            seller = user_factory()
        if name is None:
            name = f"Shop_{uuid.uuid4().hex[:8]}"
        return Shop.objects.create(
            name=name, seller=seller, commission_percent=commission_percent
        )

    return create_shop


@pytest.fixture()
def shop(shop_factory, seller):
    """A shop paying the platform default commission (5%)."""
    return shop_factory(seller=seller)


@pytest.fixture()
def order_factory(db):
    """
    Factory for creating orders.
    By default the order was delivered ten days ago, well past the hold period.
    """
    from tests.test_app.models import Order

    def create_order(shop, total_amount=Decimal("100.00"), status="delivered", days_ago=10, **kwargs):
        if "delivered_at" not in kwargs:
            kwargs["delivered_at"] = (
                timezone.now() - timedelta(days=days_ago) if status == "delivered" else None
            )
        return Order.objects.create(
            shop=shop, total_amount=Decimal(str(total_amount)), status=status, **kwargs
        )

    return create_order


@pytest.fixture()
def delivered_order(shop, order_factory):
    """A 100.00 order delivered ten days ago."""
    return order_factory(shop)


@pytest.fixture()
def funded_shop(shop_factory, seller, order_factory):
    """
    Factory for a zero-commission shop whose available balance equals ``amount``.
    """
    from dj_settlements.services import AccrualService

    def create_funded_shop(amount=Decimal("100.00"), owner=None):
        funded = shop_factory(seller=owner or seller, commission_percent=Decimal("0"))
        order_factory(funded, total_amount=amount)
        AccrualService.accrue_shop(funded)
        return funded

    return create_funded_shop


@pytest.fixture()
def requested_settlement(funded_shop, seller):
    """A pending 60.00 bank transfer from a shop holding 100.00."""
    from dj_settlements.services import WithdrawalService

    funded = funded_shop(Decimal("100.00"))
    return WithdrawalService.request_settlement(
        seller, funded, Decimal("60.00"), "bank_transfer", bank_details=BANK_DETAILS
    )


BANK_DETAILS = {
    "bank_account": "0123456789",
    "bank_name": "Test Bank",
    "account_holder_name": "Test Seller",
}


@pytest.fixture()
def bank_details():
    return dict(BANK_DETAILS)


# ============================================================================
# Signal Testing Fixtures
# ============================================================================


@pytest.fixture()
def signal_receiver():
    """Helper fixture for testing signals."""

    class SignalReceiver:
        def __init__(self):
            self.calls = []
            self.last_sender = None
            self.last_kwargs = None

        def __call__(self, sender, **kwargs):
            self.calls.append((sender, kwargs))
            self.last_sender = sender
            self.last_kwargs = kwargs

        @property
        def call_count(self):
            return len(self.calls)

        @property
        def was_called(self):
            return len(self.calls) > 0

    return SignalReceiver()
