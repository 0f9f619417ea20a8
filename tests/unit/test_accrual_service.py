"""
Tests for AccrualService: ledger entries, commission split and maturation.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.conf import settings
from django.test import override_settings
from django.utils import timezone

from dj_settlements.exceptions import Unauthorized, ValidationError
from dj_settlements.models import OrderSettlement, SellerBalance
from dj_settlements.services import AccrualService, BalanceQueryService
from dj_settlements.signals import order_settlement_created
from tests.test_app.models import Order


@pytest.mark.django_db()
class TestAccrueOrder:
    def test_commission_split(self, shop_factory, seller, order_factory):
        """Order of 200.00 at 10% commission credits 180.00."""
        shop = shop_factory(seller=seller, commission_percent=Decimal("10"))
        order = order_factory(shop, total_amount=Decimal("200.00"))

        entry = AccrualService.accrue_order(order)

        assert entry.order_amount == Decimal("200.00")
        assert entry.commission_percent == Decimal("10")
        assert entry.commission == Decimal("20.00")
        assert entry.settlement_amount == Decimal("180.00")
        assert entry.seller_id == seller.pk
        assert entry.order == order
        assert entry.settlement is None

        balance = BalanceQueryService.get_balance(shop)
        assert balance.total_earned == Decimal("180.00")
        assert balance.available_balance == Decimal("180.00")
        assert balance.pending_balance == Decimal("0.00")

    def test_platform_commission_default(self, shop, delivered_order):
        entry = AccrualService.accrue_order(delivered_order)
        assert entry.commission == Decimal("5.00")
        assert entry.settlement_amount == Decimal("95.00")

    def test_order_inside_hold_goes_to_pending(self, shop, order_factory):
        order = order_factory(shop, days_ago=1)

        entry = AccrualService.accrue_order(order)

        assert entry.matured_at is None
        assert entry.eligible_at == order.delivered_at + timedelta(days=3)
        balance = BalanceQueryService.get_balance(shop)
        assert balance.pending_balance == Decimal("95.00")
        assert balance.available_balance == Decimal("0.00")
        assert balance.total_earned == Decimal("95.00")

    def test_second_accrual_is_a_no_op(self, shop, delivered_order):
        first = AccrualService.accrue_order(delivered_order)
        second = AccrualService.accrue_order(delivered_order)

        assert first is not None
        assert second is None
        assert OrderSettlement.objects.count() == 1
        assert BalanceQueryService.get_balance(shop).total_earned == Decimal("95.00")

    def test_undelivered_order_rejected(self, shop, order_factory):
        order = order_factory(shop, status="shipped")
        with pytest.raises(ValidationError):
            AccrualService.accrue_order(order)
        assert not SellerBalance.objects.exists()

    def test_delivered_without_timestamp_rejected(self, shop, order_factory):
        order = order_factory(shop, delivered_at=None)
        with pytest.raises(ValidationError):
            AccrualService.accrue_order(order)

    def test_unpaid_order_rejected(self, shop, order_factory):
        order = order_factory(shop, payment_status="unpaid")
        with pytest.raises(ValidationError):
            AccrualService.accrue_order(order)
        assert not OrderSettlement.objects.exists()

    def test_stale_order_is_read_again(self, shop, order_factory):
        order = order_factory(shop, total_amount=Decimal("100.00"))
        Order.objects.filter(pk=order.pk).update(total_amount=Decimal("40.00"))

        entry = AccrualService.accrue_order(order)

        assert entry.order_amount == Decimal("40.00")
        assert entry.settlement_amount == Decimal("38.00")

    def test_commission_snapshot_is_immutable(self, shop_factory, order_factory):
        shop = shop_factory(commission_percent=Decimal("10"))
        order = order_factory(shop, total_amount=Decimal("200.00"))
        AccrualService.accrue_order(order)

        shop.commission_percent = Decimal("50")
        shop.save()

        entry = OrderSettlement.objects.get()
        assert entry.commission == Decimal("20.00")
        assert entry.settlement_amount == Decimal("180.00")

    def test_created_signal(self, shop, delivered_order, signal_receiver):
        order_settlement_created.connect(signal_receiver)
        try:
            entry = AccrualService.accrue_order(delivered_order)
        finally:
            order_settlement_created.disconnect(signal_receiver)

        assert signal_receiver.call_count == 1
        assert signal_receiver.last_kwargs["order_settlement"] == entry


@pytest.mark.django_db()
class TestAccrueShop:
    def test_accrues_every_eligible_order(self, shop, order_factory):
        order_factory(shop, total_amount=Decimal("100.00"))
        order_factory(shop, total_amount=Decimal("50.00"), days_ago=4)
        order_factory(shop, days_ago=1)

        result = AccrualService.accrue_shop(shop)

        assert len(result.created) == 2
        assert result.total_amount == Decimal("142.50")
        balance = BalanceQueryService.get_balance(shop)
        assert balance.available_balance == Decimal("142.50")
        assert balance.pending_balance == Decimal("0.00")

    def test_include_held(self, shop, order_factory):
        order_factory(shop, total_amount=Decimal("100.00"))
        order_factory(shop, total_amount=Decimal("100.00"), days_ago=1)

        result = AccrualService.accrue_shop(shop, include_held=True)

        assert len(result.created) == 2
        balance = BalanceQueryService.get_balance(shop)
        assert balance.available_balance == Decimal("95.00")
        assert balance.pending_balance == Decimal("95.00")

    def test_rerun_creates_nothing(self, shop, order_factory):
        order_factory(shop)
        AccrualService.accrue_shop(shop)

        result = AccrualService.accrue_shop(shop)

        assert result.created == []
        assert result.total_amount == Decimal("0.00")
        assert OrderSettlement.objects.count() == 1

    def test_seller_must_own_shop(self, shop, user_factory, delivered_order):
        with pytest.raises(Unauthorized):
            AccrualService.accrue_shop(shop, seller=user_factory())
        assert not OrderSettlement.objects.exists()

    def test_owner_may_trigger(self, shop, seller, delivered_order):
        result = AccrualService.accrue_shop(shop, seller=seller)
        assert len(result.created) == 1

    def test_pages_through_orders_with_equal_delivery_times(self, shop, order_factory):
        delivered_at = timezone.now() - timedelta(days=10)
        for _ in range(5):
            order_factory(shop, total_amount=Decimal("10.00"), delivered_at=delivered_at)

        with override_settings(DJ_SETTLEMENTS={**settings.DJ_SETTLEMENTS, "ACCRUAL_BATCH_SIZE": 2}):
            result = AccrualService.accrue_shop(shop)

        assert len(result.created) == 5
        assert result.total_amount == Decimal("47.50")

    def test_order_cancelled_during_batch_is_skipped(self, shop, order_factory):
        first = order_factory(shop, days_ago=10)
        second = order_factory(shop, days_ago=9)

        def cancel_second(sender, order_settlement, **kwargs):
            if order_settlement.order_id == first.pk:
                Order.objects.filter(pk=second.pk).update(
                    status="cancelled", total_amount=Decimal("1.00")
                )

        order_settlement_created.connect(cancel_second)
        try:
            result = AccrualService.accrue_shop(shop)
        finally:
            order_settlement_created.disconnect(cancel_second)

        assert len(result.created) == 1
        assert result.skipped == 1
        assert OrderSettlement.objects.get().order_id == first.pk
        balance = BalanceQueryService.get_balance(shop)
        assert balance.total_earned == Decimal("95.00")
        assert balance.available_balance == Decimal("95.00")

    def test_order_repriced_during_batch_uses_new_total(self, shop, order_factory):
        first = order_factory(shop, days_ago=10)
        second = order_factory(shop, days_ago=9)

        def reprice_second(sender, order_settlement, **kwargs):
            if order_settlement.order_id == first.pk:
                Order.objects.filter(pk=second.pk).update(total_amount=Decimal("40.00"))

        order_settlement_created.connect(reprice_second)
        try:
            result = AccrualService.accrue_shop(shop)
        finally:
            order_settlement_created.disconnect(reprice_second)

        assert len(result.created) == 2
        entry = OrderSettlement.objects.get(order_id=second.pk)
        assert entry.order_amount == Decimal("40.00")
        assert entry.settlement_amount == Decimal("38.00")
        assert BalanceQueryService.get_balance(shop).total_earned == Decimal("133.00")

    def test_unpaid_orders_are_not_accrued(self, shop, order_factory):
        paid = order_factory(shop)
        order_factory(shop, payment_status="unpaid")
        order_factory(shop, payment_status="refunded")

        result = AccrualService.accrue_shop(shop)

        assert [entry.order_id for entry in result.created] == [paid.pk]
        assert BalanceQueryService.get_balance(shop).total_earned == Decimal("95.00")

    def test_payment_gate_can_be_disabled(self, shop, order_factory):
        order_factory(shop, payment_status="unpaid")

        with override_settings(
            DJ_SETTLEMENTS={**settings.DJ_SETTLEMENTS, "ORDER_PAYMENT_STATUS_FIELD": ""}
        ):
            result = AccrualService.accrue_shop(shop)

        assert len(result.created) == 1


@pytest.mark.django_db()
class TestMaturation:
    def test_mature_shop_moves_pending_to_available(self, shop, order_factory):
        order = order_factory(shop, days_ago=1)
        AccrualService.accrue_order(order)

        result = AccrualService.mature_shop(shop, now=timezone.now() + timedelta(days=3))

        assert result.matured == 1
        assert result.amount == Decimal("95.00")
        balance = BalanceQueryService.get_balance(shop)
        assert balance.available_balance == Decimal("95.00")
        assert balance.pending_balance == Decimal("0.00")
        assert balance.total_earned == Decimal("95.00")
        assert OrderSettlement.objects.get().matured_at is not None

    def test_entries_not_yet_due_stay_pending(self, shop, order_factory):
        AccrualService.accrue_order(order_factory(shop, days_ago=1))

        result = AccrualService.mature_shop(shop)

        assert result.matured == 0
        assert BalanceQueryService.get_balance(shop).pending_balance == Decimal("95.00")

    def test_maturation_is_applied_once(self, shop, order_factory):
        AccrualService.accrue_order(order_factory(shop, days_ago=1))
        later = timezone.now() + timedelta(days=3)

        AccrualService.mature_due(later)
        second = AccrualService.mature_due(later)

        assert second.matured == 0
        assert BalanceQueryService.get_balance(shop).available_balance == Decimal("95.00")

    def test_mature_due_covers_every_shop(self, shop_factory, order_factory):
        first = shop_factory()
        second = shop_factory(commission_percent=Decimal("0"))
        AccrualService.accrue_order(order_factory(first, days_ago=1))
        AccrualService.accrue_order(order_factory(second, days_ago=2))

        result = AccrualService.mature_due(timezone.now() + timedelta(days=3))

        assert result.matured == 2
        assert result.amount == Decimal("195.00")
        assert BalanceQueryService.get_balance(second).available_balance == Decimal("100.00")
