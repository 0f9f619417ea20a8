"""
Security tests for authorization checks.
"""

from decimal import Decimal

import pytest

from dj_settlements.exceptions import Unauthorized
from dj_settlements.models import Settlement
from dj_settlements.services import (
    AccrualService,
    BalanceQueryService,
    PayoutService,
    WithdrawalService,
)


@pytest.mark.django_db()
@pytest.mark.security()
class TestSellerBoundaries:
    def test_cannot_withdraw_from_foreign_shop(self, funded_shop, user_factory):
        shop = funded_shop()
        intruder = user_factory()

        with pytest.raises(Unauthorized):
            WithdrawalService.request_settlement(intruder, shop, Decimal("10.00"), "wallet")

        assert not Settlement.objects.exists()

    def test_owner_of_another_shop_cannot_withdraw(self, funded_shop, user_factory):
        victim_shop = funded_shop()
        other_seller = user_factory()
        funded_shop(owner=other_seller)

        with pytest.raises(Unauthorized):
            WithdrawalService.request_settlement(
                other_seller, victim_shop, Decimal("10.00"), "wallet"
            )

    def test_cannot_trigger_accrual_for_foreign_shop(self, shop, delivered_order, user_factory):
        with pytest.raises(Unauthorized):
            AccrualService.accrue_shop(shop, seller=user_factory())

    def test_cannot_cancel_foreign_settlement(self, requested_settlement, user_factory):
        with pytest.raises(Unauthorized):
            PayoutService.cancel(requested_settlement.pk, user_factory())
        requested_settlement.refresh_from_db()
        assert requested_settlement.status == Settlement.STATUS_PENDING

    def test_anonymous_cannot_cancel(self, requested_settlement):
        with pytest.raises(Unauthorized):
            PayoutService.cancel(requested_settlement.pk, None)

    def test_cannot_view_foreign_settlement(self, requested_settlement, user_factory):
        with pytest.raises(Unauthorized):
            BalanceQueryService.get_settlement(requested_settlement.pk, user=user_factory())


@pytest.mark.django_db()
@pytest.mark.security()
class TestAdminOnlyTransitions:
    @pytest.mark.parametrize("action", ["approve", "process", "complete", "fail", "reject"])
    def test_seller_cannot_drive_own_payout(self, requested_settlement, seller, action):
        calls = {
            "approve": lambda: PayoutService.approve(requested_settlement.pk, seller),
            "process": lambda: PayoutService.process(requested_settlement.pk, "X", seller),
            "complete": lambda: PayoutService.complete(requested_settlement.pk, "X", seller),
            "fail": lambda: PayoutService.fail(requested_settlement.pk, "x", seller),
            "reject": lambda: PayoutService.reject(requested_settlement.pk, seller, "x"),
        }
        with pytest.raises(Unauthorized):
            calls[action]()

        requested_settlement.refresh_from_db()
        assert requested_settlement.status == Settlement.STATUS_PENDING

    def test_superuser_counts_as_admin(self, requested_settlement, user_factory):
        superuser = user_factory(is_superuser=True)
        settlement = PayoutService.approve(requested_settlement.pk, superuser)
        assert settlement.status == Settlement.STATUS_APPROVED
