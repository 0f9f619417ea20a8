"""
Mixin for the shop model.

    class Shop(ShopSettlementMixin, models.Model):
        seller = models.ForeignKey(User, on_delete=models.CASCADE)

exposes ``shop.seller_balance`` plus shortcuts into the settlement services.
Balance columns are never written through the mixin.
"""


class ShopSettlementMixin:
    @property
    def seller_balance(self):
        """Read-only snapshot of this shop's balance (all zeros before first accrual)."""
        from .services import BalanceQueryService

        return BalanceQueryService.get_balance(self)

    @property
    def available_balance(self):
        return self.seller_balance.available_balance

    def get_eligible_orders(self, hold_period_days=None):
        from .services import EligibilityService

        return EligibilityService.get_eligible_orders(self, hold_period_days)

    def request_settlement(self, seller, amount, method, bank_details=None, notes=""):
        from .services import WithdrawalService

        return WithdrawalService.request_settlement(
            seller, self, amount, method, bank_details=bank_details, notes=notes
        )
