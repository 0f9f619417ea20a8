from django.db import models
from django.db.models import F, Q

from .abstract_models import (
    AbstractOrderSettlement,
    AbstractSellerBalance,
    AbstractSettlement,
)


class SellerBalance(AbstractSellerBalance):
    """
    Concrete SellerBalance model.
    For custom balance models, extend AbstractSellerBalance instead.
    """

    class Meta(AbstractSellerBalance.Meta):
        indexes = [
            models.Index(fields=["shop_type", "shop_id"], name="balance_shop_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(available_balance__gte=0), name="balance_available_non_negative"
            ),
            models.CheckConstraint(
                condition=Q(pending_balance__gte=0), name="balance_pending_non_negative"
            ),
            models.CheckConstraint(
                condition=Q(total_pending_withdrawal__gte=0),
                name="balance_reserved_non_negative",
            ),
        ]


class Settlement(AbstractSettlement):
    """
    Concrete Settlement model.
    For custom settlement models, extend AbstractSettlement instead.
    """

    class Meta(AbstractSettlement.Meta):
        indexes = [
            models.Index(fields=["status", "requested_at"], name="settlement_status_req_idx"),
            models.Index(fields=["shop_type", "shop_id"], name="settlement_shop_idx"),
            models.Index(fields=["status", "completed_at"], name="settlement_status_done_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="settlement_amount_positive"),
            models.CheckConstraint(
                condition=Q(platform_fee__lte=F("amount")), name="settlement_fee_within_amount"
            ),
        ]


class OrderSettlement(AbstractOrderSettlement):
    """
    Concrete OrderSettlement model.
    For custom ledger entry models, extend AbstractOrderSettlement instead.
    """

    # The payout this order's funds were attributed to, if any
    settlement = models.ForeignKey(
        Settlement,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="order_settlements",
    )

    class Meta(AbstractOrderSettlement.Meta):
        indexes = [
            models.Index(fields=["shop_type", "shop_id", "matured_at"], name="entry_shop_matured_idx"),
            models.Index(fields=["eligible_at"], name="entry_eligible_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(commission__lte=F("order_amount")),
                name="entry_commission_within_order",
            ),
            models.CheckConstraint(
                condition=Q(settlement_amount__gte=0), name="entry_amount_non_negative"
            ),
        ]
