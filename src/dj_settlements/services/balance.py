"""
Read-side projections over the settlement ledger. Nothing here writes.
"""
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Sum

from .. import state_machine
from ..dto import (
    PagedResult,
    ReconciliationReport,
    SellerBalanceDTO,
    SettlementDTO,
    SettlementFilter,
)
from ..exceptions import Unauthorized, ValidationError
from ..models import OrderSettlement, SellerBalance, Settlement
from ..utils import get_shop_seller_id, is_settlement_admin
from .common import get_settlement

ZERO = Decimal("0.00")


def _sum(queryset, field):
    return queryset.aggregate(total=Sum(field))["total"] or ZERO


class BalanceQueryService:
    @staticmethod
    def get_balance(shop):
        """Current balance snapshot; an untouched shop reads as all zeros."""
        seller_id = get_shop_seller_id(shop)
        balance = SellerBalance.objects.get_for_shop(shop, seller_id)
        if balance is None:
            return SellerBalanceDTO(seller_id=seller_id, shop_id=shop.pk)
        return SellerBalanceDTO.from_model(balance)

    @staticmethod
    def list_settlements(settlement_filter=None):
        """Settlement history, newest request first."""
        settlement_filter = (settlement_filter or SettlementFilter()).validate()

        qs = Settlement.objects.all()
        if settlement_filter.seller_id is not None:
            qs = qs.for_seller(settlement_filter.seller_id)
        if settlement_filter.shop is not None:
            qs = qs.for_shop(settlement_filter.shop)
        if settlement_filter.status:
            if settlement_filter.status not in state_machine.ALLOWED:
                raise ValidationError(f"Unknown settlement status: {settlement_filter.status}")
            qs = qs.with_status(settlement_filter.status)
        qs = qs.requested_between(settlement_filter.start_date, settlement_filter.end_date)

        offset = (settlement_filter.page - 1) * settlement_filter.page_size
        # Under READ COMMITTED the count and the page may each see a different commit
        with transaction.atomic():
            total_count = qs.count()
            page = list(
                qs.order_by("-requested_at", "-id")[offset : offset + settlement_filter.page_size]
            )

        return PagedResult(
            data=[SettlementDTO.from_model(settlement) for settlement in page],
            page=settlement_filter.page,
            page_size=settlement_filter.page_size,
            total_count=total_count,
        )

    @staticmethod
    def get_settlement(settlement_id, user=None):
        """Settlement detail with its attributed order entries."""
        settlement = get_settlement(settlement_id)
        if user is not None and not (
            is_settlement_admin(user) or settlement.seller_id == user.pk
        ):
            raise Unauthorized("You cannot view this settlement.")
        return SettlementDTO.from_model(settlement, include_orders=True)

    @staticmethod
    def pending_settlements():
        """Admin queue: pending requests, oldest first."""
        return [SettlementDTO.from_model(settlement) for settlement in Settlement.objects.pending()]

    @staticmethod
    def total_settled_amount(start=None, end=None):
        """Net amount paid out by completed settlements in the completed-at range."""
        return _sum(Settlement.objects.completed_between(start, end), "net_amount")

    @classmethod
    def statistics(cls, start=None, end=None):
        # Counts and totals are separate statements; under READ COMMITTED they may disagree
        with transaction.atomic():
            by_status = {
                row["status"]: row["count"]
                for row in Settlement.objects.order_by()
                .values("status")
                .annotate(count=Count("id"))
            }
            total = cls.total_settled_amount(start, end)
        return {
            "settlements_by_status": {
                status: by_status.get(status, 0) for status, _ in Settlement.STATUS_CHOICES
            },
            "total_settled_amount": total,
            "date_range": {"start_date": start, "end_date": end},
        }

    @staticmethod
    def reconcile(shop):
        """
        Compare the denormalised balance with aggregates over the ledger.

        Mutators lock the balance row before touching the ledger, so reading
        under the same lock yields a snapshot with no half-applied operation.
        """
        seller_id = get_shop_seller_id(shop)
        with transaction.atomic():
            balance = SellerBalance.objects.get_for_shop(shop, seller_id, for_update=True)
            entries = OrderSettlement.objects.for_shop(shop).filter(seller_id=seller_id)
            settlements = Settlement.objects.for_shop(shop).for_seller(seller_id)

            earned = _sum(entries, "settlement_amount")
            pending = _sum(entries.unmatured(), "settlement_amount")
            reserved = _sum(settlements.reserved(), "amount")
            completed = settlements.with_status(state_machine.COMPLETED)
            withdrawn = _sum(completed, "net_amount")
            fees = _sum(completed, "platform_fee")

        snapshot = (
            SellerBalanceDTO.from_model(balance)
            if balance is not None
            else SellerBalanceDTO(seller_id=seller_id, shop_id=shop.pk)
        )
        expected = {
            "total_earned": earned,
            "pending_balance": pending,
            "total_pending_withdrawal": reserved,
            "total_withdrawn": withdrawn,
            "total_payout_fees": fees,
            "available_balance": earned - pending - reserved - withdrawn - fees,
        }
        mismatches = {
            name: {"balance": getattr(snapshot, name), "ledger": value}
            for name, value in expected.items()
            if getattr(snapshot, name) != value
        }
        return ReconciliationReport(
            shop_id=shop.pk,
            balance=snapshot,
            ledger_total_earned=earned,
            ledger_pending=pending,
            ledger_reserved=reserved,
            ledger_withdrawn=withdrawn,
            ledger_payout_fees=fees,
            mismatches=mismatches,
        )

