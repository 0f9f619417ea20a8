from datetime import timedelta

from django.utils import timezone

from ..conf import settlement_settings
from ..models import OrderSettlement
from ..utils import get_order_model


class EligibilityService:
    """
    Read-only scan for delivered orders that have not been settled yet.
    Idempotent: once an order has an OrderSettlement it is never returned again.
    """

    @staticmethod
    def cutoff(hold_period_days=None, now=None):
        if hold_period_days is None:
            hold_period_days = settlement_settings.SETTLEMENT_HOLD_PERIOD_DAYS
        if hold_period_days < 0:
            raise ValueError("hold_period_days cannot be negative")
        return (now or timezone.now()) - timedelta(days=hold_period_days)

    @classmethod
    def eligible_queryset(cls, shop, hold_period_days=None, now=None):
        Order = get_order_model()
        return (
            Order.objects.filter(
                shop=shop,
                status=settlement_settings.SETTLEMENT_ORDER_DELIVERED_STATUS,
                delivered_at__isnull=False,
                delivered_at__lte=cls.cutoff(hold_period_days, now),
                **cls.payment_filter(),
            )
            # Left anti-join against the ledger
            .exclude(pk__in=OrderSettlement.objects.settled_order_ids(Order))
            .order_by("delivered_at", "pk")
        )

    @classmethod
    def get_eligible_orders(cls, shop, hold_period_days=None, now=None):
        """Delivered, past the hold period, not yet settled; oldest delivery first."""
        return list(cls.eligible_queryset(shop, hold_period_days, now))

    @classmethod
    def get_unsettled_delivered_orders(cls, shop, now=None):
        """Every delivered order without a ledger entry, including those still on hold."""
        return list(cls.eligible_queryset(shop, hold_period_days=0, now=now))

    @staticmethod
    def is_settled(order):
        return OrderSettlement.objects.for_order(order).exists()

    @staticmethod
    def payment_filter():
        field = settlement_settings.SETTLEMENT_ORDER_PAYMENT_STATUS_FIELD
        if not field:
            return {}
        return {field: settlement_settings.SETTLEMENT_ORDER_PAID_STATUS}

    @staticmethod
    def is_paid(order):
        field = settlement_settings.SETTLEMENT_ORDER_PAYMENT_STATUS_FIELD
        if not field:
            return True
        return getattr(order, field) == settlement_settings.SETTLEMENT_ORDER_PAID_STATUS

    @classmethod
    def is_accruable(cls, order):
        """Delivered with a delivery time, and paid when a payment field is configured."""
        return (
            order.status == settlement_settings.SETTLEMENT_ORDER_DELIVERED_STATUS
            and order.delivered_at is not None
            and cls.is_paid(order)
        )
