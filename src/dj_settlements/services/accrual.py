"""
System-driven accrual.

Delivered orders become immutable OrderSettlement entries; their seller share is
credited to the shop balance in the same transaction. Entries still inside the
hold period land in ``pending_balance`` and are moved to ``available_balance``
by maturation once ``eligible_at`` has passed.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from django.contrib.contenttypes.models import ContentType
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from ..conf import settlement_settings
from ..exceptions import Unauthorized, ValidationError
from ..models import OrderSettlement, SellerBalance
from ..signals import order_settlement_created
from ..transactions import run_in_transaction
from ..utils import (
    get_commission_percent,
    get_order_model,
    get_shop_seller_id,
    is_shop_owner,
    split_commission,
)
from .common import apply_balance_change, lock_balance
from .eligibility import EligibilityService

logger = logging.getLogger(__name__)


@dataclass
class AccrualResult:
    created: list = field(default_factory=list)
    skipped: int = 0

    @property
    def total_amount(self):
        return sum((entry.settlement_amount for entry in self.created), Decimal("0.00"))


@dataclass
class MaturationResult:
    matured: int = 0
    amount: Decimal = Decimal("0.00")


class AccrualService:
    @staticmethod
    def _hold_period(hold_period_days):
        if hold_period_days is None:
            return settlement_settings.SETTLEMENT_HOLD_PERIOD_DAYS
        return hold_period_days

    @classmethod
    def accrue_order(cls, order, hold_period_days=None, now=None):
        """
        Create the ledger entry for one delivered order and credit the shop balance.
        Returns None when the order already has an entry or changed before it was locked.
        """
        if order.status != settlement_settings.SETTLEMENT_ORDER_DELIVERED_STATUS:
            raise ValidationError("Only delivered orders can be settled.")
        if order.delivered_at is None:
            raise ValidationError("Delivered order has no delivery time.")
        if not EligibilityService.is_paid(order):
            raise ValidationError("Only paid orders can be settled.")

        return run_in_transaction(
            cls._accrue_locked, order, cls._hold_period(hold_period_days), now
        )

    @classmethod
    def _accrue_locked(cls, order, hold_period_days, now):
        now = now or timezone.now()
        shop = order.shop
        seller_id = get_shop_seller_id(shop)
        balance = SellerBalance.objects.lock_for_shop(shop, seller_id)

        # The caller may hold a stale row; read it again under lock before pricing
        order_id = order.pk
        order = (
            get_order_model()
            .objects.select_for_update()
            .filter(pk=order_id, shop=shop)
            .first()
        )
        if order is None or not EligibilityService.is_accruable(order):
            logger.info("Order no longer eligible, skipping: order_id=%s", order_id)
            return None

        # Re-check under the balance lock; concurrent accruals for this shop queue here
        if OrderSettlement.objects.for_order(order).exists():
            logger.info("Order already settled, skipping: order_id=%s", order.pk)
            return None

        commission_percent = get_commission_percent(shop)
        order_amount, commission, settlement_amount = split_commission(
            order.total_amount, commission_percent
        )
        eligible_at = order.delivered_at + timedelta(days=hold_period_days)
        matured = eligible_at <= now

        try:
            with transaction.atomic():
                entry = OrderSettlement.objects.create(
                    order_type=ContentType.objects.get_for_model(order),
                    order_id=order.pk,
                    seller_id=seller_id,
                    shop_type=ContentType.objects.get_for_model(shop),
                    shop_id=shop.pk,
                    order_amount=order_amount,
                    commission_percent=commission_percent,
                    commission=commission,
                    settlement_amount=settlement_amount,
                    order_delivered_at=order.delivered_at,
                    eligible_at=eligible_at,
                    matured_at=now if matured else None,
                )
        except IntegrityError:
            # Another worker won the race on the unique order key
            logger.info("Order settled concurrently, skipping: order_id=%s", order.pk)
            return None

        if matured:
            apply_balance_change(
                balance,
                "accrual",
                sender=cls,
                available_balance=settlement_amount,
                total_earned=settlement_amount,
            )
        else:
            apply_balance_change(
                balance,
                "accrual",
                sender=cls,
                pending_balance=settlement_amount,
                total_earned=settlement_amount,
            )

        order_settlement_created.send(sender=cls, order_settlement=entry)
        logger.info(
            "Order accrued: order_id=%s shop_id=%s order_amount=%s commission=%s "
            "settlement_amount=%s matured=%s",
            order.pk,
            shop.pk,
            order_amount,
            commission,
            settlement_amount,
            matured,
        )
        return entry

    @classmethod
    def accrue_shop(
        cls, shop, seller=None, hold_period_days=None, include_held=False, now=None
    ):
        """
        Accrue every eligible order of a shop, one transaction per order so an
        interrupted run never leaves partial ledger writes behind.
        """
        if seller is not None and not is_shop_owner(seller, shop):
            raise Unauthorized("Seller does not own this shop.")

        hold_period_days = cls._hold_period(hold_period_days)
        scan_hold = 0 if include_held else hold_period_days
        result = AccrualResult()

        for order in cls._scan(shop, scan_hold, now):
            entry = run_in_transaction(cls._accrue_locked, order, hold_period_days, now)
            if entry is None:
                result.skipped += 1
            else:
                result.created.append(entry)

        logger.info(
            "Shop accrual finished: shop_id=%s created=%s skipped=%s amount=%s",
            shop.pk,
            len(result.created),
            result.skipped,
            result.total_amount,
        )
        return result

    @staticmethod
    def _scan(shop, hold_period_days, now):
        """Keyset pagination over eligible orders, one page per query."""
        qs = EligibilityService.eligible_queryset(shop, hold_period_days, now)
        size = settlement_settings.SETTLEMENT_ACCRUAL_BATCH_SIZE
        page = list(qs[:size])
        while page:
            yield from page
            last = page[-1]
            page = list(
                qs.filter(
                    Q(delivered_at__gt=last.delivered_at)
                    | Q(delivered_at=last.delivered_at, pk__gt=last.pk)
                )[:size]
            )

    @classmethod
    def mature_shop(cls, shop, now=None):
        """Move matured entries of one shop from pending to available."""
        shop_type = ContentType.objects.get_for_model(shop)
        seller_ids = (
            OrderSettlement.objects.for_shop(shop)
            .unmatured()
            .values_list("seller_id", flat=True)
            .distinct()
        )
        result = MaturationResult()
        for seller_id in list(seller_ids):
            cls._mature_owner(seller_id, shop_type.pk, shop.pk, now, result)
        return result

    @classmethod
    def mature_due(cls, now=None):
        """Run maturation for every shop with entries past their hold period."""
        now = now or timezone.now()
        owners = (
            OrderSettlement.objects.due_for_maturation(now)
            .order_by()
            .values_list("seller_id", "shop_type_id", "shop_id")
            .distinct()
        )
        result = MaturationResult()
        for seller_id, shop_type_id, shop_id in list(owners):
            cls._mature_owner(seller_id, shop_type_id, shop_id, now, result)
        return result

    @classmethod
    def _mature_owner(cls, seller_id, shop_type_id, shop_id, now, result):
        # Small batches keep each transaction short; loop until nothing is due
        while True:
            matured, amount = run_in_transaction(
                cls._mature_batch, seller_id, shop_type_id, shop_id, now
            )
            result.matured += matured
            result.amount += amount
            if matured < settlement_settings.SETTLEMENT_ACCRUAL_BATCH_SIZE:
                return

    @classmethod
    def _mature_batch(cls, seller_id, shop_type_id, shop_id, now):
        now = now or timezone.now()
        balance = lock_balance(seller_id, shop_type_id, shop_id)

        due = list(
            OrderSettlement.objects.filter(
                seller_id=seller_id, shop_type_id=shop_type_id, shop_id=shop_id
            )
            .due_for_maturation(now)
            .select_for_update()[: settlement_settings.SETTLEMENT_ACCRUAL_BATCH_SIZE]
        )
        if not due:
            return 0, Decimal("0.00")

        moved = Decimal("0.00")
        count = 0
        for entry in due:
            # Conditional update: an entry is transferred at most once
            updated = OrderSettlement.objects.filter(
                pk=entry.pk, matured_at__isnull=True
            ).update(matured_at=now)
            if updated:
                moved += entry.settlement_amount
                count += 1

        if moved:
            apply_balance_change(
                balance,
                "maturation",
                sender=cls,
                pending_balance=-moved,
                available_balance=moved,
            )
        logger.info(
            "Pending balance matured: shop_id=%s entries=%s amount=%s",
            shop_id,
            count,
            moved,
        )
        return count, moved
