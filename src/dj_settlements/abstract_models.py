"""
Abstract base models for dj_settlements.

These abstract models contain the fields and invariants of the settlement ledger:
per-shop balances, payout requests and per-order commission records.
Extend them to add project specific fields.

Usage:
    from dj_settlements.abstract_models import AbstractSettlement

    class CustomSettlement(AbstractSettlement):
        external_batch_id = models.CharField(max_length=100)

        class Meta(AbstractSettlement.Meta):
            abstract = False
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from . import state_machine
from .conf import settlement_settings
from .managers import (
    OrderSettlementManager,
    SellerBalanceManager,
    SettlementManager,
)

MONEY_MAX_DIGITS = 18


def money_field(**kwargs):
    kwargs.setdefault("default", Decimal("0.00"))
    return models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=settlement_settings.SETTLEMENT_MONEY_DECIMAL_PLACES,
        **kwargs,
    )


class AbstractSellerBalance(models.Model):
    """
    Denormalised running totals for one shop.
    Only the settlement services mutate these columns, always under a row lock.
    """

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="%(class)s_set",
    )

    # The shop (any model) this balance belongs to
    shop_type = models.ForeignKey(
        ContentType, on_delete=models.PROTECT, related_name="%(class)s_balances"
    )
    shop_id = models.PositiveBigIntegerField()
    shop = GenericForeignKey("shop_type", "shop_id")

    # Withdrawable now
    available_balance = money_field()
    # Earned but still inside the hold period
    pending_balance = money_field()
    # Lifetime sum of OrderSettlement.settlement_amount
    total_earned = money_field()
    # Lifetime net amount paid out
    total_withdrawn = money_field()
    # Lifetime fees charged on completed withdrawals
    total_payout_fees = money_field()
    # Amount reserved by pending, approved and processing settlements
    total_pending_withdrawal = money_field()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SellerBalanceManager()

    class Meta:
        abstract = True
        unique_together = (("seller", "shop_type", "shop_id"),)
        verbose_name = _("Seller balance")
        verbose_name_plural = _("Seller balances")

    def __str__(self):
        return f"Balance shop={self.shop_id} available={self.available_balance}"

    @property
    def unwithdrawn_balance(self):
        return self.available_balance + self.pending_balance + self.total_pending_withdrawal

    @property
    def is_conserved(self):
        """Every earned unit is either held, available, reserved, withdrawn or paid as fee."""
        return self.unwithdrawn_balance == (
            self.total_earned - self.total_withdrawn - self.total_payout_fees
        )


class AbstractSettlement(models.Model):
    """
    One payout request from the platform to a seller for one shop.
    """

    STATUS_PENDING = state_machine.PENDING
    STATUS_APPROVED = state_machine.APPROVED
    STATUS_PROCESSING = state_machine.PROCESSING
    STATUS_COMPLETED = state_machine.COMPLETED
    STATUS_FAILED = state_machine.FAILED
    STATUS_CANCELLED = state_machine.CANCELLED

    STATUS_CHOICES = (
        (STATUS_PENDING, _("Pending")),
        (STATUS_APPROVED, _("Approved")),
        (STATUS_PROCESSING, _("Processing")),
        (STATUS_COMPLETED, _("Completed")),
        (STATUS_FAILED, _("Failed")),
        (STATUS_CANCELLED, _("Cancelled")),
    )

    METHOD_BANK_TRANSFER = "bank_transfer"
    METHOD_PAYOS = "payos"
    METHOD_WALLET = "wallet"

    METHOD_CHOICES = (
        (METHOD_BANK_TRANSFER, _("Bank transfer")),
        (METHOD_PAYOS, _("PayOS")),
        (METHOD_WALLET, _("Wallet")),
    )

    uuid = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="%(class)s_requests",
    )

    shop_type = models.ForeignKey(
        ContentType, on_delete=models.PROTECT, related_name="%(class)s_settlements"
    )
    shop_id = models.PositiveBigIntegerField()
    shop = GenericForeignKey("shop_type", "shop_id")

    amount = money_field()
    platform_fee = money_field()
    net_amount = money_field()

    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    method = models.CharField(max_length=20, choices=METHOD_CHOICES)

    # Required only for bank transfers
    bank_account = models.CharField(max_length=50, blank=True, null=True)
    bank_name = models.CharField(max_length=100, blank=True, null=True)
    account_holder_name = models.CharField(max_length=100, blank=True, null=True)

    transaction_reference = models.CharField(max_length=100, blank=True, null=True)
    notes = models.TextField(blank=True, default="")
    failure_reason = models.TextField(blank=True, default="")

    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="%(class)s_processed",
    )

    requested_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SettlementManager()

    class Meta:
        abstract = True
        verbose_name = _("Settlement")
        verbose_name_plural = _("Settlements")

    def __str__(self):
        return f"Settlement {self.uuid} {self.amount} [{self.status.upper()}]"

    @property
    def is_terminal(self):
        return state_machine.is_terminal(self.status)

    @property
    def is_reserved(self):
        """True while the amount is held in the balance's pending withdrawal."""
        return self.status in state_machine.RESERVED


class AbstractOrderSettlement(models.Model):
    """
    Commission split for exactly one delivered order.
    The monetary columns are a snapshot taken at accrual time and never change.
    """

    uuid = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

    # The external order (any model)
    order_type = models.ForeignKey(
        ContentType, on_delete=models.PROTECT, related_name="%(class)s_orders"
    )
    order_id = models.PositiveBigIntegerField()
    order = GenericForeignKey("order_type", "order_id")

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="%(class)s_entries",
    )
    shop_type = models.ForeignKey(
        ContentType, on_delete=models.PROTECT, related_name="%(class)s_shop_entries"
    )
    shop_id = models.PositiveBigIntegerField()
    shop = GenericForeignKey("shop_type", "shop_id")

    # Note: settlement FK is defined in the concrete class to allow a custom settlement model

    order_amount = money_field()
    commission_percent = models.DecimalField(max_digits=5, decimal_places=2)
    commission = money_field()
    settlement_amount = money_field()

    order_delivered_at = models.DateTimeField()
    eligible_at = models.DateTimeField()
    # Set once the amount has moved from pending to available
    matured_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = OrderSettlementManager()

    class Meta:
        abstract = True
        unique_together = (("order_type", "order_id"),)
        verbose_name = _("Order settlement")
        verbose_name_plural = _("Order settlements")

    def __str__(self):
        return f"Order {self.order_id} -> {self.settlement_amount}"

    @property
    def is_matured(self):
        return self.matured_at is not None
