import logging

from django.contrib.contenttypes.models import ContentType

from ..conf import settlement_settings
from ..exceptions import AmountInvalid, InsufficientBalance, Unauthorized, ValidationError
from ..models import OrderSettlement, SellerBalance, Settlement
from ..signals import settlement_requested
from ..transactions import run_in_transaction
from ..utils import is_shop_owner, percent_of, to_money
from .common import apply_balance_change

logger = logging.getLogger(__name__)

BANK_DETAIL_FIELDS = ("bank_account", "bank_name", "account_holder_name")


class WithdrawalService:
    @staticmethod
    def parse_method(method):
        """Accepts ``bank_transfer``, ``BankTransfer``, ``PAYOS`` and similar spellings."""
        normalized = str(method or "").replace("_", "").replace("-", "").lower()
        for value, _ in Settlement.METHOD_CHOICES:
            if value.replace("_", "") == normalized:
                return value
        raise ValidationError(f"Invalid settlement method: {method}")

    @classmethod
    def validate_request(cls, amount, method, bank_details=None):
        """
        Validates a withdrawal request before anything is locked.
        Returns the normalised ``(amount, method, bank_details)``.
        """
        amount = to_money(amount)
        minimum = settlement_settings.SETTLEMENT_MIN_SETTLEMENT_AMOUNT
        if amount < minimum:
            raise AmountInvalid(f"Minimum settlement amount is {minimum}.")

        method = cls.parse_method(method)

        bank_details = {
            key: (str((bank_details or {}).get(key) or "").strip() or None)
            for key in BANK_DETAIL_FIELDS
        }
        if method == Settlement.METHOD_BANK_TRANSFER:
            missing = [key for key, value in bank_details.items() if not value]
            if missing:
                raise ValidationError(
                    "Bank details are incomplete. Missing: " + ", ".join(missing)
                )
        return amount, method, bank_details

    @classmethod
    def request_settlement(
        cls, seller, shop, amount, method, bank_details=None, notes=""
    ):
        """
        Reserve ``amount`` of the shop's available balance for a payout.
        The Settlement row and the balance reservation commit together or not at all.
        """
        amount, method, bank_details = cls.validate_request(amount, method, bank_details)
        if not is_shop_owner(seller, shop):
            raise Unauthorized("Seller does not own this shop.")

        return run_in_transaction(
            cls._reserve, seller, shop, amount, method, bank_details, notes or ""
        )

    @classmethod
    def _reserve(cls, seller, shop, amount, method, bank_details, notes):
        balance = SellerBalance.objects.lock_for_shop(shop, seller.pk)

        # Check balance *after* acquiring lock
        if balance.available_balance < amount:
            raise InsufficientBalance(
                f"Insufficient available balance. Available: {balance.available_balance}, "
                f"Requested: {amount}"
            )

        platform_fee = percent_of(amount, settlement_settings.SETTLEMENT_PAYOUT_FEE_PERCENT)
        settlement = Settlement.objects.create(
            seller=seller,
            shop_type=ContentType.objects.get_for_model(shop),
            shop_id=shop.pk,
            amount=amount,
            platform_fee=platform_fee,
            net_amount=amount - platform_fee,
            status=Settlement.STATUS_PENDING,
            method=method,
            notes=notes,
            **bank_details,
        )

        cls._attribute_entries(settlement, shop)

        apply_balance_change(
            balance,
            "withdrawal_requested",
            sender=cls,
            available_balance=-amount,
            total_pending_withdrawal=amount,
        )

        settlement_requested.send(sender=cls, settlement=settlement)
        logger.info(
            "Settlement requested: settlement=%s seller_id=%s shop_id=%s amount=%s "
            "platform_fee=%s net_amount=%s method=%s",
            settlement.uuid,
            seller.pk,
            shop.pk,
            amount,
            platform_fee,
            settlement.net_amount,
            method,
        )
        return settlement

    @staticmethod
    def _attribute_entries(settlement, shop):
        """
        Link matured, unattributed ledger entries to the payout, oldest delivery first,
        until the requested amount is covered.
        """
        remaining = settlement.amount
        attributed = []
        for entry in (
            OrderSettlement.objects.for_shop(shop)
            .filter(seller_id=settlement.seller_id)
            .unattributed()
        ):
            if remaining <= 0:
                break
            attributed.append(entry.pk)
            remaining -= entry.settlement_amount

        if attributed:
            OrderSettlement.objects.filter(pk__in=attributed).update(settlement=settlement)
        return attributed
