"""
Configuration settings for dj_settlements.

Settings can be overridden in your Django settings.py using the DJ_SETTLEMENTS dictionary.
Keys may be given with or without the ``SETTLEMENT_`` prefix.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from django.conf import settings as django_settings
from django.core.exceptions import ImproperlyConfigured


@dataclass
class SettlementSettings:
    """Settings container for dj_settlements configuration."""

    # Days between delivery and payout eligibility
    SETTLEMENT_HOLD_PERIOD_DAYS: int = 3

    # Platform cut applied when the shop carries no commission of its own
    SETTLEMENT_PLATFORM_COMMISSION_PERCENT: Decimal = Decimal("5")

    # Fee charged on each withdrawal (PlatformFee on the settlement)
    SETTLEMENT_PAYOUT_FEE_PERCENT: Decimal = Decimal("0")

    # Smallest withdrawal a seller may request, 0 accepts any positive amount
    SETTLEMENT_MIN_SETTLEMENT_AMOUNT: Decimal = Decimal("0.00")

    # Currency precision for every stored amount
    SETTLEMENT_MONEY_DECIMAL_PLACES: int = 2

    # External collaborators, as "app_label.ModelName"
    SETTLEMENT_ORDER_MODEL: str = "orders.Order"
    SETTLEMENT_SHOP_MODEL: str = "shops.Shop"
    SETTLEMENT_ORDER_DELIVERED_STATUS: str = "delivered"
    SETTLEMENT_SHOP_SELLER_FIELD: str = "seller"
    SETTLEMENT_SHOP_COMMISSION_FIELD: str = "commission_percent"

    # Optional payment gate; an empty field name accrues delivered orders regardless of payment
    SETTLEMENT_ORDER_PAYMENT_STATUS_FIELD: str = ""
    SETTLEMENT_ORDER_PAID_STATUS: str = "paid"

    # Retry policy for serialization failures
    SETTLEMENT_TRANSACTION_MAX_RETRIES: int = 3
    SETTLEMENT_TRANSACTION_RETRY_BASE_SECONDS: float = 0.05

    # Orders fetched per page by batch accrual
    SETTLEMENT_ACCRUAL_BATCH_SIZE: int = 100

    def __init__(self):
        """Initialize settings from Django settings if available."""
        self.reload()

    def reload(self):
        user_settings = getattr(django_settings, "DJ_SETTLEMENTS", {}) or {}

        for key, _ in self.__class__.__dataclass_fields__.items():
            # Map user setting keys (without SETTLEMENT_ prefix) to our attributes
            user_key = key.replace("SETTLEMENT_", "", 1)
            if user_key in user_settings:
                setattr(self, key, user_settings[user_key])
            elif key in user_settings:
                setattr(self, key, user_settings[key])
            else:
                setattr(self, key, getattr(self.__class__, key))

        self._validate_settings()

    def _validate_settings(self):
        """
        Validate user-provided settings and raise ImproperlyConfigured for invalid values.
        """
        for name in (
            "SETTLEMENT_HOLD_PERIOD_DAYS",
            "SETTLEMENT_TRANSACTION_MAX_RETRIES",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ImproperlyConfigured(
                    f"DJ_SETTLEMENTS['{name.replace('SETTLEMENT_', '', 1)}'] must be a "
                    f"non-negative integer. Got: {value}"
                )

        if (
            not isinstance(self.SETTLEMENT_MONEY_DECIMAL_PLACES, int)
            or not 0 <= self.SETTLEMENT_MONEY_DECIMAL_PLACES <= 8
        ):
            raise ImproperlyConfigured(
                "DJ_SETTLEMENTS['MONEY_DECIMAL_PLACES'] must be an integer between 0 and 8. "
                f"Got: {self.SETTLEMENT_MONEY_DECIMAL_PLACES}"
            )

        if (
            not isinstance(self.SETTLEMENT_ACCRUAL_BATCH_SIZE, int)
            or self.SETTLEMENT_ACCRUAL_BATCH_SIZE < 1
        ):
            raise ImproperlyConfigured(
                "DJ_SETTLEMENTS['ACCRUAL_BATCH_SIZE'] must be a positive integer. "
                f"Got: {self.SETTLEMENT_ACCRUAL_BATCH_SIZE}"
            )

        # Percentages and amounts are stored as Decimal regardless of input type
        for name, upper in (
            ("SETTLEMENT_PLATFORM_COMMISSION_PERCENT", Decimal("100")),
            ("SETTLEMENT_PAYOUT_FEE_PERCENT", Decimal("100")),
            ("SETTLEMENT_MIN_SETTLEMENT_AMOUNT", None),
        ):
            raw = getattr(self, name)
            try:
                value = Decimal(str(raw))
            except (InvalidOperation, ValueError):
                raise ImproperlyConfigured(
                    f"DJ_SETTLEMENTS['{name.replace('SETTLEMENT_', '', 1)}'] must be a number. "
                    f"Got: {raw}"
                ) from None
            if value < 0 or (upper is not None and value > upper):
                raise ImproperlyConfigured(
                    f"DJ_SETTLEMENTS['{name.replace('SETTLEMENT_', '', 1)}'] is out of range. "
                    f"Got: {raw}"
                )
            setattr(self, name, value)

        try:
            self.SETTLEMENT_TRANSACTION_RETRY_BASE_SECONDS = float(
                self.SETTLEMENT_TRANSACTION_RETRY_BASE_SECONDS
            )
        except (TypeError, ValueError):
            raise ImproperlyConfigured(
                "DJ_SETTLEMENTS['TRANSACTION_RETRY_BASE_SECONDS'] must be a number. "
                f"Got: {self.SETTLEMENT_TRANSACTION_RETRY_BASE_SECONDS}"
            ) from None

        # Validate model references
        for name in ("SETTLEMENT_ORDER_MODEL", "SETTLEMENT_SHOP_MODEL"):
            value = getattr(self, name)
            if not isinstance(value, str) or value.count(".") != 1:
                raise ImproperlyConfigured(
                    f"DJ_SETTLEMENTS['{name.replace('SETTLEMENT_', '', 1)}'] must be of the "
                    f"form 'app_label.ModelName'. Got: {value}"
                )

        for name in (
            "SETTLEMENT_ORDER_DELIVERED_STATUS",
            "SETTLEMENT_SHOP_SELLER_FIELD",
        ):
            value = getattr(self, name)
            if not isinstance(value, str) or len(value) == 0:
                raise ImproperlyConfigured(
                    f"DJ_SETTLEMENTS['{name.replace('SETTLEMENT_', '', 1)}'] must be a "
                    f"non-empty string. Got: {value}"
                )

        if not isinstance(self.SETTLEMENT_ORDER_PAYMENT_STATUS_FIELD, str):
            raise ImproperlyConfigured(
                "DJ_SETTLEMENTS['ORDER_PAYMENT_STATUS_FIELD'] must be a string. "
                f"Got: {self.SETTLEMENT_ORDER_PAYMENT_STATUS_FIELD}"
            )
        if self.SETTLEMENT_ORDER_PAYMENT_STATUS_FIELD and (
            not isinstance(self.SETTLEMENT_ORDER_PAID_STATUS, str)
            or len(self.SETTLEMENT_ORDER_PAID_STATUS) == 0
        ):
            raise ImproperlyConfigured(
                "DJ_SETTLEMENTS['ORDER_PAID_STATUS'] must be a non-empty string when "
                f"ORDER_PAYMENT_STATUS_FIELD is set. Got: {self.SETTLEMENT_ORDER_PAID_STATUS}"
            )

    def __getattr__(self, name: str) -> Any:
        """Fallback for attribute access."""
        raise AttributeError(f"'{type(self).__name__}' has no setting '{name}'")


# Singleton instance for import convenience
settlement_settings = SettlementSettings()
