from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.apps import apps

from .conf import settlement_settings
from .exceptions import AmountInvalid

HUNDRED = Decimal("100")


def get_order_model():
    """
    Returns the external Order model.
    Override via settings: DJ_SETTLEMENTS['ORDER_MODEL']
    The model must expose ``shop``, ``total_amount``, ``status`` and ``delivered_at``.
    """
    return apps.get_model(settlement_settings.SETTLEMENT_ORDER_MODEL)


def get_shop_model():
    """
    Returns the external Shop model.
    Override via settings: DJ_SETTLEMENTS['SHOP_MODEL']
    """
    return apps.get_model(settlement_settings.SETTLEMENT_SHOP_MODEL)


def money_quantum():
    return Decimal(1).scaleb(-settlement_settings.SETTLEMENT_MONEY_DECIMAL_PLACES)


def quantize_money(value):
    """
    Round to currency precision using ROUND_HALF_UP.
    This is the only rounding rule used for stored amounts.
    """
    return Decimal(str(value)).quantize(money_quantum(), rounding=ROUND_HALF_UP)


def to_money(amount):
    """
    Ensures amount is a valid, positive decimal at currency precision.
    """
    if amount is None or isinstance(amount, bool):
        raise AmountInvalid("Amount must be a number.")
    try:
        # Convert to string first to avoid float precision issues
        value = Decimal(str(amount))
    except (ValueError, InvalidOperation):
        raise AmountInvalid("Amount must be a number.") from None

    if not value.is_finite():
        raise AmountInvalid("Amount must be a number.")
    if value != value.quantize(money_quantum(), rounding=ROUND_HALF_UP):
        raise AmountInvalid(
            "Amount cannot have more than "
            f"{settlement_settings.SETTLEMENT_MONEY_DECIMAL_PLACES} decimal places."
        )
    if value <= 0:
        raise AmountInvalid("Amount must be positive.")
    return quantize_money(value)


def percent_of(amount, percent):
    """``amount * percent / 100`` rounded to currency precision."""
    return quantize_money(Decimal(amount) * Decimal(str(percent)) / HUNDRED)


def split_commission(order_amount, commission_percent):
    """
    Returns ``(order_amount, commission, settlement_amount)``.
    Commission is rounded, the seller's share is the exact remainder.
    """
    order_amount = quantize_money(order_amount)
    commission = min(percent_of(order_amount, commission_percent), order_amount)
    return order_amount, commission, order_amount - commission


def get_commission_percent(shop):
    """Per-shop commission when the shop defines one, platform default otherwise."""
    field = settlement_settings.SETTLEMENT_SHOP_COMMISSION_FIELD
    value = getattr(shop, field, None) if field else None
    if value is None:
        return settlement_settings.SETTLEMENT_PLATFORM_COMMISSION_PERCENT
    return Decimal(str(value))


def get_shop_seller_id(shop):
    field = settlement_settings.SETTLEMENT_SHOP_SELLER_FIELD
    return getattr(shop, f"{field}_id", None) or getattr(getattr(shop, field), "pk", None)


def is_shop_owner(user, shop):
    return user is not None and user.pk is not None and get_shop_seller_id(shop) == user.pk


def is_settlement_admin(user):
    return bool(
        user is not None
        and (getattr(user, "is_staff", False) or getattr(user, "is_superuser", False))
    )
