import logging
import uuid

from django.core.exceptions import ValidationError as DjangoValidationError

from ..exceptions import InsufficientBalance, NotFound
from ..models import SellerBalance, Settlement
from ..signals import balance_changed

logger = logging.getLogger(__name__)

BALANCE_FIELDS = (
    "available_balance",
    "pending_balance",
    "total_earned",
    "total_withdrawn",
    "total_payout_fees",
    "total_pending_withdrawal",
)

# Columns that may only ever grow
MONOTONIC_FIELDS = ("total_earned", "total_withdrawn", "total_payout_fees")


def apply_balance_change(balance, reason, sender=None, **deltas):
    """
    Apply signed deltas to a locked SellerBalance and save it.

    The caller must hold the row lock (``SellerBalance.objects.lock_for_shop``)
    inside the same atomic block that writes the ledger entry justifying the change.
    """
    for field, delta in deltas.items():
        if field not in BALANCE_FIELDS:
            raise ValueError(f"Unknown balance field: {field}")
        if field in MONOTONIC_FIELDS and delta < 0:
            raise ValueError(f"{field} cannot decrease")
        new_value = getattr(balance, field) + delta
        if new_value < 0:
            raise InsufficientBalance(
                f"Insufficient balance. {field}: {getattr(balance, field)}, change: {delta}"
            )
        setattr(balance, field, new_value)

    balance.save(update_fields=[*deltas.keys(), "updated_at"])
    balance_changed.send(sender=sender or SellerBalance, balance=balance, reason=reason)
    return balance


def lock_balance(seller_id, shop_type_id, shop_id):
    """Lock the balance row for raw owner keys, creating it on first use."""
    balance, _ = SellerBalance.objects.get_or_create(
        seller_id=seller_id, shop_type_id=shop_type_id, shop_id=shop_id
    )
    return SellerBalance.objects.select_for_update().get(pk=balance.pk)


def lock_balance_for(record):
    """Lock the balance row owning a Settlement or OrderSettlement."""
    return lock_balance(record.seller_id, record.shop_type_id, record.shop_id)


def get_settlement(settlement_id, for_update=False):
    """Accepts a Settlement, its primary key or its public UUID."""
    if isinstance(settlement_id, Settlement):
        settlement_id = settlement_id.pk

    qs = Settlement.objects.all()
    if for_update:
        qs = qs.select_for_update()

    try:
        if isinstance(settlement_id, uuid.UUID):
            return qs.get(uuid=settlement_id)
        if isinstance(settlement_id, str) and not settlement_id.isdigit():
            return qs.get(uuid=uuid.UUID(settlement_id))
        return qs.get(pk=int(settlement_id))
    except (Settlement.DoesNotExist, ValueError, TypeError, DjangoValidationError):
        raise NotFound(f"Settlement not found: {settlement_id}") from None
