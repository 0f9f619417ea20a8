"""
Serialisable read models.

Monetary values serialise as fixed-point strings with exactly the configured
number of fraction digits (``"60.00"``); datetimes as ISO 8601.
"""
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from .utils import quantize_money

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def format_money(value):
    return format(quantize_money(value or Decimal("0")), "f")


def _serialise(value):
    if isinstance(value, Decimal):
        return format_money(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_serialise(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialise(item) for key, item in value.items()}
    return value


class SerializableMixin:
    def to_dict(self):
        return {f.name: _serialise(getattr(self, f.name)) for f in fields(self)}


@dataclass
class SellerBalanceDTO(SerializableMixin):
    seller_id: Any
    shop_id: Any
    available_balance: Decimal = Decimal("0.00")
    pending_balance: Decimal = Decimal("0.00")
    total_earned: Decimal = Decimal("0.00")
    total_withdrawn: Decimal = Decimal("0.00")
    total_payout_fees: Decimal = Decimal("0.00")
    total_pending_withdrawal: Decimal = Decimal("0.00")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, balance):
        return cls(
            seller_id=balance.seller_id,
            shop_id=balance.shop_id,
            available_balance=balance.available_balance,
            pending_balance=balance.pending_balance,
            total_earned=balance.total_earned,
            total_withdrawn=balance.total_withdrawn,
            total_payout_fees=balance.total_payout_fees,
            total_pending_withdrawal=balance.total_pending_withdrawal,
            created_at=balance.created_at,
            updated_at=balance.updated_at,
        )


@dataclass
class OrderSettlementDTO(SerializableMixin):
    id: str
    order_id: Any
    settlement_id: Optional[str]
    order_amount: Decimal
    commission_percent: Decimal
    commission: Decimal
    settlement_amount: Decimal
    order_delivered_at: datetime
    eligible_at: datetime
    matured_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_model(cls, entry):
        return cls(
            id=str(entry.uuid),
            order_id=entry.order_id,
            settlement_id=str(entry.settlement.uuid) if entry.settlement_id else None,
            order_amount=entry.order_amount,
            commission_percent=entry.commission_percent,
            commission=entry.commission,
            settlement_amount=entry.settlement_amount,
            order_delivered_at=entry.order_delivered_at,
            eligible_at=entry.eligible_at,
            matured_at=entry.matured_at,
            created_at=entry.created_at,
        )

    def to_dict(self):
        data = super().to_dict()
        # Percent is a rate, not an amount
        data["commission_percent"] = str(self.commission_percent)
        return data


@dataclass
class SettlementDTO(SerializableMixin):
    id: str
    seller_id: Any
    shop_id: Any
    amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    status: str
    method: str
    bank_account: Optional[str] = None
    bank_name: Optional[str] = None
    account_holder_name: Optional[str] = None
    transaction_reference: Optional[str] = None
    notes: str = ""
    processed_by: Any = None
    requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    failure_reason: str = ""
    order_settlements: Optional[List[OrderSettlementDTO]] = None

    @classmethod
    def from_model(cls, settlement, include_orders=False):
        orders = None
        if include_orders:
            orders = [
                OrderSettlementDTO.from_model(entry)
                for entry in settlement.order_settlements.select_related("settlement").order_by(
                    "order_delivered_at", "id"
                )
            ]
        return cls(
            id=str(settlement.uuid),
            seller_id=settlement.seller_id,
            shop_id=settlement.shop_id,
            amount=settlement.amount,
            platform_fee=settlement.platform_fee,
            net_amount=settlement.net_amount,
            status=settlement.status,
            method=settlement.method,
            bank_account=settlement.bank_account,
            bank_name=settlement.bank_name,
            account_holder_name=settlement.account_holder_name,
            transaction_reference=settlement.transaction_reference,
            notes=settlement.notes,
            processed_by=settlement.processed_by_id,
            requested_at=settlement.requested_at,
            approved_at=settlement.approved_at,
            processed_at=settlement.processed_at,
            completed_at=settlement.completed_at,
            failed_at=settlement.failed_at,
            cancelled_at=settlement.cancelled_at,
            failure_reason=settlement.failure_reason,
            order_settlements=orders,
        )

    def to_dict(self):
        data = super().to_dict()
        if self.order_settlements is not None:
            data["order_settlements"] = [entry.to_dict() for entry in self.order_settlements]
        return data


@dataclass
class SettlementFilter:
    seller_id: Any = None
    shop: Any = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def validate(self):
        """Clamp paging to sane bounds instead of rejecting the request."""
        if not isinstance(self.page, int) or self.page < 1:
            self.page = 1
        if not isinstance(self.page_size, int) or self.page_size < 1:
            self.page_size = DEFAULT_PAGE_SIZE
        if self.page_size > MAX_PAGE_SIZE:
            self.page_size = MAX_PAGE_SIZE
        if self.status:
            self.status = str(self.status).lower()
        return self


@dataclass
class PagedResult:
    data: list = field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total_count: int = 0

    @property
    def total_pages(self):
        if not self.page_size:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size

    def to_dict(self):
        return {
            "data": [item.to_dict() for item in self.data],
            "page": self.page,
            "page_size": self.page_size,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
        }


@dataclass
class ReconciliationReport:
    shop_id: Any
    balance: SellerBalanceDTO
    ledger_total_earned: Decimal
    ledger_pending: Decimal
    ledger_reserved: Decimal
    ledger_withdrawn: Decimal
    ledger_payout_fees: Decimal
    mismatches: dict = field(default_factory=dict)

    @property
    def is_consistent(self):
        return not self.mismatches

    def to_dict(self):
        data = _serialise(asdict(self))
        data["balance"] = self.balance.to_dict()
        data["is_consistent"] = self.is_consistent
        return data
