from .accrual import AccrualResult, AccrualService, MaturationResult
from .balance import BalanceQueryService
from .eligibility import EligibilityService
from .payout import PayoutService
from .withdrawal import WithdrawalService

__all__ = [
    "AccrualResult",
    "AccrualService",
    "BalanceQueryService",
    "EligibilityService",
    "MaturationResult",
    "PayoutService",
    "WithdrawalService",
]
