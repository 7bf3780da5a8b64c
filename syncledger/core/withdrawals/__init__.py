from syncledger.core.withdrawals.models import (
    WithdrawalCreateRequest,
    WithdrawalDecisionRequest,
    WithdrawalListResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)
from syncledger.core.withdrawals.repository import WithdrawalRepository
from syncledger.core.withdrawals.service import DEFAULT_MINIMUM_WITHDRAWAL, WithdrawalService

__all__ = [
    "DEFAULT_MINIMUM_WITHDRAWAL",
    "WithdrawalCreateRequest",
    "WithdrawalDecisionRequest",
    "WithdrawalListResponse",
    "WithdrawalRepository",
    "WithdrawalRequest",
    "WithdrawalResponse",
    "WithdrawalService",
]
