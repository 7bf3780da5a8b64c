from syncledger.core.ledger.models import (
    BalanceReconciliation,
    DebitSettlementRequest,
    LedgerEntryRequest,
    LedgerReference,
    LedgerTransaction,
    LedgerTransactionListResponse,
    MaturityReleaseResponse,
    ProducerBalance,
)
from syncledger.core.ledger.repository import LedgerRepository
from syncledger.core.ledger.service import DEFAULT_PENDING_HOLD_DAYS, LedgerService

__all__ = [
    "BalanceReconciliation",
    "DEFAULT_PENDING_HOLD_DAYS",
    "DebitSettlementRequest",
    "LedgerEntryRequest",
    "LedgerReference",
    "LedgerRepository",
    "LedgerService",
    "LedgerTransaction",
    "LedgerTransactionListResponse",
    "MaturityReleaseResponse",
    "ProducerBalance",
]
