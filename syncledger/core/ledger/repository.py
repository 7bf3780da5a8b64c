from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional, Protocol

from syncledger.core.ledger.models import (
    DebitOutcome,
    LedgerTransactionRecord,
    ProducerBalanceRecord,
)

if TYPE_CHECKING:
    from syncledger.core.withdrawals.models import WithdrawalRecord


class LedgerRepository(Protocol):
    def get_balance(self, *, producer_id: str, now: datetime) -> ProducerBalanceRecord: ...

    def apply_credit(self, *, transaction: LedgerTransactionRecord) -> ProducerBalanceRecord: ...

    def apply_debit(
        self,
        *,
        transaction: LedgerTransactionRecord,
        withdrawal: Optional[WithdrawalRecord],
    ) -> Optional[ProducerBalanceRecord]:
        """Insert a pending debit and decrement available funds under the balance lock.

        Returns None, leaving nothing written, when available funds are insufficient.
        """
        ...

    def settle_debit(
        self,
        *,
        transaction_id: str,
        outcome: DebitOutcome,
        settled_at: datetime,
        description: Optional[str],
        withdrawal: Optional[WithdrawalRecord],
    ) -> Optional[LedgerTransactionRecord]:
        """Settle a pending debit exactly once, optionally deciding its withdrawal too.

        Returns None when the transaction (or withdrawal) is no longer pending.
        """
        ...

    def get_transaction(self, *, transaction_id: str) -> Optional[LedgerTransactionRecord]: ...

    def list_transactions(self, *, producer_id: str) -> list[LedgerTransactionRecord]: ...

    def release_matured_credits(
        self,
        *,
        matured_before: datetime,
        released_at: datetime,
        producer_id: Optional[str],
    ) -> list[LedgerTransactionRecord]: ...
