import logging
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from syncledger.core.common.clock import Clock, optional_iso, utc_now
from syncledger.core.common.errors import (
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidTransitionError,
    SyncValidationError,
)
from syncledger.core.common.money import ZERO, to_money
from syncledger.core.common.retry import retry_once_on_conflict
from syncledger.core.ledger.models import (
    BalanceReconciliation,
    DebitOutcome,
    LedgerReference,
    LedgerTransaction,
    LedgerTransactionListResponse,
    LedgerTransactionRecord,
    MaturityReleaseResponse,
    ProducerBalance,
    ProducerBalanceRecord,
    TransactionType,
)
from syncledger.core.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)

DEFAULT_PENDING_HOLD_DAYS = 30


class LedgerService:
    def __init__(
        self,
        *,
        repository: LedgerRepository,
        pending_hold_days: int = DEFAULT_PENDING_HOLD_DAYS,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._pending_hold = timedelta(days=max(0, pending_hold_days))
        self._clock = clock

    def credit(
        self,
        *,
        producer_id: str,
        amount: Decimal,
        transaction_type: TransactionType,
        reference: Optional[LedgerReference] = None,
        description: Optional[str] = None,
    ) -> LedgerTransaction:
        if transaction_type == "withdrawal":
            raise SyncValidationError("CREDIT_TYPE_NOT_ALLOWED: withdrawal")
        value = _positive_amount(amount)
        now = self._clock()
        transaction = LedgerTransactionRecord(
            transaction_id=f"ltx_{uuid.uuid4().hex[:12]}",
            producer_id=producer_id,
            amount=value,
            transaction_type=transaction_type,
            status="completed",
            description=description or f"{transaction_type.capitalize()} credit",
            reference_type=reference.reference_type if reference else None,
            reference_id=reference.reference_id if reference else None,
            created_at=now,
            settled_at=now,
        )
        retry_once_on_conflict(
            lambda: self._repository.apply_credit(transaction=transaction),
            operation_name="ledger_credit",
        )
        logger.info(
            "Ledger credit applied. producer_id=%s amount=%s type=%s",
            producer_id,
            value,
            transaction_type,
        )
        return to_transaction(transaction)

    def debit(
        self,
        *,
        producer_id: str,
        amount: Decimal,
        transaction_type: TransactionType,
        reference: Optional[LedgerReference] = None,
        description: Optional[str] = None,
    ) -> LedgerTransaction:
        if transaction_type == "sale":
            raise SyncValidationError("DEBIT_TYPE_NOT_ALLOWED: sale")
        value = _positive_amount(amount)
        transaction = LedgerTransactionRecord(
            transaction_id=f"ltx_{uuid.uuid4().hex[:12]}",
            producer_id=producer_id,
            amount=-value,
            transaction_type=transaction_type,
            status="pending",
            description=description or f"{transaction_type.capitalize()} debit",
            reference_type=reference.reference_type if reference else None,
            reference_id=reference.reference_id if reference else None,
            created_at=self._clock(),
        )
        balance = retry_once_on_conflict(
            lambda: self._repository.apply_debit(transaction=transaction, withdrawal=None),
            operation_name="ledger_debit",
        )
        if balance is None:
            raise InsufficientFundsError("INSUFFICIENT_FUNDS: amount exceeds available balance")
        logger.info(
            "Ledger debit reserved. producer_id=%s amount=%s type=%s",
            producer_id,
            value,
            transaction_type,
        )
        return to_transaction(transaction)

    def settle_debit(self, *, transaction_id: str, outcome: DebitOutcome) -> LedgerTransaction:
        def _operation() -> LedgerTransactionRecord:
            transaction = self._repository.get_transaction(transaction_id=transaction_id)
            if transaction is None:
                raise EntityNotFoundError("TRANSACTION_NOT_FOUND")
            ensure_settleable_debit(transaction)
            if transaction.transaction_type == "withdrawal" and transaction.reference_id:
                raise InvalidTransitionError(
                    "INVALID_TRANSITION: withdrawal debits are settled by their withdrawal"
                )
            settled = self._repository.settle_debit(
                transaction_id=transaction_id,
                outcome=outcome,
                settled_at=self._clock(),
                description=None,
                withdrawal=None,
            )
            if settled is None:
                raise InvalidTransitionError("INVALID_TRANSITION: transaction already settled")
            return settled

        settled = retry_once_on_conflict(_operation, operation_name="ledger_settle_debit")
        logger.info(
            "Ledger debit settled. transaction_id=%s outcome=%s", transaction_id, outcome
        )
        return to_transaction(settled)

    def release_matured_funds(
        self, *, producer_id: Optional[str] = None
    ) -> MaturityReleaseResponse:
        released_at = self._clock()
        matured_before = released_at - self._pending_hold
        released = self._repository.release_matured_credits(
            matured_before=matured_before,
            released_at=released_at,
            producer_id=producer_id,
        )
        released_amount = sum((row.amount for row in released), ZERO)
        if released:
            logger.info(
                "Matured credits released. count=%s amount=%s", len(released), released_amount
            )
        return MaturityReleaseResponse(
            released_at=released_at.isoformat(),
            matured_before=matured_before.isoformat(),
            released_transaction_ids=[row.transaction_id for row in released],
            released_amount=to_money(released_amount),
        )

    def get_balance(self, *, producer_id: str) -> ProducerBalance:
        return to_balance(self._repository.get_balance(producer_id=producer_id, now=self._clock()))

    def get_transaction(self, *, transaction_id: str) -> LedgerTransaction:
        transaction = self._repository.get_transaction(transaction_id=transaction_id)
        if transaction is None:
            raise EntityNotFoundError("TRANSACTION_NOT_FOUND")
        return to_transaction(transaction)

    def list_transactions(self, *, producer_id: str) -> LedgerTransactionListResponse:
        rows = self._repository.list_transactions(producer_id=producer_id)
        return LedgerTransactionListResponse(
            producer_id=producer_id,
            items=[to_transaction(row) for row in rows],
        )

    def reconcile(self, *, producer_id: str) -> BalanceReconciliation:
        """Replay the producer's transactions and compare against the stored balance.

        available = matured completed credits - outstanding (pending or completed) debits
        pending   = completed credits still inside the holding period
        lifetime  = completed sale credits
        Rejected debits contribute nothing.
        """
        balance = self._repository.get_balance(producer_id=producer_id, now=self._clock())
        rows = self._repository.list_transactions(producer_id=producer_id)
        available = ZERO
        pending = ZERO
        lifetime = ZERO
        for row in rows:
            if row.amount > 0:
                if row.status != "completed":
                    continue
                if row.matured_at is not None:
                    available += row.amount
                else:
                    pending += row.amount
                if row.transaction_type == "sale":
                    lifetime += row.amount
            elif row.status in {"pending", "completed"}:
                available += row.amount
        consistent = (
            to_money(available) == to_money(balance.available_balance)
            and to_money(pending) == to_money(balance.pending_balance)
            and to_money(lifetime) == to_money(balance.lifetime_earnings)
        )
        if not consistent:
            logger.error(
                "Ledger reconciliation mismatch. producer_id=%s available=%s expected=%s",
                producer_id,
                balance.available_balance,
                available,
            )
        return BalanceReconciliation(
            producer_id=producer_id,
            stored=to_balance(balance),
            expected_available_balance=to_money(available),
            expected_pending_balance=to_money(pending),
            expected_lifetime_earnings=to_money(lifetime),
            transaction_count=len(rows),
            consistent=consistent,
        )


def ensure_settleable_debit(transaction: LedgerTransactionRecord) -> None:
    if not transaction.is_debit:
        raise InvalidTransitionError("INVALID_TRANSITION: transaction is not a debit")
    if transaction.status != "pending":
        raise InvalidTransitionError(f"INVALID_TRANSITION: transaction is {transaction.status}")


def to_transaction(record: LedgerTransactionRecord) -> LedgerTransaction:
    return LedgerTransaction(
        transaction_id=record.transaction_id,
        producer_id=record.producer_id,
        amount=to_money(record.amount),
        transaction_type=record.transaction_type,
        status=record.status,
        description=record.description,
        reference_type=record.reference_type,
        reference_id=record.reference_id,
        created_at=record.created_at.isoformat(),
        settled_at=optional_iso(record.settled_at),
        matured_at=optional_iso(record.matured_at),
    )


def to_balance(record: ProducerBalanceRecord) -> ProducerBalance:
    return ProducerBalance(
        producer_id=record.producer_id,
        available_balance=to_money(record.available_balance),
        pending_balance=to_money(record.pending_balance),
        lifetime_earnings=to_money(record.lifetime_earnings),
        updated_at=record.updated_at.isoformat(),
    )


def _positive_amount(amount: Decimal) -> Decimal:
    try:
        value = to_money(amount)
    except ValueError as exc:
        raise SyncValidationError("INVALID_AMOUNT") from exc
    if value <= 0:
        raise SyncValidationError("AMOUNT_MUST_BE_POSITIVE")
    return value
