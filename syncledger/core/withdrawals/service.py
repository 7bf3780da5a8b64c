from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from syncledger.core.common.clock import Clock, optional_iso, utc_now
from syncledger.core.common.errors import (
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidTransitionError,
    SyncValidationError,
)
from syncledger.core.common.identity import Actor, require_owner_or_admin, require_role
from syncledger.core.common.money import to_money
from syncledger.core.common.retry import retry_once_on_conflict
from syncledger.core.ledger.models import DebitOutcome, LedgerTransactionRecord
from syncledger.core.ledger.service import ensure_settleable_debit, to_balance, to_transaction
from syncledger.core.notifications import NotificationDispatcher, build_event
from syncledger.core.withdrawals.models import (
    WithdrawalCreateRequest,
    WithdrawalListResponse,
    WithdrawalRecord,
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalStatus,
)

if TYPE_CHECKING:
    from syncledger.core.store import SyncStore

logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_WITHDRAWAL = Decimal("50.00")

_OUTCOME_STATUS: dict[DebitOutcome, WithdrawalStatus] = {
    "completed": "completed",
    "rejected": "rejected",
}


class WithdrawalService:
    """Producer payout requests backed by pending ledger debits.

    The debit is reserved when the request is created and settled when an operator
    approves or rejects it, so available funds can never be withdrawn twice.
    """

    def __init__(
        self,
        *,
        repository: SyncStore,
        dispatcher: NotificationDispatcher,
        minimum_amount: Decimal = DEFAULT_MINIMUM_WITHDRAWAL,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._dispatcher = dispatcher
        self._minimum_amount = to_money(minimum_amount)
        self._clock = clock

    @property
    def minimum_amount(self) -> Decimal:
        return self._minimum_amount

    def request_withdrawal(
        self, *, producer_id: str, payload: WithdrawalCreateRequest, actor: Actor
    ) -> WithdrawalResponse:
        require_owner_or_admin(actor, owner_id=producer_id, role="producer")
        try:
            amount = to_money(payload.amount)
        except ValueError as exc:
            raise SyncValidationError("INVALID_AMOUNT") from exc
        if amount < self._minimum_amount:
            raise SyncValidationError(
                f"WITHDRAWAL_BELOW_MINIMUM: minimum is {self._minimum_amount}"
            )
        payment_method_id = payload.payment_method_id.strip()
        if not payment_method_id:
            raise SyncValidationError("PAYMENT_METHOD_REQUIRED")
        label = (payload.payment_method_label or "").strip() or payment_method_id

        now = self._clock()
        withdrawal = WithdrawalRecord(
            withdrawal_id=f"wd_{uuid.uuid4().hex[:12]}",
            producer_id=producer_id,
            amount=amount,
            payment_method_id=payment_method_id,
            status="pending",
            transaction_id=f"ltx_{uuid.uuid4().hex[:12]}",
            created_at=now,
        )
        transaction = LedgerTransactionRecord(
            transaction_id=withdrawal.transaction_id,
            producer_id=producer_id,
            amount=-amount,
            transaction_type="withdrawal",
            status="pending",
            description=f"Withdrawal to {label}",
            reference_type="withdrawal",
            reference_id=withdrawal.withdrawal_id,
            created_at=now,
        )
        balance = retry_once_on_conflict(
            lambda: self._repository.apply_debit(transaction=transaction, withdrawal=withdrawal),
            operation_name="request_withdrawal",
        )
        if balance is None:
            raise InsufficientFundsError("INSUFFICIENT_FUNDS: amount exceeds available balance")
        logger.info(
            "Withdrawal requested. withdrawal_id=%s producer_id=%s amount=%s",
            withdrawal.withdrawal_id,
            producer_id,
            amount,
        )
        return WithdrawalResponse(
            withdrawal=_to_withdrawal(withdrawal),
            transaction=to_transaction(transaction),
            balance=to_balance(balance),
        )

    def approve(
        self, *, withdrawal_id: str, actor: Actor, notes: Optional[str] = None
    ) -> WithdrawalResponse:
        response = self._decide(
            withdrawal_id=withdrawal_id, actor=actor, outcome="completed", notes=notes
        )
        withdrawal = response.withdrawal
        self._dispatcher.dispatch(
            build_event(
                event_type="WITHDRAWAL_APPROVED",
                key_parts=[withdrawal.withdrawal_id],
                payload={
                    "withdrawal_id": withdrawal.withdrawal_id,
                    "producer_id": withdrawal.producer_id,
                    "payment_method_id": withdrawal.payment_method_id,
                    "amount": str(withdrawal.amount),
                },
                occurred_at=self._clock(),
            )
        )
        return response

    def reject(
        self, *, withdrawal_id: str, actor: Actor, notes: Optional[str] = None
    ) -> WithdrawalResponse:
        return self._decide(
            withdrawal_id=withdrawal_id, actor=actor, outcome="rejected", notes=notes
        )

    def get_withdrawal(
        self, *, withdrawal_id: str, actor: Optional[Actor] = None
    ) -> WithdrawalRequest:
        withdrawal = self._require_withdrawal(withdrawal_id)
        if actor is not None:
            require_owner_or_admin(actor, owner_id=withdrawal.producer_id, role="producer")
        return _to_withdrawal(withdrawal)

    def list_withdrawals(
        self,
        *,
        producer_id: Optional[str],
        status: Optional[WithdrawalStatus],
    ) -> WithdrawalListResponse:
        rows = self._repository.list_withdrawals(producer_id=producer_id, status=status)
        return WithdrawalListResponse(items=[_to_withdrawal(row) for row in rows])

    def _decide(
        self,
        *,
        withdrawal_id: str,
        actor: Actor,
        outcome: DebitOutcome,
        notes: Optional[str],
    ) -> WithdrawalResponse:
        require_role(actor, "admin")
        cleaned_notes = (notes or "").strip() or None

        def _operation() -> tuple[WithdrawalRecord, LedgerTransactionRecord]:
            withdrawal = self._require_withdrawal(withdrawal_id)
            if withdrawal.status != "pending":
                raise InvalidTransitionError(
                    f"INVALID_TRANSITION: withdrawal is {withdrawal.status}"
                )
            transaction = self._repository.get_transaction(
                transaction_id=withdrawal.transaction_id
            )
            if transaction is None:
                raise EntityNotFoundError("TRANSACTION_NOT_FOUND")
            ensure_settleable_debit(transaction)

            now = self._clock()
            decided = withdrawal.model_copy(
                update={
                    "status": _OUTCOME_STATUS[outcome],
                    "decided_at": now,
                    "decided_by": actor.actor_id,
                    "notes": cleaned_notes,
                }
            )
            description = None
            if outcome == "rejected":
                reason = cleaned_notes or "No reason provided"
                description = f"{transaction.description} (Rejected: {reason})"
            settled = self._repository.settle_debit(
                transaction_id=transaction.transaction_id,
                outcome=outcome,
                settled_at=now,
                description=description,
                withdrawal=decided,
            )
            if settled is None:
                raise InvalidTransitionError("INVALID_TRANSITION: withdrawal already decided")
            return decided, settled

        decided, settled = retry_once_on_conflict(
            _operation, operation_name=f"withdrawal_{outcome}"
        )
        logger.info(
            "Withdrawal decided. withdrawal_id=%s status=%s actor=%s",
            decided.withdrawal_id,
            decided.status,
            actor.actor_id,
        )
        balance = self._repository.get_balance(producer_id=decided.producer_id, now=self._clock())
        self._dispatcher.dispatch(
            build_event(
                event_type="WITHDRAWAL_DECIDED",
                key_parts=[decided.withdrawal_id, decided.status],
                payload={
                    "withdrawal_id": decided.withdrawal_id,
                    "producer_id": decided.producer_id,
                    "status": decided.status,
                    "amount": str(decided.amount),
                    "notes": decided.notes,
                },
                occurred_at=decided.decided_at or self._clock(),
            )
        )
        return WithdrawalResponse(
            withdrawal=_to_withdrawal(decided),
            transaction=to_transaction(settled),
            balance=to_balance(balance),
        )

    def _require_withdrawal(self, withdrawal_id: str) -> WithdrawalRecord:
        withdrawal = self._repository.get_withdrawal(withdrawal_id=withdrawal_id)
        if withdrawal is None:
            raise EntityNotFoundError("WITHDRAWAL_NOT_FOUND")
        return withdrawal


def _to_withdrawal(record: WithdrawalRecord) -> WithdrawalRequest:
    return WithdrawalRequest(
        withdrawal_id=record.withdrawal_id,
        producer_id=record.producer_id,
        amount=to_money(record.amount),
        payment_method_id=record.payment_method_id,
        status=record.status,
        transaction_id=record.transaction_id,
        created_at=record.created_at.isoformat(),
        decided_at=optional_iso(record.decided_at),
        decided_by=record.decided_by,
        notes=record.notes,
    )
