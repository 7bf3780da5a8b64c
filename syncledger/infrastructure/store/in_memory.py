from copy import deepcopy
from datetime import datetime
from threading import Lock
from typing import Optional

from syncledger.core.ledger.models import (
    DebitOutcome,
    LedgerTransactionRecord,
    ProducerBalanceRecord,
)
from syncledger.core.notifications import NotificationDeliveryStatus, NotificationOutboxRecord
from syncledger.core.proposals.models import (
    NegotiationMessageRecord,
    ProducerStatus,
    ProposalHistoryRecord,
    ProposalStatus,
    SyncProposalRecord,
)
from syncledger.core.store import SyncStore
from syncledger.core.withdrawals.models import WithdrawalRecord, WithdrawalStatus


class InMemorySyncStore(SyncStore):
    def __init__(self) -> None:
        self._lock = Lock()
        self._proposals: dict[str, SyncProposalRecord] = {}
        self._history: dict[str, list[ProposalHistoryRecord]] = {}
        self._messages: dict[str, list[NegotiationMessageRecord]] = {}
        self._balances: dict[str, ProducerBalanceRecord] = {}
        self._transactions: dict[str, LedgerTransactionRecord] = {}
        self._withdrawals: dict[str, WithdrawalRecord] = {}
        self._notifications: dict[str, NotificationOutboxRecord] = {}

    def create_proposal(self, proposal: SyncProposalRecord) -> None:
        with self._lock:
            self._proposals[proposal.proposal_id] = deepcopy(proposal)

    def get_proposal(self, *, proposal_id: str) -> Optional[SyncProposalRecord]:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            return deepcopy(proposal) if proposal is not None else None

    def list_proposals(
        self,
        *,
        producer_id: Optional[str],
        client_id: Optional[str],
        producer_status: Optional[ProducerStatus],
        limit: int,
        cursor: Optional[str],
    ) -> tuple[list[SyncProposalRecord], Optional[str]]:
        with self._lock:
            rows = list(self._proposals.values())

        rows = sorted(rows, key=lambda x: (x.created_at, x.proposal_id), reverse=True)

        if producer_id is not None:
            rows = [row for row in rows if row.producer_id == producer_id]
        if client_id is not None:
            rows = [row for row in rows if row.client_id == client_id]
        if producer_status is not None:
            rows = [row for row in rows if row.status.producer_status == producer_status]

        if cursor:
            row_ids = [row.proposal_id for row in rows]
            if cursor in row_ids:
                start = row_ids.index(cursor) + 1
                rows = rows[start:]

        page = rows[:limit]
        next_cursor = page[-1].proposal_id if len(rows) > limit else None
        return [deepcopy(row) for row in page], next_cursor

    def list_overdue_proposals(self, *, now: datetime) -> list[SyncProposalRecord]:
        with self._lock:
            rows = [
                deepcopy(row)
                for row in self._proposals.values()
                if row.status.producer_status == "pending" and row.expiration_date < now
            ]
        return sorted(rows, key=lambda x: (x.expiration_date, x.proposal_id))

    def transition_status(
        self,
        *,
        proposal_id: str,
        expected_status: ProposalStatus,
        history: ProposalHistoryRecord,
    ) -> Optional[SyncProposalRecord]:
        with self._lock:
            updated = self._compare_and_set_locked(
                proposal_id=proposal_id, expected_status=expected_status, history=history
            )
            return deepcopy(updated) if updated is not None else None

    def record_payment(
        self,
        *,
        proposal_id: str,
        expected_status: ProposalStatus,
        history: ProposalHistoryRecord,
        payment_reference: Optional[str],
        sale: LedgerTransactionRecord,
    ) -> Optional[SyncProposalRecord]:
        with self._lock:
            updated = self._compare_and_set_locked(
                proposal_id=proposal_id,
                expected_status=expected_status,
                history=history,
                payment_reference=payment_reference,
            )
            if updated is None:
                return None
            self._apply_credit_locked(sale)
            return deepcopy(updated)

    def list_history(self, *, proposal_id: str) -> list[ProposalHistoryRecord]:
        with self._lock:
            return [deepcopy(entry) for entry in self._history.get(proposal_id, [])]

    def append_message(
        self, *, message: NegotiationMessageRecord, now: datetime
    ) -> Optional[NegotiationMessageRecord]:
        with self._lock:
            proposal = self._proposals.get(message.proposal_id)
            if proposal is None or proposal.status.producer_status != "pending":
                return None
            if proposal.is_expired(now):
                return None
            thread = self._messages.setdefault(message.proposal_id, [])
            stored = message.model_copy(update={"sequence_no": len(thread) + 1})
            thread.append(deepcopy(stored))
            return stored

    def list_messages(self, *, proposal_id: str) -> list[NegotiationMessageRecord]:
        with self._lock:
            return [deepcopy(message) for message in self._messages.get(proposal_id, [])]

    def get_balance(self, *, producer_id: str, now: datetime) -> ProducerBalanceRecord:
        with self._lock:
            return deepcopy(self._balance_locked(producer_id, now))

    def apply_credit(self, *, transaction: LedgerTransactionRecord) -> ProducerBalanceRecord:
        with self._lock:
            return deepcopy(self._apply_credit_locked(transaction))

    def apply_debit(
        self,
        *,
        transaction: LedgerTransactionRecord,
        withdrawal: Optional[WithdrawalRecord],
    ) -> Optional[ProducerBalanceRecord]:
        with self._lock:
            balance = self._balance_locked(transaction.producer_id, transaction.created_at)
            amount = abs(transaction.amount)
            if amount > balance.available_balance:
                return None
            balance.available_balance -= amount
            balance.updated_at = transaction.created_at
            self._transactions[transaction.transaction_id] = deepcopy(transaction)
            if withdrawal is not None:
                self._withdrawals[withdrawal.withdrawal_id] = deepcopy(withdrawal)
            return deepcopy(balance)

    def settle_debit(
        self,
        *,
        transaction_id: str,
        outcome: DebitOutcome,
        settled_at: datetime,
        description: Optional[str],
        withdrawal: Optional[WithdrawalRecord],
    ) -> Optional[LedgerTransactionRecord]:
        with self._lock:
            transaction = self._transactions.get(transaction_id)
            if transaction is None or not transaction.is_debit:
                return None
            if transaction.status != "pending":
                return None
            if withdrawal is not None:
                stored = self._withdrawals.get(withdrawal.withdrawal_id)
                if stored is None or stored.status != "pending":
                    return None
                self._withdrawals[withdrawal.withdrawal_id] = deepcopy(withdrawal)

            transaction.status = outcome
            transaction.settled_at = settled_at
            if description is not None:
                transaction.description = description
            if outcome == "rejected":
                balance = self._balance_locked(transaction.producer_id, settled_at)
                balance.available_balance += abs(transaction.amount)
                balance.updated_at = settled_at
            return deepcopy(transaction)

    def get_transaction(self, *, transaction_id: str) -> Optional[LedgerTransactionRecord]:
        with self._lock:
            transaction = self._transactions.get(transaction_id)
            return deepcopy(transaction) if transaction is not None else None

    def list_transactions(self, *, producer_id: str) -> list[LedgerTransactionRecord]:
        with self._lock:
            rows = [
                deepcopy(row)
                for row in self._transactions.values()
                if row.producer_id == producer_id
            ]
        return sorted(rows, key=lambda x: x.created_at)

    def release_matured_credits(
        self,
        *,
        matured_before: datetime,
        released_at: datetime,
        producer_id: Optional[str],
    ) -> list[LedgerTransactionRecord]:
        released: list[LedgerTransactionRecord] = []
        with self._lock:
            for transaction in self._transactions.values():
                if producer_id is not None and transaction.producer_id != producer_id:
                    continue
                if transaction.amount <= 0 or transaction.status != "completed":
                    continue
                if transaction.matured_at is not None:
                    continue
                if transaction.created_at > matured_before:
                    continue
                transaction.matured_at = released_at
                balance = self._balance_locked(transaction.producer_id, released_at)
                balance.pending_balance -= transaction.amount
                balance.available_balance += transaction.amount
                balance.updated_at = released_at
                released.append(deepcopy(transaction))
        return sorted(released, key=lambda x: x.created_at)

    def get_withdrawal(self, *, withdrawal_id: str) -> Optional[WithdrawalRecord]:
        with self._lock:
            withdrawal = self._withdrawals.get(withdrawal_id)
            return deepcopy(withdrawal) if withdrawal is not None else None

    def list_withdrawals(
        self,
        *,
        producer_id: Optional[str],
        status: Optional[WithdrawalStatus],
    ) -> list[WithdrawalRecord]:
        with self._lock:
            rows = list(self._withdrawals.values())
        if producer_id is not None:
            rows = [row for row in rows if row.producer_id == producer_id]
        if status is not None:
            rows = [row for row in rows if row.status == status]
        rows = sorted(rows, key=lambda x: (x.created_at, x.withdrawal_id), reverse=True)
        return [deepcopy(row) for row in rows]

    def enqueue_notification(self, record: NotificationOutboxRecord) -> bool:
        with self._lock:
            if record.event.event_id in self._notifications:
                return False
            self._notifications[record.event.event_id] = deepcopy(record)
            return True

    def get_notification(self, *, event_id: str) -> Optional[NotificationOutboxRecord]:
        with self._lock:
            record = self._notifications.get(event_id)
            return deepcopy(record) if record is not None else None

    def list_pending_notifications(self, *, limit: int) -> list[NotificationOutboxRecord]:
        with self._lock:
            rows = [
                deepcopy(row) for row in self._notifications.values() if row.status == "pending"
            ]
        rows = sorted(rows, key=lambda x: (x.created_at, x.event.event_id))
        return rows[:limit]

    def claim_notification_attempt(
        self, *, event_id: str, expected_attempts: int, claimed_at: datetime
    ) -> bool:
        with self._lock:
            record = self._notifications.get(event_id)
            if record is None or record.status != "pending":
                return False
            if record.attempts != expected_attempts:
                return False
            record.attempts += 1
            record.updated_at = claimed_at
            return True

    def record_notification_outcome(
        self,
        *,
        event_id: str,
        status: NotificationDeliveryStatus,
        last_error: Optional[str],
        recorded_at: datetime,
    ) -> None:
        with self._lock:
            record = self._notifications.get(event_id)
            if record is None:
                return
            record.status = status
            record.last_error = last_error
            record.updated_at = recorded_at

    def _compare_and_set_locked(
        self,
        *,
        proposal_id: str,
        expected_status: ProposalStatus,
        history: ProposalHistoryRecord,
        payment_reference: Optional[str] = None,
    ) -> Optional[SyncProposalRecord]:
        proposal = self._proposals.get(proposal_id)
        if proposal is None or proposal.status != expected_status:
            return None
        new_status = expected_status.with_axis(history.status_axis, history.new_status)
        update: dict[str, object] = {
            "status": new_status,
            "version": proposal.version + 1,
            "updated_at": history.created_at,
        }
        if history.status_axis == "payment":
            update["payment_reference"] = payment_reference
            update["paid_at"] = history.created_at
        updated = proposal.model_copy(update=update)
        self._proposals[proposal_id] = updated
        self._history.setdefault(proposal_id, []).append(deepcopy(history))
        return updated

    def _apply_credit_locked(self, transaction: LedgerTransactionRecord) -> ProducerBalanceRecord:
        balance = self._balance_locked(transaction.producer_id, transaction.created_at)
        balance.pending_balance += transaction.amount
        if transaction.transaction_type == "sale":
            balance.lifetime_earnings += transaction.amount
        balance.updated_at = transaction.created_at
        self._transactions[transaction.transaction_id] = deepcopy(transaction)
        return balance

    def _balance_locked(self, producer_id: str, now: datetime) -> ProducerBalanceRecord:
        balance = self._balances.get(producer_id)
        if balance is None:
            balance = ProducerBalanceRecord(producer_id=producer_id, updated_at=now)
            self._balances[producer_id] = balance
        return balance
