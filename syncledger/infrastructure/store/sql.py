import json
from contextlib import closing, contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, Optional

from syncledger.core.common.errors import StorageConflictError
from syncledger.core.ledger.models import (
    DebitOutcome,
    LedgerTransactionRecord,
    ProducerBalanceRecord,
)
from syncledger.core.notifications import (
    NotificationDeliveryStatus,
    NotificationEvent,
    NotificationOutboxRecord,
)
from syncledger.core.proposals.models import (
    NegotiationMessageRecord,
    ProducerStatus,
    ProposalHistoryRecord,
    ProposalStatus,
    SyncProposalRecord,
)
from syncledger.core.store import SyncStore
from syncledger.core.withdrawals.models import WithdrawalRecord, WithdrawalStatus

_PROPOSAL_COLUMNS = """
    proposal_id,
    track_id,
    client_id,
    producer_id,
    sync_fee,
    payment_terms,
    expiration_date,
    is_urgent,
    project_type,
    duration,
    is_exclusive,
    producer_status,
    client_status,
    payment_status,
    created_at,
    updated_at,
    payment_reference,
    paid_at,
    version
"""

_TRANSACTION_COLUMNS = """
    transaction_id,
    producer_id,
    amount,
    transaction_type,
    status,
    description,
    reference_type,
    reference_id,
    created_at,
    settled_at,
    matured_at
"""

_WITHDRAWAL_COLUMNS = """
    withdrawal_id,
    producer_id,
    amount,
    payment_method_id,
    status,
    transaction_id,
    created_at,
    decided_at,
    decided_by,
    notes
"""

_NOTIFICATION_COLUMNS = """
    event_id,
    event_type,
    channel,
    payload_json,
    occurred_at,
    status,
    attempts,
    last_error,
    created_at,
    updated_at
"""


class SqlSyncStore(SyncStore):
    """Statements shared by the SQLite and PostgreSQL backends.

    Every mutating method runs inside ``_write()``: one connection, one database
    transaction, rows read with ``_row_lock_sql`` appended so concurrent writers
    serialize on the entity they touch. Subclasses provide the connection, the
    transaction start and the mapping of lock failures to StorageConflictError.
    """

    _row_lock_sql = ""

    def _connect(self) -> Any:
        raise NotImplementedError

    def _begin_write(self, connection: Any) -> None:
        return None

    def _is_conflict(self, exc: Exception) -> bool:
        return False

    def _sql(self, query: str) -> str:
        return query

    def _dump_money(self, value: Decimal) -> Any:
        return str(value)

    @contextmanager
    def _write(self) -> Iterator[Any]:
        with closing(self._connect()) as connection:
            try:
                self._begin_write(connection)
                yield connection
                connection.commit()
            except Exception as exc:
                connection.rollback()
                if self._is_conflict(exc):
                    raise StorageConflictError(f"STORAGE_CONFLICT: {exc}") from exc
                raise

    @contextmanager
    def _read(self) -> Iterator[Any]:
        with closing(self._connect()) as connection:
            yield connection

    def _execute(self, connection: Any, query: str, args: tuple = ()) -> Any:
        return connection.execute(self._sql(query), args)

    def create_proposal(self, proposal: SyncProposalRecord) -> None:
        query = f"""
            INSERT INTO sync_proposals ({_PROPOSAL_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        with self._write() as connection:
            self._execute(
                connection,
                query,
                (
                    proposal.proposal_id,
                    proposal.track_id,
                    proposal.client_id,
                    proposal.producer_id,
                    self._dump_money(proposal.sync_fee),
                    proposal.payment_terms,
                    _ts(proposal.expiration_date),
                    proposal.is_urgent,
                    proposal.project_type,
                    proposal.duration,
                    proposal.is_exclusive,
                    proposal.status.producer_status,
                    proposal.status.client_status,
                    proposal.status.payment_status,
                    _ts(proposal.created_at),
                    _ts(proposal.updated_at),
                    proposal.payment_reference,
                    _optional_ts(proposal.paid_at),
                    proposal.version,
                ),
            )

    def get_proposal(self, *, proposal_id: str) -> Optional[SyncProposalRecord]:
        query = f"SELECT {_PROPOSAL_COLUMNS} FROM sync_proposals WHERE proposal_id = ?"
        with self._read() as connection:
            row = self._execute(connection, query, (proposal_id,)).fetchone()
        return _to_proposal(row)

    def list_proposals(
        self,
        *,
        producer_id: Optional[str],
        client_id: Optional[str],
        producer_status: Optional[ProducerStatus],
        limit: int,
        cursor: Optional[str],
    ) -> tuple[list[SyncProposalRecord], Optional[str]]:
        where_clauses = []
        args: list[str] = []
        if producer_id is not None:
            where_clauses.append("producer_id = ?")
            args.append(producer_id)
        if client_id is not None:
            where_clauses.append("client_id = ?")
            args.append(client_id)
        if producer_status is not None:
            where_clauses.append("producer_status = ?")
            args.append(producer_status)
        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT {_PROPOSAL_COLUMNS}
            FROM sync_proposals
            {where_sql}
            ORDER BY created_at DESC, proposal_id DESC
        """
        with self._read() as connection:
            rows = self._execute(connection, query, tuple(args)).fetchall()
        proposals = [proposal for proposal in map(_to_proposal, rows) if proposal is not None]
        if cursor:
            cursor_index = next(
                (
                    index
                    for index, proposal in enumerate(proposals)
                    if proposal.proposal_id == cursor
                ),
                None,
            )
            if cursor_index is None:
                return [], None
            proposals = proposals[cursor_index + 1 :]
        page = proposals[:limit]
        next_cursor = page[-1].proposal_id if len(proposals) > limit else None
        return page, next_cursor

    def list_overdue_proposals(self, *, now: datetime) -> list[SyncProposalRecord]:
        query = f"""
            SELECT {_PROPOSAL_COLUMNS}
            FROM sync_proposals
            WHERE producer_status = ? AND expiration_date < ?
            ORDER BY expiration_date ASC, proposal_id ASC
        """
        with self._read() as connection:
            rows = self._execute(connection, query, ("pending", _ts(now))).fetchall()
        return [proposal for proposal in map(_to_proposal, rows) if proposal is not None]

    def transition_status(
        self,
        *,
        proposal_id: str,
        expected_status: ProposalStatus,
        history: ProposalHistoryRecord,
    ) -> Optional[SyncProposalRecord]:
        with self._write() as connection:
            return self._compare_and_set(
                connection,
                proposal_id=proposal_id,
                expected_status=expected_status,
                history=history,
            )

    def record_payment(
        self,
        *,
        proposal_id: str,
        expected_status: ProposalStatus,
        history: ProposalHistoryRecord,
        payment_reference: Optional[str],
        sale: LedgerTransactionRecord,
    ) -> Optional[SyncProposalRecord]:
        with self._write() as connection:
            updated = self._compare_and_set(
                connection,
                proposal_id=proposal_id,
                expected_status=expected_status,
                history=history,
                payment_reference=payment_reference,
            )
            if updated is None:
                return None
            self._apply_credit(connection, sale)
            return updated

    def list_history(self, *, proposal_id: str) -> list[ProposalHistoryRecord]:
        query = """
            SELECT
                history_id,
                proposal_id,
                status_axis,
                previous_status,
                new_status,
                changed_by,
                created_at
            FROM sync_proposal_history
            WHERE proposal_id = ?
            ORDER BY created_at ASC, history_id ASC
        """
        with self._read() as connection:
            rows = self._execute(connection, query, (proposal_id,)).fetchall()
        return [_to_history(row) for row in rows]

    def append_message(
        self, *, message: NegotiationMessageRecord, now: datetime
    ) -> Optional[NegotiationMessageRecord]:
        with self._write() as connection:
            proposal = self._lock_proposal(connection, message.proposal_id)
            if proposal is None or proposal.status.producer_status != "pending":
                return None
            if proposal.is_expired(now):
                return None
            row = self._execute(
                connection,
                """
                SELECT COALESCE(MAX(sequence_no), 0) AS last_sequence_no
                FROM sync_proposal_messages
                WHERE proposal_id = ?
                """,
                (message.proposal_id,),
            ).fetchone()
            stored = message.model_copy(update={"sequence_no": int(row["last_sequence_no"]) + 1})
            self._execute(
                connection,
                """
                INSERT INTO sync_proposal_messages (
                    message_id,
                    proposal_id,
                    sender_id,
                    message,
                    counter_offer,
                    counter_terms,
                    created_at,
                    sequence_no
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stored.message_id,
                    stored.proposal_id,
                    stored.sender_id,
                    stored.message,
                    (
                        self._dump_money(stored.counter_offer)
                        if stored.counter_offer is not None
                        else None
                    ),
                    stored.counter_terms,
                    _ts(stored.created_at),
                    stored.sequence_no,
                ),
            )
            return stored

    def list_messages(self, *, proposal_id: str) -> list[NegotiationMessageRecord]:
        query = """
            SELECT
                message_id,
                proposal_id,
                sender_id,
                message,
                counter_offer,
                counter_terms,
                created_at,
                sequence_no
            FROM sync_proposal_messages
            WHERE proposal_id = ?
            ORDER BY created_at ASC, sequence_no ASC
        """
        with self._read() as connection:
            rows = self._execute(connection, query, (proposal_id,)).fetchall()
        return [_to_message(row) for row in rows]

    def get_balance(self, *, producer_id: str, now: datetime) -> ProducerBalanceRecord:
        with self._write() as connection:
            return self._lock_balance(connection, producer_id, now)

    def apply_credit(self, *, transaction: LedgerTransactionRecord) -> ProducerBalanceRecord:
        with self._write() as connection:
            return self._apply_credit(connection, transaction)

    def apply_debit(
        self,
        *,
        transaction: LedgerTransactionRecord,
        withdrawal: Optional[WithdrawalRecord],
    ) -> Optional[ProducerBalanceRecord]:
        with self._write() as connection:
            balance = self._lock_balance(
                connection, transaction.producer_id, transaction.created_at
            )
            amount = abs(transaction.amount)
            if amount > balance.available_balance:
                return None
            balance.available_balance -= amount
            balance.updated_at = transaction.created_at
            self._save_balance(connection, balance)
            self._insert_transaction(connection, transaction)
            if withdrawal is not None:
                self._insert_withdrawal(connection, withdrawal)
            return balance

    def settle_debit(
        self,
        *,
        transaction_id: str,
        outcome: DebitOutcome,
        settled_at: datetime,
        description: Optional[str],
        withdrawal: Optional[WithdrawalRecord],
    ) -> Optional[LedgerTransactionRecord]:
        with self._write() as connection:
            row = self._execute(
                connection,
                f"""
                SELECT {_TRANSACTION_COLUMNS}
                FROM ledger_transactions
                WHERE transaction_id = ?{self._row_lock_sql}
                """,
                (transaction_id,),
            ).fetchone()
            transaction = _to_transaction(row) if row is not None else None
            if transaction is None or not transaction.is_debit:
                return None
            if transaction.status != "pending":
                return None
            if withdrawal is not None:
                stored = self._execute(
                    connection,
                    f"""
                    SELECT status
                    FROM withdrawal_requests
                    WHERE withdrawal_id = ?{self._row_lock_sql}
                    """,
                    (withdrawal.withdrawal_id,),
                ).fetchone()
                if stored is None or stored["status"] != "pending":
                    return None
                self._execute(
                    connection,
                    """
                    UPDATE withdrawal_requests
                    SET status = ?, decided_at = ?, decided_by = ?, notes = ?
                    WHERE withdrawal_id = ?
                    """,
                    (
                        withdrawal.status,
                        _optional_ts(withdrawal.decided_at),
                        withdrawal.decided_by,
                        withdrawal.notes,
                        withdrawal.withdrawal_id,
                    ),
                )

            transaction.status = outcome
            transaction.settled_at = settled_at
            if description is not None:
                transaction.description = description
            self._execute(
                connection,
                """
                UPDATE ledger_transactions
                SET status = ?, settled_at = ?, description = ?
                WHERE transaction_id = ?
                """,
                (outcome, _ts(settled_at), transaction.description, transaction_id),
            )
            if outcome == "rejected":
                balance = self._lock_balance(connection, transaction.producer_id, settled_at)
                balance.available_balance += abs(transaction.amount)
                balance.updated_at = settled_at
                self._save_balance(connection, balance)
            return transaction

    def get_transaction(self, *, transaction_id: str) -> Optional[LedgerTransactionRecord]:
        query = f"SELECT {_TRANSACTION_COLUMNS} FROM ledger_transactions WHERE transaction_id = ?"
        with self._read() as connection:
            row = self._execute(connection, query, (transaction_id,)).fetchone()
        return _to_transaction(row) if row is not None else None

    def list_transactions(self, *, producer_id: str) -> list[LedgerTransactionRecord]:
        query = f"""
            SELECT {_TRANSACTION_COLUMNS}
            FROM ledger_transactions
            WHERE producer_id = ?
            ORDER BY created_at ASC, transaction_id ASC
        """
        with self._read() as connection:
            rows = self._execute(connection, query, (producer_id,)).fetchall()
        return [_to_transaction(row) for row in rows]

    def release_matured_credits(
        self,
        *,
        matured_before: datetime,
        released_at: datetime,
        producer_id: Optional[str],
    ) -> list[LedgerTransactionRecord]:
        where_clauses = ["status = ?", "matured_at IS NULL", "created_at <= ?"]
        args: list[str] = ["completed", _ts(matured_before)]
        if producer_id is not None:
            where_clauses.append("producer_id = ?")
            args.append(producer_id)
        query = f"""
            SELECT {_TRANSACTION_COLUMNS}
            FROM ledger_transactions
            WHERE {' AND '.join(where_clauses)}
            ORDER BY created_at ASC, transaction_id ASC{self._row_lock_sql}
        """
        released: list[LedgerTransactionRecord] = []
        with self._write() as connection:
            rows = self._execute(connection, query, tuple(args)).fetchall()
            for transaction in map(_to_transaction, rows):
                if transaction.amount <= 0:
                    continue
                balance = self._lock_balance(connection, transaction.producer_id, released_at)
                balance.pending_balance -= transaction.amount
                balance.available_balance += transaction.amount
                balance.updated_at = released_at
                self._save_balance(connection, balance)
                self._execute(
                    connection,
                    "UPDATE ledger_transactions SET matured_at = ? WHERE transaction_id = ?",
                    (_ts(released_at), transaction.transaction_id),
                )
                transaction.matured_at = released_at
                released.append(transaction)
        return released

    def get_withdrawal(self, *, withdrawal_id: str) -> Optional[WithdrawalRecord]:
        query = f"SELECT {_WITHDRAWAL_COLUMNS} FROM withdrawal_requests WHERE withdrawal_id = ?"
        with self._read() as connection:
            row = self._execute(connection, query, (withdrawal_id,)).fetchone()
        return _to_withdrawal(row) if row is not None else None

    def list_withdrawals(
        self,
        *,
        producer_id: Optional[str],
        status: Optional[WithdrawalStatus],
    ) -> list[WithdrawalRecord]:
        where_clauses = []
        args: list[str] = []
        if producer_id is not None:
            where_clauses.append("producer_id = ?")
            args.append(producer_id)
        if status is not None:
            where_clauses.append("status = ?")
            args.append(status)
        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT {_WITHDRAWAL_COLUMNS}
            FROM withdrawal_requests
            {where_sql}
            ORDER BY created_at DESC, withdrawal_id DESC
        """
        with self._read() as connection:
            rows = self._execute(connection, query, tuple(args)).fetchall()
        return [_to_withdrawal(row) for row in rows]

    def enqueue_notification(self, record: NotificationOutboxRecord) -> bool:
        event = record.event
        with self._write() as connection:
            cursor = self._execute(
                connection,
                f"""
                INSERT INTO notification_outbox ({_NOTIFICATION_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (event_id) DO NOTHING
                """,
                (
                    event.event_id,
                    event.event_type,
                    event.channel,
                    _json_dump(event.payload),
                    _ts(event.occurred_at),
                    record.status,
                    record.attempts,
                    record.last_error,
                    _ts(record.created_at),
                    _ts(record.updated_at),
                ),
            )
            return cursor.rowcount == 1

    def get_notification(self, *, event_id: str) -> Optional[NotificationOutboxRecord]:
        query = f"SELECT {_NOTIFICATION_COLUMNS} FROM notification_outbox WHERE event_id = ?"
        with self._read() as connection:
            row = self._execute(connection, query, (event_id,)).fetchone()
        return _to_notification(row) if row is not None else None

    def list_pending_notifications(self, *, limit: int) -> list[NotificationOutboxRecord]:
        query = f"""
            SELECT {_NOTIFICATION_COLUMNS}
            FROM notification_outbox
            WHERE status = ?
            ORDER BY created_at ASC, event_id ASC
            LIMIT ?
        """
        with self._read() as connection:
            rows = self._execute(connection, query, ("pending", limit)).fetchall()
        return [_to_notification(row) for row in rows]

    def claim_notification_attempt(
        self, *, event_id: str, expected_attempts: int, claimed_at: datetime
    ) -> bool:
        with self._write() as connection:
            cursor = self._execute(
                connection,
                """
                UPDATE notification_outbox
                SET attempts = attempts + 1, updated_at = ?
                WHERE event_id = ? AND status = ? AND attempts = ?
                """,
                (_ts(claimed_at), event_id, "pending", expected_attempts),
            )
            return cursor.rowcount == 1

    def record_notification_outcome(
        self,
        *,
        event_id: str,
        status: NotificationDeliveryStatus,
        last_error: Optional[str],
        recorded_at: datetime,
    ) -> None:
        with self._write() as connection:
            self._execute(
                connection,
                """
                UPDATE notification_outbox
                SET status = ?, last_error = ?, updated_at = ?
                WHERE event_id = ?
                """,
                (status, last_error, _ts(recorded_at), event_id),
            )

    def _lock_proposal(self, connection: Any, proposal_id: str) -> Optional[SyncProposalRecord]:
        query = f"""
            SELECT {_PROPOSAL_COLUMNS}
            FROM sync_proposals
            WHERE proposal_id = ?{self._row_lock_sql}
        """
        row = self._execute(connection, query, (proposal_id,)).fetchone()
        return _to_proposal(row)

    def _compare_and_set(
        self,
        connection: Any,
        *,
        proposal_id: str,
        expected_status: ProposalStatus,
        history: ProposalHistoryRecord,
        payment_reference: Optional[str] = None,
    ) -> Optional[SyncProposalRecord]:
        proposal = self._lock_proposal(connection, proposal_id)
        if proposal is None or proposal.status != expected_status:
            return None
        update: dict[str, Any] = {
            "status": expected_status.with_axis(history.status_axis, history.new_status),
            "version": proposal.version + 1,
            "updated_at": history.created_at,
        }
        if history.status_axis == "payment":
            update["payment_reference"] = payment_reference
            update["paid_at"] = history.created_at
        updated = proposal.model_copy(update=update)
        self._execute(
            connection,
            """
            UPDATE sync_proposals
            SET
                producer_status = ?,
                client_status = ?,
                payment_status = ?,
                updated_at = ?,
                payment_reference = ?,
                paid_at = ?,
                version = ?
            WHERE proposal_id = ? AND version = ?
            """,
            (
                updated.status.producer_status,
                updated.status.client_status,
                updated.status.payment_status,
                _ts(updated.updated_at),
                updated.payment_reference,
                _optional_ts(updated.paid_at),
                updated.version,
                proposal_id,
                proposal.version,
            ),
        )
        self._execute(
            connection,
            """
            INSERT INTO sync_proposal_history (
                history_id,
                proposal_id,
                status_axis,
                previous_status,
                new_status,
                changed_by,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                history.history_id,
                history.proposal_id,
                history.status_axis,
                history.previous_status,
                history.new_status,
                history.changed_by,
                _ts(history.created_at),
            ),
        )
        return updated

    def _apply_credit(
        self, connection: Any, transaction: LedgerTransactionRecord
    ) -> ProducerBalanceRecord:
        balance = self._lock_balance(connection, transaction.producer_id, transaction.created_at)
        balance.pending_balance += transaction.amount
        if transaction.transaction_type == "sale":
            balance.lifetime_earnings += transaction.amount
        balance.updated_at = transaction.created_at
        self._save_balance(connection, balance)
        self._insert_transaction(connection, transaction)
        return balance

    def _lock_balance(
        self, connection: Any, producer_id: str, now: datetime
    ) -> ProducerBalanceRecord:
        zero = self._dump_money(Decimal("0.00"))
        self._execute(
            connection,
            """
            INSERT INTO producer_balances (
                producer_id,
                available_balance,
                pending_balance,
                lifetime_earnings,
                updated_at
            ) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (producer_id) DO NOTHING
            """,
            (producer_id, zero, zero, zero, _ts(now)),
        )
        row = self._execute(
            connection,
            f"""
            SELECT
                producer_id,
                available_balance,
                pending_balance,
                lifetime_earnings,
                updated_at
            FROM producer_balances
            WHERE producer_id = ?{self._row_lock_sql}
            """,
            (producer_id,),
        ).fetchone()
        return ProducerBalanceRecord(
            producer_id=row["producer_id"],
            available_balance=Decimal(str(row["available_balance"])),
            pending_balance=Decimal(str(row["pending_balance"])),
            lifetime_earnings=Decimal(str(row["lifetime_earnings"])),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _save_balance(self, connection: Any, balance: ProducerBalanceRecord) -> None:
        self._execute(
            connection,
            """
            UPDATE producer_balances
            SET available_balance = ?, pending_balance = ?, lifetime_earnings = ?, updated_at = ?
            WHERE producer_id = ?
            """,
            (
                self._dump_money(balance.available_balance),
                self._dump_money(balance.pending_balance),
                self._dump_money(balance.lifetime_earnings),
                _ts(balance.updated_at),
                balance.producer_id,
            ),
        )

    def _insert_transaction(self, connection: Any, transaction: LedgerTransactionRecord) -> None:
        self._execute(
            connection,
            f"""
            INSERT INTO ledger_transactions ({_TRANSACTION_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                transaction.transaction_id,
                transaction.producer_id,
                self._dump_money(transaction.amount),
                transaction.transaction_type,
                transaction.status,
                transaction.description,
                transaction.reference_type,
                transaction.reference_id,
                _ts(transaction.created_at),
                _optional_ts(transaction.settled_at),
                _optional_ts(transaction.matured_at),
            ),
        )

    def _insert_withdrawal(self, connection: Any, withdrawal: WithdrawalRecord) -> None:
        self._execute(
            connection,
            f"""
            INSERT INTO withdrawal_requests ({_WITHDRAWAL_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                withdrawal.withdrawal_id,
                withdrawal.producer_id,
                self._dump_money(withdrawal.amount),
                withdrawal.payment_method_id,
                withdrawal.status,
                withdrawal.transaction_id,
                _ts(withdrawal.created_at),
                _optional_ts(withdrawal.decided_at),
                withdrawal.decided_by,
                withdrawal.notes,
            ),
        )


def _ts(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _optional_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return _ts(value)


def _json_dump(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def _to_proposal(row) -> Optional[SyncProposalRecord]:
    if row is None:
        return None
    return SyncProposalRecord(
        proposal_id=row["proposal_id"],
        track_id=row["track_id"],
        client_id=row["client_id"],
        producer_id=row["producer_id"],
        sync_fee=Decimal(str(row["sync_fee"])),
        payment_terms=row["payment_terms"],
        expiration_date=datetime.fromisoformat(row["expiration_date"]),
        is_urgent=bool(row["is_urgent"]),
        project_type=row["project_type"],
        duration=row["duration"],
        is_exclusive=bool(row["is_exclusive"]),
        status=ProposalStatus(
            producer_status=row["producer_status"],
            client_status=row["client_status"],
            payment_status=row["payment_status"],
        ),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        payment_reference=row["payment_reference"],
        paid_at=_optional_datetime(row["paid_at"]),
        version=int(row["version"]),
    )


def _to_history(row) -> ProposalHistoryRecord:
    return ProposalHistoryRecord(
        history_id=row["history_id"],
        proposal_id=row["proposal_id"],
        status_axis=row["status_axis"],
        previous_status=row["previous_status"],
        new_status=row["new_status"],
        changed_by=row["changed_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _to_message(row) -> NegotiationMessageRecord:
    return NegotiationMessageRecord(
        message_id=row["message_id"],
        proposal_id=row["proposal_id"],
        sender_id=row["sender_id"],
        message=row["message"],
        counter_offer=_optional_decimal(row["counter_offer"]),
        counter_terms=row["counter_terms"],
        created_at=datetime.fromisoformat(row["created_at"]),
        sequence_no=int(row["sequence_no"]),
    )


def _to_transaction(row) -> LedgerTransactionRecord:
    return LedgerTransactionRecord(
        transaction_id=row["transaction_id"],
        producer_id=row["producer_id"],
        amount=Decimal(str(row["amount"])),
        transaction_type=row["transaction_type"],
        status=row["status"],
        description=row["description"],
        reference_type=row["reference_type"],
        reference_id=row["reference_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        settled_at=_optional_datetime(row["settled_at"]),
        matured_at=_optional_datetime(row["matured_at"]),
    )


def _to_withdrawal(row) -> WithdrawalRecord:
    return WithdrawalRecord(
        withdrawal_id=row["withdrawal_id"],
        producer_id=row["producer_id"],
        amount=Decimal(str(row["amount"])),
        payment_method_id=row["payment_method_id"],
        status=row["status"],
        transaction_id=row["transaction_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        decided_at=_optional_datetime(row["decided_at"]),
        decided_by=row["decided_by"],
        notes=row["notes"],
    )


def _to_notification(row) -> NotificationOutboxRecord:
    return NotificationOutboxRecord(
        event=NotificationEvent(
            event_id=row["event_id"],
            event_type=row["event_type"],
            channel=row["channel"],
            payload=json.loads(row["payload_json"]),
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
        ),
        status=row["status"],
        attempts=int(row["attempts"]),
        last_error=row["last_error"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )
