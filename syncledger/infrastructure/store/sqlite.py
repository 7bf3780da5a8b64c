import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from threading import Lock
from typing import Iterator

from syncledger.infrastructure.store.sql import SqlSyncStore

_BUSY_TIMEOUT_SECONDS = 5.0


class SqliteSyncStore(SqlSyncStore):
    def __init__(self, *, database_path: str) -> None:
        self._lock = Lock()
        self._database_path = database_path
        self._init_db()

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._lock, super()._write() as connection:
            yield connection

    def _begin_write(self, connection: sqlite3.Connection) -> None:
        connection.execute("BEGIN IMMEDIATE")

    def _is_conflict(self, exc: Exception) -> bool:
        if not isinstance(exc, sqlite3.OperationalError):
            return False
        message = str(exc).lower()
        return "database is locked" in message or "database is busy" in message

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._database_path,
            timeout=_BUSY_TIMEOUT_SECONDS,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        return connection

    def _init_db(self) -> None:
        Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as connection:
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS sync_proposals (
                    proposal_id TEXT PRIMARY KEY,
                    track_id TEXT NOT NULL,
                    client_id TEXT NOT NULL,
                    producer_id TEXT NOT NULL,
                    sync_fee TEXT NOT NULL,
                    payment_terms TEXT NOT NULL,
                    expiration_date TEXT NOT NULL,
                    is_urgent INTEGER NOT NULL,
                    project_type TEXT,
                    duration TEXT,
                    is_exclusive INTEGER NOT NULL,
                    producer_status TEXT NOT NULL,
                    client_status TEXT NOT NULL,
                    payment_status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    payment_reference TEXT,
                    paid_at TEXT,
                    version INTEGER NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_sync_proposals_producer
                    ON sync_proposals(producer_id, created_at);
                CREATE INDEX IF NOT EXISTS idx_sync_proposals_expiry
                    ON sync_proposals(producer_status, expiration_date);
                CREATE TABLE IF NOT EXISTS sync_proposal_history (
                    history_id TEXT PRIMARY KEY,
                    proposal_id TEXT NOT NULL,
                    status_axis TEXT NOT NULL,
                    previous_status TEXT NOT NULL,
                    new_status TEXT NOT NULL,
                    changed_by TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_sync_proposal_history_proposal
                    ON sync_proposal_history(proposal_id, created_at);
                CREATE TABLE IF NOT EXISTS sync_proposal_messages (
                    message_id TEXT PRIMARY KEY,
                    proposal_id TEXT NOT NULL,
                    sender_id TEXT NOT NULL,
                    message TEXT NOT NULL,
                    counter_offer TEXT,
                    counter_terms TEXT,
                    created_at TEXT NOT NULL,
                    sequence_no INTEGER NOT NULL,
                    UNIQUE (proposal_id, sequence_no)
                );
                CREATE TABLE IF NOT EXISTS producer_balances (
                    producer_id TEXT PRIMARY KEY,
                    available_balance TEXT NOT NULL,
                    pending_balance TEXT NOT NULL,
                    lifetime_earnings TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS ledger_transactions (
                    transaction_id TEXT PRIMARY KEY,
                    producer_id TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    transaction_type TEXT NOT NULL,
                    status TEXT NOT NULL,
                    description TEXT NOT NULL,
                    reference_type TEXT,
                    reference_id TEXT,
                    created_at TEXT NOT NULL,
                    settled_at TEXT,
                    matured_at TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_ledger_transactions_producer
                    ON ledger_transactions(producer_id, created_at);
                CREATE TABLE IF NOT EXISTS withdrawal_requests (
                    withdrawal_id TEXT PRIMARY KEY,
                    producer_id TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    payment_method_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    transaction_id TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL,
                    decided_at TEXT,
                    decided_by TEXT,
                    notes TEXT
                );
                CREATE TABLE IF NOT EXISTS notification_outbox (
                    event_id TEXT PRIMARY KEY,
                    event_type TEXT NOT NULL,
                    channel TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    status TEXT NOT NULL,
                    attempts INTEGER NOT NULL,
                    last_error TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_notification_outbox_pending
                    ON notification_outbox(status, created_at);
                """
            )
