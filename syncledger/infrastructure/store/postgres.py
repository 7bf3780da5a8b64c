from contextlib import closing
from decimal import Decimal
from importlib.util import find_spec
from typing import Any

from syncledger.infrastructure.postgres_migrations import apply_postgres_migrations
from syncledger.infrastructure.store.sql import SqlSyncStore

MIGRATION_NAMESPACE = "sync_ledger"

_CONFLICT_SQLSTATES = {
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
}


class PostgresSyncStore(SqlSyncStore):
    _row_lock_sql = " FOR UPDATE"

    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("SYNC_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("SYNC_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def _sql(self, query: str) -> str:
        return query.replace("?", "%s")

    def _dump_money(self, value: Decimal) -> Any:
        return value

    def _is_conflict(self, exc: Exception) -> bool:
        return getattr(exc, "sqlstate", None) in _CONFLICT_SQLSTATES

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _init_db(self) -> None:
        with closing(self._connect()) as connection:
            apply_postgres_migrations(connection=connection, namespace=MIGRATION_NAMESPACE)


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row
