import os
from decimal import Decimal, InvalidOperation
from typing import cast

from syncledger.core.ledger import DEFAULT_PENDING_HOLD_DAYS
from syncledger.core.notifications import NotificationChannel, NotificationSink
from syncledger.core.proposals.catalog import StaticTrackCatalog, parse_track_catalog
from syncledger.core.store import SyncStore
from syncledger.core.withdrawals import DEFAULT_MINIMUM_WITHDRAWAL
from syncledger.infrastructure.notifications import HttpWebhookSink, RecordingSink
from syncledger.infrastructure.store import InMemorySyncStore, PostgresSyncStore, SqliteSyncStore

_WEBHOOK_ENV_BY_CHANNEL: dict[NotificationChannel, str] = {
    "notifications": "NOTIFICATION_WEBHOOK_URL",
    "payments": "PAYMENT_WEBHOOK_URL",
    "payouts": "PAYOUT_WEBHOOK_URL",
}


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 1 else default


def env_non_negative_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def env_decimal(name: str, default: Decimal) -> Decimal:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation:
        return default
    return parsed if parsed.is_finite() and parsed > 0 else default


def sync_store_backend_name() -> str:
    backend = os.getenv("SYNC_STORE_BACKEND", "IN_MEMORY").strip().upper()
    if backend == "POSTGRES":
        return "POSTGRES"
    return "SQLITE" if backend in {"SQL", "SQLITE"} else "IN_MEMORY"


def sync_sqlite_path() -> str:
    return os.getenv("SYNC_SQLITE_PATH", ".data/syncledger.db")


def sync_postgres_dsn() -> str:
    return os.getenv("SYNC_POSTGRES_DSN", "").strip()


def withdrawal_minimum_amount() -> Decimal:
    return env_decimal("WITHDRAWAL_MINIMUM_AMOUNT", DEFAULT_MINIMUM_WITHDRAWAL)


def ledger_pending_hold_days() -> int:
    return env_non_negative_int("LEDGER_PENDING_HOLD_DAYS", DEFAULT_PENDING_HOLD_DAYS)


def notification_max_attempts() -> int:
    return env_int("NOTIFICATION_MAX_ATTEMPTS", 3)


def operations_apis_enabled() -> bool:
    return env_flag("SYNC_OPERATIONS_APIS_ENABLED", True)


def build_track_catalog() -> StaticTrackCatalog:
    return StaticTrackCatalog(tracks=parse_track_catalog(os.getenv("SYNC_TRACK_CATALOG_JSON")))


def build_notification_sinks() -> dict[NotificationChannel, NotificationSink]:
    sinks: dict[NotificationChannel, NotificationSink] = {}
    for channel, env_name in _WEBHOOK_ENV_BY_CHANNEL.items():
        url = os.getenv(env_name, "").strip()
        sinks[channel] = HttpWebhookSink(url=url) if url else RecordingSink()
    return sinks


def _postgres_connection_exception_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = [
        ConnectionError,
        OSError,
        TimeoutError,
        TypeError,
        ValueError,
    ]
    try:
        import psycopg
    except ImportError:
        pass
    else:
        types.append(psycopg.Error)
    return tuple(types)


def build_store() -> SyncStore:
    backend = sync_store_backend_name()
    if backend == "SQLITE":
        return cast(SyncStore, SqliteSyncStore(database_path=sync_sqlite_path()))
    if backend == "POSTGRES":
        dsn = sync_postgres_dsn()
        if not dsn:
            raise RuntimeError("SYNC_POSTGRES_DSN_REQUIRED")
        try:
            return cast(SyncStore, PostgresSyncStore(dsn=dsn))
        except RuntimeError:
            raise
        except _postgres_connection_exception_types() as exc:
            raise RuntimeError("SYNC_POSTGRES_CONNECTION_FAILED") from exc
    return cast(SyncStore, InMemorySyncStore())
