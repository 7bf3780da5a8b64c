from decimal import Decimal

import pytest

import syncledger.api.routers.sync_config as sync_config
from syncledger.api.routers.sync_config import (
    build_notification_sinks,
    build_store,
    build_track_catalog,
    env_decimal,
    env_flag,
    env_int,
    ledger_pending_hold_days,
    notification_max_attempts,
    sync_store_backend_name,
    withdrawal_minimum_amount,
)
from syncledger.infrastructure.notifications import HttpWebhookSink, RecordingSink
from syncledger.infrastructure.store import InMemorySyncStore, SqliteSyncStore


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, "IN_MEMORY"),
        ("in_memory", "IN_MEMORY"),
        ("sql", "SQLITE"),
        (" sqlite ", "SQLITE"),
        ("postgres", "POSTGRES"),
        ("redis", "IN_MEMORY"),
    ],
)
def test_store_backend_name_normalization(monkeypatch, raw, expected):
    if raw is not None:
        monkeypatch.setenv("SYNC_STORE_BACKEND", raw)
    assert sync_store_backend_name() == expected


def test_env_helpers_fall_back_on_invalid_values(monkeypatch):
    monkeypatch.setenv("FLAG_ON", "Yes")
    monkeypatch.setenv("FLAG_OFF", "0")
    monkeypatch.setenv("INT_BAD", "three")
    monkeypatch.setenv("INT_ZERO", "0")
    monkeypatch.setenv("DEC_BAD", "ten")
    monkeypatch.setenv("DEC_NEG", "-5")
    monkeypatch.setenv("DEC_OK", "75.5")

    assert env_flag("FLAG_ON", False) is True
    assert env_flag("FLAG_OFF", True) is False
    assert env_flag("FLAG_MISSING", True) is True
    assert env_int("INT_BAD", 3) == 3
    assert env_int("INT_ZERO", 3) == 3
    assert env_decimal("DEC_BAD", Decimal("50")) == Decimal("50")
    assert env_decimal("DEC_NEG", Decimal("50")) == Decimal("50")
    assert env_decimal("DEC_OK", Decimal("50")) == Decimal("75.5")


def test_business_settings_defaults_and_overrides(monkeypatch):
    assert withdrawal_minimum_amount() == Decimal("50.00")
    assert ledger_pending_hold_days() == 30
    assert notification_max_attempts() == 3

    monkeypatch.setenv("WITHDRAWAL_MINIMUM_AMOUNT", "20")
    monkeypatch.setenv("LEDGER_PENDING_HOLD_DAYS", "0")
    monkeypatch.setenv("NOTIFICATION_MAX_ATTEMPTS", "5")
    assert withdrawal_minimum_amount() == Decimal("20")
    assert ledger_pending_hold_days() == 0
    assert notification_max_attempts() == 5


def test_track_catalog_reads_json_mapping():
    catalog = build_track_catalog()
    assert catalog.get_producer_id(track_id="trk_002") == "prod_002"
    assert catalog.get_producer_id(track_id="trk_404") is None


def test_notification_sinks_use_webhooks_only_when_configured(monkeypatch):
    monkeypatch.setenv("PAYOUT_WEBHOOK_URL", "https://payouts.example.test/hooks")
    sinks = build_notification_sinks()

    assert isinstance(sinks["payouts"], HttpWebhookSink)
    assert isinstance(sinks["notifications"], RecordingSink)
    assert isinstance(sinks["payments"], RecordingSink)


def test_build_store_selects_backend(monkeypatch, tmp_path):
    assert isinstance(build_store(), InMemorySyncStore)

    monkeypatch.setenv("SYNC_STORE_BACKEND", "SQLITE")
    monkeypatch.setenv("SYNC_SQLITE_PATH", str(tmp_path / "ledger.db"))
    assert isinstance(build_store(), SqliteSyncStore)


def test_build_store_requires_postgres_dsn(monkeypatch):
    monkeypatch.setenv("SYNC_STORE_BACKEND", "POSTGRES")

    with pytest.raises(RuntimeError) as exc:
        build_store()
    assert str(exc.value) == "SYNC_POSTGRES_DSN_REQUIRED"


def test_build_store_maps_postgres_connection_failures(monkeypatch):
    monkeypatch.setenv("SYNC_STORE_BACKEND", "POSTGRES")
    monkeypatch.setenv("SYNC_POSTGRES_DSN", "postgresql://u:p@localhost:5432/db")

    class _Unreachable:
        def __init__(self, *, dsn):
            raise OSError("connection refused")

    monkeypatch.setattr(sync_config, "PostgresSyncStore", _Unreachable)
    with pytest.raises(RuntimeError) as exc:
        build_store()
    assert str(exc.value) == "SYNC_POSTGRES_CONNECTION_FAILED"
