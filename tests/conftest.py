"""
FILE: tests/conftest.py
Shared fixtures for sync ledger tests.
"""

from pathlib import Path

import pytest

from syncledger.api.routers import runtime
from syncledger.api.routers.runtime import reset_services_for_tests
from tests.factories import FixedClock

_SYNC_ENV_VARS = (
    "SYNC_STORE_BACKEND",
    "SYNC_SQLITE_PATH",
    "SYNC_POSTGRES_DSN",
    "APP_PERSISTENCE_PROFILE",
    "WITHDRAWAL_MINIMUM_AMOUNT",
    "LEDGER_PENDING_HOLD_DAYS",
    "NOTIFICATION_WEBHOOK_URL",
    "PAYMENT_WEBHOOK_URL",
    "PAYOUT_WEBHOOK_URL",
    "NOTIFICATION_MAX_ATTEMPTS",
    "SYNC_OPERATIONS_APIS_ENABLED",
)


def _has_marker(item: pytest.Item, name: str) -> bool:
    return item.get_closest_marker(name) is not None


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if _has_marker(item, "unit") or _has_marker(item, "integration"):
            continue

        path = Path(str(item.fspath)).as_posix().lower()
        if "/tests/integration/" in path or "_integration.py" in path:
            item.add_marker(pytest.mark.integration)
            continue
        item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def sync_runtime_test_harness(monkeypatch: pytest.MonkeyPatch):
    """Every test starts from the in-memory backend and fresh service singletons."""

    for name in _SYNC_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv(
        "SYNC_TRACK_CATALOG_JSON",
        '{"trk_001": "prod_001", "trk_002": "prod_002"}',
    )
    reset_services_for_tests()
    yield
    reset_services_for_tests()


@pytest.fixture
def service_clock(monkeypatch: pytest.MonkeyPatch) -> FixedClock:
    """Runtime services built during the test read time from this clock."""

    clock = FixedClock()
    monkeypatch.setattr(runtime, "utc_now", clock)
    return clock
