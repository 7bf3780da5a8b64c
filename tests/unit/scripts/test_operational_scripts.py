import json
from datetime import timedelta

import pytest

from scripts.postgres_migrate import main as migrate_main
from scripts.run_scheduled_sweeps import main as sweeps_main
from syncledger.api.routers.runtime import get_proposal_workflow_service
from syncledger.infrastructure.store import SqliteSyncStore
from tests.factories import SyncHarness, client, producer, proposal_request


def test_postgres_migrate_requires_dsn():
    with pytest.raises(RuntimeError) as exc:
        migrate_main([])
    assert str(exc.value) == "POSTGRES_MIGRATION_DSN_REQUIRED"


def test_scheduled_sweeps_expire_overdue_proposals(capsys, service_clock):
    created = get_proposal_workflow_service().submit(
        payload=proposal_request(now=service_clock(), expires_in=timedelta(days=1)),
        actor=client(),
    )
    service_clock.advance(days=2)

    assert sweeps_main(["--job", "expire"]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["expire"]["expired_proposal_ids"] == [created.proposal_id]
    assert summary["expire"]["swept_at"] == service_clock().isoformat()
    assert set(summary) == {"expire"}


def test_scheduled_sweeps_refuse_a_reference_time_override(capsys):
    with pytest.raises(SystemExit) as exc:
        sweeps_main(["--job", "expire", "--as-of", "2099-01-01T00:00:00+00:00"])

    assert exc.value.code == 2
    assert "--as-of" in capsys.readouterr().err


def test_scheduled_sweeps_run_every_job_by_default(capsys):
    assert sweeps_main([]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert set(summary) == {"expire", "release", "notifications"}
    assert summary["release"]["released_transaction_ids"] == []


def test_scheduled_notification_retry_delivers_events_failed_by_another_process(
    capsys, monkeypatch, tmp_path
):
    database_path = str(tmp_path / "sync.db")
    monkeypatch.setenv("SYNC_STORE_BACKEND", "SQLITE")
    monkeypatch.setenv("SYNC_SQLITE_PATH", database_path)
    api_process = SyncHarness(store=SqliteSyncStore(database_path=database_path))
    api_process.sinks["notifications"].fail_next(1)
    created = api_process.proposals.submit(
        payload=proposal_request(now=api_process.clock()), actor=client()
    )
    api_process.proposals.producer_decide(
        proposal_id=created.proposal_id, actor=producer(), decision="accept"
    )
    event_id = f"PROPOSAL_DECIDED:{created.proposal_id}:producer:accepted"
    assert api_process.dispatcher.pending_event_ids() == [event_id]

    assert sweeps_main(["--job", "notifications"]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["notifications"]["delivered_event_ids"] == [event_id]
    assert summary["notifications"]["pending_event_ids"] == []
    stored = api_process.store.get_notification(event_id=event_id)
    assert stored.status == "delivered"
    assert stored.attempts == 2
    assert api_process.sinks["notifications"].event_ids() == []


def test_scheduled_sweeps_respect_production_guardrails(monkeypatch):
    monkeypatch.setenv("APP_PERSISTENCE_PROFILE", "PRODUCTION")

    with pytest.raises(RuntimeError) as exc:
        sweeps_main(["--job", "notifications"])
    assert str(exc.value) == "PERSISTENCE_PROFILE_REQUIRES_SYNC_POSTGRES"
