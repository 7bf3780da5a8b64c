from datetime import timedelta

from fastapi.testclient import TestClient

from syncledger.api.main import app
from syncledger.api.routers import runtime

CLIENT = {"X-Actor-Id": "client_001", "X-Actor-Role": "client"}
PRODUCER = {"X-Actor-Id": "prod_001", "X-Actor-Role": "producer"}
ADMIN = {"X-Actor-Id": "ops_001", "X-Actor-Role": "admin"}


def _submit(client: TestClient, expiration_date: str) -> dict:
    response = client.post(
        "/sync/proposals",
        json={"track_id": "trk_001", "sync_fee": "300.00", "expiration_date": expiration_date},
        headers=CLIENT,
    )
    assert response.status_code == 201
    return response.json()


def test_expiry_sweep_expires_overdue_proposals_once(service_clock):
    with TestClient(app) as client:
        created = _submit(client, (service_clock() + timedelta(days=1)).isoformat())
        service_clock.advance(days=2)

        swept = client.post("/operations/proposals/expire", headers=ADMIN)
        assert swept.status_code == 200
        assert swept.json()["expired_proposal_ids"] == [created["proposal_id"]]
        assert swept.json()["swept_at"] == service_clock().isoformat()

        again = client.post("/operations/proposals/expire", headers=ADMIN).json()
        assert again["expired_proposal_ids"] == []

        proposal = client.get(f"/sync/proposals/{created['proposal_id']}", headers=CLIENT).json()
        assert proposal["phase"] == "expired"
        assert proposal["status"]["producer_status"] == "expired"


def test_sweeps_ignore_a_caller_supplied_reference_time(service_clock):
    with TestClient(app) as client:
        created = _submit(client, (service_clock() + timedelta(days=30)).isoformat())
        credit = client.post(
            "/ledger/producers/prod_001/credits",
            json={"amount": "100.00", "transaction_type": "adjustment"},
            headers=ADMIN,
        )
        assert credit.status_code == 201

        swept = client.post(
            "/operations/proposals/expire",
            params={"as_of": "2099-01-01T00:00:00+00:00"},
            headers=ADMIN,
        )
        released = client.post(
            "/operations/ledger/release-matured",
            params={"as_of": "2099-01-01T00:00:00+00:00"},
            headers=ADMIN,
        )

        assert swept.status_code == 200
        assert swept.json()["expired_proposal_ids"] == []
        assert swept.json()["swept_at"] == service_clock().isoformat()
        assert released.status_code == 200
        assert released.json()["released_transaction_ids"] == []
        proposal = client.get(f"/sync/proposals/{created['proposal_id']}", headers=CLIENT).json()
        assert proposal["status"]["producer_status"] == "pending"
        balance = client.get("/ledger/producers/prod_001/balance", headers=PRODUCER).json()
        assert balance["available_balance"] == "0.00"
        assert balance["pending_balance"] == "100.00"

        operations = client.get("/openapi.json").json()["paths"]
        for path in ("/operations/proposals/expire", "/operations/ledger/release-matured"):
            names = [param["name"] for param in operations[path]["post"].get("parameters", [])]
            assert "as_of" not in names


def test_notification_retry_reports_nothing_pending_by_default():
    with TestClient(app) as client:
        response = client.post("/operations/notifications/retry", headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["delivered_event_ids"] == []
    assert runtime.get_dispatcher().pending_event_ids() == []


def test_operations_require_admin():
    with TestClient(app) as client:
        for path in (
            "/operations/proposals/expire",
            "/operations/ledger/release-matured",
            "/operations/notifications/retry",
        ):
            assert client.post(path, headers=PRODUCER).status_code == 403


def test_operations_can_be_disabled(monkeypatch):
    monkeypatch.setenv("SYNC_OPERATIONS_APIS_ENABLED", "false")
    with TestClient(app) as client:
        response = client.post("/operations/proposals/expire", headers=ADMIN)

    assert response.status_code == 404
    assert response.json()["detail"] == "SYNC_OPERATIONS_APIS_DISABLED"
