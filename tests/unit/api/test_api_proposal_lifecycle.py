from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from syncledger.api.main import app

CLIENT = {"X-Actor-Id": "client_001", "X-Actor-Role": "client"}
PRODUCER = {"X-Actor-Id": "prod_001", "X-Actor-Role": "producer"}
OTHER_PRODUCER = {"X-Actor-Id": "prod_002", "X-Actor-Role": "producer"}
ADMIN = {"X-Actor-Id": "ops_001", "X-Actor-Role": "admin"}


def _submit_payload(**overrides) -> dict:
    payload = {
        "track_id": "trk_001",
        "sync_fee": "500.00",
        "payment_terms": "net30",
        "expiration_date": (datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
        "project_type": "Indie film trailer",
    }
    payload.update(overrides)
    return payload


def _submit(client: TestClient, **overrides) -> dict:
    response = client.post("/sync/proposals", json=_submit_payload(**overrides), headers=CLIENT)
    assert response.status_code == 201
    return response.json()


def test_proposal_lifecycle_from_submission_to_payment():
    with TestClient(app) as client:
        proposal = _submit(client)
        proposal_id = proposal["proposal_id"]
        assert proposal["producer_id"] == "prod_001"
        assert proposal["phase"] == "producer_decision"
        assert proposal["status"] == {
            "producer_status": "pending",
            "client_status": "pending",
            "payment_status": "pending",
        }

        accepted = client.post(
            f"/sync/proposals/{proposal_id}/producer-decision",
            json={"decision": "accept"},
            headers=PRODUCER,
        )
        assert accepted.status_code == 200
        assert accepted.json()["phase"] == "client_decision"

        confirmed = client.post(
            f"/sync/proposals/{proposal_id}/client-decision",
            json={"decision": "accept"},
            headers=CLIENT,
        )
        assert confirmed.json()["phase"] == "awaiting_payment"

        pending = client.get(f"/sync/proposals/{proposal_id}/pending-payment", headers=CLIENT)
        assert pending.status_code == 200
        assert pending.json()["amount"] == "500.00"
        assert pending.json()["payment_terms"] == "net30"

        paid = client.post(
            "/sync/payments/completed",
            json={"proposal_id": proposal_id, "payment_reference": "pi_3Nx01"},
            headers=ADMIN,
        )
        assert paid.status_code == 200
        assert paid.json()["phase"] == "paid"
        assert paid.json()["payment_reference"] == "pi_3Nx01"

        history = client.get(f"/sync/proposals/{proposal_id}/history", headers=PRODUCER).json()
        assert [(entry["status_axis"], entry["new_status"]) for entry in history["entries"]] == [
            ("producer", "accepted"),
            ("client", "accepted"),
            ("payment", "paid"),
        ]

        balance = client.get("/ledger/producers/prod_001/balance", headers=PRODUCER).json()
        assert balance["pending_balance"] == "500.00"
        assert balance["lifetime_earnings"] == "500.00"
        assert balance["available_balance"] == "0.00"


def test_duplicate_payment_callback_is_rejected_without_second_credit():
    with TestClient(app) as client:
        proposal_id = _submit(client)["proposal_id"]
        client.post(
            f"/sync/proposals/{proposal_id}/producer-decision",
            json={"decision": "accept"},
            headers=PRODUCER,
        )
        client.post(
            f"/sync/proposals/{proposal_id}/client-decision",
            json={"decision": "accept"},
            headers=CLIENT,
        )
        event = {"proposal_id": proposal_id}
        assert client.post("/sync/payments/completed", json=event, headers=ADMIN).status_code == 200

        duplicate = client.post("/sync/payments/completed", json=event, headers=ADMIN)
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"].startswith("INVALID_TRANSITION")

        transactions = client.get(
            "/ledger/producers/prod_001/transactions", headers=ADMIN
        ).json()["items"]
        assert len(transactions) == 1


def test_payment_callback_requires_admin_actor():
    with TestClient(app) as client:
        proposal_id = _submit(client)["proposal_id"]
        response = client.post(
            "/sync/payments/completed", json={"proposal_id": proposal_id}, headers=CLIENT
        )

    assert response.status_code == 403


def test_decisions_map_domain_errors_to_http_status():
    with TestClient(app) as client:
        proposal_id = _submit(client)["proposal_id"]

        not_owner = client.post(
            f"/sync/proposals/{proposal_id}/producer-decision",
            json={"decision": "accept"},
            headers=OTHER_PRODUCER,
        )
        assert not_owner.status_code == 403

        too_early = client.post(
            f"/sync/proposals/{proposal_id}/client-decision",
            json={"decision": "accept"},
            headers=CLIENT,
        )
        assert too_early.status_code == 409

        missing = client.post(
            "/sync/proposals/sp_missing/producer-decision",
            json={"decision": "accept"},
            headers=PRODUCER,
        )
        assert missing.status_code == 404
        assert missing.json()["detail"] == "PROPOSAL_NOT_FOUND"

        bad_decision = client.post(
            f"/sync/proposals/{proposal_id}/producer-decision",
            json={"decision": "maybe"},
            headers=PRODUCER,
        )
        assert bad_decision.status_code == 422


def test_submission_validation_errors_return_422_or_404():
    with TestClient(app) as client:
        zero_fee = client.post(
            "/sync/proposals", json=_submit_payload(sync_fee="0"), headers=CLIENT
        )
        assert zero_fee.status_code == 422
        assert zero_fee.json()["detail"] == "SYNC_FEE_MUST_BE_POSITIVE"

        past = client.post(
            "/sync/proposals",
            json=_submit_payload(expiration_date="2020-01-01T00:00:00+00:00"),
            headers=CLIENT,
        )
        assert past.status_code == 422
        assert past.json()["detail"] == "EXPIRATION_DATE_NOT_IN_FUTURE"

        unknown_track = client.post(
            "/sync/proposals", json=_submit_payload(track_id="trk_404"), headers=CLIENT
        )
        assert unknown_track.status_code == 404
        assert unknown_track.json()["detail"] == "TRACK_NOT_FOUND"

        producer_submit = client.post("/sync/proposals", json=_submit_payload(), headers=PRODUCER)
        assert producer_submit.status_code == 403


def test_actor_headers_are_required_and_validated():
    with TestClient(app) as client:
        missing = client.get("/sync/proposals")
        assert missing.status_code == 422

        bad_role = client.get(
            "/sync/proposals", headers={"X-Actor-Id": "x_001", "X-Actor-Role": "auditor"}
        )
        assert bad_role.status_code == 422
        assert bad_role.json()["detail"] == "INVALID_ACTOR"

        blank_id = client.get(
            "/sync/proposals", headers={"X-Actor-Id": "  ", "X-Actor-Role": "client"}
        )
        assert blank_id.status_code == 422


def test_list_is_scoped_to_the_calling_party_and_paginates():
    with TestClient(app) as client:
        first = _submit(client)
        second = _submit(client)
        _submit(client, track_id="trk_002")

        own = client.get("/sync/proposals", headers=PRODUCER).json()
        assert {item["proposal_id"] for item in own["items"]} == {
            first["proposal_id"],
            second["proposal_id"],
        }

        spoofed = client.get(
            "/sync/proposals", params={"producer_id": "prod_002"}, headers=PRODUCER
        ).json()
        assert all(item["producer_id"] == "prod_001" for item in spoofed["items"])

        page = client.get("/sync/proposals", params={"limit": 2}, headers=ADMIN).json()
        assert len(page["items"]) == 2
        assert page["next_cursor"] is not None
        rest = client.get(
            "/sync/proposals",
            params={"limit": 2, "cursor": page["next_cursor"]},
            headers=ADMIN,
        ).json()
        assert len(rest["items"]) == 1
        assert rest["next_cursor"] is None

        assert client.get("/sync/proposals", params={"limit": 0}, headers=ADMIN).status_code == 422


def test_non_party_cannot_read_proposal_or_thread():
    with TestClient(app) as client:
        proposal_id = _submit(client)["proposal_id"]

        for path in ("", "/history", "/messages", "/pending-payment"):
            response = client.get(f"/sync/proposals/{proposal_id}{path}", headers=OTHER_PRODUCER)
            assert response.status_code == 403

        assert client.get(f"/sync/proposals/{proposal_id}", headers=ADMIN).status_code == 200


def test_negotiation_thread_over_http():
    with TestClient(app) as client:
        proposal_id = _submit(client)["proposal_id"]

        posted = client.post(
            f"/sync/proposals/{proposal_id}/messages",
            json={"message": "Can we do 450?", "counter_offer": "450.00"},
            headers=CLIENT,
        )
        assert posted.status_code == 201
        assert posted.json()["sequence_no"] == 1
        client.post(
            f"/sync/proposals/{proposal_id}/messages",
            json={"message": "Let me think about it."},
            headers=PRODUCER,
        )

        thread = client.get(f"/sync/proposals/{proposal_id}/messages", headers=PRODUCER).json()
        assert [message["sender_id"] for message in thread["messages"]] == [
            "client_001",
            "prod_001",
        ]
        assert thread["latest_counter_offer"] == "450.00"

        client.post(
            f"/sync/proposals/{proposal_id}/producer-decision",
            json={"decision": "reject"},
            headers=PRODUCER,
        )
        closed = client.post(
            f"/sync/proposals/{proposal_id}/messages",
            json={"message": "Last try?"},
            headers=CLIENT,
        )
        assert closed.status_code == 409
