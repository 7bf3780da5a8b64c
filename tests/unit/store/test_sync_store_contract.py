from datetime import timedelta
from decimal import Decimal

import pytest

from syncledger.core.ledger.models import LedgerTransactionRecord
from syncledger.core.notifications import NotificationOutboxRecord, build_event
from syncledger.core.proposals.models import (
    NegotiationMessageRecord,
    ProposalHistoryRecord,
    ProposalStatus,
    SyncProposalRecord,
)
from syncledger.core.withdrawals.models import WithdrawalRecord
from syncledger.infrastructure.store import InMemorySyncStore, SqliteSyncStore
from tests.factories import START


@pytest.fixture(params=["in_memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return SqliteSyncStore(database_path=str(tmp_path / "contract.db"))
    return InMemorySyncStore()


def _proposal(proposal_id: str = "sp_001", *, expires_in: timedelta = timedelta(days=7)):
    return SyncProposalRecord(
        proposal_id=proposal_id,
        track_id="trk_001",
        client_id="client_001",
        producer_id="prod_001",
        sync_fee=Decimal("500.00"),
        payment_terms="net30",
        expiration_date=START + expires_in,
        is_urgent=True,
        project_type="Trailer",
        duration="1 year",
        is_exclusive=False,
        created_at=START,
        updated_at=START,
    )


def _history(axis: str, previous: str, new: str, *, history_id: str, proposal_id="sp_001"):
    return ProposalHistoryRecord(
        history_id=history_id,
        proposal_id=proposal_id,
        status_axis=axis,
        previous_status=previous,
        new_status=new,
        changed_by="tester",
        created_at=START + timedelta(minutes=1),
    )


def _credit(transaction_id: str, amount: str, *, producer_id: str = "prod_001"):
    return LedgerTransactionRecord(
        transaction_id=transaction_id,
        producer_id=producer_id,
        amount=Decimal(amount),
        transaction_type="sale",
        status="completed",
        description="Sale",
        created_at=START,
        settled_at=START,
    )


def _debit(transaction_id: str, amount: str, *, reference_id=None):
    return LedgerTransactionRecord(
        transaction_id=transaction_id,
        producer_id="prod_001",
        amount=-Decimal(amount),
        transaction_type="withdrawal" if reference_id else "adjustment",
        status="pending",
        description="Debit",
        reference_type="withdrawal" if reference_id else None,
        reference_id=reference_id,
        created_at=START + timedelta(days=40),
    )


def _mature(store) -> None:
    store.release_matured_credits(
        matured_before=START + timedelta(days=30),
        released_at=START + timedelta(days=30),
        producer_id=None,
    )


def test_proposal_round_trip_preserves_fields(store):
    store.create_proposal(_proposal())

    stored = store.get_proposal(proposal_id="sp_001")

    assert stored == _proposal()
    assert store.get_proposal(proposal_id="sp_missing") is None


def test_transition_is_compare_and_set_on_status(store):
    store.create_proposal(_proposal())
    pending = ProposalStatus()

    updated = store.transition_status(
        proposal_id="sp_001",
        expected_status=pending,
        history=_history("producer", "pending", "accepted", history_id="sph_1"),
    )
    stale = store.transition_status(
        proposal_id="sp_001",
        expected_status=pending,
        history=_history("producer", "pending", "rejected", history_id="sph_2"),
    )

    assert updated is not None
    assert updated.status.producer_status == "accepted"
    assert updated.version == 2
    assert stale is None
    assert [entry.history_id for entry in store.list_history(proposal_id="sp_001")] == ["sph_1"]
    assert store.get_proposal(proposal_id="sp_001").status.producer_status == "accepted"


def test_record_payment_commits_status_and_credit_together(store):
    store.create_proposal(_proposal())
    status = ProposalStatus()
    for axis, history_id in (("producer", "sph_1"), ("client", "sph_2")):
        status = store.transition_status(
            proposal_id="sp_001",
            expected_status=status,
            history=_history(axis, "pending", "accepted", history_id=history_id),
        ).status

    paid = store.record_payment(
        proposal_id="sp_001",
        expected_status=status,
        history=_history("payment", "pending", "paid", history_id="sph_3"),
        payment_reference="pi_001",
        sale=_credit("ltx_sale", "500.00"),
    )
    replay = store.record_payment(
        proposal_id="sp_001",
        expected_status=status,
        history=_history("payment", "pending", "paid", history_id="sph_4"),
        payment_reference="pi_001",
        sale=_credit("ltx_sale_2", "500.00"),
    )

    assert paid.status.payment_status == "paid"
    assert paid.payment_reference == "pi_001"
    assert replay is None
    assert [row.transaction_id for row in store.list_transactions(producer_id="prod_001")] == [
        "ltx_sale"
    ]
    balance = store.get_balance(producer_id="prod_001", now=START)
    assert balance.pending_balance == Decimal("500.00")
    assert balance.lifetime_earnings == Decimal("500.00")


def test_overdue_listing_only_returns_pending_past_deadline(store):
    store.create_proposal(_proposal("sp_overdue", expires_in=timedelta(days=1)))
    store.create_proposal(_proposal("sp_open", expires_in=timedelta(days=10)))

    overdue = store.list_overdue_proposals(now=START + timedelta(days=2))

    assert [proposal.proposal_id for proposal in overdue] == ["sp_overdue"]


def test_messages_get_sequence_numbers_and_close_with_producer_decision(store):
    store.create_proposal(_proposal())
    for index in range(2):
        stored = store.append_message(
            message=NegotiationMessageRecord(
                message_id=f"spm_{index}",
                proposal_id="sp_001",
                sender_id="client_001",
                message="Offer",
                counter_offer=Decimal("450.00") if index else None,
                created_at=START + timedelta(minutes=index),
            ),
            now=START,
        )
        assert stored.sequence_no == index + 1
    store.transition_status(
        proposal_id="sp_001",
        expected_status=ProposalStatus(),
        history=_history("producer", "pending", "accepted", history_id="sph_1"),
    )

    closed = store.append_message(
        message=NegotiationMessageRecord(
            message_id="spm_late",
            proposal_id="sp_001",
            sender_id="client_001",
            message="Late",
            created_at=START,
        ),
        now=START,
    )

    assert closed is None
    messages = store.list_messages(proposal_id="sp_001")
    assert [message.sequence_no for message in messages] == [1, 2]
    assert messages[1].counter_offer == Decimal("450.00")


def test_debit_refuses_overdraft_and_settles_once(store):
    store.apply_credit(transaction=_credit("ltx_credit", "120.00"))
    _mature(store)

    assert store.apply_debit(transaction=_debit("ltx_big", "120.01"), withdrawal=None) is None
    reserved = store.apply_debit(transaction=_debit("ltx_debit", "50.00"), withdrawal=None)
    assert reserved.available_balance == Decimal("70.00")

    settled = store.settle_debit(
        transaction_id="ltx_debit",
        outcome="rejected",
        settled_at=START + timedelta(days=41),
        description="Debit (Rejected: test)",
        withdrawal=None,
    )
    again = store.settle_debit(
        transaction_id="ltx_debit",
        outcome="completed",
        settled_at=START + timedelta(days=42),
        description=None,
        withdrawal=None,
    )

    assert settled.status == "rejected"
    assert settled.description == "Debit (Rejected: test)"
    assert again is None
    assert store.get_transaction(transaction_id="ltx_big") is None
    assert store.get_balance(producer_id="prod_001", now=START).available_balance == Decimal(
        "120.00"
    )


def test_withdrawal_is_stored_with_its_debit_and_decided_with_settlement(store):
    store.apply_credit(transaction=_credit("ltx_credit", "120.00"))
    _mature(store)
    withdrawal = WithdrawalRecord(
        withdrawal_id="wd_001",
        producer_id="prod_001",
        amount=Decimal("50.00"),
        payment_method_id="pm_bank_01",
        status="pending",
        transaction_id="ltx_wd",
        created_at=START + timedelta(days=40),
    )
    store.apply_debit(
        transaction=_debit("ltx_wd", "50.00", reference_id="wd_001"), withdrawal=withdrawal
    )

    decided = withdrawal.model_copy(
        update={
            "status": "completed",
            "decided_at": START + timedelta(days=41),
            "decided_by": "ops_001",
        }
    )
    settled = store.settle_debit(
        transaction_id="ltx_wd",
        outcome="completed",
        settled_at=START + timedelta(days=41),
        description=None,
        withdrawal=decided,
    )

    assert settled.status == "completed"
    stored = store.get_withdrawal(withdrawal_id="wd_001")
    assert stored.status == "completed"
    assert stored.decided_by == "ops_001"
    completed = store.list_withdrawals(producer_id=None, status="completed")
    assert [row.withdrawal_id for row in completed] == ["wd_001"]
    assert store.list_withdrawals(producer_id="prod_001", status="pending") == []


def test_release_matured_credits_moves_pending_to_available_once(store):
    store.apply_credit(transaction=_credit("ltx_a", "100.00"))
    store.apply_credit(transaction=_credit("ltx_b", "200.00", producer_id="prod_002"))

    released = store.release_matured_credits(
        matured_before=START,
        released_at=START + timedelta(days=30),
        producer_id="prod_001",
    )
    repeat = store.release_matured_credits(
        matured_before=START,
        released_at=START + timedelta(days=30),
        producer_id=None,
    )

    assert [row.transaction_id for row in released] == ["ltx_a"]
    assert released[0].matured_at == START + timedelta(days=30)
    assert [row.transaction_id for row in repeat] == ["ltx_b"]
    balance = store.get_balance(producer_id="prod_001", now=START)
    assert balance.available_balance == Decimal("100.00")
    assert balance.pending_balance == Decimal("0.00")


def _outbox_record(proposal_id: str, *, minutes: int = 0) -> NotificationOutboxRecord:
    event = build_event(
        event_type="PAYMENT_REQUESTED",
        key_parts=[proposal_id],
        payload={"proposal_id": proposal_id, "amount": "500.00"},
        occurred_at=START,
    )
    at = START + timedelta(minutes=minutes)
    return NotificationOutboxRecord(event=event, created_at=at, updated_at=at)


def test_notification_outbox_enqueues_once_and_lists_pending_in_order(store):
    assert store.enqueue_notification(_outbox_record("sp_002", minutes=1)) is True
    assert store.enqueue_notification(_outbox_record("sp_001")) is True
    assert store.enqueue_notification(_outbox_record("sp_001", minutes=5)) is False

    pending = store.list_pending_notifications(limit=10)

    assert [row.event.event_id for row in pending] == [
        "PAYMENT_REQUESTED:sp_001",
        "PAYMENT_REQUESTED:sp_002",
    ]
    assert pending[0].event.payload == {"proposal_id": "sp_001", "amount": "500.00"}
    assert pending[0].event.channel == "payments"
    assert pending[0].created_at == START
    assert [row.event.event_id for row in store.list_pending_notifications(limit=1)] == [
        "PAYMENT_REQUESTED:sp_001"
    ]


def test_notification_attempts_are_claimed_once_and_settled(store):
    store.enqueue_notification(_outbox_record("sp_001"))
    event_id = "PAYMENT_REQUESTED:sp_001"

    assert store.claim_notification_attempt(
        event_id=event_id, expected_attempts=0, claimed_at=START
    )
    assert not store.claim_notification_attempt(
        event_id=event_id, expected_attempts=0, claimed_at=START
    )
    store.record_notification_outcome(
        event_id=event_id,
        status="pending",
        last_error="DOWNSTREAM_UNAVAILABLE: payments",
        recorded_at=START + timedelta(minutes=1),
    )
    retried = store.get_notification(event_id=event_id)
    assert retried.attempts == 1
    assert retried.last_error == "DOWNSTREAM_UNAVAILABLE: payments"

    assert store.claim_notification_attempt(
        event_id=event_id, expected_attempts=1, claimed_at=START + timedelta(minutes=2)
    )
    store.record_notification_outcome(
        event_id=event_id,
        status="delivered",
        last_error=None,
        recorded_at=START + timedelta(minutes=2),
    )

    delivered = store.get_notification(event_id=event_id)
    assert delivered.status == "delivered"
    assert delivered.attempts == 2
    assert delivered.updated_at == START + timedelta(minutes=2)
    assert store.list_pending_notifications(limit=10) == []
    assert not store.claim_notification_attempt(
        event_id=event_id, expected_attempts=2, claimed_at=START
    )
    assert store.get_notification(event_id="PAYMENT_REQUESTED:sp_missing") is None
