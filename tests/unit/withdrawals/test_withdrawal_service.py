import threading
from decimal import Decimal

import pytest

from syncledger.core.common.errors import (
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidTransitionError,
    PermissionDeniedError,
    SyncValidationError,
)
from tests.factories import SyncHarness, admin, producer, withdrawal_request


def _funded(amount: str = "120.00", **kwargs) -> SyncHarness:
    harness = SyncHarness(**kwargs)
    harness.fund_available("prod_001", amount)
    return harness


def test_request_reserves_funds_and_records_pending_withdrawal_debit():
    harness = _funded()

    response = harness.withdrawals.request_withdrawal(
        producer_id="prod_001",
        payload=withdrawal_request("50.00", label="First Bank"),
        actor=producer(),
    )

    assert response.withdrawal.status == "pending"
    assert response.withdrawal.amount == Decimal("50.00")
    assert response.transaction.amount == Decimal("-50.00")
    assert response.transaction.transaction_type == "withdrawal"
    assert response.transaction.status == "pending"
    assert response.transaction.description == "Withdrawal to First Bank"
    assert response.transaction.reference_id == response.withdrawal.withdrawal_id
    assert response.balance.available_balance == Decimal("70.00")


def test_minimum_amount_is_inclusive():
    harness = _funded()

    with pytest.raises(SyncValidationError) as below:
        harness.withdrawals.request_withdrawal(
            producer_id="prod_001", payload=withdrawal_request("40.00"), actor=producer()
        )
    assert str(below.value) == "WITHDRAWAL_BELOW_MINIMUM: minimum is 50.00"

    accepted = harness.withdrawals.request_withdrawal(
        producer_id="prod_001", payload=withdrawal_request("50.00"), actor=producer()
    )
    assert accepted.withdrawal.status == "pending"


def test_configured_minimum_applies():
    harness = _funded(minimum_withdrawal=Decimal("100"))

    assert harness.withdrawals.minimum_amount == Decimal("100.00")
    with pytest.raises(SyncValidationError):
        harness.withdrawals.request_withdrawal(
            producer_id="prod_001", payload=withdrawal_request("99.99"), actor=producer()
        )


def test_request_requires_payment_method_owner_and_funds():
    harness = _funded()

    with pytest.raises(SyncValidationError) as missing_method:
        harness.withdrawals.request_withdrawal(
            producer_id="prod_001",
            payload=withdrawal_request("60.00", payment_method_id="  "),
            actor=producer(),
        )
    assert str(missing_method.value) == "PAYMENT_METHOD_REQUIRED"
    with pytest.raises(PermissionDeniedError):
        harness.withdrawals.request_withdrawal(
            producer_id="prod_001", payload=withdrawal_request("60.00"), actor=producer("prod_002")
        )
    with pytest.raises(InsufficientFundsError):
        harness.withdrawals.request_withdrawal(
            producer_id="prod_001", payload=withdrawal_request("120.01"), actor=producer()
        )
    assert harness.withdrawals.list_withdrawals(producer_id="prod_001", status=None).items == []


def test_reject_restores_funds_and_annotates_transaction():
    harness = _funded()
    requested = harness.withdrawals.request_withdrawal(
        producer_id="prod_001",
        payload=withdrawal_request("50.00", label="First Bank"),
        actor=producer(),
    )

    rejected = harness.withdrawals.reject(
        withdrawal_id=requested.withdrawal.withdrawal_id,
        actor=admin(),
        notes="Bank details mismatch",
    )

    assert rejected.withdrawal.status == "rejected"
    assert rejected.withdrawal.decided_by == "ops_001"
    assert rejected.withdrawal.notes == "Bank details mismatch"
    assert rejected.transaction.status == "rejected"
    assert rejected.transaction.description == (
        "Withdrawal to First Bank (Rejected: Bank details mismatch)"
    )
    assert rejected.balance.available_balance == Decimal("120.00")
    assert harness.sinks["payouts"].events == []
    assert harness.sinks["notifications"].event_ids()[-1] == (
        f"WITHDRAWAL_DECIDED:{requested.withdrawal.withdrawal_id}:rejected"
    )
    assert harness.ledger.reconcile(producer_id="prod_001").consistent is True


def test_approve_completes_debit_and_hands_payout_to_rail():
    harness = _funded()
    requested = harness.withdrawals.request_withdrawal(
        producer_id="prod_001", payload=withdrawal_request("50.00"), actor=producer()
    )
    withdrawal_id = requested.withdrawal.withdrawal_id

    approved = harness.withdrawals.approve(withdrawal_id=withdrawal_id, actor=admin())

    assert approved.withdrawal.status == "completed"
    assert approved.transaction.status == "completed"
    assert approved.balance.available_balance == Decimal("70.00")
    payouts = harness.sinks["payouts"].events
    assert [event.event_id for event in payouts] == [f"WITHDRAWAL_APPROVED:{withdrawal_id}"]
    assert payouts[0].payload == {
        "withdrawal_id": withdrawal_id,
        "producer_id": "prod_001",
        "payment_method_id": "pm_bank_01",
        "amount": "50.00",
    }
    assert harness.ledger.reconcile(producer_id="prod_001").consistent is True


def test_reject_without_notes_records_default_reason():
    harness = _funded()
    requested = harness.withdrawals.request_withdrawal(
        producer_id="prod_001",
        payload=withdrawal_request("50.00", label="First Bank"),
        actor=producer(),
    )

    rejected = harness.withdrawals.reject(
        withdrawal_id=requested.withdrawal.withdrawal_id, actor=admin()
    )

    assert rejected.withdrawal.notes is None
    assert rejected.transaction.description == (
        "Withdrawal to First Bank (Rejected: No reason provided)"
    )

def test_decisions_are_admin_only_and_single_shot():
    harness = _funded()
    requested = harness.withdrawals.request_withdrawal(
        producer_id="prod_001", payload=withdrawal_request("50.00"), actor=producer()
    )
    withdrawal_id = requested.withdrawal.withdrawal_id

    with pytest.raises(PermissionDeniedError):
        harness.withdrawals.approve(withdrawal_id=withdrawal_id, actor=producer())

    harness.withdrawals.approve(withdrawal_id=withdrawal_id, actor=admin())
    with pytest.raises(InvalidTransitionError):
        harness.withdrawals.reject(withdrawal_id=withdrawal_id, actor=admin())
    with pytest.raises(EntityNotFoundError):
        harness.withdrawals.approve(withdrawal_id="wd_missing", actor=admin())
    assert harness.ledger.get_balance(producer_id="prod_001").available_balance == Decimal(
        "70.00"
    )


def test_concurrent_requests_cannot_overdraw_available_balance():
    harness = _funded("120.00")
    barrier = threading.Barrier(2)
    outcomes: list[str] = []
    lock = threading.Lock()

    def _withdraw() -> None:
        barrier.wait()
        try:
            harness.withdrawals.request_withdrawal(
                producer_id="prod_001", payload=withdrawal_request("100.00"), actor=producer()
            )
            result = "ok"
        except InsufficientFundsError:
            result = "insufficient"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=_withdraw) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["insufficient", "ok"]
    assert harness.ledger.get_balance(producer_id="prod_001").available_balance == Decimal(
        "20.00"
    )


def test_reads_are_scoped_to_owner():
    harness = _funded()
    requested = harness.withdrawals.request_withdrawal(
        producer_id="prod_001", payload=withdrawal_request("60.00"), actor=producer()
    )
    withdrawal_id = requested.withdrawal.withdrawal_id

    assert harness.withdrawals.get_withdrawal(withdrawal_id=withdrawal_id, actor=producer())
    assert harness.withdrawals.get_withdrawal(withdrawal_id=withdrawal_id, actor=admin())
    with pytest.raises(PermissionDeniedError):
        harness.withdrawals.get_withdrawal(
            withdrawal_id=withdrawal_id, actor=producer("prod_002")
        )
    pending = harness.withdrawals.list_withdrawals(producer_id="prod_001", status="pending")
    assert [item.withdrawal_id for item in pending.items] == [withdrawal_id]
    completed = harness.withdrawals.list_withdrawals(producer_id="prod_001", status="completed")
    assert completed.items == []
