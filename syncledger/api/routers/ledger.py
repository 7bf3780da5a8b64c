from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from syncledger.api.dependencies import get_actor
from syncledger.api.routers.http_errors import raise_sync_http_exception
from syncledger.api.routers.runtime import get_ledger_service
from syncledger.core.common.errors import SyncLedgerError
from syncledger.core.common.identity import Actor, require_owner_or_admin, require_role
from syncledger.core.ledger import (
    BalanceReconciliation,
    DebitSettlementRequest,
    LedgerEntryRequest,
    LedgerService,
    LedgerTransaction,
    LedgerTransactionListResponse,
    ProducerBalance,
)

router = APIRouter(tags=["Producer Ledger"])

ProducerIdPath = Annotated[
    str,
    Path(description="Producer identifier.", examples=["prod_001"]),
]
TransactionIdPath = Annotated[
    str,
    Path(description="Ledger transaction identifier.", examples=["ltx_001"]),
]


@router.get(
    "/ledger/producers/{producer_id}/balance",
    response_model=ProducerBalance,
    status_code=status.HTTP_200_OK,
    summary="Get Producer Balance",
    description="Available, pending and lifetime amounts for the producer.",
)
def get_balance(
    producer_id: ProducerIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[LedgerService, Depends(get_ledger_service)] = None,
) -> ProducerBalance:
    try:
        require_owner_or_admin(actor, owner_id=producer_id, role="producer")
        return service.get_balance(producer_id=producer_id)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/ledger/producers/{producer_id}/transactions",
    response_model=LedgerTransactionListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Producer Transactions",
    description="Ledger transactions for the producer, oldest first.",
)
def list_transactions(
    producer_id: ProducerIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[LedgerService, Depends(get_ledger_service)] = None,
) -> LedgerTransactionListResponse:
    try:
        require_owner_or_admin(actor, owner_id=producer_id, role="producer")
        return service.list_transactions(producer_id=producer_id)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/ledger/producers/{producer_id}/reconciliation",
    response_model=BalanceReconciliation,
    status_code=status.HTTP_200_OK,
    summary="Reconcile Producer Balance",
    description="Replays the producer's transactions and compares them to the stored balance.",
)
def reconcile_balance(
    producer_id: ProducerIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[LedgerService, Depends(get_ledger_service)] = None,
) -> BalanceReconciliation:
    try:
        require_owner_or_admin(actor, owner_id=producer_id, role="producer")
        return service.reconcile(producer_id=producer_id)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/ledger/producers/{producer_id}/credits",
    response_model=LedgerTransaction,
    status_code=status.HTTP_201_CREATED,
    summary="Post Manual Credit",
    description="Operator credit; the amount joins the pending balance like any sale.",
)
def post_credit(
    producer_id: ProducerIdPath,
    payload: LedgerEntryRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[LedgerService, Depends(get_ledger_service)] = None,
) -> LedgerTransaction:
    try:
        require_role(actor, "admin")
        return service.credit(
            producer_id=producer_id,
            amount=payload.amount,
            transaction_type=payload.transaction_type,
            description=payload.description,
        )
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/ledger/producers/{producer_id}/debits",
    response_model=LedgerTransaction,
    status_code=status.HTTP_201_CREATED,
    summary="Post Manual Debit",
    description="Operator debit reserved against available funds until settled.",
)
def post_debit(
    producer_id: ProducerIdPath,
    payload: LedgerEntryRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[LedgerService, Depends(get_ledger_service)] = None,
) -> LedgerTransaction:
    try:
        require_role(actor, "admin")
        return service.debit(
            producer_id=producer_id,
            amount=payload.amount,
            transaction_type=payload.transaction_type,
            description=payload.description,
        )
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/ledger/transactions/{transaction_id}",
    response_model=LedgerTransaction,
    status_code=status.HTTP_200_OK,
    summary="Get Ledger Transaction",
)
def get_transaction(
    transaction_id: TransactionIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[LedgerService, Depends(get_ledger_service)] = None,
) -> LedgerTransaction:
    try:
        transaction = service.get_transaction(transaction_id=transaction_id)
        require_owner_or_admin(actor, owner_id=transaction.producer_id, role="producer")
        return transaction
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/ledger/transactions/{transaction_id}/settlement",
    response_model=LedgerTransaction,
    status_code=status.HTTP_200_OK,
    summary="Settle Pending Debit",
    description="Completes or rejects a pending manual debit exactly once.",
)
def settle_debit(
    transaction_id: TransactionIdPath,
    payload: DebitSettlementRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[LedgerService, Depends(get_ledger_service)] = None,
) -> LedgerTransaction:
    try:
        require_role(actor, "admin")
        return service.settle_debit(transaction_id=transaction_id, outcome=payload.outcome)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)
