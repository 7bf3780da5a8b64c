from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from syncledger.api.dependencies import get_actor
from syncledger.api.routers.http_errors import raise_sync_http_exception
from syncledger.api.routers.runtime import get_withdrawal_service
from syncledger.core.common.errors import SyncLedgerError
from syncledger.core.common.identity import Actor, require_role
from syncledger.core.withdrawals import (
    WithdrawalCreateRequest,
    WithdrawalDecisionRequest,
    WithdrawalListResponse,
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalService,
)
from syncledger.core.withdrawals.models import WithdrawalStatus

router = APIRouter(tags=["Producer Withdrawals"])

WithdrawalIdPath = Annotated[
    str,
    Path(description="Withdrawal identifier.", examples=["wd_5b2c9e0a1f3d"]),
]


@router.post(
    "/withdrawals",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request Withdrawal",
    description=(
        "Producer requests a payout. Funds leave the available balance immediately and "
        "are returned if an operator rejects the request."
    ),
)
def request_withdrawal(
    payload: WithdrawalCreateRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    producer_id: Annotated[
        Optional[str],
        Query(description="Producer to debit; defaults to the calling producer."),
    ] = None,
    service: Annotated[WithdrawalService, Depends(get_withdrawal_service)] = None,
) -> WithdrawalResponse:
    try:
        return service.request_withdrawal(
            producer_id=producer_id or actor.actor_id,
            payload=payload,
            actor=actor,
        )
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/withdrawals",
    response_model=WithdrawalListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Withdrawals",
    description="Producers see their own requests; admins may filter by producer and status.",
)
def list_withdrawals(
    actor: Annotated[Actor, Depends(get_actor)],
    producer_id: Annotated[
        Optional[str], Query(description="Producer filter.", examples=["prod_001"])
    ] = None,
    withdrawal_status: Annotated[
        Optional[WithdrawalStatus],
        Query(alias="status", description="Status filter.", examples=["pending"]),
    ] = None,
    service: Annotated[WithdrawalService, Depends(get_withdrawal_service)] = None,
) -> WithdrawalListResponse:
    try:
        if not actor.is_admin:
            require_role(actor, "producer")
            producer_id = actor.actor_id
        return service.list_withdrawals(producer_id=producer_id, status=withdrawal_status)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/withdrawals/{withdrawal_id}",
    response_model=WithdrawalRequest,
    status_code=status.HTTP_200_OK,
    summary="Get Withdrawal",
)
def get_withdrawal(
    withdrawal_id: WithdrawalIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[WithdrawalService, Depends(get_withdrawal_service)] = None,
) -> WithdrawalRequest:
    try:
        return service.get_withdrawal(withdrawal_id=withdrawal_id, actor=actor)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/withdrawals/{withdrawal_id}/approve",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve Withdrawal",
    description="Completes the paired debit and hands the payout to the payout rail.",
)
def approve_withdrawal(
    withdrawal_id: WithdrawalIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    payload: Annotated[Optional[WithdrawalDecisionRequest], Body()] = None,
    service: Annotated[WithdrawalService, Depends(get_withdrawal_service)] = None,
) -> WithdrawalResponse:
    try:
        return service.approve(
            withdrawal_id=withdrawal_id,
            actor=actor,
            notes=payload.notes if payload else None,
        )
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/withdrawals/{withdrawal_id}/reject",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_200_OK,
    summary="Reject Withdrawal",
    description="Rejects the paired debit and restores the amount to available funds.",
)
def reject_withdrawal(
    withdrawal_id: WithdrawalIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    payload: Annotated[Optional[WithdrawalDecisionRequest], Body()] = None,
    service: Annotated[WithdrawalService, Depends(get_withdrawal_service)] = None,
) -> WithdrawalResponse:
    try:
        return service.reject(
            withdrawal_id=withdrawal_id,
            actor=actor,
            notes=payload.notes if payload else None,
        )
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)
