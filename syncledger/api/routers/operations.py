from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from syncledger.api.dependencies import get_actor
from syncledger.api.routers.http_errors import raise_sync_http_exception
from syncledger.api.routers.runtime import (
    get_dispatcher,
    get_ledger_service,
    get_proposal_workflow_service,
)
from syncledger.api.routers.sync_config import operations_apis_enabled
from syncledger.core.common.errors import SyncLedgerError
from syncledger.core.common.identity import Actor, require_role
from syncledger.core.ledger import LedgerService, MaturityReleaseResponse
from syncledger.core.notifications import NotificationDispatcher, NotificationRetryResponse
from syncledger.core.proposals import ExpirySweepResponse, ProposalWorkflowService

router = APIRouter(tags=["Operations"])


def _assert_operations_enabled(actor: Actor) -> None:
    if not operations_apis_enabled():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="SYNC_OPERATIONS_APIS_DISABLED",
        )
    try:
        require_role(actor, "admin")
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/operations/proposals/expire",
    response_model=ExpirySweepResponse,
    status_code=status.HTTP_200_OK,
    summary="Run Proposal Expiry Sweep",
    description=(
        "Expires every proposal whose producer decision is still pending after its "
        "expiration date, judged against the service clock. Safe to run repeatedly."
    ),
)
def run_expiry_sweep(
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> ExpirySweepResponse:
    _assert_operations_enabled(actor)
    return service.expire_overdue()


@router.post(
    "/operations/ledger/release-matured",
    response_model=MaturityReleaseResponse,
    status_code=status.HTTP_200_OK,
    summary="Release Matured Funds",
    description=(
        "Moves credits older than the hold period, judged against the service clock, "
        "from pending to available."
    ),
)
def run_maturity_release(
    actor: Annotated[Actor, Depends(get_actor)],
    producer_id: Annotated[
        Optional[str],
        Query(description="Restrict the release to one producer.", examples=["prod_001"]),
    ] = None,
    service: Annotated[LedgerService, Depends(get_ledger_service)] = None,
) -> MaturityReleaseResponse:
    _assert_operations_enabled(actor)
    return service.release_matured_funds(producer_id=producer_id)


@router.post(
    "/operations/notifications/retry",
    response_model=NotificationRetryResponse,
    status_code=status.HTTP_200_OK,
    summary="Retry Pending Notifications",
    description="Redelivers notifications that previously failed downstream.",
)
def run_notification_retry(
    actor: Annotated[Actor, Depends(get_actor)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)] = None,
) -> NotificationRetryResponse:
    _assert_operations_enabled(actor)
    return dispatcher.retry_pending()
