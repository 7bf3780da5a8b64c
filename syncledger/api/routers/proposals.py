from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from syncledger.api.dependencies import get_actor
from syncledger.api.routers.http_errors import raise_sync_http_exception
from syncledger.api.routers.runtime import (
    get_negotiation_service,
    get_proposal_workflow_service,
)
from syncledger.core.common.errors import SyncLedgerError
from syncledger.core.common.identity import Actor, require_role
from syncledger.core.proposals import (
    NegotiationMessage,
    NegotiationMessageRequest,
    NegotiationService,
    NegotiationThreadResponse,
    PaymentCompletedEvent,
    PendingPaymentResponse,
    ProposalDecisionRequest,
    ProposalHistoryResponse,
    ProposalSubmitRequest,
    ProposalWorkflowService,
    SyncProposal,
    SyncProposalListResponse,
)
from syncledger.core.proposals.models import ProducerStatus

router = APIRouter(tags=["Sync Proposals"])

ProposalIdPath = Annotated[
    str,
    Path(description="Sync proposal identifier.", examples=["sp_3f9a1c2b7d4e"]),
]


@router.post(
    "/sync/proposals",
    response_model=SyncProposal,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Sync Proposal",
    description=(
        "Client submits a licensing offer for a track. The producer is resolved from the "
        "track catalog and the proposal starts at pending on every status axis."
    ),
)
def submit_proposal(
    payload: ProposalSubmitRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> SyncProposal:
    try:
        return service.submit(payload=payload, actor=actor)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/sync/proposals",
    response_model=SyncProposalListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Sync Proposals",
    description=(
        "Lists proposals newest first with cursor pagination. Clients and producers only "
        "see proposals they are party to; admins may filter freely."
    ),
)
def list_proposals(
    actor: Annotated[Actor, Depends(get_actor)],
    producer_id: Annotated[
        Optional[str], Query(description="Producer filter.", examples=["prod_001"])
    ] = None,
    client_id: Annotated[
        Optional[str], Query(description="Client filter.", examples=["client_001"])
    ] = None,
    producer_status: Annotated[
        Optional[ProducerStatus],
        Query(description="Producer status filter.", examples=["pending"]),
    ] = None,
    limit: Annotated[
        int,
        Query(description="Page size.", ge=1, le=100, examples=[20]),
    ] = 20,
    cursor: Annotated[
        Optional[str],
        Query(description="Cursor from the previous page.", examples=["sp_3f9a1c2b7d4e"]),
    ] = None,
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> SyncProposalListResponse:
    if actor.role == "client":
        client_id = actor.actor_id
    elif actor.role == "producer":
        producer_id = actor.actor_id
    return service.list_proposals(
        producer_id=producer_id,
        client_id=client_id,
        producer_status=producer_status,
        limit=limit,
        cursor=cursor,
    )


@router.get(
    "/sync/proposals/{proposal_id}",
    response_model=SyncProposal,
    status_code=status.HTTP_200_OK,
    summary="Get Sync Proposal",
    description="Returns the proposal with its status triplet, derived phase and expiry flag.",
)
def get_proposal(
    proposal_id: ProposalIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> SyncProposal:
    try:
        return service.get_proposal(proposal_id=proposal_id, actor=actor)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/sync/proposals/{proposal_id}/producer-decision",
    response_model=SyncProposal,
    status_code=status.HTTP_200_OK,
    summary="Record Producer Decision",
    description="Owning producer accepts or rejects a pending, unexpired proposal.",
)
def producer_decision(
    proposal_id: ProposalIdPath,
    payload: ProposalDecisionRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> SyncProposal:
    try:
        return service.producer_decide(
            proposal_id=proposal_id, actor=actor, decision=payload.decision
        )
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/sync/proposals/{proposal_id}/client-decision",
    response_model=SyncProposal,
    status_code=status.HTTP_200_OK,
    summary="Record Client Decision",
    description=(
        "Owning client accepts or rejects a producer-accepted proposal. Acceptance "
        "notifies the payment collaborator that the proposal is ready for payment."
    ),
)
def client_decision(
    proposal_id: ProposalIdPath,
    payload: ProposalDecisionRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> SyncProposal:
    try:
        return service.client_decide(
            proposal_id=proposal_id, actor=actor, decision=payload.decision
        )
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/sync/proposals/{proposal_id}/history",
    response_model=ProposalHistoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Proposal History",
    description="Append-only audit trail of status changes in commit order.",
)
def get_proposal_history(
    proposal_id: ProposalIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> ProposalHistoryResponse:
    try:
        service.get_proposal(proposal_id=proposal_id, actor=actor)
        return service.list_history(proposal_id=proposal_id)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/sync/proposals/{proposal_id}/messages",
    response_model=NegotiationThreadResponse,
    status_code=status.HTTP_200_OK,
    summary="List Negotiation Messages",
    description="Negotiation thread in creation order with the latest counter-offer.",
)
def list_negotiation_messages(
    proposal_id: ProposalIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    proposals: Annotated[
        ProposalWorkflowService, Depends(get_proposal_workflow_service)
    ] = None,
    service: Annotated[NegotiationService, Depends(get_negotiation_service)] = None,
) -> NegotiationThreadResponse:
    try:
        proposals.get_proposal(proposal_id=proposal_id, actor=actor)
        return service.list_messages(proposal_id=proposal_id)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/sync/proposals/{proposal_id}/messages",
    response_model=NegotiationMessage,
    status_code=status.HTTP_201_CREATED,
    summary="Post Negotiation Message",
    description=(
        "Client or producer appends a message, optionally with a counter-offer. Allowed "
        "only while the producer decision is pending and the proposal has not expired."
    ),
)
def post_negotiation_message(
    proposal_id: ProposalIdPath,
    payload: NegotiationMessageRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[NegotiationService, Depends(get_negotiation_service)] = None,
) -> NegotiationMessage:
    try:
        return service.post_message(proposal_id=proposal_id, actor=actor, payload=payload)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.get(
    "/sync/proposals/{proposal_id}/pending-payment",
    response_model=PendingPaymentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Pending Payment",
    description="Payment collaborator read of the amount and terms for an accepted proposal.",
)
def get_pending_payment(
    proposal_id: ProposalIdPath,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> PendingPaymentResponse:
    try:
        service.get_proposal(proposal_id=proposal_id, actor=actor)
        return service.get_pending_payment(proposal_id=proposal_id)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)


@router.post(
    "/sync/payments/completed",
    response_model=SyncProposal,
    status_code=status.HTTP_200_OK,
    summary="Record Completed Payment",
    description=(
        "Payment collaborator callback. Marks the proposal paid and credits the producer "
        "ledger in one storage transaction."
    ),
)
def record_payment_completed(
    payload: PaymentCompletedEvent,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> SyncProposal:
    try:
        require_role(actor, "admin")
        return service.record_payment(event=payload)
    except SyncLedgerError as exc:
        raise_sync_http_exception(exc)
