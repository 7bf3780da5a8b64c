from syncledger.core.proposals.catalog import StaticTrackCatalog, TrackCatalog
from syncledger.core.proposals.models import (
    ExpirySweepResponse,
    NegotiationMessage,
    NegotiationMessageRequest,
    NegotiationThreadResponse,
    PaymentCompletedEvent,
    PendingPaymentResponse,
    ProposalDecisionRequest,
    ProposalHistoryEntry,
    ProposalHistoryResponse,
    ProposalStatus,
    ProposalSubmitRequest,
    SyncProposal,
    SyncProposalListResponse,
)
from syncledger.core.proposals.negotiation import NegotiationService
from syncledger.core.proposals.repository import ProposalRepository
from syncledger.core.proposals.service import ProposalWorkflowService

__all__ = [
    "ExpirySweepResponse",
    "NegotiationMessage",
    "NegotiationMessageRequest",
    "NegotiationService",
    "NegotiationThreadResponse",
    "PaymentCompletedEvent",
    "PendingPaymentResponse",
    "ProposalDecisionRequest",
    "ProposalHistoryEntry",
    "ProposalHistoryResponse",
    "ProposalRepository",
    "ProposalStatus",
    "ProposalSubmitRequest",
    "ProposalWorkflowService",
    "StaticTrackCatalog",
    "SyncProposal",
    "SyncProposalListResponse",
    "TrackCatalog",
]
