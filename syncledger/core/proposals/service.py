import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from syncledger.core.common.clock import Clock, ensure_utc, optional_iso, utc_now
from syncledger.core.common.errors import (
    EntityNotFoundError,
    InvalidTransitionError,
    StorageConflictError,
    SyncValidationError,
)
from syncledger.core.common.identity import Actor, require_owner_or_admin, require_role
from syncledger.core.common.money import to_money
from syncledger.core.common.retry import retry_once_on_conflict
from syncledger.core.ledger.models import LedgerTransactionRecord
from syncledger.core.notifications import NotificationDispatcher, build_event
from syncledger.core.proposals.catalog import TrackCatalog
from syncledger.core.proposals.models import (
    ExpirySweepResponse,
    PaymentCompletedEvent,
    PendingPaymentResponse,
    ProducerStatus,
    ProposalDecision,
    ProposalHistoryEntry,
    ProposalHistoryRecord,
    ProposalHistoryResponse,
    ProposalStatus,
    ProposalSubmitRequest,
    StatusAxis,
    SyncProposal,
    SyncProposalListResponse,
    SyncProposalRecord,
)
from syncledger.core.proposals.repository import ProposalRepository

logger = logging.getLogger(__name__)

EXPIRY_SWEEP_ACTOR = "system:expiry-sweep"
PAYMENT_ACTOR = "system:payment"

_DECISION_STATUS = {"accept": "accepted", "reject": "rejected"}


class ProposalWorkflowService:
    def __init__(
        self,
        *,
        repository: ProposalRepository,
        track_catalog: TrackCatalog,
        dispatcher: NotificationDispatcher,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._track_catalog = track_catalog
        self._dispatcher = dispatcher
        self._clock = clock

    def submit(self, *, payload: ProposalSubmitRequest, actor: Actor) -> SyncProposal:
        require_role(actor, "client")
        now = self._clock()
        sync_fee = _validated_fee(payload)
        expiration_date = ensure_utc(payload.expiration_date)
        if expiration_date <= now:
            raise SyncValidationError("EXPIRATION_DATE_NOT_IN_FUTURE")

        producer_id = self._track_catalog.get_producer_id(track_id=payload.track_id)
        if producer_id is None:
            raise EntityNotFoundError("TRACK_NOT_FOUND")

        proposal = SyncProposalRecord(
            proposal_id=f"sp_{uuid.uuid4().hex[:12]}",
            track_id=payload.track_id,
            client_id=actor.actor_id,
            producer_id=producer_id,
            sync_fee=sync_fee,
            payment_terms=payload.payment_terms,
            expiration_date=expiration_date,
            is_urgent=payload.is_urgent,
            project_type=payload.project_type,
            duration=payload.duration,
            is_exclusive=payload.is_exclusive,
            status=ProposalStatus(),
            created_at=now,
            updated_at=now,
        )
        self._repository.create_proposal(proposal)
        logger.info(
            "Sync proposal submitted. proposal_id=%s track_id=%s client_id=%s",
            proposal.proposal_id,
            proposal.track_id,
            proposal.client_id,
        )
        return self._to_proposal(proposal, now=now)

    def producer_decide(
        self, *, proposal_id: str, actor: Actor, decision: ProposalDecision
    ) -> SyncProposal:
        def _operation() -> SyncProposalRecord:
            proposal = self._require_proposal(proposal_id)
            require_owner_or_admin(actor, owner_id=proposal.producer_id, role="producer")
            if proposal.status.producer_status != "pending":
                raise InvalidTransitionError(
                    f"INVALID_TRANSITION: producer_status is {proposal.status.producer_status}"
                )
            if proposal.is_expired(self._clock()):
                raise InvalidTransitionError("INVALID_TRANSITION: proposal expired")
            return self._apply_transition(
                proposal=proposal,
                axis="producer",
                new_status=_DECISION_STATUS[decision],
                changed_by=actor.actor_id,
            )

        updated = retry_once_on_conflict(_operation, operation_name="producer_decide")
        self._notify_decision(updated, axis="producer", decision=decision)
        return self._to_proposal(updated, now=self._clock())

    def client_decide(
        self, *, proposal_id: str, actor: Actor, decision: ProposalDecision
    ) -> SyncProposal:
        def _operation() -> SyncProposalRecord:
            proposal = self._require_proposal(proposal_id)
            require_owner_or_admin(actor, owner_id=proposal.client_id, role="client")
            if proposal.status.producer_status != "accepted":
                raise InvalidTransitionError(
                    "INVALID_TRANSITION: producer has not accepted the proposal"
                )
            if proposal.status.client_status != "pending":
                raise InvalidTransitionError(
                    f"INVALID_TRANSITION: client_status is {proposal.status.client_status}"
                )
            return self._apply_transition(
                proposal=proposal,
                axis="client",
                new_status=_DECISION_STATUS[decision],
                changed_by=actor.actor_id,
            )

        updated = retry_once_on_conflict(_operation, operation_name="client_decide")
        self._notify_decision(updated, axis="client", decision=decision)
        if decision == "accept":
            self._dispatcher.dispatch(
                build_event(
                    event_type="PAYMENT_REQUESTED",
                    key_parts=[updated.proposal_id],
                    payload=self._pending_payment(updated).model_dump(mode="json"),
                    occurred_at=updated.updated_at,
                )
            )
        return self._to_proposal(updated, now=self._clock())

    def record_payment(self, *, event: PaymentCompletedEvent) -> SyncProposal:
        def _operation() -> SyncProposalRecord:
            proposal = self._require_proposal(event.proposal_id)
            self._ensure_awaiting_payment(proposal)
            now = self._clock()
            history = self._history(
                proposal=proposal,
                axis="payment",
                new_status="paid",
                changed_by=PAYMENT_ACTOR,
                at=now,
            )
            sale = LedgerTransactionRecord(
                transaction_id=f"ltx_{uuid.uuid4().hex[:12]}",
                producer_id=proposal.producer_id,
                amount=proposal.sync_fee,
                transaction_type="sale",
                status="completed",
                description=f"Sync license sale for proposal {proposal.proposal_id}",
                reference_type="proposal",
                reference_id=proposal.proposal_id,
                created_at=now,
                settled_at=now,
            )
            updated = self._repository.record_payment(
                proposal_id=proposal.proposal_id,
                expected_status=proposal.status,
                history=history,
                payment_reference=event.payment_reference,
                sale=sale,
            )
            if updated is None:
                raise InvalidTransitionError("INVALID_TRANSITION: payment already recorded")
            logger.info(
                "Sync proposal paid. proposal_id=%s producer_id=%s amount=%s",
                updated.proposal_id,
                updated.producer_id,
                updated.sync_fee,
            )
            return updated

        updated = retry_once_on_conflict(_operation, operation_name="record_payment")
        return self._to_proposal(updated, now=self._clock())

    def expire_overdue(self) -> ExpirySweepResponse:
        sweep_time = self._clock()
        expired: list[str] = []
        skipped: list[str] = []
        for proposal in self._repository.list_overdue_proposals(now=sweep_time):
            history = self._history(
                proposal=proposal,
                axis="producer",
                new_status="expired",
                changed_by=EXPIRY_SWEEP_ACTOR,
                at=sweep_time,
            )
            try:
                updated = self._repository.transition_status(
                    proposal_id=proposal.proposal_id,
                    expected_status=proposal.status,
                    history=history,
                )
            except StorageConflictError:
                updated = None
            if updated is None:
                skipped.append(proposal.proposal_id)
                continue
            expired.append(proposal.proposal_id)
        if expired or skipped:
            logger.info(
                "Expiry sweep finished. expired=%s skipped=%s", len(expired), len(skipped)
            )
        return ExpirySweepResponse(
            swept_at=sweep_time.isoformat(),
            expired_proposal_ids=expired,
            skipped_proposal_ids=skipped,
        )

    def get_pending_payment(self, *, proposal_id: str) -> PendingPaymentResponse:
        proposal = self._require_proposal(proposal_id)
        self._ensure_awaiting_payment(proposal)
        return self._pending_payment(proposal)

    def get_proposal(self, *, proposal_id: str, actor: Optional[Actor] = None) -> SyncProposal:
        proposal = self._require_proposal(proposal_id)
        if actor is not None:
            _require_party(actor, proposal)
        return self._to_proposal(proposal, now=self._clock())

    def list_proposals(
        self,
        *,
        producer_id: Optional[str],
        client_id: Optional[str],
        producer_status: Optional[ProducerStatus],
        limit: int,
        cursor: Optional[str],
    ) -> SyncProposalListResponse:
        rows, next_cursor = self._repository.list_proposals(
            producer_id=producer_id,
            client_id=client_id,
            producer_status=producer_status,
            limit=limit,
            cursor=cursor,
        )
        now = self._clock()
        return SyncProposalListResponse(
            items=[self._to_proposal(row, now=now) for row in rows],
            next_cursor=next_cursor,
        )

    def list_history(self, *, proposal_id: str) -> ProposalHistoryResponse:
        self._require_proposal(proposal_id)
        entries = self._repository.list_history(proposal_id=proposal_id)
        return ProposalHistoryResponse(
            proposal_id=proposal_id,
            entries=[_to_history_entry(entry) for entry in entries],
        )

    def _apply_transition(
        self,
        *,
        proposal: SyncProposalRecord,
        axis: StatusAxis,
        new_status: str,
        changed_by: str,
    ) -> SyncProposalRecord:
        history = self._history(
            proposal=proposal,
            axis=axis,
            new_status=new_status,
            changed_by=changed_by,
            at=self._clock(),
        )
        updated = self._repository.transition_status(
            proposal_id=proposal.proposal_id,
            expected_status=proposal.status,
            history=history,
        )
        if updated is None:
            raise InvalidTransitionError("INVALID_TRANSITION: proposal changed concurrently")
        logger.info(
            "Sync proposal transitioned. proposal_id=%s axis=%s from=%s to=%s actor=%s",
            updated.proposal_id,
            axis,
            history.previous_status,
            history.new_status,
            changed_by,
        )
        return updated

    def _history(
        self,
        *,
        proposal: SyncProposalRecord,
        axis: StatusAxis,
        new_status: str,
        changed_by: str,
        at: datetime,
    ) -> ProposalHistoryRecord:
        return ProposalHistoryRecord(
            history_id=f"sph_{uuid.uuid4().hex[:12]}",
            proposal_id=proposal.proposal_id,
            status_axis=axis,
            previous_status=proposal.status.value_of(axis),
            new_status=new_status,
            changed_by=changed_by,
            created_at=at,
        )

    def _notify_decision(
        self, proposal: SyncProposalRecord, *, axis: StatusAxis, decision: ProposalDecision
    ) -> None:
        self._dispatcher.dispatch(
            build_event(
                event_type="PROPOSAL_DECIDED",
                key_parts=[proposal.proposal_id, axis, _DECISION_STATUS[decision]],
                payload={
                    "proposal_id": proposal.proposal_id,
                    "decided_by": axis,
                    "decision": decision,
                    "client_id": proposal.client_id,
                    "producer_id": proposal.producer_id,
                    "track_id": proposal.track_id,
                },
                occurred_at=proposal.updated_at,
            )
        )

    def _require_proposal(self, proposal_id: str) -> SyncProposalRecord:
        proposal = self._repository.get_proposal(proposal_id=proposal_id)
        if proposal is None:
            raise EntityNotFoundError("PROPOSAL_NOT_FOUND")
        return proposal

    def _ensure_awaiting_payment(self, proposal: SyncProposalRecord) -> None:
        if proposal.status.client_status != "accepted":
            raise InvalidTransitionError("INVALID_TRANSITION: client has not accepted")
        if proposal.status.payment_status != "pending":
            raise InvalidTransitionError("INVALID_TRANSITION: payment already recorded")

    def _pending_payment(self, proposal: SyncProposalRecord) -> PendingPaymentResponse:
        return PendingPaymentResponse(
            proposal_id=proposal.proposal_id,
            amount=proposal.sync_fee,
            payment_terms=proposal.payment_terms,
            client_id=proposal.client_id,
            producer_id=proposal.producer_id,
        )

    def _to_proposal(self, proposal: SyncProposalRecord, *, now: datetime) -> SyncProposal:
        return SyncProposal(
            proposal_id=proposal.proposal_id,
            track_id=proposal.track_id,
            client_id=proposal.client_id,
            producer_id=proposal.producer_id,
            sync_fee=proposal.sync_fee,
            payment_terms=proposal.payment_terms,
            expiration_date=proposal.expiration_date.isoformat(),
            is_urgent=proposal.is_urgent,
            project_type=proposal.project_type,
            duration=proposal.duration,
            is_exclusive=proposal.is_exclusive,
            status=proposal.status,
            phase=proposal.status.phase,
            is_expired=proposal.is_expired(now),
            created_at=proposal.created_at.isoformat(),
            updated_at=proposal.updated_at.isoformat(),
            payment_reference=proposal.payment_reference,
            paid_at=optional_iso(proposal.paid_at),
        )


def _validated_fee(payload: ProposalSubmitRequest) -> Decimal:
    try:
        sync_fee = to_money(payload.sync_fee)
    except ValueError as exc:
        raise SyncValidationError("INVALID_SYNC_FEE") from exc
    if sync_fee <= 0:
        raise SyncValidationError("SYNC_FEE_MUST_BE_POSITIVE")
    return sync_fee


def _require_party(actor: Actor, proposal: SyncProposalRecord) -> None:
    if actor.is_admin:
        return
    if actor.role == "client":
        require_owner_or_admin(actor, owner_id=proposal.client_id, role="client")
        return
    require_owner_or_admin(actor, owner_id=proposal.producer_id, role="producer")


def _to_history_entry(entry: ProposalHistoryRecord) -> ProposalHistoryEntry:
    return ProposalHistoryEntry(
        history_id=entry.history_id,
        proposal_id=entry.proposal_id,
        status_axis=entry.status_axis,
        previous_status=entry.previous_status,
        new_status=entry.new_status,
        changed_by=entry.changed_by,
        created_at=entry.created_at.isoformat(),
    )
