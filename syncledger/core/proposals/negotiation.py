import logging
import uuid
from decimal import Decimal
from typing import Optional

from syncledger.core.common.clock import Clock, utc_now
from syncledger.core.common.errors import (
    EntityNotFoundError,
    InvalidTransitionError,
    PermissionDeniedError,
    SyncValidationError,
)
from syncledger.core.common.identity import Actor
from syncledger.core.common.money import to_money
from syncledger.core.notifications import NotificationDispatcher, build_event
from syncledger.core.proposals.models import (
    NegotiationMessage,
    NegotiationMessageRecord,
    NegotiationMessageRequest,
    NegotiationThreadResponse,
    SyncProposalRecord,
)
from syncledger.core.proposals.repository import ProposalRepository

logger = logging.getLogger(__name__)


class NegotiationService:
    """Append-only counter-offer thread attached to a proposal.

    Posting never changes proposal status. It is only open while the producer
    decision is pending and the proposal has not expired.
    """

    def __init__(
        self,
        *,
        repository: ProposalRepository,
        dispatcher: NotificationDispatcher,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._dispatcher = dispatcher
        self._clock = clock

    def post_message(
        self,
        *,
        proposal_id: str,
        actor: Actor,
        payload: NegotiationMessageRequest,
    ) -> NegotiationMessage:
        proposal = self._repository.get_proposal(proposal_id=proposal_id)
        if proposal is None:
            raise EntityNotFoundError("PROPOSAL_NOT_FOUND")
        _require_participant(actor, proposal)

        text = payload.message.strip()
        if not text:
            raise SyncValidationError("NEGOTIATION_MESSAGE_REQUIRED")
        counter_offer = _validated_counter_offer(payload.counter_offer)

        now = self._clock()
        if proposal.status.producer_status != "pending" or proposal.is_expired(now):
            raise InvalidTransitionError("INVALID_TRANSITION: negotiation closed")

        message = NegotiationMessageRecord(
            message_id=f"spm_{uuid.uuid4().hex[:12]}",
            proposal_id=proposal_id,
            sender_id=actor.actor_id,
            message=text,
            counter_offer=counter_offer,
            counter_terms=payload.counter_terms,
            created_at=now,
        )
        stored = self._repository.append_message(message=message, now=now)
        if stored is None:
            raise InvalidTransitionError("INVALID_TRANSITION: negotiation closed")
        logger.info(
            "Negotiation message posted. proposal_id=%s sender_id=%s counter_offer=%s",
            proposal_id,
            actor.actor_id,
            counter_offer,
        )
        self._notify_counterparty(proposal, stored)
        return _to_message(stored)

    def list_messages(self, *, proposal_id: str) -> NegotiationThreadResponse:
        if self._repository.get_proposal(proposal_id=proposal_id) is None:
            raise EntityNotFoundError("PROPOSAL_NOT_FOUND")
        messages = [
            _to_message(row) for row in self._repository.list_messages(proposal_id=proposal_id)
        ]
        latest_counter_offer = next(
            (m.counter_offer for m in reversed(messages) if m.counter_offer is not None),
            None,
        )
        return NegotiationThreadResponse(
            proposal_id=proposal_id,
            messages=messages,
            latest_counter_offer=latest_counter_offer,
        )

    def _notify_counterparty(
        self, proposal: SyncProposalRecord, message: NegotiationMessageRecord
    ) -> None:
        recipient_id = (
            proposal.client_id
            if message.sender_id == proposal.producer_id
            else proposal.producer_id
        )
        self._dispatcher.dispatch(
            build_event(
                event_type="NEGOTIATION_MESSAGE_POSTED",
                key_parts=[message.message_id],
                payload={
                    "proposal_id": message.proposal_id,
                    "message_id": message.message_id,
                    "sender_id": message.sender_id,
                    "recipient_id": recipient_id,
                    "counter_offer": (
                        str(message.counter_offer) if message.counter_offer is not None else None
                    ),
                    "counter_terms": message.counter_terms,
                },
                occurred_at=message.created_at,
            )
        )


def _require_participant(actor: Actor, proposal: SyncProposalRecord) -> None:
    if actor.is_admin:
        return
    if actor.actor_id in {proposal.client_id, proposal.producer_id}:
        return
    raise PermissionDeniedError(f"ACTOR_NOT_PERMITTED: {actor.actor_id}")


def _validated_counter_offer(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        amount = to_money(value)
    except ValueError as exc:
        raise SyncValidationError("INVALID_COUNTER_OFFER") from exc
    if amount <= 0:
        raise SyncValidationError("COUNTER_OFFER_MUST_BE_POSITIVE")
    return amount


def _to_message(record: NegotiationMessageRecord) -> NegotiationMessage:
    return NegotiationMessage(
        message_id=record.message_id,
        proposal_id=record.proposal_id,
        sender_id=record.sender_id,
        message=record.message,
        counter_offer=record.counter_offer,
        counter_terms=record.counter_terms,
        created_at=record.created_at.isoformat(),
        sequence_no=record.sequence_no,
    )
