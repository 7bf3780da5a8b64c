import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Protocol

from pydantic import BaseModel, Field

from syncledger.core.common.clock import Clock, utc_now
from syncledger.core.common.errors import DownstreamUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_RETRY_BATCH_SIZE = 100

NotificationChannel = Literal["notifications", "payments", "payouts"]
NotificationEventType = Literal[
    "PROPOSAL_DECIDED",
    "PAYMENT_REQUESTED",
    "NEGOTIATION_MESSAGE_POSTED",
    "WITHDRAWAL_DECIDED",
    "WITHDRAWAL_APPROVED",
]
NotificationDeliveryStatus = Literal["pending", "delivered", "dropped"]

_EVENT_CHANNELS: Dict[NotificationEventType, NotificationChannel] = {
    "PROPOSAL_DECIDED": "notifications",
    "PAYMENT_REQUESTED": "payments",
    "NEGOTIATION_MESSAGE_POSTED": "notifications",
    "WITHDRAWAL_DECIDED": "notifications",
    "WITHDRAWAL_APPROVED": "payouts",
}


class NotificationEvent(BaseModel):
    event_id: str = Field(
        description="Deterministic event key; receivers use it to drop duplicates.",
        examples=["PROPOSAL_DECIDED:sp_001:producer:accepted"],
    )
    event_type: NotificationEventType = Field(description="Event type.")
    channel: NotificationChannel = Field(description="Collaborator channel.")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Event body.")
    occurred_at: datetime = Field(description="Commit time of the originating change.")


class NotificationOutboxRecord(BaseModel):
    event: NotificationEvent
    status: NotificationDeliveryStatus = "pending"
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class NotificationSink(Protocol):
    def deliver(self, event: NotificationEvent) -> None:
        """Deliver one event; raise DownstreamUnavailableError when unreachable."""
        ...


class NotificationOutbox(Protocol):
    def enqueue_notification(self, record: NotificationOutboxRecord) -> bool:
        """Insert a pending outbox row; False when the event id is already recorded."""
        ...

    def get_notification(self, *, event_id: str) -> Optional[NotificationOutboxRecord]: ...

    def list_pending_notifications(self, *, limit: int) -> list[NotificationOutboxRecord]: ...

    def claim_notification_attempt(
        self, *, event_id: str, expected_attempts: int, claimed_at: datetime
    ) -> bool:
        """Count one attempt while the row is pending with ``expected_attempts`` attempts.

        Returns False when another worker already claimed or settled the event.
        """
        ...

    def record_notification_outcome(
        self,
        *,
        event_id: str,
        status: NotificationDeliveryStatus,
        last_error: Optional[str],
        recorded_at: datetime,
    ) -> None: ...


class NotificationRetryResponse(BaseModel):
    delivered_event_ids: List[str] = Field(description="Events delivered on this pass.")
    dropped_event_ids: List[str] = Field(description="Events that exhausted their attempts.")
    pending_event_ids: List[str] = Field(description="Events still queued for retry.")


def build_event(
    *,
    event_type: NotificationEventType,
    key_parts: List[str],
    payload: Dict[str, Any],
    occurred_at: datetime,
) -> NotificationEvent:
    return NotificationEvent(
        event_id=":".join([event_type, *key_parts]),
        event_type=event_type,
        channel=_EVENT_CHANNELS[event_type],
        payload=payload,
        occurred_at=occurred_at,
    )


class NotificationDispatcher:
    """Fire-and-forget delivery of committed state changes through a stored outbox.

    Each event is written to the outbox right after its state change commits and
    before the first attempt, so any instance can retry it after a failure or a
    restart. Delivery failures are logged; they never propagate to the caller.
    """

    def __init__(
        self,
        *,
        outbox: NotificationOutbox,
        sinks: Mapping[NotificationChannel, NotificationSink],
        max_attempts: int = 3,
        retry_batch_size: int = DEFAULT_RETRY_BATCH_SIZE,
        clock: Clock = utc_now,
    ) -> None:
        self._outbox = outbox
        self._sinks = dict(sinks)
        self._max_attempts = max(1, max_attempts)
        self._retry_batch_size = max(1, retry_batch_size)
        self._clock = clock

    def dispatch(self, event: NotificationEvent) -> bool:
        now = self._clock()
        record = NotificationOutboxRecord(event=event, created_at=now, updated_at=now)
        if not self._outbox.enqueue_notification(record):
            logger.debug("Duplicate notification ignored. event_id=%s", event.event_id)
            return False
        return self._attempt(record) == "delivered"

    def retry_pending(self) -> NotificationRetryResponse:
        delivered: List[str] = []
        dropped: List[str] = []
        for record in self._outbox.list_pending_notifications(limit=self._retry_batch_size):
            outcome = self._attempt(record)
            if outcome == "delivered":
                delivered.append(record.event.event_id)
            elif outcome == "dropped":
                dropped.append(record.event.event_id)
        return NotificationRetryResponse(
            delivered_event_ids=delivered,
            dropped_event_ids=dropped,
            pending_event_ids=self.pending_event_ids(),
        )

    def pending_event_ids(self) -> List[str]:
        return [
            record.event.event_id
            for record in self._outbox.list_pending_notifications(limit=self._retry_batch_size)
        ]

    def _attempt(self, record: NotificationOutboxRecord) -> Optional[NotificationDeliveryStatus]:
        event = record.event
        claimed = self._outbox.claim_notification_attempt(
            event_id=event.event_id,
            expected_attempts=record.attempts,
            claimed_at=self._clock(),
        )
        if not claimed:
            logger.info("Notification attempt claimed elsewhere. event_id=%s", event.event_id)
            return None
        attempts = record.attempts + 1
        sink = self._sinks.get(event.channel)
        if sink is None:
            logger.warning(
                "No sink configured for channel. channel=%s event_id=%s",
                event.channel,
                event.event_id,
            )
            return self._record_failure(event.event_id, attempts, reason="NO_SINK_CONFIGURED")
        try:
            sink.deliver(event)
        except DownstreamUnavailableError as exc:
            return self._record_failure(event.event_id, attempts, reason=str(exc))
        self._outbox.record_notification_outcome(
            event_id=event.event_id,
            status="delivered",
            last_error=None,
            recorded_at=self._clock(),
        )
        logger.info(
            "Notification delivered. event_id=%s channel=%s", event.event_id, event.channel
        )
        return "delivered"

    def _record_failure(
        self, event_id: str, attempts: int, *, reason: str
    ) -> NotificationDeliveryStatus:
        status: NotificationDeliveryStatus = "pending"
        if attempts >= self._max_attempts:
            status = "dropped"
            logger.error(
                "Notification dropped after %s attempts. event_id=%s reason=%s",
                attempts,
                event_id,
                reason,
            )
        else:
            logger.warning(
                "Downstream unavailable, notification queued. event_id=%s attempt=%s reason=%s",
                event_id,
                attempts,
                reason,
            )
        self._outbox.record_notification_outcome(
            event_id=event_id,
            status=status,
            last_error=reason,
            recorded_at=self._clock(),
        )
        return status
