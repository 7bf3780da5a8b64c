import logging
from typing import Optional

import httpx

from syncledger.core.common.errors import DownstreamUnavailableError
from syncledger.core.notifications import NotificationEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class HttpWebhookSink:
    """POST each event as JSON to a collaborator endpoint.

    The event id travels as ``Idempotency-Key`` so a receiver can drop redeliveries
    from the retry queue.
    """

    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not url:
            raise RuntimeError("NOTIFICATION_WEBHOOK_URL_REQUIRED")
        self._url = url
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def deliver(self, event: NotificationEvent) -> None:
        try:
            response = self._client.post(
                self._url,
                json=event.model_dump(mode="json"),
                headers={
                    "Idempotency-Key": event.event_id,
                    "X-Event-Type": event.event_type,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DownstreamUnavailableError(
                f"DOWNSTREAM_UNAVAILABLE: {event.channel}: {exc.__class__.__name__}"
            ) from exc
        logger.debug(
            "Webhook accepted event. channel=%s event_id=%s status=%s",
            event.channel,
            event.event_id,
            response.status_code,
        )

    def close(self) -> None:
        self._client.close()
