from threading import Lock

from syncledger.core.common.errors import DownstreamUnavailableError
from syncledger.core.notifications import NotificationEvent


class RecordingSink:
    """Keeps delivered events in memory; ``fail_next`` simulates an unreachable receiver."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._events: list[NotificationEvent] = []
        self._failures_remaining = 0

    def deliver(self, event: NotificationEvent) -> None:
        with self._lock:
            if self._failures_remaining > 0:
                self._failures_remaining -= 1
                raise DownstreamUnavailableError("DOWNSTREAM_UNAVAILABLE: simulated outage")
            self._events.append(event.model_copy(deep=True))

    def fail_next(self, count: int = 1) -> None:
        with self._lock:
            self._failures_remaining = max(0, count)

    @property
    def events(self) -> list[NotificationEvent]:
        with self._lock:
            return list(self._events)

    def event_ids(self) -> list[str]:
        return [event.event_id for event in self.events]
