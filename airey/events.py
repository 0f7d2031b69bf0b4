"""Observable bridge events and the default EventSink.

The core emits exactly two event types; monitoring and indexers consume them
through ``EventBroadcaster`` (recent-event buffer + subscriber queues).
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Protocol, Union

from airey.config import EVENT_BUFFER_SIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestIssued:
    request_id: str
    vault: str
    issued_at: float

    event_type = "request_issued"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, **asdict(self)}


@dataclass(frozen=True)
class RecommendationUpdated:
    vault: str
    strategy: str
    confidence: int
    expected_apy: float
    timestamp: float

    event_type = "recommendation_updated"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, **asdict(self)}


BridgeEvent = Union[RequestIssued, RecommendationUpdated]


class EventSink(Protocol):
    def emit(self, event: BridgeEvent) -> None: ...


class EventBroadcaster:
    """EventSink that logs, buffers and fans out every event.

    Subscribers get a bounded deque; a slow reader only loses its own
    oldest events.
    """

    def __init__(self, buffer_size: int = EVENT_BUFFER_SIZE) -> None:
        self._recent: deque[dict[str, Any]] = deque(maxlen=buffer_size)
        self._subscribers: list[deque] = []
        self._lock = threading.Lock()

    def emit(self, event: BridgeEvent) -> None:
        payload = event.to_dict()
        logger.info("bridge event %s", payload["type"], extra={"event_payload": payload})
        with self._lock:
            self._recent.append(payload)
            subscribers = list(self._subscribers)
        for q in subscribers:
            q.append(payload)

    def subscribe(self, maxlen: int = 100) -> deque:
        q: deque = deque(maxlen=maxlen)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: deque) -> None:
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)

    def recent(self, limit: int = 50, event_type: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            events = list(self._recent)
        if event_type:
            events = [e for e in events if e["type"] == event_type]
        return events[-limit:]

    def clear(self) -> None:
        with self._lock:
            self._recent.clear()
