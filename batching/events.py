"""Event sinks for batch lifecycle notifications.

The orchestrator emits one event per lifecycle step (see core.types.EventType).
A sink that raises never breaks a batch: the orchestrator logs and moves on.
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from core.jsonl_utils import append_entry
from core.types import utcnow

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """Receiver for batch lifecycle events."""

    @abstractmethod
    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        """Deliver one event.

        Args:
            event_type: Event name such as 'batch:progress'.
            payload: JSON-serializable event body; always carries 'batchId'.
        """


class LoggingEventSink(EventSink):
    """Writes every event to the module logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        details = ", ".join(f"{k}={v}" for k, v in payload.items() if k not in ("batchId", "result"))
        logger.log(self.level, f"[{payload.get('batchId')}] {event_type} {details}")


class InMemoryEventSink(EventSink):
    """Collects events in a list, in emission order.

    Attributes:
        events: (event_type, payload) tuples.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self.events.append((event_type, dict(payload)))

    def of_type(self, event_type: str, batch_id: str | None = None) -> list[dict[str, Any]]:
        """Payloads of one event type, optionally for a single batch."""
        with self._lock:
            return [
                p
                for t, p in self.events
                if t == event_type and (batch_id is None or p.get("batchId") == batch_id)
            ]

    def types(self, batch_id: str | None = None) -> list[str]:
        """Event types in emission order."""
        with self._lock:
            return [t for t, p in self.events if batch_id is None or p.get("batchId") == batch_id]


class JsonlEventSink(EventSink):
    """Appends events to a JSONL file, one line per event."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        entry = {"type": event_type, "timestamp": utcnow().isoformat(), **payload}
        with self._lock:
            append_entry(self.path, entry)


class CompositeEventSink(EventSink):
    """Fans each event out to several sinks.

    A failing sink is logged and does not stop delivery to the others.
    """

    def __init__(self, *sinks: EventSink) -> None:
        self.sinks = list(sinks)

    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event_type, payload)
            except Exception as e:
                logger.warning(f"Event sink {type(sink).__name__} failed on {event_type}: {e}")
