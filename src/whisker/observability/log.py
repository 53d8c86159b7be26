"""Event log — bounded history of what the preview server did.

Keeps the last ``max_events`` records (renders, read failures, broadcasts,
dropped viewers, bind attempts, and Pounce connection events) for the
``/__whisker/stats`` endpoint and for tests.

Pounce may record lifecycle events from its worker threads while the watcher
records from the event loop, so every access goes through one
``threading.Lock``.

"""

import threading
from collections import Counter, deque
from typing import Any

from whisker.observability.events import StackEvent


def _matches(
    event: object,
    event_type: type | None,
    since_ns: int,
    path: str | None,
) -> bool:
    if event_type is not None and not isinstance(event, event_type):
        return False
    if since_ns and getattr(event, "timestamp_ns", 0) < since_ns:
        return False
    # Only pipeline events carry a path; connection and bind events never match.
    return path is None or path in (getattr(event, "path", None) or "")


class EventLog:
    """Ring buffer of events with simple filtering.

    Args:
        max_events: How many events to keep; older ones fall off the front.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 10_000) -> None:
        self._max_events = max_events
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _snapshot(self) -> list[StackEvent]:
        with self._lock:
            return list(self._events)

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        path: str | None = None,
        limit: int = 100,
    ) -> list[StackEvent]:
        """Return matching events, newest first.

        Args:
            event_type: Keep only instances of this class.
            since_ns: Keep only events stamped at or after this time.
            path: Keep only events whose ``path`` contains this substring.
            limit: Stop after this many matches.

        """
        found: list[StackEvent] = []
        for event in reversed(self._snapshot()):
            if len(found) == limit:
                break
            if _matches(event, event_type, since_ns, path):
                found.append(event)
        return found

    def recent(self, n: int = 20) -> list[StackEvent]:
        """The last *n* events in the order they were recorded."""
        return self._snapshot()[-n:]

    def clear(self) -> int:
        """Drop every stored event; returns how many there were."""
        with self._lock:
            dropped = len(self._events)
            self._events.clear()
        return dropped

    def stats(self) -> dict[str, Any]:
        """Summary served by ``/__whisker/stats``."""
        events = self._snapshot()
        return {
            "total": len(events),
            "max_events": self._max_events,
            "by_type": dict(Counter(type(event).__name__ for event in events)),
        }
