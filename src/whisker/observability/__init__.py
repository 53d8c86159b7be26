"""Observability — structured records of what the preview server did.

Aggregates events from:
- **Pounce**: Connection lifecycle (open, request, response, disconnect, close)
- **Whisker**: Renders, read failures, change broadcasts, dropped viewers,
  and every listen attempt made while binding

All events are frozen dataclasses with nanosecond timestamps.

Quick Start:
    >>> from whisker.observability import StackCollector, EventLog
    >>> log = EventLog()
    >>> collector = StackCollector(log)
    >>> collector.record_bind_attempt("127.0.0.1", 3000, 1, succeeded=True)
    >>> len(log)
    1

"""

from whisker.observability.collector import StackCollector
from whisker.observability.events import (
    BindAttempted,
    ChannelDropped,
    SignalBroadcast,
    SourceReadFailed,
    SourceRendered,
    StackEvent,
    now_ns,
)
from whisker.observability.log import EventLog

__all__ = [
    "BindAttempted",
    "ChannelDropped",
    "EventLog",
    "SignalBroadcast",
    "SourceReadFailed",
    "SourceRendered",
    "StackCollector",
    "StackEvent",
    "now_ns",
]
