"""Event model for whisker's observability log.

Defines event types for the render pipeline, the viewer fan-out, and the
listen/bind procedure. Pounce lifecycle events are stored as-is from
``pounce.lifecycle``.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

"""

import time
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Render pipeline events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceRendered:
    """The watched file was read and rendered into the cache.

    Attributes:
        path: Absolute path to the source file.
        source_bytes: Size of the Markdown text that was read.
        html_bytes: Size of the rendered HTML.
        render_ms: Time spent reading and rendering in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    source_bytes: int
    html_bytes: int
    render_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class SourceReadFailed:
    """The watched file could not be read or rendered; cache left unchanged."""

    path: str
    error: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Fan-out events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SignalBroadcast:
    """A change signal was published to subscribers.

    Attributes:
        path: Source file whose render triggered the signal.
        subscribers: Subscribers registered when the signal fired.
        delivered: Subscribers whose handler completed.
        duration_ms: Time from change detection to broadcast completion.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    subscribers: int
    delivered: int
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ChannelDropped:
    """A viewer channel was removed from the registry."""

    client_id: str
    reason: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Listen/bind events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BindAttempted:
    """One attempt to claim a port for the preview server.

    Attributes:
        host: Bind address.
        port: Port that was tried.
        attempt: 1-based attempt number.
        succeeded: Whether the port was claimed.
        error: Failure reason, empty on success.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    host: str
    port: int
    attempt: int
    succeeded: bool
    error: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type StackEvent = (
    SourceRendered
    | SourceReadFailed
    | SignalBroadcast
    | ChannelDropped
    | BindAttempted
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
