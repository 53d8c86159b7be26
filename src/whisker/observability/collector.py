"""Stack collector — one entry point for every event whisker records.

Implements Pounce's ``LifecycleCollector`` protocol so it can be passed
directly to the server, and provides typed ``record_*`` helpers for the
render pipeline, the viewer fan-out, and BindManager.

"""

from __future__ import annotations

from typing import Any

from whisker.observability.events import (
    BindAttempted,
    ChannelDropped,
    SignalBroadcast,
    SourceReadFailed,
    SourceRendered,
    now_ns,
)
from whisker.observability.log import EventLog


class StackCollector:
    """Unified event collector for the preview server.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Pounce LifecycleCollector protocol -----

    def record(self, event: Any) -> None:
        """Record a Pounce lifecycle event (already a frozen dataclass)."""
        self._log.append(event)

    # ----- Render pipeline -----

    def record_render(
        self,
        path: str,
        *,
        source_bytes: int = 0,
        html_bytes: int = 0,
        render_ms: float = 0.0,
    ) -> None:
        self._log.append(
            SourceRendered(
                path=path,
                source_bytes=source_bytes,
                html_bytes=html_bytes,
                render_ms=render_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_read_error(self, path: str, error: str) -> None:
        self._log.append(SourceReadFailed(path=path, error=error, timestamp_ns=now_ns()))

    # ----- Fan-out -----

    def record_broadcast(
        self,
        path: str,
        *,
        subscribers: int = 0,
        delivered: int = 0,
        duration_ms: float = 0.0,
    ) -> None:
        self._log.append(
            SignalBroadcast(
                path=path,
                subscribers=subscribers,
                delivered=delivered,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_channel_dropped(self, client_id: str, reason: str) -> None:
        self._log.append(
            ChannelDropped(client_id=client_id, reason=reason, timestamp_ns=now_ns())
        )

    # ----- Listen/bind -----

    def record_bind_attempt(
        self,
        host: str,
        port: int,
        attempt: int,
        *,
        succeeded: bool,
        error: str = "",
    ) -> None:
        self._log.append(
            BindAttempted(
                host=host,
                port=port,
                attempt=attempt,
                succeeded=succeeded,
                error=error,
                timestamp_ns=now_ns(),
            )
        )
