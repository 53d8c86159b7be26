"""Source watcher — re-renders the watched file on every change.

Uses watchfiles' ``awatch`` on the file's parent directory, filtered to the
one path, so editors that save by writing a new file and renaming it over
the old one are still picked up.

State machine::

    idle --notify()--> rendering --(pass done, nothing pending)--> idle
                          |  ^
                  notify()|  |(pending set during the pass)
                          v  |
                       pending

Filesystem events that arrive while a pass is running are not dropped: they
set a pending flag and exactly one more pass runs afterwards, so a burst of
saves collapses into at most two renders and the last one sees the latest
content.
"""

from __future__ import annotations

import asyncio
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from watchfiles import Change

from whisker._errors import SourceReadError

if TYPE_CHECKING:
    from whisker._types import WatcherState
    from whisker.config import WhiskerConfig
    from whisker.content.cache import RenderCache
    from whisker.observability.collector import StackCollector
    from whisker.reactive.notifier import ChangeNotifier


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A filesystem change to the watched file.

    Attributes:
        path: Absolute path to the changed file.
        kind: Type of filesystem change.

    """

    path: Path
    kind: Literal["created", "modified", "deleted"]


# Mapping from watchfiles Change enum to our kind literals.
_CHANGE_KIND_MAP: dict[Change, Literal["created", "modified", "deleted"]] = {
    Change.added: "created",
    Change.modified: "modified",
    Change.deleted: "deleted",
}


def to_change_events(raw_changes: set[tuple[Change, str]], source: Path) -> list[ChangeEvent]:
    """Convert one watchfiles batch into events for *source*, ignoring other files."""
    events: list[ChangeEvent] = []
    for change_type, path_str in raw_changes:
        path = Path(path_str)
        if path != source:
            continue
        events.append(ChangeEvent(path=path, kind=_CHANGE_KIND_MAP.get(change_type, "modified")))
    return events


class SourceWatcher:
    """Watches the source file and keeps the RenderCache current.

    Each completed pass reads the file, updates the cache, and publishes one
    change signal.  A failed read leaves the cache untouched, logs the error,
    and publishes nothing.

    Args:
        config: Whisker configuration (source path, debounce).
        cache: Render cache to update.
        notifier: Hub to publish to after each successful render.
        collector: Optional collector for render and broadcast events.

    """

    def __init__(
        self,
        config: WhiskerConfig,
        cache: RenderCache,
        notifier: ChangeNotifier,
        collector: StackCollector | None = None,
    ) -> None:
        self._config = config
        self._source = config.source
        self._cache = cache
        self._notifier = notifier
        self._collector = collector
        self._state: WatcherState = "idle"
        self._pending = False
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._running = False

    @property
    def state(self) -> WatcherState:
        """``"idle"`` or ``"rendering"``."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Whether ``run()`` is currently watching the filesystem."""
        return self._running

    # ----- Render passes -----

    def load(self) -> bool:
        """Render the file synchronously (startup).  Returns True on success."""
        try:
            source = self._read()
        except SourceReadError as exc:
            self._report_failure(exc)
            return False
        return self._apply(source, time.perf_counter())

    def notify(self) -> None:
        """Record that the file changed.

        Starts a render pass when idle; otherwise marks one more pass as
        pending for the running task.
        """
        if self._state == "rendering":
            self._pending = True
            return
        self._state = "rendering"
        self._task = asyncio.get_running_loop().create_task(self._render_passes())

    async def wait_idle(self) -> None:
        """Wait until the in-flight render pass (and any pending one) finishes."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def _render_passes(self) -> None:
        try:
            while True:
                self._pending = False
                await self._render_once()
                if not self._pending:
                    break
        finally:
            self._state = "idle"

    async def _render_once(self) -> None:
        t0 = time.perf_counter()
        try:
            source = await asyncio.to_thread(self._read)
        except SourceReadError as exc:
            self._report_failure(exc)
            return
        if not self._apply(source, t0):
            return

        subscribers = self._notifier.subscriber_count
        delivered = self._notifier.publish()
        if self._collector is not None:
            self._collector.record_broadcast(
                str(self._source),
                subscribers=subscribers,
                delivered=delivered,
                duration_ms=(time.perf_counter() - t0) * 1000,
            )

    def _read(self) -> str:
        try:
            return self._source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceReadError(str(exc)) from exc

    def _apply(self, source: str, t0: float) -> bool:
        try:
            content = self._cache.update(source)
        except Exception as exc:
            self._report_failure(SourceReadError(f"render failed: {exc}"))
            return False
        if self._collector is not None:
            self._collector.record_render(
                str(self._source),
                source_bytes=len(source.encode("utf-8")),
                html_bytes=len(content.html.encode("utf-8")),
                render_ms=(time.perf_counter() - t0) * 1000,
            )
        return True

    def _report_failure(self, exc: SourceReadError) -> None:
        print(f"  Read error: {self._source.name}: {exc}", file=sys.stderr)
        if self._collector is not None:
            self._collector.record_read_error(str(self._source), str(exc))

    # ----- Filesystem watching -----

    def _matches(self, change: Change, path: str) -> bool:
        return Path(path) == self._source

    async def run(self) -> None:
        """Watch the source file until ``stop()`` is called or the task is cancelled."""
        from watchfiles import awatch

        self._stop_event = asyncio.Event()
        self._running = True
        try:
            async for raw_changes in awatch(
                self._config.watch_dir,
                watch_filter=self._matches,
                stop_event=self._stop_event,
                debounce=self._config.debounce_ms,
                step=50,
                recursive=False,
            ):
                events = to_change_events(raw_changes, self._source)
                if not events:
                    continue
                kinds = ", ".join(sorted({e.kind for e in events}))
                print(f"  Changed: {self._source.name} ({kinds})", file=sys.stderr)
                self.notify()
        finally:
            self._running = False

    def stop(self) -> None:
        """Signal ``run()`` to return after the current batch."""
        if self._stop_event is not None:
            self._stop_event.set()
