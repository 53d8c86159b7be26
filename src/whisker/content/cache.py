"""Render cache — the single current rendering of the watched file.

The watcher writes, HTTP handlers read.  The stored ``RenderedContent`` is
immutable and replaced with one assignment, so a reader always sees either
the previous rendering or the new one, never a mix.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from whisker.content.renderer import render

# Smallest step that keeps rendered_at strictly increasing.
_TICK = timedelta(microseconds=1)


@dataclass(frozen=True, slots=True)
class RenderedContent:
    """One rendering of the source file.

    Attributes:
        html: Rendered HTML (empty until the first successful render).
        rendered_at: When this rendering was stored (timezone-aware UTC).

    """

    html: str
    rendered_at: datetime

    @property
    def timestamp(self) -> str:
        """``rendered_at`` as ISO-8601 with millisecond precision and ``Z``."""
        return self.rendered_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def to_payload(self) -> dict[str, str]:
        """JSON body served by ``GET /html``."""
        return {"contents": self.html, "ts": self.timestamp}


class RenderCache:
    """Holds the most recent successful rendering.

    A failed read or render never reaches ``update()``, so the previous
    value stays authoritative.
    """

    __slots__ = ("_current",)

    def __init__(self) -> None:
        self._current = RenderedContent(html="", rendered_at=datetime.now(UTC))

    def update(self, source: str) -> RenderedContent:
        """Render *source* and replace the stored content.

        Does not notify anyone; publishing is the watcher's job.
        """
        html = render(source)
        rendered_at = datetime.now(UTC)
        previous = self._current.rendered_at
        if rendered_at <= previous:
            rendered_at = previous + _TICK
        content = RenderedContent(html=html, rendered_at=rendered_at)
        self._current = content
        return content

    def current(self) -> RenderedContent:
        """Return the latest stored rendering."""
        return self._current
