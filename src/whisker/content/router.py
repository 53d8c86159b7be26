"""Preview router — the HTTP surface of the preview server.

Registers four Chirp routes:

- ``/``                 HTML shell with the push-channel URL baked in
- ``/html``             current rendering as ``{"contents", "ts"}`` JSON
- ``/changes``          SSE stream; one ``change`` event per re-render
- ``/__whisker/stats``  event-log summary for debugging

The shell embeds the port the server is actually bound to, so it must be
built after BindManager has finished.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chirp import App, Request

    from whisker.content.cache import RenderCache
    from whisker.observability.collector import StackCollector
    from whisker.reactive.broadcaster import ConnectionRegistry
    from whisker.theme import ViewCache


INDEX_ENDPOINT = "/"
HTML_ENDPOINT = "/html"
CHANGES_ENDPOINT = "/changes"
STATS_ENDPOINT = "/__whisker/stats"

# How many of the latest events the stats endpoint lists.
RECENT_EVENTS = 20

_INDEX_TEMPLATE = "index.html"


def _json_response(payload: dict[str, Any]) -> Any:
    from chirp.http.response import Response

    return Response(
        body=json.dumps(payload),
        status=200,
        content_type="application/json",
    )


class PreviewRouter:
    """Routes preview requests through Chirp's request/response cycle.

    Args:
        app: Chirp App to register routes on (must not yet be frozen).
        cache: Render cache read on every ``/html`` request.
        views: View cache that renders the HTML shell.
        filename: Display name of the watched file.
        port: Effective (bound) port for the push-channel URL.

    """

    def __init__(
        self,
        app: App,
        cache: RenderCache,
        views: ViewCache,
        *,
        filename: str,
        port: int,
    ) -> None:
        self._app = app
        self._cache = cache
        self._views = views
        self._filename = filename
        self._port = port

    @property
    def port(self) -> int:
        """Port embedded in the HTML shell."""
        return self._port

    def render_index(self) -> str:
        """Render the HTML shell for the effective port."""
        return self._views.render(
            _INDEX_TEMPLATE,
            filename=self._filename,
            port=self._port,
            changes_path=CHANGES_ENDPOINT,
            html_path=HTML_ENDPOINT,
        )

    def register_pages(self) -> None:
        """Register ``/`` and ``/html``."""
        from chirp.http.response import Response

        async def index_handler(request: Request) -> Any:
            return Response(
                body=self.render_index(),
                status=200,
                content_type="text/html; charset=utf-8",
            )

        async def html_handler(request: Request) -> Any:
            return _json_response(self._cache.current().to_payload())

        index_handler.__name__ = "whisker_index"
        index_handler.__qualname__ = "PreviewRouter.whisker_index"
        html_handler.__name__ = "whisker_html"
        html_handler.__qualname__ = "PreviewRouter.whisker_html"

        self._app.route(INDEX_ENDPOINT, name="whisker:index")(index_handler)
        self._app.route(HTML_ENDPOINT, name="whisker:html")(html_handler)

    def register_sse_endpoint(self, registry: ConnectionRegistry, *, queue_size: int = 64) -> None:
        """Register the ``/changes`` SSE endpoint.

        Each request gets its own ``ViewerChannel``, registered with the
        registry for the lifetime of the stream.

        Args:
            registry: Connection registry fanning change signals out.
            queue_size: Signals a viewer may lag behind before being dropped.

        """
        from chirp import EventStream, SSEEvent

        from whisker.reactive.broadcaster import ViewerChannel

        async def sse_handler(request: Request) -> Any:
            channel = ViewerChannel.bounded(queue_size)
            registry.register(channel)

            async def generate():  # type: ignore[return]
                try:
                    async for token in registry.client_generator(channel):
                        yield SSEEvent(data=token, event=token)
                finally:
                    channel.close()
                    registry.deregister(channel, reason="disconnected")

            return EventStream(generate())

        sse_handler.__name__ = "whisker_changes"
        sse_handler.__qualname__ = "PreviewRouter.whisker_changes"

        self._app.route(CHANGES_ENDPOINT, name="whisker:changes")(sse_handler)

    def register_stats_endpoint(
        self,
        collector: StackCollector,
        registry: ConnectionRegistry | None = None,
    ) -> None:
        """Register the ``/__whisker/stats`` JSON endpoint.

        Serves the event log summary, the names of the last ``RECENT_EVENTS``
        events (oldest first), the newest read failure and, with a *registry*,
        the open viewer count.
        """
        from whisker.observability.events import SourceReadFailed

        async def stats_handler(request: Request) -> Any:
            payload: dict[str, Any] = {
                "event_log": collector.log.stats(),
                "recent": [type(event).__name__ for event in collector.log.recent(RECENT_EVENTS)],
            }
            failures = collector.log.query(event_type=SourceReadFailed, limit=1)
            payload["last_read_error"] = failures[0].error if failures else None
            if registry is not None:
                payload["connections"] = registry.connection_count
            return _json_response(payload)

        stats_handler.__name__ = "whisker_stats"
        stats_handler.__qualname__ = "PreviewRouter.whisker_stats"

        self._app.route(STATS_ENDPOINT, name="whisker:stats")(stats_handler)
