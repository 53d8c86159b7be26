"""Whisker application — wires the preview pipeline into a Chirp app.

``preview()`` is the public entry point.  Startup order matters:

1. Render the file once so ``/html`` has content before the first request.
2. Claim a port with BindManager.
3. Build the Chirp app *with the bound port*, so the HTML shell points the
   browser's push channel at the port actually in use.
4. Run on Pounce; the file watcher starts and stops with the app.
"""

import asyncio
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from whisker.binding import BindManager, BindResult
from whisker.config import WhiskerConfig
from whisker.config_loader import load_config
from whisker.content.cache import RenderCache
from whisker.content.watcher import SourceWatcher
from whisker.observability import EventLog, StackCollector
from whisker.reactive.broadcaster import ConnectionRegistry
from whisker.reactive.notifier import ChangeNotifier

if TYPE_CHECKING:
    from chirp import App

    from whisker.content.router import PreviewRouter


@dataclass(slots=True)
class PreviewPipeline:
    """The live-render-and-notify core, independent of HTTP.

    Attributes:
        config: Resolved configuration.
        cache: Current rendering of the source file.
        notifier: "content changed" hub.
        registry: Open viewer channels.
        watcher: Filesystem watcher driving re-renders.
        collector: Event collector shared by every component.

    """

    config: WhiskerConfig
    cache: RenderCache
    notifier: ChangeNotifier
    registry: ConnectionRegistry
    watcher: SourceWatcher
    collector: StackCollector


def build_pipeline(config: WhiskerConfig, collector: StackCollector | None = None) -> PreviewPipeline:
    """Create the render cache, notifier, registry and watcher for *config*."""
    collector = collector if collector is not None else StackCollector(EventLog())
    cache = RenderCache()
    notifier = ChangeNotifier()
    registry = ConnectionRegistry(notifier, collector=collector)
    watcher = SourceWatcher(config, cache, notifier, collector=collector)
    return PreviewPipeline(
        config=config,
        cache=cache,
        notifier=notifier,
        registry=registry,
        watcher=watcher,
        collector=collector,
    )


def _create_chirp_app(config: WhiskerConfig, port: int, *, debug: bool = False) -> App:
    """Create a Chirp App for the preview server on the bound *port*."""
    from chirp import App, AppConfig

    from whisker.theme import get_template_dirs

    app_config = AppConfig(
        template_dir=get_template_dirs(config)[0],
        debug=debug,
        host=config.host,
        port=port,
    )
    return App(config=app_config)


def _wire_preview_routes(
    app: App,
    pipeline: PreviewPipeline,
    port: int,
) -> PreviewRouter:
    """Register ``/``, ``/html``, ``/changes`` and the stats endpoint on *app*."""
    from whisker.content.router import PreviewRouter
    from whisker.theme import ViewCache, get_template_dirs

    config = pipeline.config
    views = ViewCache(get_template_dirs(config))
    router = PreviewRouter(
        app,
        pipeline.cache,
        views,
        filename=config.display_name,
        port=port,
    )
    router.register_pages()
    router.register_sse_endpoint(pipeline.registry, queue_size=config.queue_size)
    router.register_stats_endpoint(pipeline.collector, pipeline.registry)
    return router


def _mount_static_files(app: App, config: WhiskerConfig) -> None:
    """Mount static file middleware with theme fallback.

    User assets first, then the bundled theme, all under ``/static``.
    """
    from chirp.middleware import StaticFiles

    from whisker.theme import get_asset_dirs

    for asset_dir in get_asset_dirs(config):
        if asset_dir.is_dir():
            app.add_middleware(StaticFiles(directory=asset_dir, prefix="/static"))


def _start_watcher(watcher: SourceWatcher, app: App) -> None:
    """Tie the watcher to the app lifecycle via Chirp hooks.

    Flow:
        on_startup  -> spawn ``watcher.run()`` (runs ``awatch`` internally)
        file change -> watcher.notify() -> render pass -> publish
        on_shutdown -> stop ``awatch`` and cancel the task

    """
    _task: asyncio.Task[None] | None = None

    @app.on_startup
    async def _start_source_watcher() -> None:
        nonlocal _task

        async def _watch() -> None:
            try:
                await watcher.run()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                print(f"  Watcher error: {exc}", file=sys.stderr)

        _task = asyncio.create_task(_watch())

    @app.on_shutdown
    async def _stop_source_watcher() -> None:
        watcher.stop()
        if _task is not None and not _task.done():
            _task.cancel()


def create_app(pipeline: PreviewPipeline, bound: BindResult, *, debug: bool = True) -> App:
    """Build the Chirp app for an already-bound port."""
    app = _create_chirp_app(pipeline.config, bound.port, debug=debug)
    _wire_preview_routes(app, pipeline, bound.port)
    _mount_static_files(app, pipeline.config)
    _start_watcher(pipeline.watcher, app)
    return app


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def preview(source: str | Path, **kwargs: object) -> None:
    """Serve a live preview of the Markdown file at *source*.

    Args:
        source: Path to the Markdown file to watch.
        **kwargs: Override WhiskerConfig fields.

    Raises:
        ConfigError: If the configuration is invalid.
        BindError: If no port could be claimed within ``max_bind_attempts``.

    """
    from whisker.banner import print_banner

    config = load_config(Path(source), **kwargs)
    t0 = time.perf_counter()

    pipeline = build_pipeline(config)
    pipeline.watcher.load()

    binder = BindManager(
        config.host,
        config.port,
        max_attempts=config.max_bind_attempts,
        collector=pipeline.collector,
    )
    bound = binder.bind()

    app = create_app(pipeline, bound)

    load_ms = (time.perf_counter() - t0) * 1000
    print_banner(config, bound, html_bytes=len(pipeline.cache.current().html), load_ms=load_ms)

    # Pass the StackCollector as Pounce's lifecycle_collector so
    # connection events flow into the same EventLog as pipeline events.
    app.run(host=bound.host, port=bound.port, lifecycle_collector=pipeline.collector)
