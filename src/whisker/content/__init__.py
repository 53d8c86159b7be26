"""Content layer — the watched file as rendered HTML.

Handles Markdown rendering, the render cache, file watching, and the HTTP
routes that serve the rendering to browsers.
"""

from whisker.content.cache import RenderCache, RenderedContent
from whisker.content.renderer import render
from whisker.content.router import PreviewRouter
from whisker.content.watcher import ChangeEvent, SourceWatcher

__all__ = [
    "ChangeEvent",
    "PreviewRouter",
    "RenderCache",
    "RenderedContent",
    "SourceWatcher",
    "render",
]
