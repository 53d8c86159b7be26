"""Whisker — live Markdown preview for a single file.

Watches one Markdown file, re-renders it on every save, and tells every open
browser tab to pull the fresh HTML over a Server-Sent Events channel.

Quick start::

    import whisker

    whisker.preview("notes.md", port=3000)

Or from the command line::

    whisker notes.md --port 3000

Built on the Bengal ecosystem:

    pounce      ASGI server       (serves the app)
    chirp       Web framework     (routes, SSE streams)
    kida        Template engine   (renders the preview shell)
    patitas     Markdown parser   (renders the watched file)

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0-dev"
__all__ = [
    "WhiskerConfig",
    "__version__",
    "preview",
    "render",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import whisker`` fast: chirp and pounce are only imported when
    the server is actually started.
    """
    if name == "WhiskerConfig":
        from whisker.config import WhiskerConfig

        return WhiskerConfig

    if name == "preview":
        from whisker.app import preview

        return preview

    if name == "render":
        from whisker.content.renderer import render

        return render

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
