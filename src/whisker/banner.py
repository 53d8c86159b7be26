"""Startup banner — status output for the preview server.

Prints the watched file, the render size and the URL to stderr.  Detects
``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from whisker.binding import BindResult
    from whisker.config import WhiskerConfig


# ---------------------------------------------------------------------------
# ANSI helpers: respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_CYAN = "\033[36m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_YELLOW = "\033[33m" if _COLOR else ""


def _clickable_url(url: str) -> str:
    """Wrap *url* in an OSC 8 hyperlink escape if the terminal supports it."""
    if not _COLOR:
        return url
    return f"\033]8;;{url}\033\\{_BOLD}{_CYAN}{url}{_RESET}\033]8;;\033\\"


def _format_size(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    return f"{n / 1024:.1f} KB"


def print_banner(
    config: WhiskerConfig,
    bound: BindResult,
    *,
    html_bytes: int = 0,
    load_ms: float = 0.0,
) -> None:
    """Print the Whisker startup banner to stderr.

    Args:
        config: Resolved WhiskerConfig.
        bound: Result of BindManager; its port is the one shown.
        html_bytes: Size of the initial rendering.
        load_ms: Time spent on the initial render and bind in milliseconds.

    """
    from whisker import __version__

    lines: list[str] = [
        "",
        f"  {_BOLD}Whisker{_RESET} {_DIM}v{__version__}{_RESET}  {_GREEN}[live]{_RESET}",
        f"  {_DIM}{'─' * 43}{_RESET}",
    ]

    timing = f" {_DIM}in {load_ms:.0f}ms{_RESET}" if load_ms > 0 else ""
    lines.append(f"  {_DIM}├─{_RESET} {config.display_name}: {_format_size(html_bytes)} rendered{timing}")
    lines.append(f"  {_DIM}├─{_RESET} source: {_DIM}{config.source}{_RESET}")
    lines.append(f"  {_DIM}└─{_RESET} {_GREEN}live{_RESET} — SSE on {_DIM}/changes{_RESET}")

    lines.append("")
    lines.append(f"  {_clickable_url(bound.url)}")

    if bound.rebound:
        lines.append(
            f"  {_YELLOW}!{_RESET} port {bound.requested_port} was unavailable, "
            f"using {bound.port}"
        )

    lines.append("")
    lines.append(f"  {_DIM}Watching for changes...{_RESET}")
    lines.append("")

    print("\n".join(lines), file=sys.stderr)
