"""Whisker CLI — whisker SOURCE [--port N].

Entry point for the ``whisker`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        msg = f"expected a positive integer, got {value!r}"
        raise argparse.ArgumentTypeError(msg) from None
    if number < 1:
        msg = f"expected a positive integer, got {number}"
        raise argparse.ArgumentTypeError(msg)
    return number


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the whisker CLI.

    Options default to ``None`` so values from ``whisker.yaml`` are only
    overridden by flags the user actually passed.
    """
    parser = argparse.ArgumentParser(
        prog="whisker",
        description="Live Markdown preview: re-renders a file on save and reloads the browser.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument("source", help="Markdown file to watch")
    parser.add_argument(
        "--port", type=_positive_int, default=None,
        help="First port to try (default 3000)",
    )
    parser.add_argument("--host", default=None, help="Bind address (default 127.0.0.1)")
    parser.add_argument(
        "--max-attempts", type=_positive_int, default=None, dest="max_bind_attempts",
        help="Successive ports to try before giving up (default 10)",
    )
    parser.add_argument(
        "--debounce", type=int, default=None, dest="debounce_ms",
        help="Milliseconds to group filesystem events (default 300)",
    )
    return parser


def _get_version() -> str:
    """Get the package version."""
    from whisker import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from whisker._errors import WhiskerError
    from whisker.app import preview

    try:
        preview(
            args.source,
            host=args.host,
            port=args.port,
            max_bind_attempts=args.max_bind_attempts,
            debounce_ms=args.debounce_ms,
        )
    except WhiskerError as exc:
        print(f"  Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
