"""Shared test fixtures for whisker."""

from __future__ import annotations

from pathlib import Path

import pytest

from whisker.config import WhiskerConfig
from whisker.observability import EventLog, StackCollector


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    """A Markdown file with a heading and a tagged paragraph."""
    path = tmp_path / "notes.md"
    path.write_text("# Title\n\n{.lead} Intro text\n", encoding="utf-8")
    return path


@pytest.fixture
def config(source_file: Path) -> WhiskerConfig:
    """A WhiskerConfig watching ``source_file`` with a short debounce."""
    return WhiskerConfig(source=source_file, debounce_ms=50)


@pytest.fixture
def collector() -> StackCollector:
    return StackCollector(EventLog())


class RecordingChannel:
    """Stand-in viewer channel that records every send.

    ``fail=True`` makes every send raise, like a socket whose peer is gone.
    """

    def __init__(self, client_id: str, *, fail: bool = False) -> None:
        self.client_id = client_id
        self.fail = fail
        self.attempts = 0
        self.received: list[str] = []
        self.closed = False

    def send(self, token: str) -> None:
        self.attempts += 1
        if self.fail:
            msg = f"{self.client_id} is gone"
            raise BrokenPipeError(msg)
        self.received.append(token)

    def close(self) -> None:
        self.closed = True
