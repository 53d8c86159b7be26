"""Tests for whisker.content.watcher — change detection and the render state machine."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from unittest.mock import patch

import pytest
from watchfiles import Change

from whisker.config import WhiskerConfig
from whisker.content.cache import RenderCache
from whisker.content.renderer import render
from whisker.content.watcher import ChangeEvent, SourceWatcher, to_change_events
from whisker.observability import SignalBroadcast, SourceReadFailed, SourceRendered, StackCollector
from whisker.reactive.notifier import ChangeNotifier


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class _Counter:
    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> None:
        self.count += 1


@pytest.fixture
def published() -> _Counter:
    return _Counter()


@pytest.fixture
def watcher(
    config: WhiskerConfig,
    collector: StackCollector,
    published: _Counter,
) -> SourceWatcher:
    notifier = ChangeNotifier()
    notifier.subscribe(published)
    return SourceWatcher(config, RenderCache(), notifier, collector=collector)


def _cache(watcher: SourceWatcher) -> RenderCache:
    return watcher._cache


# ---------------------------------------------------------------------------
# ChangeEvent / batch conversion
# ---------------------------------------------------------------------------


class TestChangeEvent:
    """Verify ChangeEvent is frozen and well-behaved."""

    def test_frozen(self) -> None:
        event = ChangeEvent(path=Path("/tmp/notes.md"), kind="modified")
        with pytest.raises(AttributeError):
            event.kind = "created"  # type: ignore[misc]

    def test_equality(self) -> None:
        a = ChangeEvent(path=Path("/a.md"), kind="modified")
        b = ChangeEvent(path=Path("/a.md"), kind="modified")
        assert a == b


class TestToChangeEvents:
    """Unit tests for to_change_events()."""

    def test_maps_kinds(self, tmp_path: Path) -> None:
        source = tmp_path / "notes.md"
        for change, kind in (
            (Change.added, "created"),
            (Change.modified, "modified"),
            (Change.deleted, "deleted"),
        ):
            events = to_change_events({(change, str(source))}, source)
            assert events == [ChangeEvent(path=source, kind=kind)]

    def test_ignores_other_files(self, tmp_path: Path) -> None:
        source = tmp_path / "notes.md"
        raw = {(Change.modified, str(tmp_path / "other.md"))}
        assert to_change_events(raw, source) == []


# ---------------------------------------------------------------------------
# Render passes
# ---------------------------------------------------------------------------


class TestLoad:
    """Synchronous startup render."""

    def test_load_renders_file(self, watcher: SourceWatcher, source_file: Path) -> None:
        assert watcher.load() is True
        assert _cache(watcher).current().html == render(source_file.read_text())

    def test_load_does_not_publish(self, watcher: SourceWatcher, published: _Counter) -> None:
        watcher.load()
        assert published.count == 0

    def test_load_missing_file(
        self,
        tmp_path: Path,
        collector: StackCollector,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        config = WhiskerConfig(source=tmp_path / "missing.md")
        watcher = SourceWatcher(config, RenderCache(), ChangeNotifier(), collector=collector)

        assert watcher.load() is False
        assert _cache(watcher).current().html == ""
        assert "Read error: missing.md" in capsys.readouterr().err
        assert len(collector.log.query(event_type=SourceReadFailed)) == 1


class TestNotify:
    """The idle -> rendering -> idle cycle."""

    @pytest.mark.asyncio
    async def test_notify_renders_and_publishes(
        self,
        watcher: SourceWatcher,
        source_file: Path,
        published: _Counter,
        collector: StackCollector,
    ) -> None:
        assert watcher.state == "idle"
        source_file.write_text("# Title 2\n", encoding="utf-8")

        watcher.notify()
        assert watcher.state == "rendering"
        await watcher.wait_idle()

        assert watcher.state == "idle"
        assert _cache(watcher).current().html == render("# Title 2\n")
        assert published.count == 1
        assert len(collector.log.query(event_type=SourceRendered)) == 1
        broadcast = collector.log.query(event_type=SignalBroadcast)
        assert broadcast[0].subscribers == 1
        assert broadcast[0].delivered == 1

    @pytest.mark.asyncio
    async def test_read_failure_keeps_previous_content(
        self,
        watcher: SourceWatcher,
        source_file: Path,
        published: _Counter,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        watcher.load()
        before = _cache(watcher).current()

        source_file.unlink()
        watcher.notify()
        await watcher.wait_idle()

        assert _cache(watcher).current() is before
        assert published.count == 0
        assert watcher.state == "idle"
        assert "Read error" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_undecodable_file_keeps_previous_content(
        self,
        watcher: SourceWatcher,
        source_file: Path,
    ) -> None:
        watcher.load()
        before = _cache(watcher).current()

        source_file.write_bytes(b"\xff\xfe\xfa not utf-8")
        watcher.notify()
        await watcher.wait_idle()

        assert _cache(watcher).current() is before

    @pytest.mark.asyncio
    async def test_recovers_after_file_reappears(
        self,
        watcher: SourceWatcher,
        source_file: Path,
        published: _Counter,
    ) -> None:
        source_file.unlink()
        watcher.notify()
        await watcher.wait_idle()

        source_file.write_text("# Back\n", encoding="utf-8")
        watcher.notify()
        await watcher.wait_idle()

        assert "Back" in _cache(watcher).current().html
        assert published.count == 1

    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_extra_pass(
        self,
        watcher: SourceWatcher,
        source_file: Path,
        published: _Counter,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        gate = threading.Event()
        reads = 0
        original_read = watcher._read

        def gated_read() -> str:
            nonlocal reads
            reads += 1
            gate.wait(timeout=5)
            return original_read()

        monkeypatch.setattr(watcher, "_read", gated_read)

        watcher.notify()
        await asyncio.sleep(0.01)
        assert watcher.state == "rendering"

        # Three more saves land while the first pass is still reading.
        for text in ("# Second\n", "# Third\n", "# Fourth\n"):
            source_file.write_text(text, encoding="utf-8")
            watcher.notify()

        gate.set()
        await watcher.wait_idle()

        assert reads == 2
        assert published.count == 2
        assert "Fourth" in _cache(watcher).current().html
        assert watcher.state == "idle"

    @pytest.mark.asyncio
    async def test_wait_idle_without_pass(self, watcher: SourceWatcher) -> None:
        await watcher.wait_idle()
        assert watcher.state == "idle"


# ---------------------------------------------------------------------------
# Filesystem watching
# ---------------------------------------------------------------------------


class TestRun:
    """run() drives notify() from watchfiles batches."""

    @pytest.mark.asyncio
    async def test_batch_for_source_triggers_render(
        self,
        watcher: SourceWatcher,
        source_file: Path,
        published: _Counter,
    ) -> None:
        async def _fake_awatch(*_args: object, **_kwargs: object):  # noqa: ANN202
            source_file.write_text("# Title 2\n", encoding="utf-8")
            yield {(Change.modified, str(source_file))}

        with patch("watchfiles.awatch", _fake_awatch):
            await watcher.run()
        await watcher.wait_idle()

        assert published.count == 1
        assert "Title 2" in _cache(watcher).current().html

    @pytest.mark.asyncio
    async def test_batch_for_other_file_is_ignored(
        self,
        watcher: SourceWatcher,
        source_file: Path,
        published: _Counter,
    ) -> None:
        other = source_file.parent / "other.md"

        async def _fake_awatch(*_args: object, **_kwargs: object):  # noqa: ANN202
            yield {(Change.modified, str(other))}

        with patch("watchfiles.awatch", _fake_awatch):
            await watcher.run()
        await watcher.wait_idle()

        assert published.count == 0

    @pytest.mark.asyncio
    async def test_watches_parent_directory_with_filter(
        self,
        watcher: SourceWatcher,
        config: WhiskerConfig,
    ) -> None:
        seen: dict[str, object] = {}

        async def _fake_awatch(*args: object, **kwargs: object):  # noqa: ANN202
            seen["args"] = args
            seen.update(kwargs)
            return
            yield  # pragma: no cover

        with patch("watchfiles.awatch", _fake_awatch):
            await watcher.run()

        assert seen["args"] == (config.source.parent,)
        assert seen["recursive"] is False
        assert seen["debounce"] == config.debounce_ms
        watch_filter = seen["watch_filter"]
        assert watch_filter(Change.modified, str(config.source))  # type: ignore[operator]
        assert not watch_filter(Change.modified, str(config.source.parent / "x.md"))  # type: ignore[operator]

    @pytest.mark.asyncio
    async def test_stop_ends_run(self, watcher: SourceWatcher) -> None:
        async def _fake_awatch(*_args: object, stop_event: asyncio.Event, **_kwargs: object):  # noqa: ANN202
            await stop_event.wait()
            return
            yield  # pragma: no cover

        with patch("watchfiles.awatch", _fake_awatch):
            task = asyncio.create_task(watcher.run())
            await asyncio.sleep(0.01)
            assert watcher.is_running

            watcher.stop()
            await asyncio.wait_for(task, timeout=2)

        assert not watcher.is_running

    def test_stop_before_run_is_safe(self, watcher: SourceWatcher) -> None:
        watcher.stop()
        assert not watcher.is_running
