"""Tests for the watchfiles watcher adapter."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from sitegraph.watcher.watchfiles_adapter import WatchfilesWatcher, _is_editor_noise


class TestIsEditorNoise:
    def test_markdown_file(self) -> None:
        assert _is_editor_noise(Path("post.md")) is False

    def test_image(self) -> None:
        assert _is_editor_noise(Path("diagram.png")) is False

    def test_backup_file(self) -> None:
        assert _is_editor_noise(Path("post.md~")) is True

    def test_vim_swap(self) -> None:
        assert _is_editor_noise(Path(".post.md.swp")) is True

    def test_emacs_lock(self) -> None:
        assert _is_editor_noise(Path(".#post.md")) is True


class TestWatchfilesWatcher:
    def test_implements_protocol(self) -> None:
        from sitegraph.core.ports.watcher import FileWatcherPort

        callback = AsyncMock()
        watcher: FileWatcherPort = WatchfilesWatcher("/tmp", callback)
        assert hasattr(watcher, "start")
        assert hasattr(watcher, "stop")

    @pytest.mark.asyncio
    async def test_start_creates_task(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback)

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _empty_async_iter()
            await watcher.start()
            assert watcher._task is not None
            await watcher.stop()
            assert watcher._task is None

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback)
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_double_start_is_noop(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback)

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _empty_async_iter()
            await watcher.start()
            task1 = watcher._task
            await watcher.start()
            assert watcher._task is task1
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_callback_receives_batch_after_debounce(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback, debounce=0.01)

        changes = {(1, "/tmp/post.md"), (2, "/tmp/post.md~"), (1, "/tmp/logo.png")}

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter(changes)
            await watcher.start()
            await asyncio.sleep(0.1)
            await watcher.stop()

        callback.assert_called_once()
        paths = callback.call_args[0][0]
        assert paths == {Path("/tmp/post.md"), Path("/tmp/logo.png")}

    @pytest.mark.asyncio
    async def test_changes_are_coalesced(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback, debounce=0.05)

        batches = [{(2, "/tmp/a.md")}, {(2, "/tmp/b.md")}, {(2, "/tmp/a.md")}]

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _many_change_iter(batches)
            await watcher.start()
            await asyncio.sleep(0.3)
            await watcher.stop()

        callback.assert_called_once_with({Path("/tmp/a.md"), Path("/tmp/b.md")})

    @pytest.mark.asyncio
    async def test_callback_not_called_for_noise_only(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback, debounce=0.01)

        changes = {(1, "/tmp/post.md~"), (2, "/tmp/.#post.md")}

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter(changes)
            await watcher.start()
            await asyncio.sleep(0.05)
            await watcher.stop()

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_watching(self) -> None:
        callback = AsyncMock(side_effect=RuntimeError("rebuild failed"))
        watcher = WatchfilesWatcher("/tmp", callback, debounce=0.01)

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter({(2, "/tmp/post.md")})
            await watcher.start()
            await asyncio.sleep(0.05)
            assert watcher._task is not None
            assert not watcher._task.done()
            await watcher.stop()

        callback.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_drops_pending_changes(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback, debounce=10)

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter({(2, "/tmp/post.md")})
            await watcher.start()
            await asyncio.sleep(0.02)
            await watcher.stop()

        callback.assert_not_called()
        assert watcher._pending == set()

    @pytest.mark.asyncio
    async def test_stop_cancels_every_running_flush(self) -> None:
        started: list[set[Path]] = []
        cancelled: list[set[Path]] = []

        async def _slow_rebuild(paths: set[Path]) -> None:
            started.append(paths)
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.append(paths)
                raise

        watcher = WatchfilesWatcher("/tmp", _slow_rebuild, debounce=0.01)
        batches = [{(2, "/tmp/a.md")}, {(2, "/tmp/b.md")}]

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _many_change_iter(batches, gap=0.1)
            await watcher.start()
            await asyncio.sleep(0.3)
            assert len(watcher._flush_tasks) == 2
            await watcher.stop()

        assert started == [{Path("/tmp/a.md")}, {Path("/tmp/b.md")}]
        assert cancelled == started
        assert watcher._flush_tasks == set()

    @pytest.mark.asyncio
    async def test_finished_flushes_are_released(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback, debounce=0.01)

        with patch("sitegraph.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter({(2, "/tmp/post.md")})
            await watcher.start()
            await asyncio.sleep(0.1)
            assert watcher._flush_tasks == set()
            await watcher.stop()

        callback.assert_called_once()


async def _empty_async_iter() -> AsyncIterator[Any]:
    """Async iterator that never yields, just blocks until cancelled."""
    try:
        await asyncio.sleep(3600)
    except asyncio.CancelledError:
        return
    yield  # make it an async generator  # pragma: no cover


async def _single_change_iter(changes: set[tuple[int, str]]) -> AsyncIterator[set[tuple[int, str]]]:
    """Async iterator that yields one set of changes then blocks."""
    yield changes
    try:
        await asyncio.sleep(3600)
    except asyncio.CancelledError:
        return


async def _many_change_iter(
    batches: list[set[tuple[int, str]]], gap: float = 0.01
) -> AsyncIterator[set[tuple[int, str]]]:
    """Yields each batch *gap* seconds apart."""
    for batch in batches:
        yield batch
        await asyncio.sleep(gap)
    try:
        await asyncio.sleep(3600)
    except asyncio.CancelledError:
        return
