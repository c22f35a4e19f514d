from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from watchfiles import awatch

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[set[Path]], Coroutine[Any, Any, None]]


def _is_editor_noise(path: Path) -> bool:
    name = path.name
    return name.startswith(".#") or name.endswith(("~", ".swp", ".swx", ".tmp"))


class WatchfilesWatcher:
    """Watch a content directory and report changed paths in debounced batches.

    Implements the ``FileWatcherPort`` protocol. Paths are collected until
    ``debounce`` seconds pass without a new change, then ``on_change`` is awaited
    once with the whole batch.
    """

    def __init__(
        self,
        directory: str | Path,
        on_change: ChangeCallback,
        debounce: float = 1.0,
        ignore: Callable[[Path], bool] | None = None,
    ) -> None:
        self._directory = Path(directory)
        self._on_change = on_change
        self._debounce = debounce
        self._ignore = ignore or _is_editor_noise
        self._task: asyncio.Task[None] | None = None
        self._pending: set[Path] = set()
        self._timer: asyncio.TimerHandle | None = None
        self._flush_tasks: set[asyncio.Task[None]] = set()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._watch())
        logger.info("Watcher started for %s", self._directory)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        flushes = list(self._flush_tasks)
        for task in flushes:
            task.cancel()
        for task in flushes:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._flush_tasks.clear()
        self._pending.clear()
        logger.info("Watcher stopped for %s", self._directory)

    async def _watch(self) -> None:
        async for changes in awatch(self._directory):
            paths = {Path(p) for _, p in changes if not self._ignore(Path(p))}
            if paths:
                logger.debug("Detected changes in %d file(s)", len(paths))
                self._pending |= paths
                self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce, self._start_flush)

    def _start_flush(self) -> None:
        self._timer = None
        task = asyncio.create_task(self._flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def _flush(self) -> None:
        paths, self._pending = self._pending, set()
        if not paths:
            return
        logger.info("Rebuilding after changes in %d file(s)", len(paths))
        try:
            await self._on_change(paths)
        except Exception:
            logger.exception("Error in watcher callback")
