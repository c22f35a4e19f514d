from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI

from sitegraph.core.ports.watcher import FileWatcherPort


def make_lifespan(watcher: FileWatcherPort | None) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Run *watcher* for as long as the app is up."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if watcher is not None:
            await watcher.start()
        try:
            yield
        finally:
            if watcher is not None:
                await watcher.stop()

    return lifespan
