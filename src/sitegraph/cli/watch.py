import asyncio
import contextlib
from collections.abc import Callable
from pathlib import Path

from sitegraph.api.schemas import BuildSummary
from sitegraph.cli.common import ConfigOption, console, load_or_exit, print_summary
from sitegraph.config import build_site
from sitegraph.core.site import Site
from sitegraph.watcher.watchfiles_adapter import ChangeCallback, WatchfilesWatcher


def make_rebuilder(site: Site, on_summary: Callable[[BuildSummary], None] = print_summary) -> ChangeCallback:
    """Watcher callback that rebuilds the changed subset of *site*, one batch at a time."""
    lock = asyncio.Lock()

    async def _rebuild(paths: set[Path]) -> None:
        async with lock:
            ctx = await asyncio.to_thread(site.rebuild_paths, sorted(paths))
        on_summary(BuildSummary.from_context(ctx))

    return _rebuild


def watch(config: ConfigOption = None) -> None:
    """Build once, then rebuild whatever changes until interrupted."""
    site_config = load_or_exit(config)
    site = build_site(site_config)
    print_summary(BuildSummary.from_context(site.rebuild()))

    watcher = WatchfilesWatcher(site.content_root, make_rebuilder(site), debounce=site_config.build_frequency)

    async def _run() -> None:
        await watcher.start()
        console.print(f"[green]Watching[/green] {site.content_root} (Ctrl+C to stop)")
        try:
            await asyncio.Event().wait()
        finally:
            await watcher.stop()

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run())
