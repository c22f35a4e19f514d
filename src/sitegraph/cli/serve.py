from typing import Annotated

import typer

from sitegraph.api.schemas import BuildSummary
from sitegraph.cli.common import ConfigOption, console, load_or_exit, print_summary
from sitegraph.cli.watch import make_rebuilder
from sitegraph.config import build_site
from sitegraph.watcher.watchfiles_adapter import WatchfilesWatcher


def serve(
    config: ConfigOption = None,
    host: str = "127.0.0.1",
    port: int = 8000,
    watch: Annotated[bool, typer.Option("--watch/--no-watch", help="Rebuild on content changes.")] = True,
) -> None:
    """Build the site and serve the output directory."""
    import uvicorn

    from sitegraph.api.app import create_app

    site_config = load_or_exit(config)
    site = build_site(site_config)
    summary = BuildSummary.from_context(site.rebuild())
    print_summary(summary)

    watcher = None
    app = None

    def _record(latest: BuildSummary) -> None:
        print_summary(latest)
        if app is not None:
            app.state.last_build = latest

    if watch:
        watcher = WatchfilesWatcher(site.content_root, make_rebuilder(site, _record), debounce=site_config.build_frequency)
    app = create_app(site, watcher)
    app.state.last_build = summary

    console.print(f"[green]Serving {site.output_dir} on http://{host}:{port}{site.path_prefix}/[/green]")
    uvicorn.run(app, host=host, port=port)
