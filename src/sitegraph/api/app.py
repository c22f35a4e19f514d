from __future__ import annotations

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from sitegraph.api.lifespan import make_lifespan
from sitegraph.api.routes.health import router as health_router
from sitegraph.core.ports.watcher import FileWatcherPort
from sitegraph.core.site import Site


def create_app(site: Site, watcher: FileWatcherPort | None = None) -> FastAPI:
    """Serve the site's output directory, rebuilding in the background when *watcher* is given."""
    app = FastAPI(
        title="sitegraph dev server",
        description="Serves a built site and reports the last build.",
        version="0.1.0",
        lifespan=make_lifespan(watcher),
    )
    app.state.site = site
    app.state.last_build = None

    app.include_router(health_router, include_in_schema=False)
    # the output may not exist until the first build finishes
    app.mount(
        site.path_prefix or "/",
        StaticFiles(directory=site.output_dir, html=True, check_dir=False),
        name="site",
    )
    return app
