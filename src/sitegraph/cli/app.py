import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from sitegraph.cli.build import build, resources
from sitegraph.cli.serve import serve
from sitegraph.cli.watch import watch

app = typer.Typer(
    name="sitegraph",
    help="sitegraph CLI: build, watch and serve rule-driven static sites.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log rule matches and other debug output.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


app.command("build")(build)
app.command("resources")(resources)
app.command("watch")(watch)
app.command("serve")(serve)


def main() -> None:
    app()
