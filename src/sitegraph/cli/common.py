from typing import Annotated

import typer
from rich.console import Console

from sitegraph.api.schemas import BuildSummary
from sitegraph.config import SiteConfig, load_config
from sitegraph.core.errors import SiteError

console = Console()

ConfigOption = Annotated[
    str | None,
    typer.Option("--config", "-c", help="Path to sitegraph.toml (default: ./sitegraph.toml)."),
]


def load_or_exit(config_path: str | None) -> SiteConfig:
    try:
        return load_config(config_path)
    except SiteError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2) from e


def print_summary(summary: BuildSummary) -> None:
    kind = "Partial rebuild" if summary.partial else "Build"
    colour = "yellow" if summary.errors else "green"
    console.print(
        f"[{colour}]{kind} finished[/{colour}]: {summary.resources} resource(s), "
        f"{summary.targets} target(s), {len(summary.errors)} error(s)"
    )
    for error in summary.errors:
        console.print(f"  [red]-[/red] {error}")
