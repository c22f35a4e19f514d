from typing import Annotated

import typer
from rich.table import Table

from sitegraph.api.schemas import BuildSummary
from sitegraph.cli.common import ConfigOption, console, load_or_exit, print_summary
from sitegraph.config import build_site
from sitegraph.core.errors import DiscoveryWalkError, SiteError
from sitegraph.core.resource import Resource


def build(
    config: ConfigOption = None,
    strict: Annotated[bool, typer.Option(help="Abort on the first build error.")] = False,
) -> None:
    """Build the whole site once."""
    site_config = load_or_exit(config)
    if strict:
        site_config = site_config.model_copy(update={"strict": True})
    site = build_site(site_config)
    try:
        ctx = site.rebuild()
    except DiscoveryWalkError as e:
        console.print(f"[red]Cannot read content:[/red] {e}")
        raise typer.Exit(code=1) from e
    except SiteError as e:
        console.print(f"[red]Build aborted:[/red] {e}")
        raise typer.Exit(code=1) from e

    summary = BuildSummary.from_context(ctx)
    print_summary(summary)
    if summary.errors:
        raise typer.Exit(code=1)


def _flags(res: Resource) -> str:
    flags = {
        "index": res.is_index,
        "page": res.needs_index and not res.is_index,
        "parametric": res.is_parametric,
        "asset": res.asset_of is not None,
    }
    return ",".join(name for name, on in flags.items() if on)


def resources(
    config: ConfigOption = None,
    limit: Annotated[int, typer.Option(help="Max rows to show (0 for all).")] = 0,
) -> None:
    """List the content resources sitegraph discovers, without building."""
    site = build_site(load_or_exit(config))
    try:
        ctx = site.scan()
    except DiscoveryWalkError as e:
        console.print(f"[red]Cannot read content:[/red] {e}")
        raise typer.Exit(code=1) from e

    rows = ctx.resources[:limit] if limit > 0 else ctx.resources
    table = Table(show_lines=False)
    for header in ("path", "state", "flags", "assets"):
        table.add_column(header)
    for res in rows:
        table.add_row(res.rel_path(site.content_root), res.state.value, _flags(res), str(len(res.assets)))
    console.print(table)
    console.print(f"({len(rows)} of {len(ctx.resources)} resources)")
