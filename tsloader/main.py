"""tsloader CLI - inspect how specifiers resolve and how modules load."""

import asyncio
import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .errors import CacheInconsistencyError
from .errors import ImportAttributeMissingError
from .errors import MalformedMetadataError
from .errors import ResolutionError
from .errors import TransformError
from .hooks import LoaderHooks
from .hooks import create_hooks
from .logging_setup import init_logging
from .paths import path_to_url
from .settings import LoaderSettings

console = Console()

_HANDLED_ERRORS = (
    ResolutionError,
    MalformedMetadataError,
    CacheInconsistencyError,
    ImportAttributeMissingError,
    TransformError,
)


def _display_error(error: Exception) -> None:
    """Render a resolution/load failure as a panel."""
    title = type(error).__name__
    if isinstance(error, ResolutionError):
        title = f"{title} [{error.code.value}]"
    console.print(Panel(escape(str(error)), title=escape(title), border_style="red", title_align="left"))


def _parent_url(parent: Path | None) -> str:
    if parent is None:
        return path_to_url(Path.cwd() / "index.js")
    return path_to_url(parent.resolve())


@click.group()
@click.option(
    "--tsconfig",
    "tsconfig_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Use this tsconfig for every file instead of discovering one",
)
@click.option("--node-version", default=None, help="Host runtime version (default: TSLOADER_NODE_VERSION or 20.0.0)")
@click.option("--verbose", "-v", is_flag=True, help="Show warnings on the console")
@click.pass_context
def cli(ctx: click.Context, tsconfig_path: Path | None, node_version: str | None, verbose: bool):
    """Resolve and load TypeScript/ES modules the way the loader hooks do."""
    settings = LoaderSettings.from_env()
    updates = {}
    if tsconfig_path is not None:
        updates["tsconfig_path"] = tsconfig_path
    if node_version:
        updates["node_version"] = node_version
    settings = settings.model_copy(update=updates)

    init_logging(settings.log_path, settings.log_level, console=verbose)

    try:
        ctx.obj = create_hooks(settings)
    except MalformedMetadataError as e:
        _display_error(e)
        sys.exit(1)


@cli.command(name="resolve")
@click.argument("specifier")
@click.option(
    "--from",
    "parent",
    type=click.Path(path_type=Path),
    default=None,
    help="Importing file (default: ./index.js)",
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_obj
def resolve_cmd(hooks: LoaderHooks, specifier: str, parent: Path | None, as_json: bool):
    """Resolve SPECIFIER as if imported from --from."""
    try:
        resolved = asyncio.run(hooks.resolve(specifier, _parent_url(parent)))
    except _HANDLED_ERRORS as e:
        _display_error(e)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(resolved.model_dump(exclude={"short_circuit"})))
        return

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value", style="cyan")
    table.add_row("Specifier", escape(specifier))
    table.add_row("URL", escape(resolved.url))
    table.add_row("Format", resolved.format or "[dim](unknown)[/dim]")
    console.print(table)


@cli.command(name="load")
@click.argument("specifier")
@click.option(
    "--from",
    "parent",
    type=click.Path(path_type=Path),
    default=None,
    help="Importing file (default: ./index.js)",
)
@click.option("--deps", is_flag=True, help="List reported dependencies after loading")
@click.pass_obj
def load_cmd(hooks: LoaderHooks, specifier: str, parent: Path | None, deps: bool):
    """Resolve SPECIFIER, load it and print the resulting source."""
    reported: list[str] = []
    if deps:
        hooks.dependencies.subscribe(lambda message: reported.append(message.path))

    async def _run():
        resolved = await hooks.resolve(specifier, _parent_url(parent))
        return resolved, await hooks.load(resolved.url, resolved.format)

    try:
        resolved, loaded = asyncio.run(_run())
    except _HANDLED_ERRORS as e:
        _display_error(e)
        sys.exit(1)

    console.print(f"[bold]URL:[/bold] [cyan]{escape(resolved.url)}[/cyan]")
    console.print(f"[bold]Format:[/bold] {loaded.format}")
    if loaded.source is None:
        console.print("[dim](no source)[/dim]")
    else:
        source = loaded.source.decode("utf-8") if isinstance(loaded.source, bytes) else loaded.source
        click.echo(source)

    if deps:
        console.print("[bold]Dependencies:[/bold]")
        for url in reported:
            console.print(f"  {escape(url)}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
