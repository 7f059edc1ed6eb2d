"""
shopforge command line.

Commands:
    normalize  validate and repair a layout file
    synth      scaffold and synthesize a project without building it
    publish    run the full publish pipeline
    serve      run the HTTP API
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from shopforge import __version__
from shopforge.core.errors import LayoutError, PublishError
from shopforge.core.normalizer import LayoutNormalizer

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

app = typer.Typer(
    help="Publish storefront layouts as static websites",
    no_args_is_help=True,
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"shopforge {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = False,
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def _read_layout(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Cannot read {path}: {e}[/red]")
        raise typer.Exit(1) from e


def _print_error(exc: PublishError) -> None:
    console.print(f"[red]{type(exc).__name__}:[/red] {exc}")
    if exc.detail and isinstance(exc.detail, str):
        console.print(exc.detail, style="dim", markup=False, highlight=False)


def _summary_table(summary: dict[str, Any]) -> Table:
    table = Table(title="Layout")
    table.add_column("Path", style="cyan")
    table.add_column("Sections", justify="right")
    for path, count in summary["sections"].items():
        table.add_row(path, str(count))
    return table


@app.command()
def normalize(
    file: Annotated[Path, typer.Argument(help="Layout JSON file", exists=True, dir_okay=False)],
    name: Annotated[str, typer.Option("--name", "-n", help="Store name")] = "My Store",
    core_pages: Annotated[
        bool, typer.Option("--core-pages/--no-core-pages", help="Add missing core pages")
    ] = True,
    summary: Annotated[
        bool, typer.Option("--summary", "-s", help="Print structure only")
    ] = False,
) -> None:
    """
    Validate and repair a layout file, printing the canonical layout.

    Example:
        shopforge normalize layout.json --summary
    """
    raw = _read_layout(file)
    try:
        layout = LayoutNormalizer(site_name=name, ensure_core_pages=core_pages).normalize(raw)
    except LayoutError as e:
        _print_error(e)
        raise typer.Exit(1) from e

    if summary:
        console.print(_summary_table(layout.summary()))
        console.print(f"Section types: {', '.join(layout.section_types())}")
    else:
        console.print_json(json.dumps(layout.to_document()))


@app.command()
def synth(
    file: Annotated[Path, typer.Argument(help="Layout JSON file", exists=True, dir_okay=False)],
    out: Annotated[Path, typer.Option("--out", "-o", help="Directory for the project")],
    name: Annotated[str, typer.Option("--name", "-n", help="Store name")] = "My Store",
) -> None:
    """
    Scaffold and synthesize a project without building it.

    Example:
        shopforge synth layout.json --out ./build --name "Acme"
        cd ./build/<workspace> && npm install && npm run dev
    """
    from shopforge.publish.synthesizer import synthesize
    from shopforge.publish.workspace import ProjectScaffolder

    raw = _read_layout(file)
    try:
        layout = LayoutNormalizer(site_name=name).normalize(raw)
        workspace = ProjectScaffolder(out).scaffold("local", name)
        result = synthesize(layout, workspace.root)
    except PublishError as e:
        _print_error(e)
        raise typer.Exit(1) from e

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    console.print(
        f"[green]Wrote {len(result.files_created)} files[/green] to [cyan]{workspace.root}[/cyan]"
    )


@app.command()
def publish(
    file: Annotated[Path, typer.Argument(help="Layout JSON file", exists=True, dir_okay=False)],
    name: Annotated[str, typer.Option("--name", "-n", help="Store name")],
    domain: Annotated[
        str | None, typer.Option("--domain", "-d", help="Store domain (project identity)")
    ] = None,
    custom_domain: Annotated[
        str | None, typer.Option("--custom-domain", help="Hostname to bind as an extra alias")
    ] = None,
    store_id: Annotated[str, typer.Option("--store-id", help="Store id")] = "local",
    config: Annotated[
        Path, typer.Option("--config", "-c", help="Path to shopforge.toml")
    ] = Path("shopforge.toml"),
) -> None:
    """
    Build and deploy a layout file.

    Needs SHOPFORGE_PROVIDER_TOKEN (or VERCEL_TOKEN) and a Node toolchain.

    Example:
        shopforge publish layout.json --name "Acme" --custom-domain shop.acme.com
    """
    from shopforge.publish import (
        Publisher,
        PublishRequest,
        VercelProvider,
        load_provider_config,
        load_publish_config,
    )

    raw = _read_layout(file)
    provider_config = load_provider_config()
    publish_config = load_publish_config(config)

    async def _run() -> Any:
        async with VercelProvider(provider_config) as provider:
            publisher = Publisher(provider, provider_config, publish_config)
            return await publisher.try_publish(
                PublishRequest(
                    store_id=store_id,
                    store_name=name,
                    layout=raw,
                    domain=domain,
                    custom_domain=custom_domain,
                )
            )

    with console.status("Publishing..."):
        outcome = asyncio.run(_run())

    if outcome.error is not None:
        _print_error(outcome.error)
        raise typer.Exit(1)

    result = outcome.result
    table = Table(title="Published")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("URL", result.url)
    table.add_row("Stable URL", result.stable_url)
    table.add_row("Project", result.project_name)
    table.add_row("Deployment", result.deployment_id)
    table.add_row("Published at", result.published_at.isoformat())
    console.print(table)
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port")] = 8000,
    db: Annotated[
        Path | None, typer.Option("--db", help="SQLite database file (default: in-memory)")
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Expose error details")] = False,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from shopforge.api import create_app
    from shopforge.stores import InMemoryStoreRepository, SQLiteStoreRepository

    repository = SQLiteStoreRepository(db) if db else InMemoryStoreRepository()
    console.print(f"[bold]shopforge[/bold] API on http://{host}:{port}")
    uvicorn.run(create_app(repository, debug=debug), host=host, port=port)


def main() -> None:
    app()
