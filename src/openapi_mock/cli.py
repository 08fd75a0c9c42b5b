"""
CLI for running and inspecting OpenAPI mock servers.

Provides the ``openapi-mock`` command with ``run``, ``routes`` and
``validate`` subcommands.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from openapi_mock._version import __version__
from openapi_mock.errors import DocumentError, SeedExecutionError
from openapi_mock.processor import HTTP_METHODS, process_openapi_document
from openapi_mock.server import DEFAULT_HOST, DEFAULT_PORT, OpenApiServer, create_openapi_server

app = typer.Typer(help="Mock HTTP servers generated from OpenAPI documents")
console = Console()


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"openapi-mock {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_server(spec: str, **config: object) -> OpenApiServer:
    try:
        return asyncio.run(create_openapi_server(spec=spec, **config))
    except (DocumentError, SeedExecutionError) as e:
        typer.echo(f"Error loading spec: {e}", err=True)
        raise typer.Exit(code=1)


@app.command(name="run")
def run_server(
    spec: Annotated[str, typer.Argument(help="Path or URL of the OpenAPI document")],
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = DEFAULT_PORT,
    host: Annotated[str, typer.Option("--host", help="Interface to bind")] = DEFAULT_HOST,
    seed: Annotated[int | None, typer.Option("--seed", "-s", help="Seed for deterministic data")] = None,
    timeline_limit: Annotated[int, typer.Option("--timeline-limit", help="Timeline entries kept")] = 100,
    cors: Annotated[bool, typer.Option("--cors/--no-cors", help="Send CORS headers")] = True,
) -> None:
    """Start a mock server for an OpenAPI document.

    Every operation in the document is served with generated data, a
    stateful in-memory store and the document's security requirements.
    """
    server = _build_server(
        spec, port=port, host=host, seed=seed, timeline_limit=timeline_limit, cors=cors
    )
    server.start()

    stats = server.registry.stats
    typer.echo(f"Mock server running at {server.base_url}")
    typer.echo(f"  {stats.total_endpoints} endpoint(s), {stats.secured} secured")
    typer.echo(f"  Internal API: {server.base_url}/_api/health")

    typer.echo("\nPress Ctrl+C to stop")
    try:
        while server.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        typer.echo("\nStopping mock server...")
    finally:
        server.stop()
    typer.echo("Done.")


@app.command(name="routes")
def list_routes(
    spec: Annotated[str, typer.Argument(help="Path or URL of the OpenAPI document")],
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List the routes a mock server would serve."""
    server = _build_server(spec)

    if output_json:
        console.print_json(json.dumps(server.registry.to_dict()))
        return

    if not len(server.registry):
        console.print("[dim]No operations found.[/dim]")
        return

    table = Table(title=server.document.get("info", {}).get("title", "Routes"))
    table.add_column("Method", style="bold")
    table.add_column("Path")
    table.add_column("Operation")
    table.add_column("Secured")
    table.add_column("Summary", style="dim")

    for entry in server.registry:
        table.add_row(
            entry.method.upper(),
            entry.path,
            entry.operation_id,
            "[yellow]yes[/yellow]" if entry.secured else "",
            entry.summary or "",
        )

    console.print(table)
    console.print(f"\n[dim]{len(server.registry)} route(s)[/dim]")


@app.command(name="validate")
def validate(
    spec: Annotated[str, typer.Argument(help="Path or URL of the OpenAPI document")],
) -> None:
    """Load, validate and dereference a document without serving it."""
    try:
        document = asyncio.run(process_openapi_document(spec, use_cache=False))
    except DocumentError as e:
        console.print(f"[red]{e}[/red]")
        for issue in getattr(e, "errors", []):
            console.print(f"  {issue.path}: {issue.message}")
        raise typer.Exit(1)

    paths = document.get("paths") or {}
    operations = sum(
        1 for item in paths.values() if isinstance(item, dict) for method in item if method in HTTP_METHODS
    )
    schemes = (document.get("components") or {}).get("securitySchemes") or {}
    console.print(f"[green]Valid[/green] OpenAPI {document.get('openapi')}")
    console.print(f"  Paths:            {len(paths)}")
    console.print(f"  Operations:       {operations}")
    console.print(f"  Security schemes: {len(schemes)}")
