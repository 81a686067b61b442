#!/usr/bin/env python3
"""
recsearch CLI - Typer-based command-line interface.

Provides commands for:
- Running a search request from a JSON file
- Showing configuration
- Managing the Atlas Search index
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ..config.settings import get_settings
from ..errors import SearchError
from ..search.filters import SearchRequest
from ..search.indexes import build_search_index_definition, ensure_search_index, list_search_index, wait_for_search_index
from ..search.results import UNKNOWN_LAST_ROW
from ..search.service import create_search_service
from ..search.tenant import resolve_tenant_key

# Initialize Typer app
app = typer.Typer(
    name="recsearch",
    help="recsearch - tenant-scoped recommendation search on MongoDB Atlas",
    add_completion=False,
)

# Rich console
console = Console()


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        from .. import __version__

        console.print(f"recsearch version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log at DEBUG level"),
):
    """
    recsearch CLI.

    Use 'recsearch COMMAND --help' for command-specific help.
    """
    settings = get_settings()
    logging.basicConfig(
        level="DEBUG" if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def search(
    submission_id: str = typer.Option(..., "--submission-id", "-s", help="Caller submission id (SUB123456.1.0)"),
    request_file: Path = typer.Option(..., "--request", "-r", help="JSON file holding the search request", exists=True),
):
    """
    Run a search request and print the resulting page.
    """

    async def _search():
        try:
            tenant_key = resolve_tenant_key(submission_id)
            request = SearchRequest.model_validate(json.loads(request_file.read_text()))
        except (SearchError, ValidationError, json.JSONDecodeError) as e:
            console.print(f"[red]Invalid request:[/red] {e}")
            raise typer.Exit(code=2)

        service = create_search_service()
        try:
            page = await service.search(tenant_key, request)
        except SearchError as e:
            console.print(f"[red]{e.code}:[/red] {e.message}")
            raise typer.Exit(code=1)
        finally:
            await service.close()

        table = Table(title=f"Recommendations {request.start_row}:{request.end_row}", show_header=True)
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Priority", style="yellow")
        table.add_column("Due", style="magenta")
        for row in page.rows:
            table.add_row(
                row.id,
                row.recommendation_title or "",
                row.recommendation_status or "",
                row.recommendation_priority or "",
                str(row.due_date or ""),
            )
        console.print(table)

        if page.last_row == UNKNOWN_LAST_ROW:
            console.print("[dim]More rows available.[/dim]")
        else:
            console.print(f"[dim]End of data at row {page.last_row}.[/dim]")

    asyncio.run(_search())


@app.command()
def status():
    """
    Show configuration.
    """
    settings = get_settings()

    table = Table(title="recsearch Configuration", show_header=True)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("MongoDB Database", settings.mongodb_database)
    table.add_row("Collection", settings.mongodb_collection)
    table.add_row("Search Index", settings.search_index_name)
    table.add_row("Tenant Field", settings.tenant_field)
    table.add_row("Query Timeout (ms)", str(settings.query_timeout_ms))
    table.add_row("lastRow Policy", settings.last_row_policy)

    console.print(table)


# Index management subcommand group
index_app = typer.Typer(help="Manage the Atlas Search index")
app.add_typer(index_app, name="index")


@index_app.command("definition")
def index_definition():
    """
    Print the search index definition derived from the field catalog.
    """
    settings = get_settings()
    console.print_json(data=build_search_index_definition(settings.tenant_field))


@index_app.command("create")
def index_create(
    wait: bool = typer.Option(False, "--wait", help="Wait until the index is queryable"),
):
    """
    Create the Atlas Search index if it does not exist.
    """

    async def _create():
        settings = get_settings()
        service = create_search_service(settings)
        collection = service.store.collection
        try:
            created = await ensure_search_index(
                collection, settings.search_index_name, settings.tenant_field
            )
            if created:
                console.print(f"[green]✓ Created search index '{settings.search_index_name}'[/green]")
            else:
                console.print(f"[yellow]Search index '{settings.search_index_name}' already exists[/yellow]")
            if wait:
                ready = await wait_for_search_index(
                    collection, settings.search_index_name, settings.index_ready_timeout_s
                )
                if not ready:
                    raise typer.Exit(code=1)
        finally:
            await service.close()

    asyncio.run(_create())


@index_app.command("status")
def index_status():
    """
    Show the Atlas Search index status.
    """

    async def _status():
        settings = get_settings()
        service = create_search_service(settings)
        try:
            index = await list_search_index(service.store.collection, settings.search_index_name)
        finally:
            await service.close()

        if index is None:
            console.print(f"[red]Search index '{settings.search_index_name}' not found[/red]")
            raise typer.Exit(code=1)

        table = Table(title="Atlas Search Index", show_header=True)
        table.add_column("Name", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Queryable", style="yellow")
        table.add_row(index.get("name", "N/A"), str(index.get("status", "N/A")), str(index.get("queryable", False)))
        console.print(table)

    asyncio.run(_status())


@index_app.command("wait")
def index_wait(
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Seconds to wait"),
):
    """
    Wait until the Atlas Search index is queryable.
    """

    async def _wait():
        settings = get_settings()
        service = create_search_service(settings)
        try:
            ready = await wait_for_search_index(
                service.store.collection,
                settings.search_index_name,
                timeout or settings.index_ready_timeout_s,
            )
        finally:
            await service.close()
        if not ready:
            console.print("[red]Search index is not queryable yet.[/red]")
            raise typer.Exit(code=1)
        console.print("[green]✓ Search index is queryable[/green]")

    asyncio.run(_wait())


def run():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    run()
