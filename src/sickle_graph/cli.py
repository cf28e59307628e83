# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import Settings, load_settings
from .errors import ConfigurationError, SchemaValidationError
from .service import SickleGraphService

app = typer.Typer(
    name="sickle-graph",
    help="Build and query the SickleGraph biomedical knowledge graph (genes, variants, trials, papers)."
)
console = Console()


def _settings() -> Settings:
    try:
        return load_settings()
    except ConfigurationError as e:
        console.print(Panel(
            f"[bold red]Configuration Error:[/bold red]\n{e}\n\nPlease ensure you have a .env file or have set the required environment variables, such as [bold cyan]SICKLEGRAPH_BACKEND[/bold cyan].",
            title="[bold red]Initialization Failed[/bold red]",
            border_style="red"
        ))
        raise typer.Exit(code=1)


def _run(action: Callable[[SickleGraphService], Awaitable[Any]], failure: str) -> Any:
    """Starts a service, runs `action` against it and always stops it again."""
    settings = _settings()

    async def main() -> Any:
        service = SickleGraphService(settings)
        try:
            await service.start()
            return await action(service)
        finally:
            await service.stop()

    try:
        return asyncio.run(main())
    except SchemaValidationError as e:
        console.print(Panel(f"[bold red]{e}[/bold red]", title="[bold red]Invalid Input[/bold red]", border_style="red"))
        raise typer.Exit(code=1)
    except Exception as e:
        console.print_exception()
        console.print(Panel(f"[bold red]{failure}: {e}", title="[bold red]Error[/bold red]"))
        raise typer.Exit(code=1)


@app.command(name="init-schema", help="Create node/relationship types and the standard indexes.")
def init_schema():
    """
    Connects to the configured backend and initializes the graph schema.
    Safe to run repeatedly.
    """
    console.print(Panel("[bold cyan]Initializing SickleGraph schema[/bold cyan]", border_style="cyan"))

    async def action(service: SickleGraphService):
        return sorted(service.adapter.indexes)

    indexes = _run(action, "Failed to initialize the schema")
    console.print(Panel(
        f"[bold green]Schema ready with {len(indexes)} indexes.[/bold green]",
        title="[bold green]Schema Initialized[/bold green]"
    ))


@app.command(name="import-genes", help="Bulk-import genes from a CSV file.")
def import_genes(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="CSV with a header row; id, symbol, name and chromosome columns are required."
    )
):
    console.print(Panel(f"[bold cyan]Importing genes from {file}[/bold cyan]", border_style="cyan"))
    bulk_text = file.read_text(encoding="utf-8")

    async def action(service: SickleGraphService):
        return await service.import_gene_data(bulk_text)

    imported = _run(action, "An error occurred during the gene import")
    console.print(Panel(
        f"[bold green]Imported {imported} gene records.[/bold green]",
        title="[bold green]Import Complete[/bold green]"
    ))


@app.command(name="search-genes", help="Search genes by symbol, name or description.")
def search_genes(
    text: str = typer.Argument(..., help="Text to look for (case-insensitive)."),
    limit: int = typer.Option(10, "--limit", "-l", help="Maximum number of results (1-100).")
):
    async def action(service: SickleGraphService):
        return await service.search_genes(text, limit)

    genes = _run(action, "Gene search failed")
    if not genes:
        console.print(f"[yellow]No genes match '{text}'.[/yellow]")
        return

    table = Table(title=f"Genes matching '{text}'")
    for column in ("id", "symbol", "name", "chromosome"):
        table.add_column(column)
    for gene in genes:
        table.add_row(*(str(gene.get(column) or "") for column in ("id", "symbol", "name", "chromosome")))
    console.print(table)


@app.command(name="get-gene", help="Show one gene with its variants, treatments and papers.")
def get_gene(gene_id: str = typer.Argument(..., help="Gene id.")):
    async def action(service: SickleGraphService):
        return await service.get_gene(gene_id)

    gene = _run(action, "Gene lookup failed")
    if gene is None:
        console.print(f"[bold red]Gene '{gene_id}' not found.[/bold red]")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(gene, default=str))


@app.command(name="stats", help="Count nodes and relationships in the graph.")
def stats():
    async def action(service: SickleGraphService):
        return await service.get_stats()

    counts = _run(action, "Could not collect statistics")
    table = Table(title="SickleGraph contents")
    table.add_column("kind")
    table.add_column("type")
    table.add_column("count", justify="right")
    for kind, totals in counts.items():
        for name, total in totals.items():
            table.add_row(kind, name, str(total))
    console.print(table)


@app.command(name="serve", help="Run the HTTP API.")
def serve(
    host: str = typer.Option(None, "--host", help="Interface to bind (defaults to SICKLEGRAPH_API_HOST)."),
    port: int = typer.Option(None, "--port", "-p", help="Port to listen on (defaults to SICKLEGRAPH_API_PORT)."),
):
    import uvicorn

    from .api import create_app
    from .ncbi import NCBIClient

    settings = _settings()
    service = SickleGraphService(settings, ncbi=NCBIClient(settings))
    host = host or settings.api_host
    port = port or settings.api_port
    console.print(Panel(f"[bold cyan]Serving SickleGraph on http://{host}:{port}[/bold cyan]", border_style="cyan"))
    uvicorn.run(create_app(service), host=host, port=port)


if __name__ == "__main__":
    app()
