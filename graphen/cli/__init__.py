"""
Command-Line Interface

CLI commands for graphen operations.

Commands:
    graphen ingest       - Run the ingestion pipeline on one document
    graphen info         - Display graph store counts
    graphen cache clear  - Drop a document's pipeline checkpoints

Usage:
    # Ingest a PDF
    graphen ingest report.pdf --store ./data/graph

    # Smaller chunks, explicit id
    graphen ingest notes.md --chunk-size 800 --overlap 100 --document-id notes-2026

    # Show stats
    graphen info --store ./data/graph

    # Force a full re-run
    graphen cache clear notes-2026
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from graphen.config import GraphenConfig
from graphen.errors import GraphenError, PipelineError
from graphen.types import Document, PipelineResult, PipelineStatusEvent, UsageReport

__all__ = ["main", "app"]

app = typer.Typer(
    name="graphen",
    help="Turn documents into a persisted knowledge graph",
    no_args_is_help=True,
)
cache_app = typer.Typer(help="Manage pipeline checkpoints", no_args_is_help=True)
app.add_typer(cache_app, name="cache")
console = Console()

FILE_TYPES = {
    ".pdf": "pdf",
    ".md": "md",
    ".markdown": "md",
    ".txt": "txt",
}


@app.callback()
def _root() -> None:
    load_dotenv()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def document_id_for(path: Path) -> str:
    """Cache-safe document id derived from a file name."""
    stem = re.sub(r"[^A-Za-z0-9._-]+", "-", path.stem).strip("-._")
    return stem or "document"


def _usage_table(usage: UsageReport) -> Table:
    table = Table(title=f"Usage (pricing {usage.pricing_version})")
    table.add_column("Phase", style="cyan")
    table.add_column("Calls", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Est. cost (USD)", justify="right", style="green")
    for phase in usage.by_phase:
        table.add_row(
            phase.phase,
            str(phase.calls),
            str(phase.total_tokens),
            f"{phase.estimated_cost_usd:.6f}",
        )
    table.add_row(
        "[bold]total[/]",
        str(usage.total_calls),
        str(usage.total_tokens),
        f"{usage.total_estimated_cost_usd:.6f}",
    )
    return table


def _print_result(result: PipelineResult) -> None:
    doc = result.document
    cached = []
    if result.chunk_cache_hit:
        cached.append("chunks")
    if result.extraction_cache_hit:
        cached.append("extractions")

    console.print()
    console.print(Panel(
        f"[green]Successfully ingested {doc.filename}[/]\n\n"
        f"  Document ID: {doc.id}\n"
        f"  Chunks: {len(result.chunks)}\n"
        f"  Entities: {len(result.graph.nodes)}\n"
        f"  Relations: {len(result.graph.edges)}\n"
        f"  Dropped relations: {result.graph.dropped_relations}\n"
        f"  Estimated tokens: {result.estimated_tokens}\n"
        f"  Replayed from cache: {', '.join(cached) or 'nothing'}\n"
        f"  Duration: {result.duration_seconds:.1f}s",
        title="Ingestion Complete",
    ))

    if result.usage is not None:
        console.print(_usage_table(result.usage))
        if result.usage.warnings:
            console.print("[yellow]Warnings:[/]")
            for warning in result.usage.warnings:
                console.print(f"  - {warning}")


@app.command()
def ingest(
    path: Path = typer.Argument(
        ...,
        help="Document to ingest (.pdf, .md, .txt)",
        exists=True,
        dir_okay=False,
    ),
    store: Optional[Path] = typer.Option(
        None,
        "--store", "-s",
        help="Graph store directory",
    ),
    cache: Optional[Path] = typer.Option(
        None,
        "--cache", "-c",
        help="Pipeline checkpoint directory",
    ),
    chunk_size: Optional[int] = typer.Option(
        None,
        "--chunk-size",
        help="Characters per chunk",
    ),
    overlap: Optional[int] = typer.Option(
        None,
        "--overlap",
        help="Characters shared by adjacent chunks",
    ),
    document_id: Optional[str] = typer.Option(
        None,
        "--document-id", "-i",
        help="Document id (defaults to the file name)",
    ),
) -> None:
    """Ingest one document into the graph store."""
    file_type = FILE_TYPES.get(path.suffix.lower())
    if file_type is None:
        console.print(f"[red]Unsupported file type: {path.suffix}[/]")
        raise typer.Exit(code=1)

    overrides: dict[str, object] = {}
    if store is not None:
        overrides["storage_path"] = str(store)
    if cache is not None:
        overrides["cache_dir"] = str(cache)
    if chunk_size is not None:
        overrides["chunk_size"] = chunk_size
    if overlap is not None:
        overrides["chunk_overlap"] = overlap

    try:
        config = GraphenConfig().with_overrides(**overrides).validate()
    except GraphenError as e:
        console.print(f"[red]Invalid configuration: {e}[/]")
        raise typer.Exit(code=1) from e
    _setup_logging(config.log_level)

    raw_bytes = path.read_bytes()
    document = Document(
        id=document_id or document_id_for(path),
        filename=path.name,
        file_type=file_type,
        file_size=len(raw_bytes),
    )

    async def _run() -> PipelineResult:
        from graphen.ingestion.pipeline import DocumentPipeline
        from graphen.providers.llm.openai import OpenAILLMService
        from graphen.storage.parquet import ParquetGraphStore

        async with ParquetGraphStore(config.storage_path, config=config) as graph_store:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
            ) as progress:
                task = progress.add_task(f"Ingesting {path.name}", total=100)

                def on_status(event: PipelineStatusEvent) -> None:
                    progress.update(
                        task,
                        completed=event.progress,
                        description=f"{event.phase.value}: {event.message or path.name}",
                    )

                pipeline = DocumentPipeline(
                    graph_store,
                    OpenAILLMService.from_config(config),
                    config=config,
                    observer=on_status,
                )
                try:
                    return await pipeline.process(document, raw_bytes)
                finally:
                    await pipeline.close()

    try:
        result = asyncio.run(_run())
    except PipelineError as e:
        console.print(f"[red]Ingestion failed: {e}[/]")
        if e.retryable:
            console.print("[yellow]This failure is retryable; cached progress is kept.[/]")
        raise typer.Exit(code=1) from e

    _print_result(result)


@app.command()
def info(
    store: Optional[Path] = typer.Option(
        None,
        "--store", "-s",
        help="Graph store directory",
    ),
) -> None:
    """Display graph store counts."""
    config = GraphenConfig()
    path = store or Path(config.storage_path)
    if not path.exists():
        console.print(f"[red]No graph store at {path}[/]")
        raise typer.Exit(code=1)

    async def _run() -> dict[str, int]:
        from graphen.storage.parquet import ParquetGraphStore

        async with ParquetGraphStore(path, config=config) as graph_store:
            return {
                "Documents": await graph_store.count_documents(),
                "Chunks": await graph_store.count_chunks(),
                "Entities": await graph_store.count_nodes(),
                "Relations": await graph_store.count_edges(),
            }

    stats = asyncio.run(_run())

    table = Table(title=f"Graph Store: {path}")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for metric, count in stats.items():
        table.add_row(metric, str(count))

    console.print(table)


@cache_app.command("clear")
def cache_clear(
    document_id: str = typer.Argument(..., help="Document whose checkpoints to drop"),
    cache: Optional[Path] = typer.Option(
        None,
        "--cache", "-c",
        help="Pipeline checkpoint directory",
    ),
) -> None:
    """Drop cached chunks and extractions for a document."""
    from graphen.ingestion.cache import PipelineCache

    pipeline_cache = PipelineCache(cache or GraphenConfig().cache_dir)
    try:
        removed = asyncio.run(pipeline_cache.clear(document_id))
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(code=1) from e

    if removed:
        console.print(f"[green]Cleared cache for {document_id}[/]")
    else:
        console.print(f"[yellow]No cache for {document_id}[/]")


def main() -> None:
    """Entry point for the CLI."""
    app()
