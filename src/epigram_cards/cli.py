"""Command-line interface for tiered card generation."""

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

import click
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .cache import ResultCache
from .chunking import ChunkStore, chunk_document, chunk_fingerprint, generate_content_id
from .config import PipelineSettings
from .cost_estimator import CostEstimator
from .errors import PipelineError, ValidationFailure
from .models import TIER_ORDER, PipelineResult, build_provenance
from .parser import extract_document, get_document_summary
from .pipeline import CardPipelineOrchestrator, PipelineContext

console = Console()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Client libraries log every request at INFO
    for noisy in ("httpx", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def display_result(result: PipelineResult) -> None:
    """Display per-tier card counts for a run."""
    source = "cache" if result.from_cache else "generation"
    table = Table(title=f"Cards for {result.content_id} (from {source})")
    table.add_column("Tier", style="cyan")
    table.add_column("Cards", style="green", justify="right")

    for tier in TIER_ORDER:
        table.add_row(tier.value.title(), str(len(result.cards_of(tier))))
    table.add_row("[bold]Total[/bold]", f"[bold]{result.total_cards}[/bold]")
    console.print(table)

    if result.stats:
        calls = sum(result.stats.completion_calls.values())
        failures = sum(result.stats.soft_failures.values())
        timeouts = sum(result.stats.timeouts.values())
        console.print(
            f"Completion calls: {calls}, soft failures: {failures}, timeouts: {timeouts}"
        )


def display_cards_preview(cards: list, limit: int = 5) -> None:
    """Display a preview of cards."""
    num_shown = min(limit, len(cards))
    console.print(f"\n[bold]Sample Cards (showing {num_shown} of {len(cards)}):[/bold]\n")

    for card in cards[:limit]:
        console.print(f"\\[{card.tier}] [bold]{card.title}[/bold] ({card.difficulty.value.lower()})")
        console.print(f"   {card.get_display_text()}")
        console.print()


def write_cards(result: PipelineResult, output: Path) -> None:
    """Write a result's cards and chapter records as JSON."""
    output.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "content_id": result.content_id,
        "total_cards": result.total_cards,
        "chapters": [c.model_dump(mode="json") for c in result.chapters],
        "cards": [c.model_dump(mode="json") for c in result.cards],
    }
    output.write_text(json.dumps(payload, indent=2, ensure_ascii=False))
    console.print(f"[green]Wrote {result.total_cards} cards to {output}[/green]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--storage",
    type=click.Path(file_okay=False, path_type=Path),
    help="Storage directory (default: EPIGRAM_STORAGE_DIR or ./storage)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, storage: Optional[Path]):
    """Epigram Cards - tiered study cards from books and articles using Claude."""
    load_dotenv(find_dotenv(usecwd=True))
    settings = PipelineSettings()
    if storage:
        settings = settings.model_copy(update={"storage_dir": storage})
    setup_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--title", help="Override the detected title")
@click.option("--author", help="Override the detected author")
@click.option("--category", default="general", show_default=True, help="Category tag for cards")
@click.pass_obj
def ingest(
    settings: PipelineSettings,
    path: Path,
    title: Optional[str],
    author: Optional[str],
    category: str,
):
    """Extract, chunk and store a document. Prints its content id."""
    try:
        with console.status(f"Reading {path.name}..."):
            document = extract_document(path, title=title, author=author, category=category)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    console.print(Panel(get_document_summary(document), title="[bold]Document Loaded[/bold]", border_style="green"))

    content_id = generate_content_id(document.metadata.title, document.metadata.author, str(path))
    chunks = chunk_document(
        content_id,
        document.chapters,
        chunk_size=settings.chunk_size,
        overlap=settings.chunk_overlap,
    )
    if not chunks:
        console.print("[red]Error:[/red] No usable chunks could be made from this document")
        raise SystemExit(1)

    store = ChunkStore(settings.chunks_dir)
    previous = store.get_chunks(content_id)
    store.put_document(content_id, document.metadata, chunks)
    console.print(f"Stored {len(chunks)} chunks")
    if previous and chunk_fingerprint(previous) != chunk_fingerprint(chunks):
        if ResultCache(settings.cache_dir).invalidate(content_id):
            console.print("[yellow]Document changed, discarded its cached cards[/yellow]")
    console.print(f"[bold]Content id:[/bold] {content_id}")


@cli.command()
@click.argument("content_id")
@click.pass_obj
def estimate(settings: PipelineSettings, content_id: str):
    """Estimate completion calls and cost for a stored document."""
    chunks = ChunkStore(settings.chunks_dir).get_chunks(content_id)
    if not chunks:
        console.print(f"[red]Error:[/red] No chunks stored for {content_id}")
        raise SystemExit(1)

    estimator = CostEstimator(
        application_window=settings.application_window,
        synthesis_window=settings.synthesis_window,
        related_chunks_k=settings.related_chunks_k,
        book_overview=settings.book_overview,
    )
    result = estimator.estimate(chunks)

    table = Table(title="Cost Estimate", border_style="blue")
    table.add_column("Item", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Chunks", str(result.chunks_count))
    table.add_row("Groups", str(result.groups_count))
    table.add_row("Total words", f"{result.total_words:,}")
    for tier, calls in result.calls_per_tier.items():
        table.add_row(f"{tier.title()} calls", f"{calls} (~{result.cards_per_tier[tier]} cards)")
    table.add_row("Input tokens (est.)", f"~{result.total_input_tokens:,}")
    table.add_row("Output tokens (est.)", f"~{result.total_output_tokens:,}")
    table.add_row("[bold]Estimated cost[/bold]", f"[bold]${result.estimated_cost_usd:.4f} USD[/bold]")

    console.print(table)


@cli.command()
@click.argument("content_id")
@click.option("--force", "-f", is_flag=True, help="Ignore cached cards and regenerate")
@click.option("--workers", "-w", type=click.IntRange(min=1), help="Concurrent completion calls")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write cards to a JSON file")
@click.pass_obj
def generate(
    settings: PipelineSettings,
    content_id: str,
    force: bool,
    workers: Optional[int],
    output: Optional[Path],
):
    """Generate the four card tiers for a stored document."""
    if workers:
        settings = settings.model_copy(update={"max_workers": workers})

    orchestrator = CardPipelineOrchestrator(PipelineContext.from_settings(settings))

    try:
        with console.status("Generating cards..."):
            result = orchestrator.run(content_id, force=force)
    except ValidationFailure as e:
        console.print(f"[red]{type(e).__name__}:[/red] {e}")
        raise SystemExit(1)
    except PipelineError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted, nothing was cached.[/yellow]")
        raise SystemExit(130)

    display_result(result)
    display_cards_preview(result.cards)

    if output:
        write_cards(result, output)


@cli.command()
@click.argument("content_id")
@click.option("--limit", "-n", default=10, show_default=True, help="Cards to preview")
@click.pass_obj
def show(settings: PipelineSettings, content_id: str, limit: int):
    """Show cached cards for a document."""

    cache = ResultCache(settings.cache_dir, ttl=timedelta(days=settings.cache_ttl_days))
    entry = cache.load(content_id)
    if entry is None:
        console.print(f"[yellow]No cached cards for {content_id}[/yellow]")
        return

    result = PipelineResult(
        content_id=content_id,
        cards=entry.cards,
        chapters=entry.chapters,
        provenance=build_provenance(entry.cards),
        from_cache=True,
    )
    console.print(f"Cached at {entry.cached_at}")
    display_result(result)
    display_cards_preview(result.cards, limit=limit)


@cli.command("clear-cache")
@click.argument("content_id")
@click.pass_obj
def clear_cache(settings: PipelineSettings, content_id: str):
    """Remove cached cards for a document."""

    if ResultCache(settings.cache_dir).invalidate(content_id):
        console.print(f"[green]Cleared cached cards for {content_id}[/green]")
    else:
        console.print(f"[yellow]No cached cards for {content_id}[/yellow]")


@cli.command()
@click.option("--days", default=30, show_default=True, type=float, help="Remove entries older than this")
@click.pass_obj
def cleanup(settings: PipelineSettings, days: float):
    """Delete old cache files."""

    cache = ResultCache(settings.cache_dir)
    removed = cache.cleanup(older_than_days=days)
    stats = cache.stats()
    console.print(
        f"Removed {removed} cache files; {stats['cached_sets']} remain ({stats['total_size_mb']} MB)"
    )


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
