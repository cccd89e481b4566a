"""CLI interface for the lexingest pipeline."""

import asyncio
import json
from contextlib import closing
from pathlib import Path
from typing import Any, Coroutine, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .errors import PipelineError, error_payload
from .logging import configure_logging

app = typer.Typer(
    name="lexingest",
    help="Statute ingestion and slot inference pipeline",
    add_completion=False,
)
domains_app = typer.Typer(help="Manage legal domains and jurisdictions")
app.add_typer(domains_app, name="domains")
console = Console()

T = TypeVar("T")

ONTARIO = ("CA-ON", "Ontario")


def get_config():
    """Load configuration from environment."""
    from dotenv import load_dotenv
    import os

    load_dotenv()

    return {
        "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY"),
        "database_path": os.getenv("LEXINGEST_DATABASE_PATH", "./data/lexingest.db"),
        "rules_path": os.getenv("LEXINGEST_RULES_PATH"),
        "log_level": os.getenv("LEXINGEST_LOG_LEVEL", "WARNING"),
    }


def get_store(config: dict):
    from .storage import LegalStore

    return LegalStore(config["database_path"])


def get_llm_client(config: dict, model: str | None = None):
    """Model client for extraction and slot generation."""
    from .llm import AnthropicClient

    if not config.get("anthropic_api_key"):
        console.print("[red]Error: No API key configured. Set ANTHROPIC_API_KEY.[/red]")
        raise typer.Exit(1)
    return AnthropicClient(model=model) if model else AnthropicClient()


def get_relevance_engine(config: dict):
    from .analysis import DEFAULT_RULES, RelevanceEngine, load_rules

    rules = DEFAULT_RULES
    if config.get("rules_path"):
        rules = load_rules(config["rules_path"])
    return RelevanceEngine(rules)


def get_scraper(config: dict):
    from .config import CONFIG
    from .scraping import PageFetcher, StatuteScraper, StructuredExtractor

    extractor = StructuredExtractor(get_llm_client(config, CONFIG.extraction_model))
    return StatuteScraper(PageFetcher(), extractor)


def get_orchestrator(config: dict, store):
    from .config import CONFIG
    from .processing import BatchSlotOrchestrator, SlotGenerator

    generator = SlotGenerator(get_llm_client(config, CONFIG.slot_model), store)
    return BatchSlotOrchestrator(store, generator)


def _setup() -> dict:
    config = get_config()
    configure_logging(config["log_level"])
    return config


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a pipeline coroutine, printing a structured error on failure."""
    try:
        return asyncio.run(coro)
    except PipelineError as e:
        _fail(e)


def _fail(exc: BaseException):
    console.print_json(data=error_payload(exc))
    raise typer.Exit(1)


def _spinner(description: str) -> Progress:
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    )
    progress.add_task(description, total=None)
    return progress


@app.command()
def scrape(
    target: str = typer.Argument(..., help="Statute URL, or an Ontario statute name such as EMPLOYMENT_STANDARDS_ACT"),
    jurisdiction: str = typer.Option(ONTARIO[0], "--jurisdiction", "-j", help="Jurisdiction code"),
    domain: str = typer.Option(None, "--domain", "-d", help="Primary legal domain slug"),
    link: bool = typer.Option(True, "--link/--no-link", help="Compute cross-domain relevance"),
    generate_slots: bool = typer.Option(False, "--generate-slots", help="Run slot generation after ingesting"),
    batch_size: int = typer.Option(None, "--batch-size", help="Provisions per model call"),
    output: Path = typer.Option(None, "--output", "-o", help="Write the scraped statute as JSON"),
):
    """Scrape a statute page and store it."""
    from .ingestion import IngestionCoordinator
    from .scraping import ONTARIO_STATUTES
    from .scraping.scraper import ONTARIO_LAWS_URL

    config = _setup()
    url = target
    if target.upper() in ONTARIO_STATUTES:
        url = ONTARIO_LAWS_URL.format(code=ONTARIO_STATUTES[target.upper()])

    with closing(get_store(config)) as store:
        coordinator = IngestionCoordinator(
            get_scraper(config),
            store,
            get_relevance_engine(config),
            get_orchestrator(config, store) if generate_slots else None,
        )

        console.print(Panel(f"[bold]Scraping:[/bold] {url}", title="lexingest"))
        with _spinner("Fetching and extracting..."):
            report = _run(
                coordinator.ingest(
                    url,
                    jurisdiction,
                    domain_slug=domain,
                    link_domains=link,
                    generate_slots=generate_slots,
                    batch_size=batch_size,
                )
            )

    verb = "Created" if report.created else "Updated"
    console.print(f"[green]{verb} {report.citation} with {report.provisions} provisions[/green]")
    console.print(f"[dim]Source id: {report.source_id}[/dim]")
    if report.relevant_domains:
        _print_relevance(report.relevant_domains)
    if report.batch_result:
        _print_batch_result(report.batch_result)
    if output and report.statute:
        output.write_text(json.dumps(report.statute.to_payload(), indent=2), encoding="utf-8")
        console.print(f"[green]Statute saved to {output}[/green]")


@app.command()
def upload(
    file_path: Path = typer.Argument(..., help="JSON or plain text statute file"),
    jurisdiction: str = typer.Option(ONTARIO[0], "--jurisdiction", "-j", help="Jurisdiction code"),
    domain: str = typer.Option(None, "--domain", "-d", help="Primary legal domain slug"),
    citation: str = typer.Option(None, "--citation", help="Citation (text files)"),
    title: str = typer.Option(None, "--title", help="Long title (text files)"),
    url: str = typer.Option(None, "--url", help="Official URL (text files)"),
    short_title: str = typer.Option(None, "--short-title", help="Short title (text files)"),
):
    """Upload a statute by hand when the website blocks scraping."""
    from pydantic import ValidationError

    from .manual_upload import StatuteUploader

    config = _setup()
    if not file_path.exists():
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)

    if file_path.suffix.lower() != ".json" and not (citation and title and url):
        console.print("[red]Error: Text uploads need --citation, --title and --url[/red]")
        raise typer.Exit(1)

    with closing(get_store(config)) as store:
        uploader = StatuteUploader(store)
        try:
            if file_path.suffix.lower() == ".json":
                source = uploader.upload_json(file_path, jurisdiction, domain)
            else:
                source = uploader.upload_text(
                    file_path,
                    jurisdiction,
                    citation=citation,
                    long_title=title,
                    url=url,
                    short_title=short_title,
                    domain_slug=domain,
                )
        except ValidationError as e:
            _fail(e)
        provisions = store.list_provisions(source.id)

    console.print(f"[green]Uploaded {source.citation} with {len(provisions)} provisions[/green]")
    console.print(f"[dim]Source id: {source.id}[/dim]")


@app.command()
def template(
    output: Path = typer.Argument(Path("statute-template.json"), help="Where to write the template"),
):
    """Write an example JSON file for manual upload."""
    from .manual_upload import write_template

    write_template(output)
    console.print(f"[green]Template created: {output}[/green]")
    console.print("[dim]Edit this file and load it with: lexingest upload <file>[/dim]")


@app.command()
def process(
    source_id: str = typer.Argument(None, help="Source id; defaults to the most recent unprocessed source"),
    domain: str = typer.Option(None, "--domain", "-d", help="Focus domain slug"),
    batch_size: int = typer.Option(None, "--batch-size", help="Provisions per model call"),
):
    """Generate slots for a stored source."""
    config = _setup()
    with closing(get_store(config)) as store:
        orchestrator = get_orchestrator(config, store)
        with _spinner("Generating slots..."):
            if source_id:
                result = _run(orchestrator.process_source(source_id, domain, batch_size))
            else:
                result = _run(orchestrator.process_next_unprocessed(domain, batch_size))

    if result is None:
        console.print("[yellow]No unprocessed legal sources found[/yellow]")
        return
    _print_batch_result(result)
    if not result.completed:
        raise typer.Exit(1)


@app.command()
def reprocess(
    source_id: str = typer.Argument(..., help="Source id"),
    domain: str = typer.Option(None, "--domain", "-d", help="Focus domain slug"),
    keep_existing: bool = typer.Option(False, "--keep-existing", help="Keep stored slots"),
    batch_size: int = typer.Option(None, "--batch-size", help="Provisions per model call"),
):
    """Delete a source's slots and generate them again."""
    config = _setup()
    with closing(get_store(config)) as store:
        orchestrator = get_orchestrator(config, store)
        with _spinner("Regenerating slots..."):
            result = _run(
                orchestrator.reprocess(
                    source_id, domain, delete_existing=not keep_existing, batch_size=batch_size
                )
            )
    _print_batch_result(result)
    if not result.completed:
        raise typer.Exit(1)


@app.command()
def relevance(
    source_id: str = typer.Argument(None, help="Source id; omit to show every domain bucket"),
):
    """Show which legal domains a source is relevant to."""
    from .errors import SourceNotFound

    config = _setup()
    engine = get_relevance_engine(config)
    with closing(get_store(config)) as store:
        domains = store.list_domains()
        sources = store.list_sources() if source_id is None else []
        source = store.get_source(source_id) if source_id else None

    if source_id is None:
        buckets = engine.domain_buckets(sources, domains)
        table = Table(title="Sources by Domain")
        table.add_column("Domain", style="cyan")
        table.add_column("Citation")
        table.add_column("Score", justify="right")
        table.add_column("Reasoning", style="dim")
        for slug, links in buckets.items():
            for link in links:
                label = "primary" if link.primary else f"{link.relevance_score:.0%}"
                table.add_row(slug, link.citation, label, link.reasoning)
        console.print(table)
        return

    if source is None:
        _fail(SourceNotFound(source_id))
    relevant = engine.find_relevant_domains(source, domains)
    if not relevant:
        console.print(f"[yellow]No additional domains for {source.citation}[/yellow]")
        return
    _print_relevance(relevant)


@app.command()
def monitor(
    source_id: str = typer.Argument(None, help="Check one source instead of all"),
    pending: bool = typer.Option(False, "--pending", help="List changes awaiting review"),
):
    """Re-scrape stored statutes and record changes."""
    from .monitoring import ChangeMonitor

    config = _setup()
    with closing(get_store(config)) as store:
        if pending:
            changes = store.pending_changes()
        else:
            _check_sources(ChangeMonitor(get_scraper(config), store), source_id)
            return

    table = Table(title="Pending Changes")
    table.add_column("Detected", style="dim")
    table.add_column("Source")
    table.add_column("Summary")
    table.add_column("Slots", justify="right")
    for c in changes:
        table.add_row(c.detected_at.strftime("%Y-%m-%d %H:%M"), c.legal_source_id, c.change_summary, str(len(c.affected_slot_ids)))
    console.print(table)
    console.print(f"[dim]{len(changes)} change(s) awaiting review[/dim]")


def _check_sources(monitor_, source_id: str | None):
    if source_id:
        result = _run(monitor_.check_source(source_id))
        if result.has_changes:
            console.print(f"[yellow]Changes detected in {result.citation}: {result.diff}[/yellow]")
        else:
            console.print(f"[green]No changes in {result.citation}[/green]")
        return

    summary = _run(monitor_.check_all_sources())
    table = Table(title="Change Detection Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Checked", str(summary.checked))
    table.add_row("Changed", str(summary.changed))
    table.add_row("Unchanged", str(summary.unchanged))
    table.add_row("Errors", str(len(summary.errors)))
    console.print(table)
    for error in summary.errors:
        console.print(f"  [red]• {error}[/red]")


@domains_app.command("seed")
def seed_domains():
    """Create the Ontario jurisdiction and every domain the rules mention."""
    from .analysis import DEFAULT_RULES
    from .models import Jurisdiction, LegalDomain

    config = _setup()
    slugs = sorted({slug for rule in DEFAULT_RULES for slug in rule.domains})
    with closing(get_store(config)) as store:
        store.save_jurisdiction(Jurisdiction(code=ONTARIO[0], name=ONTARIO[1]))
        for slug in slugs:
            if store.get_domain(slug) is None:
                store.save_domain(LegalDomain(slug=slug, name=slug.replace("-", " ").title()))
    console.print(f"[green]Seeded {len(slugs)} domains for {ONTARIO[1]}[/green]")


@domains_app.command("list")
def list_domains():
    """List stored legal domains."""
    config = _setup()
    with closing(get_store(config)) as store:
        domains = store.list_domains()

    table = Table(title="Legal Domains")
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    for d in domains:
        table.add_row(d.slug, d.name)
    console.print(table)
    console.print(f"[dim]Showing {len(domains)} domains[/dim]")


def _print_relevance(relevant):
    table = Table(title="Relevant Domains")
    table.add_column("Domain", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Reasoning", style="dim")
    for r in relevant:
        table.add_row(r.domain_slug, f"{r.relevance_score:.0%}", r.reasoning)
    console.print(table)


def _print_batch_result(result):
    table = Table(title="Slot Generation")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Batches", str(result.batches))
    table.add_row("Succeeded", str(result.batches_succeeded))
    table.add_row("Skipped", str(result.batches_skipped))
    table.add_row("Failed", str(result.batches_failed))
    table.add_row("Total slots", str(result.total_slots))
    table.add_row("Average confidence", f"{result.average_confidence:.1%}")
    console.print(table)
    for failure in result.failures:
        numbers = ", ".join(failure.provision_numbers)
        console.print(f"  [red]• Batch {failure.batch_index + 1} ({numbers}): {failure.error}[/red]")
    if result.completed:
        console.print("[green]Source marked as processed[/green]")
    else:
        console.print("[yellow]Some batches failed; re-run to retry them[/yellow]")


if __name__ == "__main__":
    app()
