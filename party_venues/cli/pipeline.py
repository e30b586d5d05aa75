"""
Pipeline CLI Commands
=====================

CLI commands for running the discover, scrape and extract stages.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Optional
from urllib.parse import urlparse

import typer
from rich import print as rprint
from rich.console import Console

from party_venues.db.engine import get_session
from party_venues.db.repositories import QueueRepository
from party_venues.ingestion.config import get_default_config
from party_venues.ingestion.discovery import get_search_provider
from party_venues.ingestion.jobs import (
    JobStatus,
    Stage,
    StageResult,
    enqueue_stage,
    get_job_status,
    run_discovery,
    run_extraction,
    run_scrape,
)
from party_venues.ingestion.scraper import PlaywrightRenderer
from party_venues.services.ai.extraction import ExtractionService

console = Console()
pipeline_app = typer.Typer(help="Pipeline stage commands")


async def _discover(queries: list[str] | None, provider_name: str | None) -> StageResult:
    config = get_default_config()
    provider = get_search_provider(
        provider_name or config.discovery.provider,
        user_agent=config.scraper.user_agent,
        timeout=config.discovery.request_timeout,
    )
    with get_session() as session:
        return await run_discovery(session, provider, config, queries=queries)


async def _scrape(limit: int | None) -> StageResult:
    config = get_default_config()
    async with PlaywrightRenderer.from_config(config.scraper) as renderer:
        with get_session() as session:
            return await run_scrape(session, renderer, config, limit=limit)


async def _extract(limit: int | None) -> StageResult:
    config = get_default_config()
    with get_session() as session:
        service = ExtractionService(session, config=config.extraction)
        return await run_extraction(session, service, config, limit=limit)


@pipeline_app.command("discover")
def discover(
    query: Optional[list[str]] = typer.Option(
        None, "--query", "-q", help="Search query (repeatable). Defaults to configured queries"
    ),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="Search provider: duckduckgo or serpapi"
    ),
) -> None:
    """
    Search for venue URLs and add new ones to the queue.

    Examples:
        party-venues pipeline discover
        party-venues pipeline discover -q "trampoline park party london"
    """
    try:
        with console.status("[bold blue]Discovering URLs...[/bold blue]"):
            result = asyncio.run(_discover(query or None, provider))
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    display_stage_result(result.to_dict())


@pipeline_app.command("add-url")
def add_url(
    urls: list[str] = typer.Argument(..., help="Venue URLs to queue"),
    query: Optional[str] = typer.Option(
        None, "--query", "-q", help="Search query to record against the URLs"
    ),
) -> None:
    """
    Queue known venue URLs without running a search.

    URLs already in the queue are skipped.

    Examples:
        party-venues pipeline add-url https://www.jumpin.co.uk/
        party-venues pipeline add-url https://a.example/ https://b.example/ -q "seed list"
    """
    added = skipped = 0
    invalid = []
    with get_session() as session:
        repo = QueueRepository(session)
        for url in urls:
            url = url.strip()
            if not url.startswith(("http://", "https://")) or not urlparse(url).hostname:
                invalid.append(url)
                continue
            if repo.create_if_absent(url, search_query=query) is None:
                skipped += 1
            else:
                added += 1
        session.commit()

    for url in invalid:
        rprint(f"[red]Invalid URL:[/red] {url}")
    rprint(f"[green]Added {added} URL(s)[/green], skipped {skipped} already queued")
    if invalid:
        raise typer.Exit(1)


@pipeline_app.command("scrape")
def scrape(
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum URLs to scrape"),
) -> None:
    """
    Scrape pending URLs with a headless browser.

    Examples:
        party-venues pipeline scrape
        party-venues pipeline scrape --limit 10
    """
    with console.status("[bold blue]Scraping...[/bold blue]"):
        result = asyncio.run(_scrape(limit))

    display_stage_result(result.to_dict())


@pipeline_app.command("extract")
def extract(
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum items to extract"),
) -> None:
    """
    Extract structured venue data from scraped pages.

    Examples:
        party-venues pipeline extract
        party-venues pipeline extract --limit 5
    """
    try:
        with console.status("[bold blue]Extracting...[/bold blue]"):
            result = asyncio.run(_extract(limit))
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    display_stage_result(result.to_dict())


@pipeline_app.command("run-all")
def run_all(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Maximum items per scrape/extract stage"
    ),
    skip_discovery: bool = typer.Option(False, "--skip-discovery", help="Start from scraping"),
) -> None:
    """
    Run discover, scrape and extract in order.

    Examples:
        party-venues pipeline run-all
        party-venues pipeline run-all --skip-discovery --limit 10
    """
    try:
        if not skip_discovery:
            rprint("\n[bold]Stage 1: discover[/bold]")
            display_stage_result(asyncio.run(_discover(None, None)).to_dict())

        rprint("\n[bold]Stage 2: scrape[/bold]")
        display_stage_result(asyncio.run(_scrape(limit)).to_dict())

        rprint("\n[bold]Stage 3: extract[/bold]")
        display_stage_result(asyncio.run(_extract(limit)).to_dict())
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    rprint("\nReview extracted venues with:")
    rprint("  party-venues review list")


@pipeline_app.command("requeue-failed")
def requeue_failed() -> None:
    """
    Send failed items back to the stage that failed them.

    Examples:
        party-venues pipeline requeue-failed
    """
    with get_session() as session:
        count = QueueRepository(session).requeue_failed()
        session.commit()

    rprint(f"[green]Requeued {count} failed item(s)[/green]")


@pipeline_app.command("release-stale")
def release_stale(
    minutes: int = typer.Option(
        30, "--minutes", "-m", help="Release items claimed more than this many minutes ago"
    ),
) -> None:
    """
    Release items stuck in processing after a crashed run.

    Examples:
        party-venues pipeline release-stale --minutes 60
    """
    cutoff = datetime.now(UTC) - timedelta(minutes=minutes)
    with get_session() as session:
        count = QueueRepository(session).release_stale(cutoff)
        session.commit()

    rprint(f"[green]Released {count} stale item(s)[/green]")


@pipeline_app.command("enqueue")
def enqueue(
    stage: Stage = typer.Argument(..., help="Stage to run: discover, scrape or extract"),
) -> None:
    """
    Enqueue a stage job for the background worker.

    Examples:
        party-venues pipeline enqueue scrape
    """
    try:
        job_id = asyncio.run(enqueue_stage(stage))
    except Exception as e:
        rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
        rprint("\nMake sure Redis is running:")
        rprint("  docker-compose up -d redis")
        raise typer.Exit(1)

    rprint("\n[green]Job enqueued successfully![/green]")
    rprint(f"Job ID: [bold]{job_id}[/bold]")
    rprint("\nCheck status with:")
    rprint(f"  party-venues pipeline job {job_id}")


@pipeline_app.command("job")
def job(
    job_id: str = typer.Argument(..., help="Job ID to check"),
) -> None:
    """
    Check the status of a stage job.

    Examples:
        party-venues pipeline job abc123
    """
    try:
        result = asyncio.run(get_job_status(job_id))
    except Exception as e:
        rprint(f"[red]Error:[/red] Failed to get job status: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)

    if result is None:
        rprint(f"[yellow]Job '{job_id}' not found[/yellow]")
        raise typer.Exit(1)

    rprint(f"\n[bold]Job: {job_id}[/bold]")
    rprint(f"  Status: {result.get('status', 'unknown')}")
    if isinstance(result.get("result"), dict):
        display_stage_result(result["result"])


@pipeline_app.command("worker")
def start_worker(
    burst: bool = typer.Option(False, "--burst", help="Run in burst mode (exit when queue empty)"),
) -> None:
    """
    Start the pipeline worker.

    The worker processes queued stage jobs from Redis.

    Examples:
        party-venues pipeline worker
        party-venues pipeline worker --burst
    """
    from arq import run_worker

    from party_venues.ingestion.jobs import WorkerSettings

    rprint("[bold]Starting pipeline worker...[/bold]")
    rprint("Press Ctrl+C to stop\n")

    try:
        run_worker(WorkerSettings, burst=burst)
    except Exception as e:
        rprint(f"[red]Error:[/red] Worker failed: {e}")
        rprint("\nMake sure Redis is running:")
        rprint("  docker-compose up -d redis")
        raise typer.Exit(1)


def display_stage_result(result: dict) -> None:
    """Display a stage result."""
    status = result.get("status", "unknown")
    status_color = {
        JobStatus.COMPLETED.value: "green",
        JobStatus.RUNNING.value: "blue",
        JobStatus.PENDING.value: "yellow",
        JobStatus.FAILED.value: "red",
    }.get(status, "white")

    rprint(f"\n[bold]Results ({result.get('stage', 'N/A')}):[/bold]")
    rprint(f"  Status: [{status_color}]{status}[/{status_color}]")

    if result.get("duration_seconds"):
        rprint(f"  Duration: {result['duration_seconds']:.1f}s")

    rprint(f"  Processed: {result.get('items_processed', 0)}")
    rprint(f"  Succeeded: {result.get('items_succeeded', 0)}")
    rprint(f"  Failed: {result.get('items_failed', 0)}")
    rprint(f"  Skipped: {result.get('items_skipped', 0)}")
    if result.get("stage") == Stage.DISCOVER.value:
        rprint(f"  Candidate URLs: {result.get('urls_found', 0)}")

    errors = result.get("errors", [])
    if errors:
        rprint(f"\n[bold red]Errors ({len(errors)}):[/bold red]")
        for error in errors[:10]:  # Show first 10
            rprint(f"  • {error}")
        if len(errors) > 10:
            rprint(f"  ... and {len(errors) - 10} more")
