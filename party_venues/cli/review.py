"""
Review and Directory CLI Commands
=================================

CLI commands for reviewing extracted items and managing published venues.
"""

from __future__ import annotations

import json
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from party_venues.core.enums import VenueStatus
from party_venues.core.schema import QueueItem
from party_venues.db.engine import get_session
from party_venues.db.repositories import QueueRepository, VenueFilters, VenueRepository
from party_venues.ingestion.config import get_default_config
from party_venues.services.review_service import ReviewService

console = Console()
review_app = typer.Typer(help="Review extracted venues")
venues_app = typer.Typer(help="Directory venue commands")


def _confidence_text(score: float | None) -> str:
    if score is None:
        return "-"
    config = get_default_config().review
    if score >= config.high_confidence_threshold:
        color = "green"
    elif score >= config.low_confidence_threshold:
        color = "yellow"
    else:
        color = "red"
    return f"[{color}]{score:.2f}[/{color}]"


def _review_table(title: str, items: list[QueueItem]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Venue", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Packages", justify="right")
    table.add_column("URL")
    table.add_column("Error", style="red")

    for item in items:
        packages = (item.extracted_data or {}).get("packages") or []
        table.add_row(
            str(item.id)[:8],
            item.venue_name or "-",
            _confidence_text(item.confidence_score),
            str(len(packages)),
            item.url,
            item.error_message or "",
        )
    return table


def _resolve_item_id(repo: QueueRepository, item_id: str) -> str:
    """Expand a short ID prefix to a full queue item ID."""
    if repo.get_by_id(item_id) is not None:
        return item_id
    matches = [item for item in repo.list_for_review() if str(item.id).startswith(item_id)]
    if len(matches) == 1:
        return str(matches[0].id)
    return item_id


@review_app.command("list")
def list_review(
    min_confidence: Optional[float] = typer.Option(
        None, "--min", help="Minimum confidence score"
    ),
    max_confidence: Optional[float] = typer.Option(
        None, "--max", help="Maximum confidence score"
    ),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum items to show"),
    banded: bool = typer.Option(False, "--banded", "-b", help="Group by confidence band"),
) -> None:
    """
    List items awaiting review, highest confidence first.

    Examples:
        party-venues review list
        party-venues review list --min 0.8
        party-venues review list --banded
    """
    with get_session() as session:
        service = ReviewService(session, get_default_config().review)

        if banded:
            summary = service.review_summary()
            if summary.total == 0:
                rprint("[dim]No items awaiting review[/dim]")
                return
            for band, items in (
                ("High confidence", summary.high),
                ("Medium confidence", summary.medium),
                ("Low confidence", summary.low),
            ):
                if items:
                    console.print(_review_table(f"{band} ({len(items)})", items))
            return

        items = service.list_for_review(
            min_confidence=min_confidence,
            max_confidence=max_confidence,
            limit=limit,
        )

    if not items:
        rprint("[dim]No items awaiting review[/dim]")
        return

    console.print(_review_table(f"Awaiting review ({len(items)})", items))


@review_app.command("show")
def show_item(
    item_id: str = typer.Argument(..., help="Queue item ID (or unique prefix)"),
) -> None:
    """
    Show the extracted data of a queue item.

    Examples:
        party-venues review show 3f2a9c1e
    """
    with get_session() as session:
        repo = QueueRepository(session)
        item = repo.get_by_id(_resolve_item_id(repo, item_id))

    if item is None:
        rprint(f"[red]Error:[/red] Queue item '{item_id}' not found")
        raise typer.Exit(1)

    rprint(f"\n[bold]{item.venue_name or item.url}[/bold]")
    rprint(f"  ID: {item.id}")
    rprint(f"  URL: {item.url}")
    if item.source_page_url and item.source_page_url != item.url:
        rprint(f"  Source page: {item.source_page_url}")
    rprint(f"  Status: {item.status.value}")
    rprint(f"  Confidence: {_confidence_text(item.confidence_score)}")
    if item.search_query:
        rprint(f"  Query: {item.search_query}")
    if item.error_message:
        rprint(f"  [red]Error:[/red] {item.error_message}")
    if item.rejection_reason:
        rprint(f"  Rejection reason: {item.rejection_reason}")

    if item.extracted_data is not None:
        rprint("\n[bold]Extracted data:[/bold]")
        console.print_json(json.dumps(item.extracted_data))


@review_app.command("approve")
def approve(
    item_id: str = typer.Argument(..., help="Queue item ID (or unique prefix)"),
    reviewer: Optional[str] = typer.Option(None, "--reviewer", "-r", help="Reviewer name"),
    publish: Optional[bool] = typer.Option(
        None, "--publish/--draft", help="Create the venue published or as a draft"
    ),
) -> None:
    """
    Approve an item and create its venue and packages.

    Examples:
        party-venues review approve 3f2a9c1e
        party-venues review approve 3f2a9c1e --publish -r alex
    """
    with get_session() as session:
        service = ReviewService(session, get_default_config().review)
        result = service.approve(
            _resolve_item_id(service.queue_repo, item_id),
            reviewed_by=reviewer,
            publish=publish,
        )
        session.commit()

    if not result.success:
        rprint(f"[red]Error:[/red] {result.error_message}")
        raise typer.Exit(1)

    venue = result.venue
    rprint(f"[green]Approved[/green] {venue.name}")
    rprint(f"  Slug: {venue.slug}")
    rprint(f"  Status: {venue.status.value}")
    rprint(f"  Packages: {len(result.packages)}")


@review_app.command("reject")
def reject(
    item_id: str = typer.Argument(..., help="Queue item ID (or unique prefix)"),
    reason: Optional[str] = typer.Option(None, "--reason", help="Why the item is rejected"),
    reviewer: Optional[str] = typer.Option(None, "--reviewer", "-r", help="Reviewer name"),
) -> None:
    """
    Reject an item without creating a venue.

    Examples:
        party-venues review reject 3f2a9c1e --reason "Not a party venue"
    """
    with get_session() as session:
        service = ReviewService(session, get_default_config().review)
        result = service.reject(
            _resolve_item_id(service.queue_repo, item_id),
            reason=reason,
            reviewed_by=reviewer,
        )
        session.commit()

    if not result.success:
        rprint(f"[red]Error:[/red] {result.error_message}")
        raise typer.Exit(1)

    rprint(f"[yellow]Rejected[/yellow] {result.item.url}")


@review_app.command("requeue")
def requeue(
    item_id: str = typer.Argument(..., help="Queue item ID (or unique prefix)"),
) -> None:
    """
    Send an item back for re-extraction.

    Examples:
        party-venues review requeue 3f2a9c1e
    """
    with get_session() as session:
        service = ReviewService(session, get_default_config().review)
        result = service.requeue(_resolve_item_id(service.queue_repo, item_id))
        session.commit()

    if not result.success:
        rprint(f"[red]Error:[/red] {result.error_message}")
        raise typer.Exit(1)

    rprint(f"[green]Requeued[/green] {result.item.url} for extraction")


@review_app.command("edit")
def edit(
    item_id: str = typer.Argument(..., help="Queue item ID (or unique prefix)"),
    data_file: typer.FileText = typer.Option(
        ..., "--file", "-f", help="JSON file with the corrected extraction"
    ),
    confidence: Optional[float] = typer.Option(
        None, "--confidence", "-c", help="New confidence score"
    ),
) -> None:
    """
    Replace an item's extracted data with a corrected JSON document.

    Examples:
        party-venues review edit 3f2a9c1e --file corrected.json
    """
    try:
        data = json.load(data_file)
    except json.JSONDecodeError as e:
        rprint(f"[red]Error:[/red] Invalid JSON: {e}")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        rprint("[red]Error:[/red] Extraction JSON must be an object")
        raise typer.Exit(1)

    with get_session() as session:
        service = ReviewService(session, get_default_config().review)
        result = service.update_extraction(
            _resolve_item_id(service.queue_repo, item_id),
            data,
            confidence_score=confidence,
        )
        session.commit()

    if not result.success:
        rprint(f"[red]Error:[/red] {result.error_message}")
        raise typer.Exit(1)

    rprint(f"[green]Updated[/green] extraction for {result.item.url}")


@venues_app.command("list")
def list_venues(
    city: Optional[str] = typer.Option(None, "--city", help="Filter by city"),
    borough: Optional[str] = typer.Option(None, "--borough", help="Filter by borough"),
    venue_type: Optional[list[str]] = typer.Option(
        None, "--type", "-t", help="Filter by venue type (repeatable)"
    ),
    age: Optional[int] = typer.Option(None, "--age", help="Child's age"),
    status: Optional[VenueStatus] = typer.Option(
        None, "--status", "-s", help="List venues of any status instead of published only"
    ),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum venues to show"),
) -> None:
    """
    List directory venues.

    Without --status only published venues are listed and the filters apply.

    Examples:
        party-venues venues list --city London --type soft_play
        party-venues venues list --status draft
    """
    with get_session() as session:
        repo = VenueRepository(session)
        if status is not None:
            venues = repo.list_all(status)[:limit]
        else:
            venues = repo.list_published(
                VenueFilters(
                    city=city,
                    borough=borough,
                    venue_types=venue_type or [],
                    min_age=age,
                    max_age=age,
                    limit=limit,
                )
            )

    if not venues:
        rprint("[dim]No venues found[/dim]")
        return

    table = Table(title=f"Venues ({len(venues)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Slug")
    table.add_column("Type")
    table.add_column("Location")
    table.add_column("Ages")
    table.add_column("Status")

    for venue in venues:
        location = ", ".join(part for part in (venue.borough, venue.city) if part)
        if venue.min_age is None and venue.max_age is None:
            ages = "-"
        else:
            ages = f"{venue.min_age if venue.min_age is not None else '?'}-{venue.max_age if venue.max_age is not None else '?'}"
        table.add_row(
            str(venue.id)[:8],
            venue.name,
            venue.slug,
            ", ".join(venue.venue_type),
            location or "-",
            ages,
            venue.status.value,
        )

    console.print(table)


def _set_venue_status(venue_ref: str, status: VenueStatus) -> None:
    with get_session() as session:
        repo = VenueRepository(session)
        venue = repo.find(venue_ref)
        if venue is not None:
            venue = repo.set_status(venue.id, status)
            session.commit()

    if venue is None:
        rprint(f"[red]Error:[/red] Venue '{venue_ref}' not found")
        raise typer.Exit(1)

    rprint(f"[green]{venue.name}[/green] is now {venue.status.value}")


@venues_app.command("publish")
def publish(
    venue_ref: str = typer.Argument(..., help="Venue ID, ID prefix or slug"),
) -> None:
    """Publish a draft venue."""
    _set_venue_status(venue_ref, VenueStatus.PUBLISHED)


@venues_app.command("archive")
def archive(
    venue_ref: str = typer.Argument(..., help="Venue ID, ID prefix or slug"),
) -> None:
    """Archive a venue so it no longer appears in the directory."""
    _set_venue_status(venue_ref, VenueStatus.ARCHIVED)
