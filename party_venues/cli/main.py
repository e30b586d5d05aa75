"""Party Venues CLI using Typer."""

import logging
import os
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from party_venues import __version__
from party_venues.cli.pipeline import pipeline_app
from party_venues.cli.review import review_app, venues_app

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

app = typer.Typer(
    name="party-venues",
    help="Party Venues - Discover, extract and review children's party venues",
    add_completion=False,
)
app.add_typer(pipeline_app, name="pipeline")
app.add_typer(review_app, name="review")
app.add_typer(venues_app, name="venues")

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _check_ai_config() -> None:
    """Check and display AI configuration status."""
    anthropic_key = os.environ.get("ANTHROPIC_API_KEY", "")
    openai_key = os.environ.get("OPENAI_API_KEY", "")
    provider = os.environ.get("AI_PROVIDER", "openai").lower()

    if provider == "anthropic" and anthropic_key:
        typer.echo("  AI Provider: Anthropic (configured)")
    elif provider == "openai" and openai_key:
        typer.echo("  AI Provider: OpenAI (configured)")
    else:
        typer.echo(f"  AI Provider: {provider} (no API key, extraction will fail)")
        typer.echo("  Tip: Set OPENAI_API_KEY or ANTHROPIC_API_KEY in .env file")


@app.command()
def init_db(
    migrate: bool = typer.Option(
        False, "--migrate", help="Apply Alembic migrations instead of creating tables directly"
    ),
) -> None:
    """Initialize the database."""
    from party_venues.db.engine import init_db as db_init
    from party_venues.db.engine import run_migrations

    typer.echo("Initializing database...")
    if migrate:
        run_migrations()
    else:
        db_init()
    typer.echo("Database initialized successfully!")


@app.command()
def version() -> None:
    """Show the Party Venues version."""
    typer.echo(f"Party Venues v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from party_venues.db.engine import get_database_url
    from party_venues.ingestion.config import get_default_config

    typer.echo("Party Venues Configuration")
    typer.echo("=" * 40)

    # Check .env file
    env_found = False
    for _env_path in _env_paths:
        if _env_path.exists():
            typer.echo(f"  .env file: {_env_path}")
            env_found = True
            break
    if not env_found:
        typer.echo("  .env file: Not found")

    _check_ai_config()

    config = get_default_config()
    typer.echo(f"  Pipeline config: {config.config_path or 'built-in defaults'}")
    typer.echo(f"  Search provider: {config.discovery.provider}")
    typer.echo(f"  Search queries: {len(config.discovery.queries)}")
    typer.echo(f"  Denylisted hosts: {len(config.discovery.denylist)}")

    typer.echo(f"  Database: {get_database_url()}")


@app.command()
def status() -> None:
    """Show queue and directory counts."""
    from party_venues.core.enums import VenueStatus
    from party_venues.db.engine import get_session
    from party_venues.db.repositories import PartyPackageRepository, QueueRepository, VenueRepository

    with get_session() as session:
        queue_counts = QueueRepository(session).count_by_status()
        venue_repo = VenueRepository(session)
        venue_counts = {s.value: len(venue_repo.list_all(s)) for s in VenueStatus}
        package_count = PartyPackageRepository(session).count()

    table = Table(title="Scraping queue")
    table.add_column("Status", style="cyan")
    table.add_column("Items", justify="right")
    for queue_status, count in queue_counts.items():
        table.add_row(queue_status, str(count))
    table.add_row("[bold]total[/bold]", f"[bold]{sum(queue_counts.values())}[/bold]")
    console.print(table)

    table = Table(title="Directory")
    table.add_column("Venue status", style="cyan")
    table.add_column("Venues", justify="right")
    for venue_status, count in venue_counts.items():
        table.add_row(venue_status, str(count))
    console.print(table)
    typer.echo(f"Party packages: {package_count}")


if __name__ == "__main__":
    app()
