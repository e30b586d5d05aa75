"""
Pipeline Jobs Module
====================

Bounded batch runs for each pipeline stage, plus the arq tasks that run
them in a background worker. Uses Redis as the job queue backend.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from arq import create_pool
from arq.connections import RedisSettings
from sqlalchemy.orm import Session

from party_venues.core.enums import QueueStatus
from party_venues.core.schema import QueueItem
from party_venues.db.engine import get_session
from party_venues.db.repositories import QueueRepository
from party_venues.ingestion.config import PipelineConfig, get_default_config
from party_venues.ingestion.discovery import SearchProvider, filter_result_urls, get_search_provider
from party_venues.ingestion.scraper import PageRenderer, PlaywrightRenderer, scrape_venue

if TYPE_CHECKING:
    from party_venues.services.ai.extraction import ExtractionService

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class JobStatus(str, Enum):
    """Status of a pipeline stage run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Stage(str, Enum):
    """Pipeline stages that can be run as jobs."""

    DISCOVER = "discover"
    SCRAPE = "scrape"
    EXTRACT = "extract"


@dataclass
class StageResult:
    """Result of a pipeline stage run."""

    job_id: str
    stage: Stage
    status: JobStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    items_processed: int = 0
    items_succeeded: int = 0
    items_failed: int = 0
    items_skipped: int = 0
    urls_found: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float | None = None

    def finish(self) -> StageResult:
        """Stamp completion time and duration."""
        self.completed_at = datetime.now(UTC)
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "job_id": self.job_id,
            "stage": self.stage.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "items_processed": self.items_processed,
            "items_succeeded": self.items_succeeded,
            "items_failed": self.items_failed,
            "items_skipped": self.items_skipped,
            "urls_found": self.urls_found,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
        }


def _new_result(stage: Stage, job_id: str | None = None) -> StageResult:
    return StageResult(
        job_id=job_id or str(uuid4()),
        stage=stage,
        status=JobStatus.RUNNING,
        started_at=datetime.now(UTC),
    )


async def run_discovery(
    session: Session,
    provider: SearchProvider,
    config: PipelineConfig | None = None,
    queries: list[str] | None = None,
    sleep: Sleep = asyncio.sleep,
    job_id: str | None = None,
) -> StageResult:
    """
    Search each query and enqueue new, non-denylisted result URLs as pending.

    A failing or empty query is recorded and the run moves on. Progress is
    committed after every query.

    Args:
        session: Database session.
        provider: Search provider.
        config: Pipeline configuration.
        queries: Queries to run; defaults to the configured list.
        sleep: Awaitable delay between queries.
        job_id: Optional job ID for the result.

    Returns:
        StageResult. ``items_succeeded`` counts newly enqueued URLs and
        ``items_skipped`` URLs that were already queued.
    """
    config = config or get_default_config()
    settings = config.discovery
    queries = queries if queries is not None else settings.queries
    result = _new_result(Stage.DISCOVER, job_id)
    repo = QueueRepository(session)

    for index, query in enumerate(queries):
        if index > 0 and settings.query_delay_seconds > 0:
            await sleep(settings.query_delay_seconds)

        result.items_processed += 1
        try:
            raw_urls = await provider.search(query, settings.max_results_per_query)
        except Exception as e:
            logger.warning(f"Search failed for '{query}': {e}")
            result.items_failed += 1
            result.errors.append(f"{query}: {e}")
            continue

        if not raw_urls:
            logger.warning(f"No results for '{query}'")
            result.errors.append(f"{query}: no results")
            continue

        urls = filter_result_urls(raw_urls[: settings.max_results_per_query], settings.denylist)
        result.urls_found += len(urls)

        created = 0
        for url in urls:
            if repo.create_if_absent(url, search_query=query) is None:
                result.items_skipped += 1
            else:
                created += 1
        session.commit()

        result.items_succeeded += created
        logger.info(f"'{query}': {len(urls)} candidate URLs, {created} new")

    result.status = JobStatus.COMPLETED
    return result.finish()


async def _scrape_one(
    session: Session,
    repo: QueueRepository,
    renderer: PageRenderer,
    item: QueueItem,
    config: PipelineConfig,
    result: StageResult,
) -> None:
    if not repo.claim(item.id, QueueStatus.PENDING):
        result.items_skipped += 1
        return
    session.commit()

    settings = config.scraper
    try:
        outcome = await scrape_venue(renderer, item.url, settings.candidate_paths, settings.keywords)
    except Exception as e:
        logger.exception(f"Unexpected error scraping {item.url}")
        repo.mark_failed(item.id, str(e))
        result.items_failed += 1
        result.errors.append(f"{item.url}: {e}")
        session.commit()
        return

    if outcome.success:
        repo.mark_scraped(item.id, outcome.page.html, source_page_url=outcome.page.url)
        result.items_succeeded += 1
        logger.info(f"Scraped {item.url} via {outcome.page.url}")
    else:
        repo.mark_failed(item.id, outcome.error_message)
        result.items_failed += 1
        result.errors.append(f"{item.url}: {outcome.error_message}")
        logger.warning(f"All candidates failed for {item.url}")
    session.commit()


async def run_scrape(
    session: Session,
    renderer: PageRenderer,
    config: PipelineConfig | None = None,
    limit: int | None = None,
    job_id: str | None = None,
) -> StageResult:
    """
    Scrape the oldest pending items in small concurrent batches.

    Each item is claimed before rendering, so an item taken by another run
    is skipped. One failing venue never blocks the rest of its batch.

    Args:
        session: Database session.
        renderer: Page renderer (already entered if it is a context manager).
        config: Pipeline configuration.
        limit: Maximum items to process; defaults to the configured cap.
        job_id: Optional job ID for the result.

    Returns:
        StageResult for the run.
    """
    config = config or get_default_config()
    settings = config.scraper
    result = _new_result(Stage.SCRAPE, job_id)
    repo = QueueRepository(session)

    if limit is None:
        limit = settings.max_items_per_run
    items = repo.list_by_status(QueueStatus.PENDING, limit=limit)
    logger.info(f"Found {len(items)} URLs to scrape")

    batch_size = max(1, settings.batch_size)
    for start in range(0, len(items), batch_size):
        batch = items[start : start + batch_size]
        result.items_processed += len(batch)
        outcomes = await asyncio.gather(
            *(_scrape_one(session, repo, renderer, item, config, result) for item in batch),
            return_exceptions=True,
        )
        # The whole batch has settled before a batch error propagates
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

    result.status = JobStatus.COMPLETED
    return result.finish()


async def run_extraction(
    session: Session,
    service: ExtractionService,
    config: PipelineConfig | None = None,
    limit: int | None = None,
    sleep: Sleep = asyncio.sleep,
    job_id: str | None = None,
) -> StageResult:
    """
    Extract scraped items one at a time with a fixed delay between them.

    Args:
        session: Database session.
        service: ExtractionService bound to the same session.
        config: Pipeline configuration.
        limit: Maximum items to process; defaults to the configured batch size.
        sleep: Awaitable delay between items.
        job_id: Optional job ID for the result.

    Returns:
        StageResult for the run.

    Raises:
        ValueError: If the AI client cannot be configured.
    """
    config = config or get_default_config()
    settings = config.extraction
    result = _new_result(Stage.EXTRACT, job_id)
    repo = QueueRepository(session)

    # Configuration errors surface before anything is claimed
    service.ai_client

    if limit is None:
        limit = settings.batch_size
    items = repo.list_for_extraction(limit=limit)
    logger.info(f"Found {len(items)} items to extract")

    for index, item in enumerate(items):
        if index > 0 and settings.item_delay_seconds > 0:
            await sleep(settings.item_delay_seconds)

        result.items_processed += 1
        outcome = await service.extract_item(item.id)
        session.commit()

        if not outcome.claimed:
            result.items_skipped += 1
        elif outcome.success:
            result.items_succeeded += 1
        else:
            result.items_failed += 1
            result.errors.append(f"{item.url}: {outcome.stored_error}")

    result.status = JobStatus.COMPLETED
    return result.finish()


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from environment."""
    return RedisSettings(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", "6379")),
        database=int(os.environ.get("REDIS_DB", "0")),
    )


def _failed(stage: Stage, job_id: str, error: Exception) -> dict[str, Any]:
    result = _new_result(stage, job_id)
    result.status = JobStatus.FAILED
    result.errors.append(str(error))
    return result.finish().to_dict()


async def discover_stage(ctx: dict[str, Any], queries: list[str] | None = None) -> dict[str, Any]:
    """
    arq task: run URL discovery.

    Args:
        ctx: arq context
        queries: Optional queries overriding the configured list

    Returns:
        StageResult as dictionary
    """
    job_id = ctx.get("job_id", str(uuid4()))
    config = get_default_config()
    try:
        provider = get_search_provider(
            config.discovery.provider,
            user_agent=config.scraper.user_agent,
            timeout=config.discovery.request_timeout,
        )
        with get_session() as session:
            result = await run_discovery(session, provider, config, queries=queries, job_id=job_id)
    except Exception as e:
        logger.exception(f"Discovery job failed: {e}")
        return _failed(Stage.DISCOVER, job_id, e)
    return result.to_dict()


async def scrape_stage(ctx: dict[str, Any], limit: int | None = None) -> dict[str, Any]:
    """arq task: scrape pending items with a headless browser."""
    job_id = ctx.get("job_id", str(uuid4()))
    config = get_default_config()
    try:
        async with PlaywrightRenderer.from_config(config.scraper) as renderer:
            with get_session() as session:
                result = await run_scrape(session, renderer, config, limit=limit, job_id=job_id)
    except Exception as e:
        logger.exception(f"Scrape job failed: {e}")
        return _failed(Stage.SCRAPE, job_id, e)
    return result.to_dict()


async def extract_stage(ctx: dict[str, Any], limit: int | None = None) -> dict[str, Any]:
    """arq task: extract structured data from scraped items."""
    from party_venues.services.ai.extraction import ExtractionService

    job_id = ctx.get("job_id", str(uuid4()))
    config = get_default_config()
    try:
        with get_session() as session:
            service = ExtractionService(session, config=config.extraction)
            result = await run_extraction(session, service, config, limit=limit, job_id=job_id)
    except Exception as e:
        logger.exception(f"Extraction job failed: {e}")
        return _failed(Stage.EXTRACT, job_id, e)
    return result.to_dict()


STAGE_TASKS = {
    Stage.DISCOVER: "discover_stage",
    Stage.SCRAPE: "scrape_stage",
    Stage.EXTRACT: "extract_stage",
}


async def enqueue_stage(stage: Stage | str, *args: Any) -> str:
    """
    Enqueue a stage job for the background worker.

    Args:
        stage: The stage to run
        *args: Positional arguments for the task

    Returns:
        Job ID
    """
    stage = Stage(stage)
    redis = await create_pool(get_redis_settings())
    try:
        job = await redis.enqueue_job(STAGE_TASKS[stage], *args)
    finally:
        await redis.close()
    if job is None:
        raise RuntimeError(f"Could not enqueue {stage.value} job")
    return job.job_id


async def get_job_status(job_id: str) -> dict[str, Any] | None:
    """
    Get the status of a stage job.

    Args:
        job_id: Job ID to look up

    Returns:
        Job info dict, or None if not found
    """
    from arq.jobs import Job

    redis = await create_pool(get_redis_settings())
    try:
        job = Job(job_id, redis)
        status = await job.status()
        info = await job.result_info()
    finally:
        await redis.close()

    if status.value == "not_found":
        return None

    return {
        "job_id": job_id,
        "status": status.value,
        "result": info.result if info else None,
    }


class WorkerSettings:
    """arq worker settings."""

    functions = [discover_stage, scrape_stage, extract_stage]
    redis_settings = get_redis_settings()
    max_jobs = 1
    job_timeout = 3600  # 1 hour
    keep_result = 86400  # 24 hours
