"""
Party Venues Ingestion Pipeline
===============================

This package feeds the venue directory from the open web.

Pipeline Stages:
1. Discover - Search queries produce candidate venue URLs, filtered by a
   host denylist and deduplicated into the scraping queue
2. Scrape - A headless browser renders candidate pages per venue and keeps
   the one most likely to describe its parties
3. Extract - Cleaned page text is sent to a language model and the JSON
   answer is validated and stored for review (see services.ai.extraction)
4. Review - Approved items become venues and party packages
   (see services.review_service)
"""

from party_venues.ingestion.cleaner import clean_html, prepare_content
from party_venues.ingestion.config import (
    DiscoveryConfig,
    ExtractionConfig,
    PipelineConfig,
    ReviewConfig,
    ScraperConfig,
    get_default_config,
    reset_default_config,
)
from party_venues.ingestion.discovery import (
    DuckDuckGoSearchProvider,
    SearchError,
    SearchProvider,
    SerpAPISearchProvider,
    filter_result_urls,
    get_search_provider,
    host_is_denied,
)
from party_venues.ingestion.jobs import (
    JobStatus,
    Stage,
    StageResult,
    enqueue_stage,
    run_discovery,
    run_extraction,
    run_scrape,
)
from party_venues.ingestion.scraper import (
    PageRenderer,
    PageRenderError,
    PlaywrightRenderer,
    RenderedPage,
    ScrapeOutcome,
    scrape_venue,
)

__all__ = [
    # Cleaner
    "clean_html",
    "prepare_content",
    # Config
    "DiscoveryConfig",
    "ExtractionConfig",
    "PipelineConfig",
    "ReviewConfig",
    "ScraperConfig",
    "get_default_config",
    "reset_default_config",
    # Discovery
    "DuckDuckGoSearchProvider",
    "SearchError",
    "SearchProvider",
    "SerpAPISearchProvider",
    "filter_result_urls",
    "get_search_provider",
    "host_is_denied",
    # Jobs
    "JobStatus",
    "Stage",
    "StageResult",
    "enqueue_stage",
    "run_discovery",
    "run_extraction",
    "run_scrape",
    # Scraper
    "PageRenderer",
    "PageRenderError",
    "PlaywrightRenderer",
    "RenderedPage",
    "ScrapeOutcome",
    "scrape_venue",
]
