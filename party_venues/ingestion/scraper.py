"""
Page Scraper Module
===================

Renders candidate pages of a venue website in a headless browser and picks
the page most likely to describe its party offering.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

if TYPE_CHECKING:
    from party_venues.ingestion.config import ScraperConfig

logger = logging.getLogger(__name__)


@dataclass
class RenderedPage:
    """Content of a rendered page."""

    url: str
    html: str
    text: str


class PageRenderError(Exception):
    """Raised when a page cannot be rendered."""


class PageRenderer(ABC):
    """Abstract base class for page renderers."""

    @abstractmethod
    async def render(self, url: str) -> RenderedPage:
        """
        Render a page and return its HTML and visible text.

        Raises:
            PageRenderError: If navigation fails or times out.
        """
        pass

    @asynccontextmanager
    async def venue_session(self) -> AsyncIterator[PageRenderer]:
        """Scope in which all candidate pages of one venue are rendered."""
        yield self


class PlaywrightRenderer(PageRenderer):
    """
    Headless Chromium renderer.

    Use as an async context manager; the browser lives for the whole run and
    every venue session gets a fresh browser context.
    """

    def __init__(
        self,
        user_agent: str,
        timeout_seconds: float = 30.0,
        settle_delay_seconds: float = 2.0,
        wait_until: str = "networkidle",
    ) -> None:
        self.user_agent = user_agent
        self.timeout_ms = int(timeout_seconds * 1000)
        self.settle_delay_ms = int(settle_delay_seconds * 1000)
        self.wait_until = wait_until
        self._playwright = None
        self._browser = None

    @classmethod
    def from_config(cls, config: ScraperConfig) -> PlaywrightRenderer:
        """Create a renderer from scraper settings."""
        return cls(
            user_agent=config.user_agent,
            timeout_seconds=config.page_timeout_seconds,
            settle_delay_seconds=config.settle_delay_seconds,
            wait_until=config.wait_until,
        )

    async def __aenter__(self) -> PlaywrightRenderer:
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=True,
            args=["--no-sandbox", "--disable-setuid-sandbox"],
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def venue_session(self) -> AsyncIterator[PageRenderer]:
        if self._browser is None:
            raise RuntimeError("PlaywrightRenderer must be used as an async context manager")
        context = await self._browser.new_context(user_agent=self.user_agent)
        try:
            page = await context.new_page()
            yield _PlaywrightPageRenderer(self, page)
        finally:
            await context.close()

    async def render(self, url: str) -> RenderedPage:
        async with self.venue_session() as session:
            return await session.render(url)


class _PlaywrightPageRenderer(PageRenderer):
    """Renders URLs in one browser page belonging to a venue session."""

    def __init__(self, owner: PlaywrightRenderer, page) -> None:
        self.owner = owner
        self.page = page

    async def render(self, url: str) -> RenderedPage:
        from playwright.async_api import Error as PlaywrightError

        try:
            await self.page.goto(url, wait_until=self.owner.wait_until, timeout=self.owner.timeout_ms)
            if self.owner.settle_delay_ms:
                await self.page.wait_for_timeout(self.owner.settle_delay_ms)
            html = await self.page.content()
            text = await self.page.text_content("body") or ""
        except PlaywrightError as e:
            raise PageRenderError(str(e).splitlines()[0] if str(e) else type(e).__name__) from e
        return RenderedPage(url=url, html=html, text=text)


@dataclass
class ScrapeOutcome:
    """Result of scraping one venue."""

    url: str
    page: RenderedPage | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if a usable page was found."""
        return self.page is not None

    @property
    def error_message(self) -> str:
        """All candidate errors joined into one message."""
        return "; ".join(self.errors) if self.errors else "No content found"


def candidate_urls(base_url: str, paths: list[str]) -> list[str]:
    """
    Build the ordered candidate page URLs for a venue.

    Args:
        base_url: The queued venue URL.
        paths: Path suffixes; "/" means the base URL itself.

    Returns:
        Candidate URLs without duplicates.
    """
    parts = urlsplit(base_url)
    base_path = parts.path.rstrip("/")
    urls = []
    for path in paths:
        if path in ("", "/"):
            url = base_url
        else:
            url = urlunsplit(
                (parts.scheme, parts.netloc, f"{base_path}/{path.lstrip('/')}", "", "")
            )
        if url not in urls:
            urls.append(url)
    return urls


def contains_keyword(text: str, keywords: list[str]) -> bool:
    """Case-insensitive check for any keyword in the text."""
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


async def scrape_venue(
    renderer: PageRenderer,
    url: str,
    paths: list[str],
    keywords: list[str],
) -> ScrapeOutcome:
    """
    Try each candidate page of a venue and keep the best one.

    The first rendered page containing a keyword wins immediately. Otherwise
    the page with the most text wins. Pages with no text count as failures.

    Args:
        renderer: Renderer used for all candidates.
        url: The queued venue URL.
        paths: Candidate path suffixes, in order.
        keywords: Party keywords.

    Returns:
        ScrapeOutcome with the selected page or the per-candidate errors.
    """
    outcome = ScrapeOutcome(url=url)
    best: RenderedPage | None = None

    async with renderer.venue_session() as session:
        for candidate in candidate_urls(url, paths):
            try:
                page = await session.render(candidate)
            except Exception as e:
                logger.warning(f"Failed to render {candidate}: {e}")
                outcome.errors.append(f"{candidate}: {e}")
                continue

            text = page.text.strip()
            if not text:
                outcome.errors.append(f"{candidate}: empty content")
                continue

            if contains_keyword(text, keywords):
                logger.debug(f"Party content found at {candidate}")
                best = page
                break

            if best is None or len(text) > len(best.text.strip()):
                best = page

    outcome.page = best
    return outcome
