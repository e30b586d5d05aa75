"""
URL Discovery Module
====================

Search providers that turn a query into candidate venue URLs, plus the
host denylist used to drop social networks, marketplaces and aggregators.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from urllib.parse import parse_qs, urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

DUCKDUCKGO_HTML_URL = "https://html.duckduckgo.com/html/"
SERPAPI_SEARCH_URL = "https://serpapi.com/search.json"


class SearchError(Exception):
    """Raised when a search provider cannot return results."""


class SearchProvider(ABC):
    """Abstract base class for web search providers."""

    name: str = "base"

    @abstractmethod
    async def search(self, query: str, max_results: int = 10) -> list[str]:
        """
        Run a search and return result URLs in rank order.

        Args:
            query: The search query.
            max_results: Maximum number of URLs to return.

        Returns:
            List of result URLs.

        Raises:
            SearchError: If the provider request fails.
        """
        pass


class DuckDuckGoSearchProvider(SearchProvider):
    """Scrapes the DuckDuckGo HTML endpoint. No API key required."""

    name = "duckduckgo"

    def __init__(self, user_agent: str, timeout: float = 20.0) -> None:
        self.user_agent = user_agent
        self.timeout = timeout

    async def search(self, query: str, max_results: int = 10) -> list[str]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    DUCKDUCKGO_HTML_URL,
                    data={"q": query, "kp": "1"},
                    headers={"User-Agent": self.user_agent},
                    follow_redirects=True,
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise SearchError(f"DuckDuckGo search failed for '{query}': {e}") from e

        return parse_duckduckgo_results(resp.text)[:max_results]


def parse_duckduckgo_results(html: str) -> list[str]:
    """
    Extract result URLs from a DuckDuckGo HTML results page.

    Result anchors point at a redirect (``//duckduckgo.com/l/?uddg=...``);
    the target URL is unwrapped from the ``uddg`` parameter. Ad links are skipped.
    """
    soup = BeautifulSoup(html, "html.parser")
    urls = []
    for anchor in soup.select("a.result__a"):
        href = anchor.get("href") or ""
        if "duckduckgo.com/y.js" in href:
            continue
        parsed = urlparse(href)
        if "uddg" in parse_qs(parsed.query):
            href = parse_qs(parsed.query)["uddg"][0]
        if href.startswith(("http://", "https://")):
            urls.append(href)
    return urls


class SerpAPISearchProvider(SearchProvider):
    """Google results via the SerpAPI JSON API."""

    name = "serpapi"

    def __init__(self, api_key: str | None = None, timeout: float = 20.0) -> None:
        self.api_key = api_key or os.environ.get("SERPAPI_API_KEY")
        if not self.api_key:
            raise ValueError(
                "SerpAPI key not provided. Set SERPAPI_API_KEY environment variable."
            )
        self.timeout = timeout

    async def search(self, query: str, max_results: int = 10) -> list[str]:
        params = {
            "engine": "google",
            "q": query,
            "num": max_results,
            "gl": "uk",
            "hl": "en",
            "api_key": self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(SERPAPI_SEARCH_URL, params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SearchError(f"SerpAPI search failed for '{query}': {e}") from e

        if data.get("error"):
            raise SearchError(f"SerpAPI error for '{query}': {data['error']}")

        links = [r.get("link") for r in data.get("organic_results", [])]
        return [link for link in links if link][:max_results]


def get_search_provider(
    name: str | None = None,
    user_agent: str = "",
    timeout: float = 20.0,
) -> SearchProvider:
    """
    Factory function to get a search provider.

    Args:
        name: Provider name. Defaults to SEARCH_PROVIDER env var or duckduckgo.
        user_agent: User agent for scraped search endpoints.
        timeout: Request timeout in seconds.

    Returns:
        A configured SearchProvider.

    Raises:
        ValueError: If the provider is unknown or not configured.
    """
    name = (name or os.environ.get("SEARCH_PROVIDER") or "duckduckgo").lower()
    if name == DuckDuckGoSearchProvider.name:
        return DuckDuckGoSearchProvider(user_agent=user_agent, timeout=timeout)
    if name == SerpAPISearchProvider.name:
        return SerpAPISearchProvider(timeout=timeout)
    raise ValueError(f"Unknown search provider: {name}")


def host_is_denied(url: str, denylist: list[str]) -> bool:
    """
    Check a URL's host against the denylist.

    ``example.com`` matches the host itself and any subdomain. An entry with
    a trailing dot (``tripadvisor.``) matches that label under any TLD.
    URLs without a host are treated as denied.
    """
    host = (urlparse(url).hostname or "").lower()
    if not host:
        return True

    labels = host.split(".")
    for entry in denylist:
        entry = entry.lower().strip()
        if not entry:
            continue
        if entry.endswith("."):
            if entry[:-1] in labels[:-1]:
                return True
        elif host == entry or host.endswith("." + entry):
            return True
    return False


def filter_result_urls(urls: list[str], denylist: list[str]) -> list[str]:
    """
    Drop denylisted and non-web URLs and collapse duplicates, keeping rank order.

    Args:
        urls: Raw result URLs.
        denylist: Host denylist entries.

    Returns:
        Surviving URLs.
    """
    seen: set[str] = set()
    kept = []
    for url in urls:
        url = url.strip()
        if not url.startswith(("http://", "https://")) or url in seen:
            continue
        seen.add(url)
        if host_is_denied(url, denylist):
            logger.debug(f"Denylisted: {url}")
            continue
        kept.append(url)
    return kept
