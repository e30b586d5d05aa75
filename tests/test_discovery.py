"""Tests for URL discovery."""

import httpx
import pytest
from sqlalchemy.orm import Session

from party_venues.core.enums import QueueStatus
from party_venues.db.repositories import QueueRepository
from party_venues.ingestion.config import DEFAULT_DENYLIST, DiscoveryConfig, PipelineConfig
from party_venues.ingestion.discovery import (
    DuckDuckGoSearchProvider,
    SearchError,
    SearchProvider,
    SerpAPISearchProvider,
    filter_result_urls,
    get_search_provider,
    host_is_denied,
    parse_duckduckgo_results,
)
from party_venues.ingestion.jobs import JobStatus, run_discovery

DDG_HTML = """
<html><body>
  <div class="result results_links">
    <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.bouncezone.co.uk%2F&amp;rut=abc">Bounce Zone</a>
  </div>
  <div class="result result--ad">
    <a class="result__a" href="https://duckduckgo.com/y.js?ad_domain=partyads.com">Ad</a>
  </div>
  <div class="result results_links">
    <a class="result__a" href="https://www.jumpin.co.uk/parties">Jump In</a>
  </div>
  <a class="other" href="https://ignored.example">Not a result</a>
</body></html>
"""


class FakeSearchProvider(SearchProvider):
    """Search provider returning canned results per query."""

    name = "fake"

    def __init__(self, results: dict[str, list[str]], failing: set[str] | None = None) -> None:
        self.results = results
        self.failing = failing or set()
        self.calls: list[tuple[str, int]] = []

    async def search(self, query: str, max_results: int = 10) -> list[str]:
        self.calls.append((query, max_results))
        if query in self.failing:
            raise SearchError(f"search failed for '{query}'")
        return self.results.get(query, [])


async def _no_sleep(seconds: float) -> None:
    return None


class TestHostDenylist:
    """Tests for host_is_denied and filter_result_urls."""

    def test_exact_host_and_subdomains(self) -> None:
        """Test that an entry matches its host and subdomains."""
        assert host_is_denied("https://facebook.com/x", DEFAULT_DENYLIST)
        assert host_is_denied("https://www.facebook.com/bouncezone", DEFAULT_DENYLIST)
        assert host_is_denied("https://m.youtube.com/watch?v=1", DEFAULT_DENYLIST)

    def test_lookalike_hosts_allowed(self) -> None:
        """Test that only real subdomains match."""
        assert not host_is_denied("https://notfacebook.com/", DEFAULT_DENYLIST)
        assert not host_is_denied("https://www.bouncezone.co.uk/", DEFAULT_DENYLIST)

    def test_trailing_dot_matches_any_tld(self) -> None:
        """Test that 'tripadvisor.' matches every TLD."""
        assert host_is_denied("https://www.tripadvisor.co.uk/Attraction", DEFAULT_DENYLIST)
        assert host_is_denied("https://tripadvisor.com/x", DEFAULT_DENYLIST)
        assert not host_is_denied("https://tripadvisorfans.com/", DEFAULT_DENYLIST)

    def test_url_without_host_denied(self) -> None:
        """Test that a URL without a host is dropped."""
        assert host_is_denied("not a url", DEFAULT_DENYLIST)

    def test_filter_keeps_order_and_dedupes(self) -> None:
        """Test filtering a raw result list."""
        urls = [
            "https://www.bouncezone.co.uk/",
            "https://facebook.com/x",
            "mailto:hello@bouncezone.co.uk",
            "https://www.jumpin.co.uk/parties",
            "https://www.bouncezone.co.uk/",
        ]

        assert filter_result_urls(urls, DEFAULT_DENYLIST) == [
            "https://www.bouncezone.co.uk/",
            "https://www.jumpin.co.uk/parties",
        ]


class TestDuckDuckGo:
    """Tests for the DuckDuckGo HTML provider."""

    def test_parse_results(self) -> None:
        """Test unwrapping redirect links and skipping ads."""
        assert parse_duckduckgo_results(DDG_HTML) == [
            "https://www.bouncezone.co.uk/",
            "https://www.jumpin.co.uk/parties",
        ]

    def test_parse_empty_page(self) -> None:
        """Test a page with no results."""
        assert parse_duckduckgo_results("<html><body>No results.</body></html>") == []

    @pytest.mark.asyncio
    async def test_search(self, monkeypatch) -> None:
        """Test a search against a mocked endpoint."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content.decode()
            seen["user_agent"] = request.headers["User-Agent"]
            return httpx.Response(200, text=DDG_HTML)

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            httpx,
            "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )

        provider = DuckDuckGoSearchProvider(user_agent="TestAgent/1.0")
        urls = await provider.search("soft play party london", max_results=1)

        assert urls == ["https://www.bouncezone.co.uk/"]
        assert "soft+play+party+london" in seen["body"]
        assert seen["user_agent"] == "TestAgent/1.0"

    @pytest.mark.asyncio
    async def test_search_http_error(self, monkeypatch) -> None:
        """Test that HTTP errors become SearchError."""
        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            httpx,
            "AsyncClient",
            lambda **kwargs: real_client(
                transport=httpx.MockTransport(lambda request: httpx.Response(503)), **kwargs
            ),
        )

        provider = DuckDuckGoSearchProvider(user_agent="TestAgent/1.0")
        with pytest.raises(SearchError):
            await provider.search("soft play party london")


class TestSerpAPI:
    """Tests for the SerpAPI provider."""

    def test_requires_api_key(self, monkeypatch) -> None:
        """Test that a missing key is a configuration error."""
        monkeypatch.delenv("SERPAPI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            SerpAPISearchProvider()

    @pytest.mark.asyncio
    async def test_search(self, monkeypatch) -> None:
        """Test reading organic result links."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["q"] == "bowling party london"
            assert request.url.params["api_key"] == "test-key"
            return httpx.Response(
                200,
                json={
                    "organic_results": [
                        {"link": "https://www.hollywoodbowl.co.uk/parties"},
                        {"title": "no link"},
                        {"link": "https://www.tenpin.co.uk/"},
                    ]
                },
            )

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            httpx,
            "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )

        provider = SerpAPISearchProvider(api_key="test-key")
        urls = await provider.search("bowling party london")

        assert urls == ["https://www.hollywoodbowl.co.uk/parties", "https://www.tenpin.co.uk/"]


class TestGetSearchProvider:
    """Tests for the provider factory."""

    def test_default_is_duckduckgo(self, monkeypatch) -> None:
        """Test the default provider."""
        monkeypatch.delenv("SEARCH_PROVIDER", raising=False)
        assert isinstance(get_search_provider(), DuckDuckGoSearchProvider)

    def test_serpapi(self, monkeypatch) -> None:
        """Test selecting SerpAPI."""
        monkeypatch.setenv("SERPAPI_API_KEY", "test-key")
        assert isinstance(get_search_provider("serpapi"), SerpAPISearchProvider)

    def test_unknown_provider(self) -> None:
        """Test that unknown providers are rejected."""
        with pytest.raises(ValueError):
            get_search_provider("altavista")


class TestRunDiscovery:
    """Tests for the discovery stage."""

    @pytest.fixture
    def config(self) -> PipelineConfig:
        """Pipeline config with no delay between queries."""
        return PipelineConfig(discovery=DiscoveryConfig(query_delay_seconds=0.0))

    @pytest.mark.asyncio
    async def test_denylisted_results_not_enqueued(self, session: Session, config) -> None:
        """Test that only non-denylisted URLs are queued, all pending."""
        query = "trampoline park party london"
        provider = FakeSearchProvider(
            {
                query: [
                    "https://www.jumpin.co.uk/",
                    "https://facebook.com/x",
                    "https://www.flipout.co.uk/london",
                ]
            }
        )

        result = await run_discovery(session, provider, config, queries=[query], sleep=_no_sleep)

        repo = QueueRepository(session)
        pending = repo.list_by_status(QueueStatus.PENDING)
        assert result.status == JobStatus.COMPLETED
        assert result.items_succeeded == 2
        assert result.urls_found == 2
        assert sorted(i.url for i in pending) == [
            "https://www.flipout.co.uk/london",
            "https://www.jumpin.co.uk/",
        ]
        assert all(i.search_query == query for i in pending)
        assert not repo.exists("https://facebook.com/x")

    @pytest.mark.asyncio
    async def test_rerun_skips_known_urls(self, session: Session, config) -> None:
        """Test that rediscovered URLs are not queued twice."""
        provider = FakeSearchProvider(
            {
                "q1": ["https://www.jumpin.co.uk/"],
                "q2": ["https://www.jumpin.co.uk/", "https://www.bouncezone.co.uk/"],
            }
        )

        result = await run_discovery(session, provider, config, queries=["q1", "q2"], sleep=_no_sleep)

        assert result.items_succeeded == 2
        assert result.items_skipped == 1
        assert QueueRepository(session).get_by_url("https://www.jumpin.co.uk/").search_query == "q1"

    @pytest.mark.asyncio
    async def test_failed_query_does_not_stop_run(self, session: Session, config) -> None:
        """Test that a failing query is recorded and the run continues."""
        provider = FakeSearchProvider(
            {"good": ["https://www.jumpin.co.uk/"]},
            failing={"bad"},
        )

        result = await run_discovery(
            session, provider, config, queries=["bad", "empty", "good"], sleep=_no_sleep
        )

        assert result.items_processed == 3
        assert result.items_failed == 1
        assert result.items_succeeded == 1
        assert len(result.errors) == 2
        assert QueueRepository(session).exists("https://www.jumpin.co.uk/")

    @pytest.mark.asyncio
    async def test_delay_between_queries(self, session: Session) -> None:
        """Test that the configured delay is awaited between queries only."""
        delays = []

        async def record_sleep(seconds: float) -> None:
            delays.append(seconds)

        config = PipelineConfig(discovery=DiscoveryConfig(query_delay_seconds=2.0))
        provider = FakeSearchProvider({})

        await run_discovery(session, provider, config, queries=["a", "b", "c"], sleep=record_sleep)

        assert delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_results_capped_per_query(self, session: Session) -> None:
        """Test that at most max_results_per_query URLs are considered."""
        config = PipelineConfig(
            discovery=DiscoveryConfig(query_delay_seconds=0.0, max_results_per_query=2)
        )
        provider = FakeSearchProvider(
            {"q": [f"https://venue{i}.example/" for i in range(5)]}
        )

        result = await run_discovery(session, provider, config, queries=["q"], sleep=_no_sleep)

        assert result.items_succeeded == 2
        assert provider.calls == [("q", 2)]
