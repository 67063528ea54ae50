"""
Tests for the Crawler Engine.
The analyzer and rendering session are fakes; robots.txt goes through
httpx MockTransport to avoid real network calls.
"""

from contextlib import asynccontextmanager

import httpx
import pytest

from site_analyzer.engines.base import CrawlOptions, FrontierEntry, PageReport, RenderingUnavailableError
from site_analyzer.engines.crawler.engine import (
    CrawlFrontier,
    CrawlStats,
    RobotsHandler,
    SiteCrawler,
    URLNormalizer,
)


class FakeAnalyzer:
    """Returns a report whose links come from a URL -> links mapping."""

    def __init__(self, graph: dict[str, list[str]], failing: set[str] | None = None):
        self.graph = graph
        self.failing = failing or set()
        self.calls: list[str] = []

    async def analyze(self, session, url: str) -> PageReport:
        self.calls.append(url)
        if url in self.failing:
            return PageReport.failed(url, "HTTP 500", status_code=500)
        return PageReport(url=url, status_code=200, links=self.graph.get(url, []))


class SessionTracker:
    def __init__(self, session, fail: bool = False):
        self.session = session
        self.fail = fail
        self.entered = 0
        self.exited = 0

    @asynccontextmanager
    async def __call__(self):
        if self.fail:
            raise RenderingUnavailableError("Chromium could not be launched")
        self.entered += 1
        try:
            yield self.session
        finally:
            self.exited += 1


async def run_crawl(crawler: SiteCrawler, start_url: str, **options) -> list[PageReport]:
    return [report async for report in crawler.crawl(start_url, CrawlOptions(**options))]


@pytest.fixture
def make_crawler(settings, fake_session_cls):
    def _make(graph, failing=None, concurrency=1, fail_session=False):
        crawler_settings = settings.model_copy(update={"CRAWLER_CONCURRENCY": concurrency})
        analyzer = FakeAnalyzer(graph, failing)
        tracker = SessionTracker(fake_session_cls(), fail=fail_session)
        crawler = SiteCrawler(analyzer=analyzer, session_factory=tracker, settings=crawler_settings)
        return crawler, analyzer, tracker
    return _make


# ─────────────────────────────────────────────
# URL Normalizer Tests
# ─────────────────────────────────────────────

class TestURLNormalizer:

    def test_resolves_relative_url(self):
        assert URLNormalizer.resolve("/about", "https://example.com/blog/post") == "https://example.com/about"
        assert URLNormalizer.resolve("next", "https://example.com/blog/post") == "https://example.com/blog/next"

    def test_removes_fragment(self):
        assert URLNormalizer.resolve("/page#section", "https://example.com") == "https://example.com/page"

    def test_keeps_query(self):
        assert URLNormalizer.resolve("/search?q=1", "https://example.com") == "https://example.com/search?q=1"

    def test_malformed_url_returns_none(self):
        assert URLNormalizer.resolve("http://[::1", "https://example.com") is None

    def test_visit_key_treats_empty_path_as_root(self):
        assert URLNormalizer.visit_key("https://example.com") == URLNormalizer.visit_key("https://example.com/")

    def test_visit_key_ignores_fragment_and_host_case(self):
        assert URLNormalizer.visit_key("HTTPS://Example.COM/a#x") == "https://example.com/a"

    def test_visit_key_keeps_path_case(self):
        assert URLNormalizer.visit_key("https://example.com/A") != URLNormalizer.visit_key("https://example.com/a")

    def test_same_host_is_exact(self):
        assert URLNormalizer.is_same_host("https://example.com/page", "example.com")
        assert not URLNormalizer.is_same_host("https://sub.example.com/page", "example.com")
        assert not URLNormalizer.is_same_host("https://other.com/page", "example.com")
        assert not URLNormalizer.is_same_host("mailto:someone@example.com", None)

    def test_allowed_schemes(self):
        assert URLNormalizer.has_allowed_scheme("http://example.com")
        assert URLNormalizer.has_allowed_scheme("https://example.com")
        assert not URLNormalizer.has_allowed_scheme("mailto:a@example.com")
        assert not URLNormalizer.has_allowed_scheme("javascript:void(0)")
        assert not URLNormalizer.has_allowed_scheme("ftp://example.com/file")


# ─────────────────────────────────────────────
# Frontier Tests
# ─────────────────────────────────────────────

class TestCrawlFrontier:

    def test_seed_is_fragment_free_at_depth_zero(self):
        frontier = CrawlFrontier("https://example.com/start#top", max_depth=2)
        entry = frontier.pop()
        assert entry == FrontierEntry(url="https://example.com/start", depth=0)
        assert frontier.pop() is None

    def test_pop_marks_visited(self):
        frontier = CrawlFrontier("https://example.com", max_depth=2)
        frontier.pop()
        assert frontier.is_visited("https://example.com/")

    def test_admit_rejects_visited_and_foreign_links(self):
        stats = CrawlStats()
        frontier = CrawlFrontier("https://example.com", max_depth=2, stats=stats)
        parent = frontier.pop()
        admitted = frontier.absorb(parent, ["/", "https://other.com/", "mailto:x@example.com", "/a"])
        assert admitted == 1
        assert stats.rejected_links == 3
        assert frontier.pop() == FrontierEntry(url="https://example.com/a", depth=1)

    def test_duplicates_in_queue_are_discarded_at_pop(self):
        stats = CrawlStats()
        frontier = CrawlFrontier("https://example.com", max_depth=2, stats=stats)
        parent = frontier.pop()
        frontier.absorb(parent, ["/a", "/a#one", "/a"])
        assert len(frontier) == 3
        assert frontier.pop().url == "https://example.com/a"
        assert frontier.pop() is None
        assert stats.discarded == 2

    def test_nothing_admitted_at_max_depth(self):
        frontier = CrawlFrontier("https://example.com", max_depth=0)
        parent = frontier.pop()
        assert frontier.absorb(parent, ["/a", "/b"]) == 0
        assert not frontier

    def test_pop_batch_stops_when_exhausted(self):
        frontier = CrawlFrontier("https://example.com", max_depth=1)
        parent = frontier.pop()
        frontier.absorb(parent, ["/a", "/b"])
        batch = frontier.pop_batch(5)
        assert [e.url for e in batch] == ["https://example.com/a", "https://example.com/b"]

    def test_robots_rules_applied_on_admission(self):
        class DenyPrivate:
            def can_fetch(self, url):
                return "/private" not in url

        frontier = CrawlFrontier("https://example.com", max_depth=2, robots=DenyPrivate())
        parent = frontier.pop()
        assert frontier.absorb(parent, ["/private/x", "/public"]) == 1


# ─────────────────────────────────────────────
# Robots.txt Tests
# ─────────────────────────────────────────────

class TestRobotsHandler:

    @pytest.mark.asyncio
    async def test_disallow_rules_enforced(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/robots.txt"
            return httpx.Response(200, text="User-agent: *\nDisallow: /admin\n")

        robots = RobotsHandler("SiteAnalyzer/1.0")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await robots.fetch_and_parse("https://example.com/page", client)

        assert robots.can_fetch("https://example.com/page")
        assert not robots.can_fetch("https://example.com/admin/users")

    @pytest.mark.asyncio
    async def test_missing_robots_allows_all(self):
        robots = RobotsHandler("SiteAnalyzer/1.0")
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as client:
            await robots.fetch_and_parse("https://example.com", client)
        assert robots.can_fetch("https://example.com/admin")

    @pytest.mark.asyncio
    async def test_network_error_allows_all(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        robots = RobotsHandler("SiteAnalyzer/1.0")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await robots.fetch_and_parse("https://example.com", client)
        assert robots.can_fetch("https://example.com/anything")


# ─────────────────────────────────────────────
# Site Crawler Tests
# ─────────────────────────────────────────────

class TestSiteCrawler:

    @pytest.mark.asyncio
    async def test_single_page_crawl_keeps_start_url(self, make_crawler):
        crawler, _, _ = make_crawler({"https://example.com": ["/a", "/b"]})
        reports = await run_crawl(crawler, "https://example.com", max_pages=1)
        assert [r.url for r in reports] == ["https://example.com"]

    @pytest.mark.asyncio
    async def test_breadth_first_order(self, make_crawler):
        graph = {
            "https://example.com/": ["/a", "/b"],
            "https://example.com/a": ["/c"],
            "https://example.com/b": ["/d"],
        }
        crawler, _, _ = make_crawler(graph)
        reports = await run_crawl(crawler, "https://example.com/", max_pages=10, max_depth=2)
        assert [r.url for r in reports] == [
            "https://example.com/",
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/c",
            "https://example.com/d",
        ]

    @pytest.mark.asyncio
    async def test_depth_bound(self, make_crawler):
        graph = {
            "https://example.com/": ["/a", "/b"],
            "https://example.com/a": ["/c"],
        }
        crawler, _, _ = make_crawler(graph)
        reports = await run_crawl(crawler, "https://example.com/", max_pages=10, max_depth=1)
        assert [r.url for r in reports] == [
            "https://example.com/",
            "https://example.com/a",
            "https://example.com/b",
        ]

    @pytest.mark.asyncio
    async def test_depth_zero_analyzes_only_start(self, make_crawler):
        crawler, _, _ = make_crawler({"https://example.com/": ["/a"]})
        reports = await run_crawl(crawler, "https://example.com/", max_pages=10, max_depth=0)
        assert len(reports) == 1

    @pytest.mark.asyncio
    async def test_confined_to_start_host_and_web_schemes(self, make_crawler):
        graph = {
            "https://example.com/": [
                "https://other.com/x",
                "https://sub.example.com/y",
                "mailto:hello@example.com",
                "javascript:void(0)",
                "ftp://example.com/file",
                "http://[::1",
                "/ok",
            ],
        }
        crawler, analyzer, _ = make_crawler(graph)
        reports = await run_crawl(crawler, "https://example.com/", max_pages=20)
        assert [r.url for r in reports] == ["https://example.com/", "https://example.com/ok"]
        assert analyzer.calls == ["https://example.com/", "https://example.com/ok"]

    @pytest.mark.asyncio
    async def test_no_page_analyzed_twice(self, make_crawler):
        graph = {
            "https://example.com": ["/", "https://example.com", "#top", "/a", "/a#x", "/a"],
            "https://example.com/a": ["/", "/a", "https://example.com/#footer"],
        }
        crawler, _, _ = make_crawler(graph)
        reports = await run_crawl(crawler, "https://example.com", max_pages=20)
        assert [r.url for r in reports] == ["https://example.com", "https://example.com/a"]

    @pytest.mark.asyncio
    async def test_page_cap_never_exceeded(self, make_crawler):
        graph = {"https://example.com/": [f"/p{i}" for i in range(30)]}
        crawler, analyzer, _ = make_crawler(graph)
        reports = await run_crawl(crawler, "https://example.com/", max_pages=5)
        assert len(reports) == 5
        assert len(analyzer.calls) == 5

    @pytest.mark.asyncio
    async def test_concurrent_crawl_respects_cap_and_uniqueness(self, make_crawler):
        graph = {
            "https://example.com/": [f"/p{i}" for i in range(10)],
            **{f"https://example.com/p{i}": ["/", "/p0", f"/q{i}"] for i in range(10)},
        }
        crawler, analyzer, _ = make_crawler(graph, concurrency=3)
        reports = await run_crawl(crawler, "https://example.com/", max_pages=7)
        urls = [r.url for r in reports]
        assert len(urls) == 7
        assert len(set(urls)) == 7
        assert len(analyzer.calls) == 7
        assert urls[0] == "https://example.com/"

    @pytest.mark.asyncio
    async def test_failed_pages_do_not_stop_the_crawl(self, make_crawler):
        graph = {"https://example.com/": ["/broken", "/fine"]}
        crawler, _, _ = make_crawler(graph, failing={"https://example.com/broken"})
        reports = await run_crawl(crawler, "https://example.com/", max_pages=10)
        assert [r.url for r in reports] == [
            "https://example.com/",
            "https://example.com/broken",
            "https://example.com/fine",
        ]
        assert reports[1].error == "HTTP 500"
        assert reports[1].content_metrics is None

    @pytest.mark.asyncio
    async def test_failed_page_counts_toward_cap(self, make_crawler):
        graph = {"https://example.com/": ["/broken", "/fine"]}
        crawler, _, _ = make_crawler(graph, failing={"https://example.com/broken"})
        reports = await run_crawl(crawler, "https://example.com/", max_pages=2)
        assert [r.url for r in reports] == ["https://example.com/", "https://example.com/broken"]

    @pytest.mark.asyncio
    async def test_session_unavailable_is_fatal(self, make_crawler):
        crawler, analyzer, _ = make_crawler({}, fail_session=True)
        with pytest.raises(RenderingUnavailableError):
            await run_crawl(crawler, "https://example.com/", max_pages=5)
        assert analyzer.calls == []

    @pytest.mark.asyncio
    async def test_session_released_after_crawl(self, make_crawler):
        crawler, _, tracker = make_crawler({"https://example.com/": ["/a"]})
        await run_crawl(crawler, "https://example.com/", max_pages=5)
        assert tracker.entered == 1
        assert tracker.exited == 1

    @pytest.mark.asyncio
    async def test_session_released_when_consumer_stops_early(self, make_crawler):
        crawler, _, tracker = make_crawler({"https://example.com/": ["/a", "/b"]})
        stream = crawler.crawl("https://example.com/", CrawlOptions(max_pages=10))
        first = await stream.__anext__()
        await stream.aclose()
        assert first.url == "https://example.com/"
        assert tracker.exited == 1

    @pytest.mark.asyncio
    async def test_default_options_come_from_settings(self, make_crawler):
        graph = {"https://example.com/": [f"/p{i}" for i in range(50)]}
        crawler, _, _ = make_crawler(graph)
        reports = [r async for r in crawler.crawl("https://example.com/")]
        assert len(reports) == crawler.settings.CRAWLER_DEFAULT_MAX_PAGES


class TestCrawlOptions:

    def test_max_pages_clamped(self):
        assert CrawlOptions(max_pages=0).max_pages == 1
        assert CrawlOptions(max_pages=500).max_pages == 100
        assert CrawlOptions(max_pages=42).max_pages == 42

    def test_negative_depth_clamped(self):
        assert CrawlOptions(max_depth=-3).max_depth == 0

    def test_defaults(self):
        options = CrawlOptions()
        assert options.max_pages == 20
        assert options.max_depth == 2
