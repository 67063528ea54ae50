"""
Crawler Engine - Bounded BFS crawl that streams one PageReport per page.

Architecture:
- Strict FIFO frontier (breadth-first), seeded with the start URL at depth 0
- Visited set marked at dequeue time, before analysis starts
- Stopping policy: page cap (hard ceiling), depth cap, exact-hostname confinement
- One Chromium instance per crawl, one tab per analyzed page
- Optional bounded parallelism: each in-flight page gets its own tab
- Optional robots.txt enforcement on discovered links
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import AsyncContextManager, AsyncIterator, Callable, Iterable
from urllib.parse import urldefrag, urljoin, urlsplit, urlunsplit
from urllib.robotparser import RobotFileParser

import httpx
import structlog

from site_analyzer.core.config import Settings, get_settings
from site_analyzer.engines.analyzer.engine import PageAnalyzer
from site_analyzer.engines.analyzer.rendering import RenderingSession
from site_analyzer.engines.analyzer.spelling import get_spell_checker
from site_analyzer.engines.base import CrawlOptions, Engine, FrontierEntry, PageReport

logger = structlog.get_logger(__name__)

ALLOWED_SCHEMES = ("http", "https")


# ─────────────────────────────────────────────
# Data Structures
# ─────────────────────────────────────────────

@dataclass
class CrawlStats:
    """Live crawl statistics."""
    analyzed: int = 0
    failed: int = 0
    discarded: int = 0       # dequeued but already visited
    rejected_links: int = 0  # links refused at admission
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time


# ─────────────────────────────────────────────
# URL Utilities
# ─────────────────────────────────────────────

class URLNormalizer:
    """Resolves discovered links and builds visited-set keys."""

    @classmethod
    def resolve(cls, link: str, base_url: str) -> str | None:
        """
        Absolute, fragment-free form of `link` relative to `base_url`.
        Returns None for malformed URLs.
        """
        try:
            absolute = urljoin(base_url, link.strip())
            url, _fragment = urldefrag(absolute)
            urlsplit(url).hostname  # raises on malformed authority (e.g. bad IPv6)
        except ValueError:
            return None
        return url

    @classmethod
    def visit_key(cls, url: str) -> str:
        """
        Key used for the visited set: fragment stripped, scheme and host
        lowercased, empty path written as "/" so that
        https://example.com and https://example.com/ are one page.
        """
        parts = urlsplit(urldefrag(url)[0])
        return urlunsplit((
            parts.scheme.lower(),
            parts.netloc.lower(),
            parts.path or "/",
            parts.query,
            "",
        ))

    @classmethod
    def hostname(cls, url: str) -> str | None:
        try:
            return urlsplit(url).hostname
        except ValueError:
            return None

    @classmethod
    def is_same_host(cls, url: str, allowed_host: str | None) -> bool:
        """Exact hostname match: subdomains are different sites."""
        host = cls.hostname(url)
        return host is not None and host == allowed_host

    @classmethod
    def has_allowed_scheme(cls, url: str) -> bool:
        try:
            return urlsplit(url).scheme.lower() in ALLOWED_SCHEMES
        except ValueError:
            return False


# ─────────────────────────────────────────────
# Robots.txt Handler
# ─────────────────────────────────────────────

class RobotsHandler:
    """Parse and enforce robots.txt rules for the crawled host."""

    def __init__(self, user_agent: str):
        self.user_agent = user_agent
        self._parser: RobotFileParser | None = None

    async def fetch_and_parse(self, root_url: str, session: httpx.AsyncClient, timeout: float = 10) -> None:
        parts = urlsplit(root_url)
        robots_url = f"{parts.scheme}://{parts.netloc}/robots.txt"
        parser = RobotFileParser(robots_url)

        try:
            response = await session.get(robots_url, timeout=timeout)
        except httpx.HTTPError as e:
            logger.debug("Could not fetch robots.txt", url=robots_url, error=str(e))
            return

        if response.status_code == 200:
            parser.parse(response.text.splitlines())
            self._parser = parser
            logger.info("robots.txt loaded", url=robots_url)

    def can_fetch(self, url: str) -> bool:
        if self._parser is None:
            return True  # No robots.txt = allow all
        return self._parser.can_fetch(self.user_agent, url)


# ─────────────────────────────────────────────
# Frontier
# ─────────────────────────────────────────────

class CrawlFrontier:
    """
    BFS queue plus visited set for one crawl.

    Owned by a single crawl loop: pop() checks and marks visited in one
    synchronous step, so no URL can be handed out twice.
    """

    def __init__(
        self,
        start_url: str,
        max_depth: int,
        robots: RobotsHandler | None = None,
        stats: CrawlStats | None = None,
    ):
        seed, _fragment = urldefrag(start_url)
        self.allowed_host = URLNormalizer.hostname(seed)
        self.max_depth = max_depth
        self.robots = robots
        self.stats = stats or CrawlStats()
        self._queue: deque[FrontierEntry] = deque([FrontierEntry(url=seed, depth=0)])
        self._visited: set[str] = set()

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def is_visited(self, url: str) -> bool:
        return URLNormalizer.visit_key(url) in self._visited

    def pop(self) -> FrontierEntry | None:
        """Earliest-inserted unvisited entry, marked visited; None when exhausted."""
        while self._queue:
            entry = self._queue.popleft()
            key = URLNormalizer.visit_key(entry.url)
            if key in self._visited:
                self.stats.discarded += 1
                continue
            self._visited.add(key)
            return entry
        return None

    def pop_batch(self, size: int) -> list[FrontierEntry]:
        batch: list[FrontierEntry] = []
        while len(batch) < size:
            entry = self.pop()
            if entry is None:
                break
            batch.append(entry)
        return batch

    def admit(self, link: str, parent: FrontierEntry) -> bool:
        """Queue a discovered link one level below its parent if it passes every check."""
        url = URLNormalizer.resolve(link, parent.url)
        if (
            url is None
            or not URLNormalizer.has_allowed_scheme(url)
            or not URLNormalizer.is_same_host(url, self.allowed_host)
            or self.is_visited(url)
            or (self.robots is not None and not self.robots.can_fetch(url))
        ):
            self.stats.rejected_links += 1
            return False
        self._queue.append(FrontierEntry(url=url, depth=parent.depth + 1))
        return True

    def absorb(self, parent: FrontierEntry, links: Iterable[str]) -> int:
        """Admit links found on `parent`; nothing is admitted at max depth."""
        if parent.depth >= self.max_depth:
            return 0
        return sum(1 for link in links if self.admit(link, parent))


# ─────────────────────────────────────────────
# Main Crawler
# ─────────────────────────────────────────────

SessionFactory = Callable[[], AsyncContextManager[RenderingSession]]


class SiteCrawler(Engine):
    """
    Bounded BFS crawler.

    Flow:
    1. Acquire the rendering session (failure is fatal to the crawl)
    2. Optionally load robots.txt for the start host
    3. Loop: pop → analyze → yield report → absorb links, until the
       frontier is empty or max_pages reports have been produced
    4. Release the session on every exit path
    """

    ENGINE_NAME = "crawler"

    def __init__(
        self,
        analyzer: PageAnalyzer | None = None,
        session_factory: SessionFactory | None = None,
        settings: Settings | None = None,
    ):
        super().__init__()
        self.settings = settings or get_settings()
        self.analyzer = analyzer or PageAnalyzer(spell_checker=get_spell_checker(), settings=self.settings)
        self.session_factory = session_factory or (lambda: RenderingSession.launch(self.settings))

    async def _load_robots(self, start_url: str) -> RobotsHandler | None:
        if not self.settings.CRAWLER_RESPECT_ROBOTS:
            return None
        robots = RobotsHandler(self.settings.CRAWLER_USER_AGENT)
        async with httpx.AsyncClient(
            headers={"User-Agent": self.settings.CRAWLER_USER_AGENT},
            follow_redirects=True,
        ) as client:
            await robots.fetch_and_parse(start_url, client, timeout=self.settings.CRAWLER_ROBOTS_TIMEOUT)
        return robots

    async def _analyze_entry(self, session: RenderingSession, entry: FrontierEntry) -> tuple[FrontierEntry, PageReport]:
        report = await self.analyzer.analyze(session, entry.url)
        return entry, report

    async def crawl(self, start_url: str, options: CrawlOptions | None = None) -> AsyncIterator[PageReport]:
        """Yield one PageReport per analyzed page, in completion order."""
        options = options or CrawlOptions(
            max_pages=self.settings.CRAWLER_DEFAULT_MAX_PAGES,
            max_depth=self.settings.CRAWLER_DEFAULT_MAX_DEPTH,
        )
        concurrency = max(1, self.settings.CRAWLER_CONCURRENCY)
        stats = CrawlStats()
        log = self.logger.bind(start_url=start_url)
        log.info("Crawl starting", max_pages=options.max_pages, max_depth=options.max_depth, concurrency=concurrency)

        robots = await self._load_robots(start_url)
        frontier = CrawlFrontier(start_url, options.max_depth, robots=robots, stats=stats)

        async with self.session_factory() as session:
            while frontier and stats.analyzed < options.max_pages:
                batch = frontier.pop_batch(min(concurrency, options.max_pages - stats.analyzed))
                if not batch:
                    break

                tasks = [asyncio.create_task(self._analyze_entry(session, entry)) for entry in batch]
                try:
                    for next_done in asyncio.as_completed(tasks):
                        entry, report = await next_done
                        stats.analyzed += 1
                        if report.error:
                            stats.failed += 1
                        yield report
                        admitted = frontier.absorb(entry, report.links)
                        log.debug("Links absorbed", url=entry.url, depth=entry.depth, admitted=admitted, queued=len(frontier))
                finally:
                    for task in tasks:
                        if not task.done():
                            task.cancel()

        log.info(
            "Crawl complete",
            analyzed=stats.analyzed,
            failed=stats.failed,
            discarded=stats.discarded,
            rejected_links=stats.rejected_links,
            elapsed_seconds=round(stats.elapsed_seconds, 2),
        )


def crawl(start_url: str, options: CrawlOptions | None = None) -> AsyncIterator[PageReport]:
    """Crawl with the default Playwright session and process-wide spell checker."""
    return SiteCrawler().crawl(start_url, options)
