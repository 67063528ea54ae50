"""
Analyze API Route

Streams one JSON line per analyzed page while the crawl runs.
Input validation happens here, before the crawler is started.
"""

from __future__ import annotations

import io
from urllib.parse import urlsplit

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse, StreamingResponse

from site_analyzer.core.config import get_settings
from site_analyzer.engines.base import CrawlOptions
from site_analyzer.engines.crawler.engine import SiteCrawler
from site_analyzer.engines.stream import NDJSON_MEDIA_TYPE, collect, ndjson_stream
from site_analyzer.reporting.csv_export import default_filename, reports_to_csv

logger = structlog.get_logger(__name__)
router = APIRouter()


def normalize_target_url(raw: str) -> str | None:
    """
    Prefix https:// when no scheme is given; None if the result is not a
    usable http(s) URL.
    """
    target = raw.strip()
    if not target.startswith("http"):
        target = f"https://{target}"
    try:
        parts = urlsplit(target)
        host = parts.hostname
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not host:
        return None
    return target


def get_crawler() -> SiteCrawler:
    return SiteCrawler()


def _resolve_request(
    url: str | None,
    max_pages: int | None,
    max_depth: int | None,
) -> tuple[str, CrawlOptions] | PlainTextResponse:
    settings = get_settings()

    if not url:
        return PlainTextResponse("URL is required", status_code=400)

    target = normalize_target_url(url)
    if target is None:
        return PlainTextResponse("Invalid URL", status_code=400)

    options = CrawlOptions(
        max_pages=max_pages if max_pages is not None else settings.CRAWLER_DEFAULT_MAX_PAGES,
        max_depth=max_depth if max_depth is not None else settings.CRAWLER_DEFAULT_MAX_DEPTH,
    )
    logger.info("Analysis requested", url=target, max_pages=options.max_pages, max_depth=options.max_depth)
    return target, options


@router.get(
    "",
    summary="Crawl a site and stream per-page reports",
    description="Returns newline-delimited JSON, one PageReport per analyzed page, in completion order.",
)
async def analyze(
    url: str | None = Query(None, description="Start URL; https:// is assumed when missing"),
    max_pages: int | None = Query(None, alias="maxPages"),
    max_depth: int | None = Query(None, alias="maxDepth"),
):
    resolved = _resolve_request(url, max_pages, max_depth)
    if isinstance(resolved, PlainTextResponse):
        return resolved
    target, options = resolved

    crawler = get_crawler()
    return StreamingResponse(
        ndjson_stream(crawler.crawl(target, options)),
        media_type=NDJSON_MEDIA_TYPE,
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.get(
    "/csv",
    summary="Crawl a site and download the reports as CSV",
)
async def analyze_csv(
    url: str | None = Query(None),
    max_pages: int | None = Query(None, alias="maxPages"),
    max_depth: int | None = Query(None, alias="maxDepth"),
):
    resolved = _resolve_request(url, max_pages, max_depth)
    if isinstance(resolved, PlainTextResponse):
        return resolved
    target, options = resolved

    reports = await collect(get_crawler().crawl(target, options))
    return StreamingResponse(
        io.BytesIO(reports_to_csv(reports).encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{default_filename()}"'},
    )
