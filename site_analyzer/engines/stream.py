"""
Result stream adapters.

Reports are passed through one at a time as the crawler completes them;
nothing is buffered. A crawl-level failure is logged and re-raised so the
consumer sees an aborted stream rather than a silent end.
"""

from __future__ import annotations

from typing import AsyncIterator

import structlog

from site_analyzer.engines.base import PageReport

logger = structlog.get_logger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


async def ndjson_stream(reports: AsyncIterator[PageReport]) -> AsyncIterator[str]:
    """Serialize each report as one JSON line."""
    count = 0
    try:
        async for report in reports:
            count += 1
            yield report.to_json_line()
    except Exception as e:
        logger.error("Result stream aborted", reports_sent=count, error=str(e), exc_info=True)
        raise
    logger.info("Result stream finished", reports_sent=count)


async def collect(reports: AsyncIterator[PageReport]) -> list[PageReport]:
    """Drain a report stream into a list (CLI export, tests)."""
    return [report async for report in reports]
