"""
Structured logging using structlog.

The API server logs to stdout. The CLI logs to stderr, because its stdout
carries the NDJSON report feed. LOG_FORMAT picks JSON lines or a colored
console renderer.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor

from site_analyzer.core.config import get_settings

# Loud below WARNING during a crawl: one line per request or CDP message
QUIET_IN_PRODUCTION = ("asyncio", "httpx", "httpcore", "playwright", "uvicorn.access")


def add_severity(logger: Any, method: str, event_dict: EventDict) -> EventDict:
    """Upper-case `severity` field; log.exception() is reported as ERROR."""
    severity = "error" if method == "exception" else method
    event_dict["severity"] = severity.upper()
    return event_dict


def _renderer(log_format: str) -> list[Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging(stream: TextIO | None = None) -> None:
    """Configure structlog and stdlib logging to write to the same stream."""
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    stream = stream or sys.stdout

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_severity,
        *_renderer(settings.LOG_FORMAT),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    # force: uvicorn or a test runner may have installed handlers already
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s", stream=stream, level=log_level, force=True)

    if settings.ENV == "production":
        for name in QUIET_IN_PRODUCTION:
            logging.getLogger(name).setLevel(logging.WARNING)
