"""
Type contracts shared by the crawl-and-analyze engines.

Design principles:
- Reports are immutable once built: consumers never mutate them
- Field names are snake_case in Python and camelCase on the wire
- A failed page still produces a PageReport (see PageReport.failed)
- Only the loss of the rendering collaborator is allowed to end a crawl
"""

from __future__ import annotations

from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


MAX_PAGES_LIMIT = 100
MAX_TYPOS = 5
MAX_OFFENDING_ELEMENTS = 5


# ─────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────

class SiteAnalyzerError(Exception):
    """Base class for errors raised by the analyzer package."""


class RenderingUnavailableError(SiteAnalyzerError):
    """The browser could not be launched; no page of the crawl can be analyzed."""


class StepTimeoutError(SiteAnalyzerError):
    """A single rendering step (evaluation, resize, screenshot) did not finish in time."""


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class ViewportName(str, Enum):
    DESKTOP = "Desktop"
    TABLET = "Tablet"
    MOBILE = "Mobile"


# ─────────────────────────────────────────────
# Core data types
# ─────────────────────────────────────────────

class ReportModel(BaseModel):
    """Immutable model serialized with camelCase aliases."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=True,
    )


class FrontierEntry(ReportModel):
    url: str
    depth: int = Field(ge=0, default=0)


class CrawlOptions(ReportModel):
    """Limits for one crawl invocation. max_pages is clamped, never rejected."""
    max_pages: int = 20
    max_depth: int = 2

    @field_validator("max_pages")
    @classmethod
    def clamp_max_pages(cls, v: int) -> int:
        return min(max(v, 1), MAX_PAGES_LIMIT)

    @field_validator("max_depth")
    @classmethod
    def clamp_max_depth(cls, v: int) -> int:
        return max(v, 0)


class ViewportIssue(ReportModel):
    viewport_name: ViewportName
    horizontal_scroll_detected: bool = False
    overflowing_element_count: int = 0
    small_tap_target_count: int = 0
    offending_element_identifiers: list[str] = Field(default_factory=list, max_length=MAX_OFFENDING_ELEMENTS)
    screenshot_reference: str | None = None

    @property
    def has_issues(self) -> bool:
        return (
            self.horizontal_scroll_detected
            or self.overflowing_element_count > 0
            or self.small_tap_target_count > 0
        )


class UXIssues(ReportModel):
    missing_alt_tags: int = 0
    empty_links: int = 0
    has_viewport_meta: bool = False
    h1_count: int = 0


class VisualIssues(ReportModel):
    images_missing_dimensions: int = 0
    long_words: int = 0
    viewport_issues: list[ViewportIssue] = Field(default_factory=list)


class ContentIssues(ReportModel):
    possible_typos: list[str] = Field(default_factory=list, max_length=MAX_TYPOS)


class Heading(ReportModel):
    tag: str     # "H1".."H6"
    text: str

    @property
    def level(self) -> int:
        return int(self.tag[1:])


class KeywordCount(ReportModel):
    word: str
    count: int


class EEATSignals(ReportModel):
    has_author: bool = False
    has_date: bool = False


class ContentQuality(ReportModel):
    long_paragraphs: int = 0
    text_to_code_ratio: float = 0.0


class ContentMetrics(ReportModel):
    word_count: int = 0
    readability_score: int = Field(ge=0, le=100, default=0)
    structure_score: int = Field(ge=0, le=100, default=0)
    seo_score: int = Field(ge=0, le=100, default=0)
    ai_score: int = Field(ge=0, le=100, default=0)
    has_schema: bool = False
    schema_types: list[str] = Field(default_factory=list)
    headings: list[Heading] = Field(default_factory=list)
    keywords: list[KeywordCount] = Field(default_factory=list)
    paragraph_count: int = 0
    question_headings: int = 0
    eeat_signals: EEATSignals = Field(default_factory=EEATSignals)
    content_quality: ContentQuality = Field(default_factory=ContentQuality)


class PageReport(ReportModel):
    """Per-page output of the analyzer. content_metrics is None when the page failed to load."""
    url: str
    title: str = ""
    meta_description: str = ""
    h1: str | None = None
    response_time: int = 0
    status_code: int = 0
    error: str | None = None
    links: list[str] = Field(default_factory=list)
    ux_issues: UXIssues = Field(default_factory=UXIssues)
    visual_issues: VisualIssues = Field(default_factory=VisualIssues)
    content_issues: ContentIssues = Field(default_factory=ContentIssues)
    content_metrics: ContentMetrics | None = None

    @classmethod
    def failed(cls, url: str, error: str, status_code: int = 0, response_time: int = 0) -> PageReport:
        """Report for a page whose analysis stopped before extraction."""
        return cls(url=url, error=error, status_code=status_code, response_time=response_time)

    def to_json_line(self) -> str:
        return self.model_dump_json(by_alias=True) + "\n"


# ─────────────────────────────────────────────
# Base Engine
# ─────────────────────────────────────────────

class Engine:
    """Common plumbing for engines: a logger bound to the engine name."""

    ENGINE_NAME: str = "base"

    def __init__(self):
        self.logger = structlog.get_logger(self.__class__.__name__).bind(engine=self.ENGINE_NAME)
