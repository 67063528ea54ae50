"""
Page Analyzer Engine - Turns one rendered URL into a PageReport.

Protocol (strictly ordered, one browser tab per URL):
1. Load at Desktop size; a navigation timeout is a partial load (status 0),
   a non-2xx response short-circuits with error "HTTP {code}"
2. Static extraction in a single pass over the rendered document
3. Viewport sweep: Desktop, Tablet, Mobile - resize, settle, measure,
   screenshot when something is wrong
4. Content scoring (pure, see engines.scoring)

analyze() never raises for page-level problems: any failure becomes a
PageReport carrying the error message.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from pathlib import Path
from typing import Any, Awaitable

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from site_analyzer.core.config import Settings, get_settings
from site_analyzer.engines.analyzer.extraction import DocumentFacts, extract_document_facts
from site_analyzer.engines.analyzer.rendering import RenderingSession
from site_analyzer.engines.analyzer.scripts import LIVE_FACTS_SCRIPT, VIEWPORT_MEASURE_SCRIPT
from site_analyzer.engines.analyzer.spelling import SpellCheckCapability
from site_analyzer.engines.base import (
    MAX_OFFENDING_ELEMENTS,
    ContentIssues,
    ContentMetrics,
    ContentQuality,
    EEATSignals,
    Engine,
    PageReport,
    StepTimeoutError,
    UXIssues,
    ViewportIssue,
    ViewportName,
    VisualIssues,
)
from site_analyzer.engines.scoring.engine import (
    ai_score,
    count_long_words,
    count_question_headings,
    count_sentences,
    extract_keywords,
    readability_score,
    seo_score,
    structure_score,
    text_to_code_ratio,
    tokenize,
)

VIEWPORTS: list[tuple[ViewportName, int, int]] = [
    (ViewportName.DESKTOP, 1920, 1080),
    (ViewportName.TABLET, 768, 1024),
    (ViewportName.MOBILE, 375, 667),
]
NARROW_BREAKPOINT = 768
MAX_IDENTIFIER_LENGTH = 80


def screenshot_path(directory: str | Path, url: str, viewport: ViewportName | str) -> Path:
    """Stable location for a viewport screenshot of a URL."""
    name = viewport.value if isinstance(viewport, ViewportName) else viewport
    digest = hashlib.sha1(url.encode()).hexdigest()[:16]
    return Path(directory) / f"{digest}-{name.lower()}.jpg"


def measurement_options(settings: Settings) -> dict[str, Any]:
    """Argument object for VIEWPORT_MEASURE_SCRIPT."""
    return {
        "scrollTolerance": settings.OVERFLOW_SCROLL_TOLERANCE_PX,
        "containerTolerance": settings.OVERFLOW_CONTAINER_TOLERANCE_PX,
        "leftEdge": settings.OVERFLOW_LEFT_EDGE_PX,
        "minTapSize": settings.TAP_TARGET_MIN_PX,
        "narrowBreakpoint": NARROW_BREAKPOINT,
        "maxOffenders": MAX_OFFENDING_ELEMENTS,
        "maxIdentifierLength": MAX_IDENTIFIER_LENGTH,
    }


def build_report(
    url: str,
    facts: DocumentFacts,
    viewport_issues: list[ViewportIssue],
    status_code: int,
    response_time: int,
    spell_checker: SpellCheckCapability | None = None,
) -> PageReport:
    """Score extracted facts and assemble the final report."""
    tokens = tokenize(facts.body_text)
    typos = spell_checker.find_typos(tokens) if spell_checker else []

    readability = readability_score(tokens, count_sentences(facts.body_text))
    structure = structure_score(facts.structure_count)
    keywords = extract_keywords(tokens)
    question_headings = count_question_headings(facts.headings)

    metrics = ContentMetrics(
        word_count=len(tokens),
        readability_score=readability,
        structure_score=structure,
        seo_score=seo_score(
            title=facts.title,
            meta_description=facts.meta_description,
            h1=facts.h1,
            missing_alt_tags=facts.missing_alt_tags,
            word_count=len(tokens),
            keywords=keywords,
            headings=facts.headings,
        ),
        ai_score=ai_score(
            has_schema=facts.has_schema,
            schema_types=facts.schema_types,
            structure=structure,
            readability=readability,
            question_headings=question_headings,
            has_author=facts.has_author,
            has_date=facts.has_date,
        ),
        has_schema=facts.has_schema,
        schema_types=facts.schema_types,
        headings=facts.headings,
        keywords=keywords,
        paragraph_count=facts.paragraph_count,
        question_headings=question_headings,
        eeat_signals=EEATSignals(has_author=facts.has_author, has_date=facts.has_date),
        content_quality=ContentQuality(
            long_paragraphs=facts.long_paragraphs,
            text_to_code_ratio=text_to_code_ratio(len(facts.body_text), facts.document_bytes),
        ),
    )

    return PageReport(
        url=url,
        title=facts.title,
        meta_description=facts.meta_description,
        h1=facts.h1,
        response_time=response_time,
        status_code=status_code,
        links=facts.links,
        ux_issues=UXIssues(
            missing_alt_tags=facts.missing_alt_tags,
            empty_links=facts.empty_links,
            has_viewport_meta=facts.has_viewport_meta,
            h1_count=facts.h1_count,
        ),
        visual_issues=VisualIssues(
            images_missing_dimensions=facts.images_missing_dimensions,
            long_words=count_long_words(tokens),
            viewport_issues=viewport_issues,
        ),
        content_issues=ContentIssues(possible_typos=typos),
        content_metrics=metrics,
    )


class PageAnalyzer(Engine):
    """
    Drives one browser tab through the analysis protocol.

    The spell checker is optional: without it typo detection yields nothing.
    """

    ENGINE_NAME = "page_analyzer"

    def __init__(
        self,
        spell_checker: SpellCheckCapability | None = None,
        settings: Settings | None = None,
    ):
        super().__init__()
        self.spell_checker = spell_checker
        self.settings = settings or get_settings()
        self._measure_options = measurement_options(self.settings)

    async def analyze(self, session: RenderingSession, url: str) -> PageReport:
        """
        Analyze a URL in a fresh tab of the session.
        Tab is closed on every path; failures become error reports.
        """
        start = time.perf_counter()
        self.logger.debug("Page analysis starting", url=url)
        try:
            async with session.page() as page:
                report = await self.run(page, url, start)
        except Exception as exc:
            elapsed = (time.perf_counter() - start) * 1000
            self.logger.warning(
                "Page analysis failed",
                url=url,
                error=str(exc),
                elapsed_ms=round(elapsed, 2),
                exc_info=True,
            )
            return PageReport.failed(url, str(exc) or exc.__class__.__name__)

        self.logger.info(
            "Page analysis complete",
            url=url,
            status_code=report.status_code,
            error=report.error,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return report

    async def run(self, page: Page, url: str, start: float | None = None) -> PageReport:
        start = start if start is not None else time.perf_counter()

        response = None
        try:
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.settings.RENDER_NAVIGATION_TIMEOUT_MS,
            )
        except PlaywrightTimeoutError:
            self.logger.warning("Navigation timed out, analyzing partial load", url=url)

        response_time = int((time.perf_counter() - start) * 1000)
        status_code = response.status if response is not None else 0

        if response is not None and not response.ok:
            return PageReport.failed(
                url,
                f"HTTP {status_code}",
                status_code=status_code,
                response_time=response_time,
            )

        facts = await self.extract(page)
        viewport_issues = await self.sweep_viewports(page, url)

        return build_report(
            url,
            facts,
            viewport_issues,
            status_code=status_code,
            response_time=response_time,
            spell_checker=self.spell_checker,
        )

    async def _step(self, awaitable: Awaitable[Any], step: str) -> Any:
        timeout = self.settings.RENDER_STEP_TIMEOUT_S
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise StepTimeoutError(f"{step} timed out after {timeout}s") from e

    async def extract(self, page: Page) -> DocumentFacts:
        html = await self._step(page.content(), "Document serialization")
        live = await self._step(page.evaluate(LIVE_FACTS_SCRIPT), "Text extraction") or {}
        return extract_document_facts(
            html,
            page.url,
            body_text=live.get("bodyText") or "",
            empty_links=int(live.get("emptyLinks") or 0),
        )

    async def sweep_viewports(self, page: Page, url: str) -> list[ViewportIssue]:
        issues: list[ViewportIssue] = []
        for name, width, height in VIEWPORTS:
            await self._step(
                page.set_viewport_size({"width": width, "height": height}),
                f"{name.value} resize",
            )
            await asyncio.sleep(self.settings.settle_seconds)

            measured = await self._step(
                page.evaluate(VIEWPORT_MEASURE_SCRIPT, self._measure_options),
                f"{name.value} layout measurement",
            ) or {}

            issue = ViewportIssue(
                viewport_name=name,
                horizontal_scroll_detected=bool(measured.get("horizontalScroll")),
                overflowing_element_count=int(measured.get("overflowingElements") or 0),
                small_tap_target_count=int(measured.get("smallTapTargets") or 0),
                offending_element_identifiers=list(measured.get("offenders") or [])[:MAX_OFFENDING_ELEMENTS],
            )
            if issue.has_issues:
                reference = await self.capture_screenshot(page, url, name)
                if reference:
                    issue = issue.model_copy(update={"screenshot_reference": reference})
            issues.append(issue)
        return issues

    async def capture_screenshot(self, page: Page, url: str, viewport: ViewportName) -> str | None:
        """Compressed viewport screenshot; None if disabled or capture fails."""
        if not self.settings.SCREENSHOTS_ENABLED:
            return None
        path = screenshot_path(self.settings.SCREENSHOT_DIR, url, viewport)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await self._step(
                page.screenshot(
                    path=str(path),
                    type="jpeg",
                    quality=self.settings.SCREENSHOT_QUALITY,
                    full_page=False,
                ),
                f"{viewport.value} screenshot",
            )
        except Exception as e:
            self.logger.warning("Screenshot capture failed", url=url, viewport=viewport.value, error=str(e))
            return None
        return str(path)
