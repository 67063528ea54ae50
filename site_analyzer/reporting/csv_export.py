"""
CSV export of crawl results: one row per PageReport, every cell quoted.
"""

from __future__ import annotations

import csv
import io
from datetime import date
from pathlib import Path
from typing import Iterable

from site_analyzer.engines.base import PageReport

CSV_HEADERS = [
    "URL",
    "Status",
    "Response Time (ms)",
    "Title",
    "Meta Description",
    "H1 Tag",
    "SEO Score",
    "AI Score",
    "Word Count",
    "Readability Score",
    "Structure Score",
    "Schema Detected",
    "Text-to-Code Ratio",
    "Paragraph Count",
    "Long Paragraphs",
    "Missing Alt Tags",
    "Empty Links",
    "Has Viewport",
    "H1 Count",
    "Images Missing Dimensions",
    "Long Words",
    "Horizontal Scroll",
    "Overflowing Elements",
    "Top Keywords",
    "Possible Typos",
    "Schema Types",
    "Question Headings",
    "Has Author",
    "Has Date",
    "Small Tap Targets",
]


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def report_to_row(report: PageReport) -> list:
    metrics = report.content_metrics
    viewports = report.visual_issues.viewport_issues

    return [
        report.url,
        report.status_code,
        report.response_time,
        report.title,
        report.meta_description,
        report.h1 or "",
        metrics.seo_score if metrics else 0,
        metrics.ai_score if metrics else 0,
        metrics.word_count if metrics else 0,
        metrics.readability_score if metrics else 0,
        metrics.structure_score if metrics else 0,
        _yes_no(bool(metrics and metrics.has_schema)),
        f"{metrics.content_quality.text_to_code_ratio if metrics else 0:.2f}",
        metrics.paragraph_count if metrics else 0,
        metrics.content_quality.long_paragraphs if metrics else 0,
        report.ux_issues.missing_alt_tags,
        report.ux_issues.empty_links,
        _yes_no(report.ux_issues.has_viewport_meta),
        report.ux_issues.h1_count,
        report.visual_issues.images_missing_dimensions,
        report.visual_issues.long_words,
        _yes_no(any(vp.horizontal_scroll_detected for vp in viewports)),
        sum(vp.overflowing_element_count for vp in viewports),
        "; ".join(f"{k.word} ({k.count})" for k in metrics.keywords) if metrics else "",
        "; ".join(report.content_issues.possible_typos),
        ", ".join(metrics.schema_types) if metrics and metrics.schema_types else "None",
        metrics.question_headings if metrics else 0,
        _yes_no(bool(metrics and metrics.eeat_signals.has_author)),
        _yes_no(bool(metrics and metrics.eeat_signals.has_date)),
        sum(vp.small_tap_target_count for vp in viewports),
    ]


def reports_to_csv(reports: Iterable[PageReport]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for report in reports:
        writer.writerow(report_to_row(report))
    return buffer.getvalue()


def default_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"website-analysis-{today.isoformat()}.csv"


def write_csv(reports: Iterable[PageReport], path: str | Path) -> Path:
    path = Path(path)
    path.write_text(reports_to_csv(reports), encoding="utf-8")
    return path
