"""
Command-line entry point.

`site-analyzer crawl URL` prints one JSON line per analyzed page to stdout
as soon as the page completes; logs and the summary go to stderr.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from site_analyzer.api.v1.routes.analyze import normalize_target_url
from site_analyzer.core.config import get_settings
from site_analyzer.core.logging import configure_logging
from site_analyzer.engines.base import CrawlOptions, PageReport, SiteAnalyzerError
from site_analyzer.engines.crawler.engine import SiteCrawler
from site_analyzer.reporting.csv_export import write_csv

app = typer.Typer(help="Crawl a site and report SEO, UX, visual and content issues per page.")
console = Console(stderr=True)


@app.command()
def crawl(
    url: str = typer.Argument(..., help="Start URL (https:// is assumed when missing)"),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", help="Pages to analyze (1-100)"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Link depth below the start URL"),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Also write a CSV report to this path"),
) -> None:
    configure_logging(stream=sys.stderr)
    settings = get_settings()

    target = normalize_target_url(url)
    if target is None:
        raise typer.BadParameter(f"Invalid URL: {url}")

    options = CrawlOptions(
        max_pages=max_pages if max_pages is not None else settings.CRAWLER_DEFAULT_MAX_PAGES,
        max_depth=max_depth if max_depth is not None else settings.CRAWLER_DEFAULT_MAX_DEPTH,
    )

    try:
        reports = asyncio.run(_run_crawler(target, options))
    except SiteAnalyzerError as exc:
        console.print(f"[red]Crawl failed:[/] {exc}")
        raise typer.Exit(code=1) from exc

    if csv_path is not None:
        write_csv(reports, csv_path)
        console.print(f"CSV written to {csv_path}")

    _print_summary(reports)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
) -> None:
    """Run the streaming HTTP API."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "site_analyzer.main:app",
        host=host or settings.HOST,
        port=port or settings.PORT,
        log_config=None,
    )


async def _run_crawler(target: str, options: CrawlOptions) -> list[PageReport]:
    reports: list[PageReport] = []
    async for report in SiteCrawler().crawl(target, options):
        sys.stdout.write(report.to_json_line())
        sys.stdout.flush()
        reports.append(report)
    return reports


def _print_summary(reports: list[PageReport]) -> None:
    table = Table(title="Crawl summary")
    table.add_column("URL")
    table.add_column("Status", justify="right")
    table.add_column("SEO", justify="right")
    table.add_column("AI", justify="right")
    table.add_column("Readability", justify="right")
    for report in reports:
        metrics = report.content_metrics
        table.add_row(
            report.url,
            report.error or str(report.status_code),
            str(metrics.seo_score) if metrics else "-",
            str(metrics.ai_score) if metrics else "-",
            str(metrics.readability_score) if metrics else "-",
        )
    console.print(table)


if __name__ == "__main__":
    app()
