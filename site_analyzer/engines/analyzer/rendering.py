"""
Rendering collaborator: one Chromium instance per crawl, one tab per page.

- RenderingSession.launch() is an async context manager; the browser is
  closed exactly once on every exit path
- session.page() yields a fresh tab with request interception installed
  and closes it on every exit path
- Launch failures surface as RenderingUnavailableError (fatal to a crawl)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from playwright.async_api import Browser, Page, Route, async_playwright

from site_analyzer.core.config import Settings, get_settings
from site_analyzer.engines.base import RenderingUnavailableError

logger = structlog.get_logger(__name__)

DESKTOP_VIEWPORT = {"width": 1920, "height": 1080}


class RenderingSession:
    """A launched browser shared by every page of one crawl."""

    def __init__(self, browser: Browser, settings: Settings | None = None):
        self.browser = browser
        self.settings = settings or get_settings()
        self._blocked = frozenset(self.settings.RENDER_BLOCKED_RESOURCE_TYPES)

    @classmethod
    @asynccontextmanager
    async def launch(cls, settings: Settings | None = None) -> AsyncIterator[RenderingSession]:
        settings = settings or get_settings()
        try:
            pw = await async_playwright().start()
        except Exception as e:
            raise RenderingUnavailableError(f"Could not start Playwright: {e}") from e

        try:
            try:
                browser = await pw.chromium.launch(
                    headless=settings.RENDER_HEADLESS,
                    args=settings.RENDER_BROWSER_ARGS,
                )
            except Exception as e:
                raise RenderingUnavailableError(f"Could not launch Chromium: {e}") from e

            logger.info("Browser launched", headless=settings.RENDER_HEADLESS)
            try:
                yield cls(browser, settings)
            finally:
                await browser.close()
                logger.info("Browser closed")
        finally:
            await pw.stop()

    async def _route_handler(self, route: Route) -> None:
        """Abort blocked resource types, let everything else through."""
        if route.request.resource_type in self._blocked:
            await route.abort()
        else:
            await route.continue_()

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        page = await self.browser.new_page(viewport=DESKTOP_VIEWPORT)
        try:
            if self._blocked:
                await page.route("**/*", self._route_handler)
            yield page
        finally:
            await page.close()
