"""Shared fixtures. Playwright is never launched: sessions and pages are fakes."""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from site_analyzer.core.config import Settings


class FakeSession:
    """Stands in for RenderingSession: hands out one prepared page per call."""

    def __init__(self, page=None):
        self._page = page
        self.pages_opened = 0
        self.pages_closed = 0

    @asynccontextmanager
    async def page(self):
        self.pages_opened += 1
        try:
            yield self._page
        finally:
            self.pages_closed += 1


def make_page(
    url: str = "https://example.com/",
    status: int = 200,
    html: str = "<html><head><title>Home</title></head><body><p>Hello world.</p></body></html>",
    live_facts: dict | None = None,
    viewport_results: list[dict] | None = None,
) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.ok = 200 <= status < 300

    clean = {"horizontalScroll": False, "overflowingElements": 0, "smallTapTargets": 0, "offenders": []}
    viewport_results = viewport_results or [clean, clean, clean]
    live_facts = live_facts if live_facts is not None else {"bodyText": "Hello world.", "emptyLinks": 0}

    page = MagicMock()
    page.url = url
    page.goto = AsyncMock(return_value=response)
    page.content = AsyncMock(return_value=html)
    page.evaluate = AsyncMock(side_effect=[live_facts, *viewport_results])
    page.set_viewport_size = AsyncMock()
    page.screenshot = AsyncMock(return_value=b"")
    return page


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        VIEWPORT_SETTLE_MS=0,
        SCREENSHOT_DIR=str(tmp_path / "shots"),
        SPELLCHECK_ENABLED=False,
        RENDER_STEP_TIMEOUT_S=5.0,
    )


@pytest.fixture
def page_factory():
    return make_page


@pytest.fixture
def fake_session_cls():
    return FakeSession
