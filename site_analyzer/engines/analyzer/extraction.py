"""
Static extraction of page facts from a rendered document.

The serialized DOM (page.content()) is parsed with BeautifulSoup. Facts that
only the live layout engine knows (rendered innerText, visibly empty links)
are measured in the browser and passed in as `body_text` / `empty_links`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from site_analyzer.engines.base import Heading

logger = structlog.get_logger(__name__)

STRUCTURAL_TAGS = ["ul", "ol", "table", "dl", "article", "section", "nav"]
HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
LONG_PARAGRAPH_WORDS = 150
AUTHOR_SCAN_CHARS = 2000

# "By Jane", "by Jane Doe": the name must be capitalized
_BYLINE_RE = re.compile(r"\b[Bb]y\s+[A-Z][a-z]+")


@dataclass
class DocumentFacts:
    """Everything the scoring step needs, extracted in one pass."""
    title: str = ""
    meta_description: str = ""
    h1: str | None = None
    missing_alt_tags: int = 0
    empty_links: int = 0
    has_viewport_meta: bool = False
    h1_count: int = 0
    images_missing_dimensions: int = 0
    body_text: str = ""
    links: list[str] = field(default_factory=list)
    has_schema: bool = False
    schema_types: list[str] = field(default_factory=list)
    structure_count: int = 0
    paragraph_count: int = 0
    headings: list[Heading] = field(default_factory=list)
    long_paragraphs: int = 0
    document_bytes: int = 0
    has_author: bool = False
    has_date: bool = False


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def _document_title(soup: BeautifulSoup) -> Tag | None:
    """The HTML <title>, never an SVG <title> used as an icon label."""
    if soup.head is not None:
        title = soup.head.find("title", recursive=False)
        if title is not None:
            return title
    for title in soup.find_all("title"):
        if title.find_parent("svg") is None:
            return title
    return None


def _schema_types(payload: Any) -> list[str]:
    """Collect @type values from a JSON-LD payload, including @graph members."""
    if isinstance(payload, list):
        return [t for item in payload for t in _schema_types(item)]
    if not isinstance(payload, dict):
        return []
    types: list[str] = []
    declared = payload.get("@type")
    if isinstance(declared, str) and declared:
        types.append(declared)
    elif isinstance(declared, list):
        types.extend(t for t in declared if isinstance(t, str) and t)
    graph = payload.get("@graph")
    if graph is not None:
        types.extend(_schema_types(graph))
    return types


def _resolve_links(soup: BeautifulSoup, page_url: str) -> list[str]:
    base_url = page_url
    base_tag = soup.find("base", href=True)
    if base_tag is not None:
        try:
            base_url = urljoin(page_url, base_tag["href"].strip())
        except ValueError:
            logger.debug("Ignoring malformed <base> href", url=page_url, href=base_tag["href"])
    links: list[str] = []
    for anchor in soup.find_all(["a", "area"], href=True):
        try:
            links.append(urljoin(base_url, anchor["href"].strip()))
        except ValueError:
            continue
    return links


def extract_document_facts(
    html: str,
    page_url: str,
    body_text: str = "",
    empty_links: int = 0,
) -> DocumentFacts:
    """Parse a serialized document into DocumentFacts."""
    soup = BeautifulSoup(html, "lxml")
    facts = DocumentFacts(
        body_text=body_text,
        empty_links=empty_links,
        document_bytes=len(html.encode("utf-8")),
    )

    title_tag = _document_title(soup)
    if title_tag is not None:
        facts.title = _collapse(title_tag.get_text())
    facts.meta_description = (
        _meta_content(soup, name="description")
        or _meta_content(soup, property="og:description")
    )

    h1_tags = soup.find_all("h1")
    facts.h1_count = len(h1_tags)
    if h1_tags:
        facts.h1 = h1_tags[0].get_text().strip() or None

    images = soup.find_all("img")
    facts.missing_alt_tags = sum(1 for img in images if not img.has_attr("alt"))
    facts.images_missing_dimensions = sum(
        1 for img in images if not img.has_attr("width") and not img.has_attr("height")
    )
    facts.has_viewport_meta = soup.find("meta", attrs={"name": "viewport"}) is not None

    facts.links = _resolve_links(soup, page_url)

    ld_scripts = soup.find_all("script", type="application/ld+json")
    facts.has_schema = bool(ld_scripts)
    for script in ld_scripts:
        try:
            payload = json.loads(script.string or "{}")
        except ValueError:
            logger.debug("Invalid JSON-LD block", url=page_url)
            continue
        facts.schema_types.extend(_schema_types(payload))

    facts.structure_count = len(soup.find_all(STRUCTURAL_TAGS))

    paragraphs = soup.find_all("p")
    facts.paragraph_count = len(paragraphs)
    facts.long_paragraphs = sum(
        1 for p in paragraphs if len(p.get_text().split()) > LONG_PARAGRAPH_WORDS
    )

    facts.headings = [
        Heading(tag=h.name.upper(), text=h.get_text().strip())
        for h in soup.find_all(HEADING_TAGS)
    ]

    facts.has_author = (
        soup.find("meta", attrs={"name": "author"}) is not None
        or soup.find("meta", attrs={"property": "article:author"}) is not None
        or bool(_BYLINE_RE.search(body_text[:AUTHOR_SCAN_CHARS]))
    )
    facts.has_date = (
        soup.find("meta", attrs={"name": "date"}) is not None
        or soup.find("meta", attrs={"property": "article:published_time"}) is not None
        or soup.find("time") is not None
    )

    return facts
