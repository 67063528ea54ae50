"""Crawl a bounded part of a website and stream per-page quality reports."""

__version__ = "1.0.0"
