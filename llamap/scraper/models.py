"""Data models for the scraper pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class RawPage:
    """The raw HTTP response for a single URL fetch."""

    url: str
    html: str
    status_code: int
    fetched_by: str = "httpx"


@dataclass
class Article:
    """Title and readable text extracted from a page body."""

    title: Optional[str]
    text: str


@dataclass
class ParsedSitemap:
    """Entries found in one sitemap document.

    ``urls`` maps each ``<url><loc>`` to its ``<lastmod>`` (or ``None``) in
    document order; ``sitemaps`` lists the ``<sitemap><loc>`` children of a
    sitemap index.
    """

    urls: Dict[str, Optional[str]] = field(default_factory=dict)
    sitemaps: List[str] = field(default_factory=list)
