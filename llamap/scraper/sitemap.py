"""Sitemap parsing and URL collection.

Supports the standard ``<urlset>`` format, ``<sitemapindex>`` files that
reference nested sitemaps, and gzip-compressed bodies.  Namespaces are
ignored so slightly non-conforming sitemaps still parse.
"""

from __future__ import annotations

import gzip
import logging
from collections import deque
from typing import Callable, Dict, Optional
from urllib.parse import urljoin, urlparse
from xml.etree import ElementTree as ET

from llamap.errors import ParseSitemapError
from llamap.scraper.fetcher import fetch_sitemap
from llamap.scraper.models import ParsedSitemap

logger = logging.getLogger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _local(tag: str) -> str:
    """Strip the ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if _local(child.tag) == name and child.text and child.text.strip():
            return child.text.strip()
    return None


def _absolute(loc: str, source_url: str) -> Optional[str]:
    """Resolve *loc* against the sitemap URL; drop anything not http(s)."""
    url = urljoin(source_url, loc)
    if urlparse(url).scheme not in ("http", "https"):
        return None
    return url


def _decompress(content: bytes, source_url: str) -> bytes:
    if not content.startswith(_GZIP_MAGIC):
        return content
    try:
        return gzip.decompress(content)
    except (OSError, EOFError) as exc:
        raise ParseSitemapError(f"corrupt gzip body: {exc}", url=source_url) from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_sitemap(content: bytes | str, source_url: str) -> ParsedSitemap:
    """Parse one sitemap document.

    Args:
        content: Raw body, optionally gzip-compressed.
        source_url: URL the body came from; used to resolve relative
            ``<loc>`` values and in error messages.

    Returns:
        A :class:`ParsedSitemap`.  A blank document or an empty ``<urlset>``
        yields an empty result.

    Raises:
        ParseSitemapError: If the body is not well-formed XML or its root is
            neither ``<urlset>`` nor ``<sitemapindex>``.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    content = _decompress(content, source_url)

    parsed = ParsedSitemap()
    if not content.strip():
        return parsed

    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise ParseSitemapError(str(exc), url=source_url) from exc

    kind = _local(root.tag)
    if kind == "urlset":
        for entry in root:
            if _local(entry.tag) != "url":
                continue
            loc = _child_text(entry, "loc")
            url = _absolute(loc, source_url) if loc else None
            if url is None:
                logger.warning("Skipping <url> without a usable <loc> in %s", source_url)
                continue
            parsed.urls[url] = _child_text(entry, "lastmod")
    elif kind == "sitemapindex":
        for entry in root:
            if _local(entry.tag) != "sitemap":
                continue
            loc = _child_text(entry, "loc")
            url = _absolute(loc, source_url) if loc else None
            if url is not None:
                parsed.sitemaps.append(url)
    else:
        raise ParseSitemapError(f"unexpected root element <{kind}>", url=source_url)

    return parsed


def collect_urls(
    sitemap_url: str,
    fetch: Optional[Callable[[str], bytes]] = None,
) -> Dict[str, Optional[str]]:
    """Collect every page URL reachable from *sitemap_url*.

    Nested sitemap indexes are followed breadth-first.  Each sitemap is
    fetched at most once, so self-referencing or cyclic indexes terminate.
    URLs listed by several sitemaps collapse into one entry; the first
    non-empty ``lastmod`` seen wins.

    Returns:
        ``{url: lastmod}`` in discovery order.

    Raises:
        FetchError: If any sitemap document cannot be fetched.
        ParseSitemapError: If any sitemap document is malformed.
    """
    fetch = fetch or fetch_sitemap
    entries: Dict[str, Optional[str]] = {}
    queue: deque[str] = deque([sitemap_url])
    visited: set[str] = set()

    while queue:
        current = queue.popleft()
        if current in visited:
            logger.debug("Sitemap %s already visited, skipping", current)
            continue
        visited.add(current)

        parsed = parse_sitemap(fetch(current), current)
        logger.info(
            "Sitemap %s: %d page(s), %d nested sitemap(s)",
            current, len(parsed.urls), len(parsed.sitemaps),
        )
        for url, lastmod in parsed.urls.items():
            if entries.get(url) is None:
                entries[url] = lastmod
        queue.extend(s for s in parsed.sitemaps if s not in visited)

    return entries
