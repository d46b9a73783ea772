"""Content extraction: turns a stored page body into an :class:`Article`.

Text extraction methods are looked up by name (``--text-by``):

``dom_smoothie`` (default)
    Readability-style main-content extraction with ``trafilatura``, emitted
    as markdown.  Falls back to a BeautifulSoup ``<main>``/``<article>``
    heuristic when trafilatura finds nothing.

``fast_html2md``
    Converts the whole (optionally narrowed) document to markdown with
    ``html2text``.  Fast, no boilerplate removal.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import html2text
import soupsieve
import trafilatura
from bs4 import BeautifulSoup

from llamap.errors import ConfigurationError, ExtractionError
from llamap.scraper.models import Article


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _extract_title(soup: BeautifulSoup) -> Optional[str]:
    """Return the first non-empty ``<title>``, ``<h1>`` or ``<h2>`` text."""
    for tag in ("title", "h1", "h2"):
        element = soup.find(tag)
        if element is None:
            continue
        text = " ".join(element.get_text(" ").split())
        if text:
            return text
    return None


def _select(soup: BeautifulSoup, selector: str) -> str:
    """Return the outer HTML of every element matching *selector*, joined."""
    return "\n".join(str(el) for el in soup.select(selector))


def _bs4_fallback(html: str) -> str:
    """Extract readable text using BeautifulSoup ``<main>``/``<article>`` heuristics."""
    soup = BeautifulSoup(html, "html.parser")
    # Strip non-content elements
    for tag in soup(["script", "style", "nav", "footer", "header"]):
        tag.decompose()
    container = soup.find("main") or soup.find("article") or soup.body
    if container is None:
        return soup.get_text(separator=" ", strip=True)
    return container.get_text(separator=" ", strip=True)


# ---------------------------------------------------------------------------
# Extraction methods
# ---------------------------------------------------------------------------

class TextExtractor(ABC):
    """Abstract base class for a named text extraction method."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used on the command line and stored as the method tag."""

    @abstractmethod
    def extract_text(self, html: str, url: str) -> str:
        """Return readable text for *html* (may be empty)."""


class DomSmoothieExtractor(TextExtractor):
    """Main-content extraction: trafilatura first, BeautifulSoup fallback."""

    @property
    def name(self) -> str:
        return "dom_smoothie"

    def extract_text(self, html: str, url: str) -> str:
        text: str | None = trafilatura.extract(
            html,
            url=url,
            output_format="markdown",
            include_links=False,
            include_images=False,
            include_tables=True,
            no_fallback=False,
        )
        if not text:
            text = _bs4_fallback(html)
        return text or ""


class FastHtml2MdExtractor(TextExtractor):
    """Whole-document HTML to markdown conversion."""

    @property
    def name(self) -> str:
        return "fast_html2md"

    def extract_text(self, html: str, url: str) -> str:
        converter = html2text.HTML2Text(baseurl=url)
        converter.ignore_images = True
        converter.body_width = 0
        return converter.handle(html)


EXTRACTORS: dict[str, TextExtractor] = {
    extractor.name: extractor
    for extractor in (DomSmoothieExtractor(), FastHtml2MdExtractor())
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_extractor(name: str) -> TextExtractor:
    """Return the extractor registered as *name* (case-insensitive).

    Raises:
        ConfigurationError: If no extractor has that name.
    """
    try:
        return EXTRACTORS[name.lower()]
    except KeyError:
        choices = ", ".join(sorted(EXTRACTORS))
        raise ConfigurationError(
            f"Invalid text extraction method: {name!r} (choose from {choices})"
        ) from None


def validate_selector(selector: str) -> str:
    """Raise :class:`ConfigurationError` if *selector* is not valid CSS."""
    try:
        soupsieve.compile(selector)
    except soupsieve.SelectorSyntaxError as exc:
        raise ConfigurationError(f"Invalid CSS selector {selector!r}: {exc}") from exc
    return selector


def extract_article(
    html: str,
    url: str,
    extractor: TextExtractor,
    selector: Optional[str] = None,
) -> Article:
    """Extract the title and readable text of *html*.

    The title always comes from the full document.  When *selector* is given,
    text is extracted only from the matching elements.

    Raises:
        ExtractionError: If no text could be extracted.
    """
    soup = BeautifulSoup(html, "html.parser")
    title = _extract_title(soup)

    source = _select(soup, selector) if selector else html
    if not source.strip():
        raise ExtractionError(f"Selector {selector!r} matched nothing", url=url)

    text = extractor.extract_text(source, url).strip()
    if not text:
        raise ExtractionError(f"{extractor.name} extracted no text", url=url)

    return Article(title=title, text=text)
