"""Pipeline operations behind the ``scrape``, ``parse`` and ``summarize`` commands.

Each operation resolves its targets, wires the stage collaborator into
:func:`~llamap.pipeline.runner.run_stage` and returns the run record:

    scrape     sitemap → discover pages → fetch bodies
    parse      stored body → title + text
    summarize  parsed text → LLM summary
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Callable, Optional

from llamap.db.models import PARSE, SCRAPE, SUMMARIZE, Page
from llamap.db.pages import get_page, remove_absent, upsert_discovered
from llamap.errors import ExtractionError, FetchError, SummarizationError, UnknownTarget
from llamap.pipeline.runner import RunRecord, StageOutput, StageProcess, run_stage
from llamap.pipeline.targets import ALL, resolve_targets
from llamap.pipeline.throttle import Throttle
from llamap.scraper.extractor import TextExtractor, extract_article
from llamap.scraper.fetcher import fetch_url
from llamap.scraper.models import RawPage
from llamap.scraper.sitemap import collect_urls
from llamap.summarizer import Summarizer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stage collaborators
# ---------------------------------------------------------------------------

def make_page_fetcher(fetch: Callable[[str], RawPage] = fetch_url) -> StageProcess:
    """Return the scrape-stage collaborator: download one page body."""

    def fetch_page(page: Page) -> StageOutput:
        raw = fetch(page.url)
        if not raw.html.strip():
            raise FetchError(f"Empty body (HTTP {raw.status_code})", url=page.url)
        return StageOutput(
            output={"html": raw.html, "status_code": raw.status_code, "lastmod": page.lastmod},
            method=raw.fetched_by,
        )

    return fetch_page


def make_page_parser(extractor: TextExtractor, selector: Optional[str] = None) -> StageProcess:
    """Return the parse-stage collaborator for one extraction method."""

    def parse_page(page: Page) -> StageOutput:
        if not page.html:
            raise ExtractionError("No scraped body to parse", url=page.url)
        article = extract_article(page.html, page.url, extractor, selector=selector)
        output = {"title": article.title, "text": article.text}
        if selector:
            output["selector"] = selector
        return StageOutput(output=output, method=extractor.name)

    return parse_page


def make_page_summarizer(summarizer: Summarizer) -> StageProcess:
    """Return the summarize-stage collaborator for one provider."""

    def summarize_page(page: Page) -> StageOutput:
        if not page.text:
            raise SummarizationError("No parsed text to summarize", url=page.url)
        summary = summarizer.summarize(page.url, page.text)
        return StageOutput(
            output={"summary": summary, "prompt": summarizer.prompt_id},
            method=summarizer.tag,
        )

    return summarize_page


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def scrape(
    conn: sqlite3.Connection,
    sitemap_url: str,
    target: Optional[str] = None,
    delay_ms: Optional[int] = None,
    concurrency: int = 1,
    prune: bool = False,
    fetch_page: Callable[[str], RawPage] = fetch_url,
    fetch_sitemap: Optional[Callable[[str], bytes]] = None,
) -> RunRecord:
    """Discover pages from *sitemap_url* and fetch their bodies.

    The sitemap is fully collected before the store is touched, so a
    malformed or unreachable sitemap leaves the store unchanged.

    Args:
        conn: Open, initialised DB connection.
        sitemap_url: Root sitemap (or sitemap index) URL.
        target: ``None`` (new and changed pages), ``"all"`` or one URL.
        delay_ms: Minimum delay between page requests.
        concurrency: Maximum number of concurrent page requests.
        prune: Remove pages missing from this sitemap.
        fetch_page: Page fetcher (injectable for tests).
        fetch_sitemap: Sitemap fetcher (injectable for tests).

    Raises:
        FetchError: If a sitemap document cannot be fetched.
        ParseSitemapError: If a sitemap document is malformed.
        UnknownTarget: If *target* is a URL that was never discovered.
    """
    entries = collect_urls(sitemap_url, fetch=fetch_sitemap)

    # An explicit URL must be known before discovery or pruning writes anything.
    selector = target.strip() if target else None
    if (
        selector
        and selector.lower() != ALL
        and selector not in entries
        and get_page(conn, selector) is None
    ):
        raise UnknownTarget(selector)

    created = upsert_discovered(conn, entries)
    logger.info("Sitemap entries: %d new / %d listed", created, len(entries))

    if prune:
        removed = remove_absent(conn, entries)
        logger.info("Removed %d page(s) no longer listed in the sitemap", removed)

    resolution = resolve_targets(conn, SCRAPE, target)
    return run_stage(
        conn,
        resolution,
        make_page_fetcher(fetch_page),
        workers=concurrency,
        throttle=Throttle.from_delay_ms(delay_ms),
    )


def parse(
    conn: sqlite3.Connection,
    extractor: TextExtractor,
    target: Optional[str] = None,
    selector: Optional[str] = None,
) -> RunRecord:
    """Extract title and text from stored bodies with *extractor*."""
    resolution = resolve_targets(conn, PARSE, target)
    return run_stage(conn, resolution, make_page_parser(extractor, selector))


def summarize(
    conn: sqlite3.Connection,
    summarizer: Summarizer,
    target: Optional[str] = None,
    rpm: Optional[int] = None,
    concurrency: int = 1,
) -> RunRecord:
    """Summarize parsed pages with *summarizer*."""
    resolution = resolve_targets(conn, SUMMARIZE, target)
    return run_stage(
        conn,
        resolution,
        make_page_summarizer(summarizer),
        workers=concurrency,
        throttle=Throttle.from_rpm(rpm),
    )
