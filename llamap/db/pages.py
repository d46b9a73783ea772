"""Page store: CRUD operations for the ``pages`` and ``page_stages`` tables.

The store is the single source of truth for the pipeline.  Every write is a
single transaction touching one page, so an interrupted run always leaves
the store in a valid state.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from time import time
from typing import Any, Optional

from llamap.db.models import PREREQUISITES, SCRAPE, Page, StageState, check_stage
from llamap.errors import PageNotFound, StoreIOError


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

_DONE_SQL = (
    "EXISTS (SELECT 1 FROM page_stages d"
    " WHERE d.url = p.url AND d.stage = ? AND d.succeeded_at IS NOT NULL)"
)

_SCRAPED_LASTMOD_SQL = (
    "(SELECT json_extract(d.output, '$.lastmod') FROM page_stages d"
    " WHERE d.url = p.url AND d.stage = 'scrape' AND d.succeeded_at IS NOT NULL)"
)


@dataclass(frozen=True)
class PageFilter:
    """Selects a subset of pages for :func:`list_pages`.

    Build instances with the classmethods rather than the constructor.
    """

    kind: str
    stage: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def all(cls) -> PageFilter:
        return cls("all")

    @classmethod
    def only(cls, url: str) -> PageFilter:
        return cls("only", url=url)

    @classmethod
    def missing(cls, stage: str) -> PageFilter:
        """Pages without a successful *stage* output."""
        return cls("missing", stage=check_stage(stage))

    @classmethod
    def completed(cls, stage: str) -> PageFilter:
        """Pages whose *stage* succeeded at least once."""
        return cls("completed", stage=check_stage(stage))

    @classmethod
    def ready(cls, stage: str) -> PageFilter:
        """Prerequisite of *stage* succeeded, *stage* itself has no output."""
        return cls("ready", stage=check_stage(stage))

    @classmethod
    def stale(cls) -> PageFilter:
        """Never scraped, or the sitemap ``lastmod`` moved since the last scrape."""
        return cls("stale")

    def where(self) -> tuple[str, list[Any]]:
        """Return the SQL predicate (over alias ``p``) and its parameters."""
        if self.kind == "all":
            return "1", []
        if self.kind == "only":
            return "p.url = ?", [self.url]
        if self.kind == "missing":
            return f"NOT {_DONE_SQL}", [self.stage]
        if self.kind == "completed":
            return _DONE_SQL, [self.stage]
        if self.kind == "ready":
            prerequisite = PREREQUISITES[self.stage]
            if prerequisite is None:
                return f"NOT {_DONE_SQL}", [self.stage]
            return f"{_DONE_SQL} AND NOT {_DONE_SQL}", [prerequisite, self.stage]
        if self.kind == "stale":
            return (
                f"(NOT {_DONE_SQL} OR (p.lastmod IS NOT NULL"
                f" AND p.lastmod IS NOT {_SCRAPED_LASTMOD_SQL}))",
                [SCRAPE],
            )
        raise ValueError(f"Unknown page filter {self.kind!r}")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

@contextmanager
def _store_io(action: str) -> Iterator[None]:
    """Re-raise any ``sqlite3.Error`` raised inside the block as :class:`StoreIOError`."""
    try:
        yield
    except sqlite3.Error as exc:
        raise StoreIOError(f"Store failure while {action}: {exc}") from exc


def _rows_to_pages(rows: Iterable[sqlite3.Row]) -> list[Page]:
    """Fold joined ``pages``/``page_stages`` rows into :class:`Page` objects."""
    pages: dict[str, Page] = {}
    for row in rows:
        page = pages.get(row["url"])
        if page is None:
            page = Page(
                url=row["url"],
                seq=row["seq"],
                discovered_at=row["discovered_at"],
                lastmod=row["lastmod"],
            )
            pages[page.url] = page
        if row["stage"] is not None:
            page.stages[row["stage"]] = StageState(
                output=json.loads(row["output"]) if row["output"] else None,
                method=row["method"],
                succeeded_at=row["succeeded_at"],
                error=row["error"],
                failed_at=row["failed_at"],
            )
    return list(pages.values())


def _ensure_page(conn: sqlite3.Connection, url: str) -> None:
    if conn.execute("SELECT 1 FROM pages WHERE url = ?", (url,)).fetchone() is None:
        raise PageNotFound(url)


_SELECT_PAGES = """
    SELECT p.seq, p.url, p.lastmod, p.discovered_at,
           s.stage, s.output, s.method, s.succeeded_at, s.error, s.failed_at
    FROM pages p
    LEFT JOIN page_stages s ON s.url = p.url
    WHERE {where}
    ORDER BY p.seq, s.stage
"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def upsert_discovered(
    conn: sqlite3.Connection,
    urls: Mapping[str, Optional[str]] | Iterable[str],
) -> int:
    """Insert every URL that is not in the store yet.

    Existing pages keep all of their stage data; only the sitemap ``lastmod``
    hint is refreshed when the sitemap provides one.

    Args:
        conn: Open DB connection.
        urls: Either an iterable of URLs or a mapping ``url -> lastmod``.
            Insertion order defines discovery order for new pages.

    Returns:
        The number of pages created.
    """
    entries = urls.items() if isinstance(urls, Mapping) else ((u, None) for u in urls)
    now = int(time())

    with _store_io("recording discovered pages"), conn:
        before = conn.execute("SELECT COUNT(*) FROM pages").fetchone()[0]
        conn.executemany(
            """
            INSERT INTO pages (url, lastmod, discovered_at) VALUES (?, ?, ?)
            ON CONFLICT(url) DO UPDATE SET lastmod = excluded.lastmod
            WHERE excluded.lastmod IS NOT NULL
            """,
            [(url, lastmod, now) for url, lastmod in entries],
        )
        after = conn.execute("SELECT COUNT(*) FROM pages").fetchone()[0]

    return after - before


def get_page(conn: sqlite3.Connection, url: str) -> Optional[Page]:
    """Fetch a single page by URL.  Returns ``None`` if not found."""
    pages = list_pages(conn, PageFilter.only(url))
    return pages[0] if pages else None


def list_pages(conn: sqlite3.Connection, page_filter: Optional[PageFilter] = None) -> list[Page]:
    """Return pages matching *page_filter* in discovery order.

    The result is read with a single ``SELECT`` so it is a consistent view of
    the store even if pages are written afterwards.
    """
    where, params = (page_filter or PageFilter.all()).where()
    with _store_io("listing pages"):
        rows = conn.execute(_SELECT_PAGES.format(where=where), params).fetchall()  # noqa: S608
    return _rows_to_pages(rows)


def record_success(
    conn: sqlite3.Connection,
    url: str,
    stage: str,
    output: dict[str, Any],
    method: str,
    timestamp: Optional[int] = None,
) -> None:
    """Atomically replace *stage*'s output for *url* and clear its error.

    Raises:
        ValueError: If *output* is empty.
        PageNotFound: If *url* has no page row.
        StoreIOError: On any SQLite failure.
    """
    check_stage(stage)
    if not output:
        raise ValueError(f"Refusing to record an empty {stage} output for {url!r}")
    ts = int(time()) if timestamp is None else timestamp

    with _store_io(f"recording {stage} output"), conn:
        _ensure_page(conn, url)
        conn.execute(
            """
            INSERT INTO page_stages (url, stage, output, method, succeeded_at, error, failed_at)
            VALUES (?, ?, ?, ?, ?, NULL, NULL)
            ON CONFLICT(url, stage) DO UPDATE SET
                output = excluded.output,
                method = excluded.method,
                succeeded_at = excluded.succeeded_at,
                error = NULL,
                failed_at = NULL
            """,
            (url, stage, json.dumps(output), method, ts),
        )


def record_failure(
    conn: sqlite3.Connection,
    url: str,
    stage: str,
    message: str,
    timestamp: Optional[int] = None,
) -> None:
    """Record the last error of *stage* for *url* without touching its output.

    Raises:
        PageNotFound: If *url* has no page row.
        StoreIOError: On any SQLite failure.
    """
    check_stage(stage)
    ts = int(time()) if timestamp is None else timestamp

    with _store_io(f"recording {stage} failure"), conn:
        _ensure_page(conn, url)
        conn.execute(
            """
            INSERT INTO page_stages (url, stage, error, failed_at) VALUES (?, ?, ?, ?)
            ON CONFLICT(url, stage) DO UPDATE SET
                error = excluded.error,
                failed_at = excluded.failed_at
            """,
            (url, stage, message, ts),
        )


def remove_absent(conn: sqlite3.Connection, urls: Iterable[str]) -> int:
    """Delete every page (and its stage state) whose URL is not in *urls*.

    Only used by the explicit ``scrape --prune`` operation.

    Returns:
        The number of pages removed.
    """
    keep = set(urls)
    with _store_io("pruning pages"), conn:
        existing = [row[0] for row in conn.execute("SELECT url FROM pages").fetchall()]
        doomed = [(url,) for url in existing if url not in keep]
        conn.executemany("DELETE FROM pages WHERE url = ?", doomed)
    return len(doomed)
