"""Target resolution: which pages does one stage invocation act on?

Selectors
---------
``None``
    Default policy.  ``scrape``: pages never scraped or whose sitemap
    ``lastmod`` moved.  ``parse``/``summarize``: pages whose prerequisite
    stage succeeded and which have no output for this stage yet.

``"all"``
    Every page whose prerequisite succeeded, regardless of existing output.
    Pages lacking the prerequisite are reported as skipped.

any other string
    Exactly that URL.  It must have been discovered already.

Resolution only reads the store.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Optional

from llamap.db.models import PREREQUISITES, SCRAPE, Page, check_stage
from llamap.db.pages import PageFilter, get_page, list_pages
from llamap.errors import UnknownTarget

ALL = "all"


@dataclass
class Resolution:
    """Pages to process for one stage, in discovery order."""

    stage: str
    pages: list[Page] = field(default_factory=list)
    skipped: list[Page] = field(default_factory=list)

    @property
    def urls(self) -> list[str]:
        return [page.url for page in self.pages]


def resolve_targets(
    conn: sqlite3.Connection,
    stage: str,
    selector: Optional[str] = None,
) -> Resolution:
    """Resolve *selector* into the pages *stage* should process.

    Raises:
        UnknownTarget: If *selector* is a URL that is not in the store.
    """
    check_stage(stage)
    selector = selector.strip() if selector else None

    if not selector:
        default = PageFilter.stale() if stage == SCRAPE else PageFilter.ready(stage)
        return Resolution(stage, pages=list_pages(conn, default))

    if selector.lower() == ALL:
        resolution = Resolution(stage)
        prerequisite = PREREQUISITES[stage]
        for page in list_pages(conn, PageFilter.all()):
            if prerequisite is None or page.stage(prerequisite).succeeded:
                resolution.pages.append(page)
            else:
                resolution.skipped.append(page)
        return resolution

    page = get_page(conn, selector)
    if page is None:
        raise UnknownTarget(selector)
    return Resolution(stage, pages=[page])
