"""Compose the ``llms.txt`` digest from summarized pages."""

from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import Callable, Sequence

from llamap.db.models import SUMMARIZE, Page
from llamap.db.pages import PageFilter, list_pages

logger = logging.getLogger(__name__)

# Renders a snapshot of summarized pages into the final text.
Renderer = Callable[[Sequence[Page]], str]


def render_page(page: Page) -> str:
    """``## [title](url)`` heading followed by the summary."""
    heading = f"[{page.title}]({page.url})" if page.title else page.url
    return f"## {heading}\n{page.summary}\n\n"


def render_llms_txt(pages: Sequence[Page]) -> str:
    return "".join(render_page(page) for page in pages if page.summary)


def _write_atomic(path: Path, content: str) -> None:
    """Write *content* to a sibling temp file, then rename it over *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def compose(
    conn: sqlite3.Connection,
    output_path: str | Path,
    renderer: Renderer = render_llms_txt,
) -> int:
    """Render every summarized page, in discovery order, to *output_path*.

    Pages are read with a single query, so the artifact reflects one
    consistent state of the store.

    Returns:
        The number of pages written.
    """
    pages = list_pages(conn, PageFilter.completed(SUMMARIZE))
    output = Path(output_path)
    logger.info("Composing %d page(s) to %s", len(pages), output)
    _write_atomic(output, renderer(pages))
    return len(pages)
