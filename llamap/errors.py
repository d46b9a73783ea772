"""Exception hierarchy for llamap.

Two families:

``StageError``
    Per-page failures raised by a stage collaborator (fetcher, extractor,
    summarizer).  The stage runner records them against the page and moves
    on to the next one.

Everything else
    Invocation-level failures.  They abort the current command and the CLI
    turns them into a non-zero exit code.
"""

from __future__ import annotations


class LlamapError(Exception):
    """Base class for every error raised by llamap."""


# ---------------------------------------------------------------------------
# Per-page stage errors
# ---------------------------------------------------------------------------

class StageError(LlamapError):
    """A single page failed one stage.  Never fatal to the run."""

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        super().__init__(message)


class FetchError(StageError):
    """Network or HTTP failure while fetching a sitemap or page body."""


class ExtractionError(StageError):
    """Title/text extraction produced nothing usable."""


class SummarizationError(StageError):
    """The LLM provider failed, timed out or returned an empty summary."""


# ---------------------------------------------------------------------------
# Invocation-level errors
# ---------------------------------------------------------------------------

class ParseSitemapError(LlamapError):
    """A sitemap document is not well-formed XML."""

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        if url:
            message = f"Failed to parse sitemap at {url!r}: {message}"
        super().__init__(message)


class UnknownTarget(LlamapError):
    """An explicit ``--target`` URL was never discovered."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Page not found in store: {url!r}")


class PageNotFound(LlamapError):
    """A store write referenced a URL that has no page row."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"No page row for {url!r}")


class StoreIOError(LlamapError):
    """The SQLite store could not be opened, read or written."""


class ConfigurationError(LlamapError):
    """Invalid user-supplied option (provider URI, extractor name, selector...)."""
