"""llamap CLI — entry-point for all pipeline operations.

Usage:
    python cli/main.py --help

Each command maps to one pipeline stage:
    scrape     → discover pages from a sitemap and fetch their bodies
    parse      → extract title and text from stored bodies
    summarize  → summarize parsed text with an LLM
    compose    → write the llms.txt digest
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from llamap.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from contextlib import contextmanager
from typing import Iterator, Optional

import typer

from cli.rendering import render_run_record
from llamap.composer import compose as compose_digest
from llamap.config import settings
from llamap.db import open_store
from llamap.errors import ConfigurationError, LlamapError
from llamap.logging_utils import configure_logging
from llamap.pipeline import stages
from llamap.pipeline.runner import RunRecord
from llamap.scraper.extractor import get_extractor, validate_selector
from llamap.summarizer import Summarizer, parse_provider_uri

app = typer.Typer(
    name="llamap",
    help="Build llms.txt from sitemap.xml.",
    no_args_is_help=True,
)

_TARGET_HELP = "Pages to process: omit for pending pages, 'all', or one URL."


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@contextmanager
def _command(name: str) -> Iterator[None]:
    """Turn invocation-level errors into ``Error: …`` on stderr and exit code 1."""
    try:
        yield
    except LlamapError as exc:
        typer.echo(f"[{name}] Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _report(record: RunRecord) -> None:
    typer.echo(render_run_record(record))


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------

@app.callback()
def main(
    verbose: int = typer.Option(
        2,
        "--verbose",
        "-v",
        count=True,
        help="Output v(v...)erbosity: error (0), warn (1), info (2), debug (3), trace (4).",
    ),
    verbosity: Optional[int] = typer.Option(
        None, "--verbosity", min=0, help="Verbosity as a number (overrides -v)."
    ),
) -> None:
    """Build llms.txt from sitemap.xml."""
    configure_logging(verbose if verbosity is None else verbosity)


# ---------------------------------------------------------------------------
# scrape
# ---------------------------------------------------------------------------

@app.command("scrape")
def scrape(
    url: str = typer.Argument(..., help="The sitemap URL to scrape."),
    db: Path = typer.Argument(..., help="Path to database file to store pages data."),
    target: Optional[str] = typer.Option(None, "--target", "-t", help=_TARGET_HELP),
    delay: int = typer.Option(
        settings.scrape_delay_ms, "--delay", "-d", min=0,
        help="Delay between requests in milliseconds (rate limiting).",
    ),
    concurrency: int = typer.Option(1, "--concurrency", "-c", min=1, help="Number of concurrent requests."),
    prune: bool = typer.Option(False, "--prune", help="Remove pages no longer listed in the sitemap."),
) -> None:
    """Scrape a website using its sitemap and save pages to a local database."""
    typer.echo(f"[scrape] Collecting {url!r} into {str(db)!r} …")
    with _command("scrape"):
        conn = open_store(db)
        try:
            record = stages.scrape(
                conn, url, target=target, delay_ms=delay, concurrency=concurrency, prune=prune
            )
        finally:
            conn.close()
    _report(record)


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------

@app.command("parse")
def parse(
    db: Path = typer.Argument(..., help="Path to database file to read pages from."),
    text_by: str = typer.Option(
        settings.default_text_by, "--text-by",
        help="Text extraction method: dom_smoothie | fast_html2md.",
    ),
    target: Optional[str] = typer.Option(None, "--target", "-t", help=_TARGET_HELP),
    selector: Optional[str] = typer.Option(
        None, "--selector", "-s",
        help="CSS selector to limit the HTML subset from which content is extracted.",
    ),
) -> None:
    """Parse/re-extract content from HTML in the database."""
    with _command("parse"):
        extractor = get_extractor(text_by)
        if selector:
            validate_selector(selector)
        typer.echo(f"[parse] Extracting text by {extractor.name} …")
        conn = open_store(db)
        try:
            record = stages.parse(conn, extractor, target=target, selector=selector)
        finally:
            conn.close()
    _report(record)


# ---------------------------------------------------------------------------
# summarize
# ---------------------------------------------------------------------------

@app.command("summarize")
def summarize(
    db: Path = typer.Argument(..., help="Path to database file to read pages from."),
    model: str = typer.Argument(..., help="Model URI, e.g. ollama://8b@qwen3 or openai://gpt-4o-mini."),
    target: Optional[str] = typer.Option(None, "--target", "-t", help=_TARGET_HELP),
    prompt_file: Optional[Path] = typer.Option(
        None, "--prompt-file", "-p", help="Path to the file with a prompt template."
    ),
    rpm: Optional[int] = typer.Option(None, "--rpm", "-r", min=1, help="Rate limit: requests per minute."),
    concurrency: int = typer.Option(1, "--concurrency", "-c", min=1, help="Number of concurrent LLM calls."),
) -> None:
    """Summarize scraped pages using an LLM model and store the summary in the database."""
    with _command("summarize"):
        spec = parse_provider_uri(model)
        template = None
        if prompt_file is not None:
            try:
                template = prompt_file.read_text(encoding="utf-8")
            except OSError as exc:
                raise ConfigurationError(f"Failed to read prompt file: {prompt_file}") from exc
        summarizer = Summarizer(spec, prompt_template=template)
        typer.echo(f"[summarize] Using {spec.backend} model {spec.model!r} …")
        conn = open_store(db)
        try:
            record = stages.summarize(
                conn, summarizer, target=target, rpm=rpm, concurrency=concurrency
            )
        finally:
            conn.close()
    _report(record)


# ---------------------------------------------------------------------------
# compose
# ---------------------------------------------------------------------------

@app.command("compose")
def compose(
    db: Path = typer.Argument(..., help="Path to database file to read pages from."),
    output_file: Path = typer.Argument(..., help="Path to output file to compose results to."),
) -> None:
    """Compose summarized pages into an llms.txt file."""
    with _command("compose"):
        conn = open_store(db)
        try:
            count = compose_digest(conn, output_file)
        except OSError as exc:
            raise ConfigurationError(f"Cannot write {output_file}: {exc}") from exc
        finally:
            conn.close()
    typer.echo(f"[compose] Composed {count} page(s) to {output_file}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
