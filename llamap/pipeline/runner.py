"""Generic stage runner.

``run_stage`` drives one stage over a resolved target set:

    for each page → call the stage collaborator → record success / failure

A page failure is recorded against that page and the run continues; only
store errors abort the run.  With ``workers > 1`` collaborator calls run in
a bounded thread pool while every store write and counter update stays on
the calling thread.
"""

from __future__ import annotations

import logging
import sqlite3
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from llamap.db.models import PREREQUISITES, Page
from llamap.db.pages import record_failure, record_success
from llamap.errors import StageError
from llamap.logging_utils import TRACE
from llamap.pipeline.targets import Resolution
from llamap.pipeline.throttle import Throttle

logger = logging.getLogger(__name__)


@dataclass
class StageOutput:
    """What a stage collaborator returns for one page."""

    output: dict[str, Any]
    method: str


# A stage collaborator: page in, tagged output out; raises on failure.
StageProcess = Callable[[Page], StageOutput]


@dataclass
class RunRecord:
    """Outcome of one stage invocation.  Never persisted."""

    stage: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.stage}: {self.attempted} attempted, {self.succeeded} succeeded, "
            f"{self.failed} failed, {self.skipped} skipped"
        )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _flag_inputs(page: Page, stage: str) -> None:
    """Warn when a page runs with missing or outdated upstream output."""
    prerequisite = PREREQUISITES[stage]
    if prerequisite is None:
        return
    upstream = page.stage(prerequisite)
    if not upstream.succeeded:
        logger.warning("%s: running %s without %s output", page.url, stage, prerequisite)
        return
    before = PREREQUISITES[prerequisite]
    if before is not None:
        source = page.stage(before)
        if source.succeeded_at and upstream.succeeded_at and source.succeeded_at > upstream.succeeded_at:
            logger.warning(
                "%s: %s output predates the latest %s; running %s on stale input",
                page.url, prerequisite, before, stage,
            )


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def run_stage(
    conn: sqlite3.Connection,
    resolution: Resolution,
    process: StageProcess,
    workers: int = 1,
    throttle: Optional[Throttle] = None,
) -> RunRecord:
    """Run *process* for every page in *resolution* and record the results.

    Args:
        conn: Open, initialised DB connection.
        resolution: Output of :func:`~llamap.pipeline.targets.resolve_targets`.
        process: Stage collaborator call.  Any exception it raises is a
            failure of that page only.
        workers: Maximum number of concurrent collaborator calls.
        throttle: Optional limiter applied before every collaborator call.

    Returns:
        The aggregated :class:`RunRecord`.

    Raises:
        StoreIOError: If a result cannot be written.  The run stops.
    """
    stage = resolution.stage
    record = RunRecord(stage=stage, skipped=len(resolution.skipped))

    for page in resolution.skipped:
        logger.info("Skipping %s: no %s output", page.url, PREREQUISITES[stage])

    if not resolution.pages:
        logger.info("Nothing to %s.", stage)
        return record

    logger.info("Running %s on %d page(s)", stage, len(resolution.pages))

    def call(page: Page) -> StageOutput:
        if throttle is not None:
            throttle.wait()
        logger.log(TRACE, "%s: %s started", page.url, stage)
        return process(page)

    def settle(page: Page, result: Optional[StageOutput], exc: Optional[BaseException]) -> None:
        record.attempted += 1
        if exc is None and result is not None and result.output:
            record_success(conn, page.url, stage, result.output, result.method)
            record.succeeded += 1
            logger.info("%s %s ✓ (%s)", stage, page.url, result.method)
            return

        message = _describe(exc) if exc is not None else f"{stage} produced no output"
        record_failure(conn, page.url, stage, message)
        record.failed += 1
        record.errors.append((page.url, message))
        logger.warning("%s %s ✗ %s", stage, page.url, message)
        if exc is not None and not isinstance(exc, StageError):
            logger.debug("Unexpected error for %s", page.url, exc_info=exc)

    for page in resolution.pages:
        _flag_inputs(page, stage)

    if workers <= 1:
        for page in resolution.pages:
            try:
                result = call(page)
            except Exception as exc:
                settle(page, None, exc)
            else:
                settle(page, result, None)
        return record

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=stage) as pool:
        future_to_page: dict[Future[StageOutput], Page] = {
            pool.submit(call, page): page for page in resolution.pages
        }
        try:
            for future in as_completed(future_to_page):
                page = future_to_page[future]
                try:
                    result = future.result()
                except Exception as exc:
                    settle(page, None, exc)
                else:
                    settle(page, result, None)
        except BaseException:
            for future in future_to_page:
                future.cancel()
            raise

    return record
