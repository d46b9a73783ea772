"""Utilities for rendering run results in the CLI."""

from __future__ import annotations

from llamap.pipeline.runner import RunRecord

_MAX_ERRORS_SHOWN = 20


def render_run_record(record: RunRecord) -> str:
    """Render a run summary followed by the per-page errors, if any.

    Args:
        record: The stage run outcome.

    Returns:
        Multi-line string ready for ``typer.echo``.
    """
    lines = [
        f"[{record.stage}] attempted={record.attempted}  succeeded={record.succeeded}  "
        f"failed={record.failed}  skipped={record.skipped}"
    ]
    for url, message in record.errors[:_MAX_ERRORS_SHOWN]:
        lines.append(f"  ✗ {url}  {message}")
    hidden = len(record.errors) - _MAX_ERRORS_SHOWN
    if hidden > 0:
        lines.append(f"  … and {hidden} more failure(s)")
    return "\n".join(lines)
