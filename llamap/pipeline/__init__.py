"""Incremental content pipeline: target resolution, stage runner, stage operations."""

from llamap.pipeline.runner import RunRecord, StageOutput, run_stage
from llamap.pipeline.stages import parse, scrape, summarize
from llamap.pipeline.targets import ALL, Resolution, resolve_targets

__all__ = [
    "ALL",
    "Resolution",
    "RunRecord",
    "StageOutput",
    "resolve_targets",
    "run_stage",
    "scrape",
    "parse",
    "summarize",
]
