"""Dataclass models representing DB rows.

These are plain Python objects, not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------
SCRAPE = "scrape"
PARSE = "parse"
SUMMARIZE = "summarize"

STAGES: tuple[str, ...] = (SCRAPE, PARSE, SUMMARIZE)

# Stage whose output a stage consumes.  ``None`` means no prerequisite.
PREREQUISITES: dict[str, str | None] = {
    SCRAPE: None,
    PARSE: SCRAPE,
    SUMMARIZE: PARSE,
}


def check_stage(stage: str) -> str:
    if stage not in STAGES:
        raise ValueError(f"Unknown stage {stage!r}; expected one of {STAGES}")
    return stage


@dataclass
class StageState:
    """Success record and last error of one stage for one page.

    The two halves are independent: a failure updates ``error``/``failed_at``
    and leaves the previous output in place.
    """

    output: dict[str, Any] | None = None
    method: str | None = None
    succeeded_at: int | None = None
    error: str | None = None
    failed_at: int | None = None

    @property
    def succeeded(self) -> bool:
        return bool(self.output)

    @property
    def failing(self) -> bool:
        """``True`` when the most recent attempt of this stage failed."""
        if self.failed_at is None:
            return False
        return self.succeeded_at is None or self.failed_at >= self.succeeded_at

    def output_json(self) -> str:
        """Serialise output dict to a JSON string for storage."""
        return json.dumps(self.output or {})


@dataclass
class Page:
    url: str
    seq: int
    discovered_at: int
    lastmod: str | None = None
    stages: dict[str, StageState] = field(default_factory=dict)

    def stage(self, name: str) -> StageState:
        """Return the state of *name*, empty if the stage never ran."""
        return self.stages.get(check_stage(name)) or StageState()

    def _value(self, stage: str, key: str) -> Any:
        output = self.stage(stage).output or {}
        return output.get(key)

    # ------------------------------------------------------------------
    # Convenience views over stage outputs
    # ------------------------------------------------------------------
    @property
    def html(self) -> str | None:
        return self._value(SCRAPE, "html")

    @property
    def title(self) -> str | None:
        return self._value(PARSE, "title")

    @property
    def text(self) -> str | None:
        return self._value(PARSE, "text")

    @property
    def summary(self) -> str | None:
        return self._value(SUMMARIZE, "summary")
