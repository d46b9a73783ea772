"""Minimum-interval rate limiter shared by stage workers."""

from __future__ import annotations

import threading
import time
from typing import Optional


class Throttle:
    """Spaces successive :meth:`wait` returns at least *interval* seconds apart.

    Thread-safe: each caller reserves the next free slot under the lock and
    sleeps outside it, so workers are released one interval apart.
    """

    def __init__(self, interval: float) -> None:
        if interval < 0:
            raise ValueError("Throttle interval must be >= 0")
        self.interval = interval
        self._lock = threading.Lock()
        self._next_slot = 0.0

    @classmethod
    def from_delay_ms(cls, delay_ms: Optional[int]) -> Optional[Throttle]:
        if not delay_ms:
            return None
        return cls(delay_ms / 1000.0)

    @classmethod
    def from_rpm(cls, rpm: Optional[int]) -> Optional[Throttle]:
        """Requests-per-minute limiter; ``None`` when *rpm* is unset or zero."""
        if not rpm:
            return None
        return cls(60.0 / max(rpm, 1))

    def wait(self) -> None:
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.interval
        delay = slot - now
        if delay > 0:
            time.sleep(delay)
