"""
atomreason/bounds.py - Wall-clock budget checked between inference steps
"""
from __future__ import annotations

import time


class Deadline:
    """Optional caller timeout. Strategies poll expired() at step boundaries."""

    def __init__(self, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds
        self._start = time.monotonic()

    def expired(self) -> bool:
        if self.timeout_seconds is None:
            return False
        return time.monotonic() - self._start >= self.timeout_seconds

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self._start) * 1000
