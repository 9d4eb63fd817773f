"""Time source for services; swapped for a fixed clock in tests."""
from __future__ import annotations
import time
from datetime import datetime, timezone


class SystemClock:

    def now_millis(self) -> int:
        return int(time.time() * 1000)

    def now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()


class FixedClock(SystemClock):
    """Clock that only moves when told to."""

    def __init__(self, millis: int):
        self.millis = millis

    def now_millis(self) -> int:
        return self.millis

    def now_iso(self) -> str:
        return datetime.fromtimestamp(self.millis / 1000, tz=timezone.utc).isoformat()

    def advance(self, *, minutes: float = 0, millis: int = 0) -> None:
        self.millis += int(minutes * 60 * 1000) + millis
