"""Fixed-window request counter backed by the rate_limits table."""
from __future__ import annotations
import logging
import sqlite3

from portal.core.clock import SystemClock
from portal.persistence.interfaces.unit_of_work import UnitOfWork

log = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, uow: UnitOfWork, clock: SystemClock, max_requests: int, window_seconds: int):
        self._uow = uow
        self._clock = clock
        self.max_requests = max_requests
        self.window_millis = window_seconds * 1000

    def exceeded(self, key: str, fail_closed: bool = False) -> bool:
        """Count one hit for ``key`` and report whether the window is over budget.

        When the counter cannot be written, ``fail_closed`` decides the answer.
        """
        now = self._clock.now_millis()
        window_start = now - (now % self.window_millis)
        try:
            count = self._uow.run(lambda repos: repos.rate_limits.hit(key, window_start))
        except sqlite3.Error:
            log.exception("rate limit storage failed for key=%s (fail_closed=%s)", key, fail_closed)
            return fail_closed
        return count > self.max_requests
