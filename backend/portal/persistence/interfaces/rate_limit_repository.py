"""Abstract repository interface for fixed-window request counters."""
from __future__ import annotations
from abc import ABC, abstractmethod


class RateLimitRepository(ABC):

    @abstractmethod
    def hit(self, key: str, window_start: int) -> int:
        """Count one request for ``key`` in the window starting at ``window_start``.

        A counter from an older window is reset. Returns the count including
        this request.
        """
        ...
