"""Abstract repository interface for calendar events and their per-user copies."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from portal.domain.events.models import CalendarEvent


class CalendarRepository(ABC):

    @abstractmethod
    def upsert_event(self, event: CalendarEvent) -> None:
        ...

    @abstractmethod
    def upsert_user_copies(self, event: CalendarEvent, user_ids: Iterable[str], now: str) -> int:
        """Place ``event`` in each user's calendar; returns the number written."""
        ...

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        ...

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[CalendarEvent]:
        ...
