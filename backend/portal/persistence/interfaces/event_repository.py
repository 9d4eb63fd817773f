"""Abstract repository interface for the append-only event and audit logs."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

from portal.domain.events.models import AuditEntry, DomainEvent


class EventRepository(ABC):

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[DomainEvent]:
        ...

    @abstractmethod
    def insert_event(self, event: DomainEvent) -> None:
        """Insert only. There is deliberately no update or delete."""
        ...

    @abstractmethod
    def list_events(self, course_id: str, limit: int = 100) -> List[DomainEvent]:
        ...

    @abstractmethod
    def append_audit(self, entry: AuditEntry) -> int:
        """Insert an audit entry and return its row id."""
        ...

    @abstractmethod
    def list_audit(self, request_id: Optional[str] = None, limit: int = 100) -> List[AuditEntry]:
        ...
