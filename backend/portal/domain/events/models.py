"""Domain events and audit entries — both append-only records."""
from __future__ import annotations
import hashlib
from dataclasses import dataclass, field
from typing import Optional


def event_id_for(idempotency_key: str) -> str:
    """Hex SHA-256 of the idempotency key; the event's primary key."""
    return hashlib.sha256(idempotency_key.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Aggregate:
    kind: str
    id: str
    version: Optional[int] = None

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "id": self.id}
        if self.version is not None:
            data["version"] = self.version
        return data


@dataclass
class DomainEvent:
    type: str
    course_id: str
    actor_uid: str
    actor_role: str
    aggregate: Aggregate
    idempotency_key: str
    payload: dict = field(default_factory=dict)
    request_id: Optional[str] = None
    occurred_at: str = ""

    @property
    def id(self) -> str:
        return event_id_for(self.idempotency_key)


@dataclass(frozen=True)
class EmitResult:
    event_id: str
    created: bool


@dataclass
class AuditEntry:
    action: str
    actor_uid: str
    actor_email: Optional[str] = None
    actor_role: Optional[str] = None
    target_uid: Optional[str] = None
    target_email: Optional[str] = None
    request_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    created_at: str = ""
    id: Optional[int] = None


@dataclass
class CalendarEvent:
    id: str
    course_id: str
    type: str  # assignment_deadline | test_window | live_test | class_event
    title: str
    start_millis: int
    end_millis: int
    created_by: str
    description: Optional[str] = None
    course_name: Optional[str] = None
    source: str = "course"
    created_at: str = ""
    updated_at: str = ""
