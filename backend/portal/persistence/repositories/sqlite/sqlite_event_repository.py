"""SQLite implementation of EventRepository."""
from __future__ import annotations
import json
import sqlite3
from typing import List, Optional

from portal.domain.events.models import Aggregate, AuditEntry, DomainEvent
from portal.persistence.interfaces.event_repository import EventRepository


def _row_to_event(row) -> DomainEvent:
    return DomainEvent(
        type=row["type"],
        course_id=row["course_id"],
        actor_uid=row["actor_uid"],
        actor_role=row["actor_role"],
        aggregate=Aggregate(
            kind=row["aggregate_kind"],
            id=row["aggregate_id"],
            version=row["aggregate_version"],
        ),
        idempotency_key=row["idempotency_key"],
        payload=json.loads(row["payload"] or "{}"),
        request_id=row["request_id"],
        occurred_at=row["occurred_at"],
    )


def _row_to_audit(row) -> AuditEntry:
    return AuditEntry(
        id=row["id"],
        action=row["action"],
        actor_uid=row["actor_uid"],
        actor_email=row["actor_email"],
        actor_role=row["actor_role"],
        target_uid=row["target_uid"],
        target_email=row["target_email"],
        request_id=row["request_id"],
        ip=row["ip"],
        user_agent=row["user_agent"],
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
    )


class SqliteEventRepository(EventRepository):

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get_event(self, event_id: str) -> Optional[DomainEvent]:
        row = self._conn.execute("SELECT * FROM domain_events WHERE id = ?", (event_id,)).fetchone()
        return _row_to_event(row) if row else None

    def insert_event(self, event: DomainEvent) -> None:
        self._conn.execute(
            """
            INSERT INTO domain_events (
                id, type, course_id, actor_uid, actor_role,
                aggregate_kind, aggregate_id, aggregate_version,
                payload, idempotency_key, request_id, occurred_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.type,
                event.course_id,
                event.actor_uid,
                event.actor_role,
                event.aggregate.kind,
                event.aggregate.id,
                event.aggregate.version,
                json.dumps(event.payload, default=str),
                event.idempotency_key,
                event.request_id,
                event.occurred_at,
            ),
        )

    def list_events(self, course_id: str, limit: int = 100) -> List[DomainEvent]:
        rows = self._conn.execute(
            "SELECT * FROM domain_events WHERE course_id = ? ORDER BY occurred_at ASC, rowid ASC LIMIT ?",
            (course_id, limit),
        ).fetchall()
        return [_row_to_event(r) for r in rows]

    def append_audit(self, entry: AuditEntry) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO audit_logs (
                action, actor_uid, actor_email, actor_role, target_uid, target_email,
                request_id, ip, user_agent, metadata, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.action,
                entry.actor_uid,
                entry.actor_email,
                entry.actor_role,
                entry.target_uid,
                entry.target_email,
                entry.request_id,
                entry.ip,
                entry.user_agent,
                json.dumps(entry.metadata, default=str),
                entry.created_at,
            ),
        )
        return cur.lastrowid

    def list_audit(self, request_id: Optional[str] = None, limit: int = 100) -> List[AuditEntry]:
        if request_id is None:
            rows = self._conn.execute(
                "SELECT * FROM audit_logs ORDER BY id ASC LIMIT ?", (limit,)
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM audit_logs WHERE request_id = ? ORDER BY id ASC LIMIT ?", (request_id, limit)
            ).fetchall()
        return [_row_to_audit(r) for r in rows]
