"""SQLite implementation of CalendarRepository."""
from __future__ import annotations
import sqlite3
from typing import Iterable, List, Optional

from portal.domain.events.models import CalendarEvent
from portal.persistence.interfaces.calendar_repository import CalendarRepository


def _row_to_event(row) -> CalendarEvent:
    return CalendarEvent(
        id=row["id"],
        course_id=row["course_id"],
        type=row["type"],
        title=row["title"],
        description=row["description"],
        start_millis=row["start_millis"],
        end_millis=row["end_millis"],
        course_name=row["course_name"],
        source=row["source"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SqliteCalendarRepository(CalendarRepository):

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def upsert_event(self, event: CalendarEvent) -> None:
        self._conn.execute(
            """
            INSERT INTO calendar_events (
                id, course_id, type, title, description, start_millis, end_millis,
                course_name, source, created_by, created_at, updated_at
            ) VALUES (
                :id, :course_id, :type, :title, :description, :start_millis, :end_millis,
                :course_name, :source, :created_by, :created_at, :updated_at
            )
            ON CONFLICT(id) DO UPDATE SET
                type         = excluded.type,
                title        = excluded.title,
                description  = excluded.description,
                start_millis = excluded.start_millis,
                end_millis   = excluded.end_millis,
                course_name  = excluded.course_name,
                updated_at   = excluded.updated_at
            """,
            {
                "id": event.id,
                "course_id": event.course_id,
                "type": event.type,
                "title": event.title,
                "description": event.description,
                "start_millis": event.start_millis,
                "end_millis": event.end_millis,
                "course_name": event.course_name,
                "source": event.source,
                "created_by": event.created_by,
                "created_at": event.created_at,
                "updated_at": event.updated_at,
            },
        )

    def upsert_user_copies(self, event: CalendarEvent, user_ids: Iterable[str], now: str) -> int:
        rows = [(uid, event.id, event.course_id, now) for uid in user_ids]
        self._conn.executemany(
            """
            INSERT INTO user_calendar_events (user_id, event_id, course_id, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, event_id) DO UPDATE SET updated_at = excluded.updated_at
            """,
            rows,
        )
        return len(rows)

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        row = self._conn.execute("SELECT * FROM calendar_events WHERE id = ?", (event_id,)).fetchone()
        return _row_to_event(row) if row else None

    def list_for_user(self, user_id: str) -> List[CalendarEvent]:
        rows = self._conn.execute(
            """
            SELECT e.* FROM calendar_events e
            JOIN user_calendar_events u ON u.event_id = e.id
            WHERE u.user_id = ?
            ORDER BY e.start_millis ASC
            """,
            (user_id,),
        ).fetchall()
        return [_row_to_event(r) for r in rows]
