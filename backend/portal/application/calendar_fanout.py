"""Course calendar events and their per-member copies."""
from __future__ import annotations
import hashlib
from typing import Optional

from portal.domain.common.errors import ResourceLimitError
from portal.domain.events.models import CalendarEvent
from portal.persistence.interfaces.unit_of_work import UnitOfWork

MAX_FANOUT_USERS = 1000


def make_deterministic_event_id(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def emit_course_calendar_event(
    uow: UnitOfWork,
    *,
    event_id: str,
    course_id: str,
    type: str,
    title: str,
    start_millis: int,
    end_millis: int,
    created_by: str,
    now: str,
    description: Optional[str] = None,
    course_name: Optional[str] = None,
) -> int:
    """Upsert the canonical event and one copy per active course member.

    Re-running with the same ``event_id`` overwrites in place. Returns the
    number of member copies written.
    """

    def work(repos) -> int:
        member_ids = repos.courses.list_active_member_ids(course_id, MAX_FANOUT_USERS + 1)
        if len(member_ids) > MAX_FANOUT_USERS:
            raise ResourceLimitError(
                f"Course has too many active members to fan out calendar events (>{MAX_FANOUT_USERS})."
            )
        event = CalendarEvent(
            id=event_id,
            course_id=course_id,
            type=type,
            title=title,
            description=description or None,
            start_millis=start_millis,
            end_millis=end_millis,
            course_name=course_name or None,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        repos.calendar.upsert_event(event)
        return repos.calendar.upsert_user_copies(event, member_ids, now)

    return uow.run(work)
