"""Application service — gradebook recompute and reads."""
from __future__ import annotations
import logging
from typing import List, Optional

from portal.application.activity_app_service import ActivityAppService, PendingEvent
from portal.application.course_access import require_course_exists, require_instructor_or_platform
from portal.core.clock import SystemClock
from portal.domain.access.models import Caller, RequestContext
from portal.domain.common.errors import ResourceLimitError
from portal.domain.events.models import Aggregate
from portal.domain.gradebook.models import GradebookEntry, RecomputeOutcome
from portal.domain.gradebook.service import reconcile, sum_grades
from portal.persistence.interfaces.unit_of_work import UnitOfWork

log = logging.getLogger(__name__)

MAX_GRADES_SCAN = 1000
MAX_REASON_LENGTH = 500


def sanitize_reason(reason) -> Optional[str]:
    if not isinstance(reason, str):
        return None
    reason = reason.strip()
    if not reason or len(reason) > MAX_REASON_LENGTH:
        return None
    return reason


def _key_number(value: float) -> str:
    # Whole numbers render without a trailing ".0" so keys stay stable.
    return str(int(value)) if float(value).is_integer() else repr(float(value))


class GradebookAppService:
    def __init__(self, uow: UnitOfWork, activity: ActivityAppService, clock: SystemClock):
        self._uow = uow
        self._activity = activity
        self._clock = clock

    def recompute_student(
        self,
        caller: Caller,
        ctx: RequestContext,
        course_id: str,
        student_id: str,
        reason: Optional[str] = None,
    ) -> RecomputeOutcome:
        """Rebuild one student's totals from their grade records.

        The incremental path can drift (out-of-band edits, partial failures);
        this overwrites the stored totals and reports how far off they were.
        """
        reason = sanitize_reason(reason)

        def work(repos) -> RecomputeOutcome:
            require_instructor_or_platform(repos, course_id, caller)
            require_course_exists(repos, course_id)

            grades = repos.grades.list_for_student(course_id, student_id, MAX_GRADES_SCAN + 1)
            if len(grades) > MAX_GRADES_SCAN:
                raise ResourceLimitError("Too many grades to recompute")

            before = repos.grades.get_gradebook(course_id, student_id)
            outcome = reconcile(before, sum_grades(grades))

            now = self._clock.now_iso()
            repos.grades.save_gradebook(GradebookEntry(
                course_id=course_id,
                student_id=student_id,
                total_score=outcome.after.total_score,
                total_possible=outcome.after.total_possible,
                computed_at=now,
                updated_at=now,
                updated_by=caller.uid,
            ))
            return outcome

        outcome = self._uow.run(work)

        if outcome.drift_flagged:
            log.warning(
                "gradebook drift: course=%s student=%s delta_score=%s delta_possible=%s requestId=%s",
                course_id, student_id, outcome.delta.total_score, outcome.delta.total_possible, ctx.request_id,
            )

        total_score = outcome.after.total_score
        total_possible = outcome.after.total_possible
        self._activity.record(
            caller, ctx,
            action="gradebook.recompute",
            target_uid=student_id,
            metadata={
                "courseId": course_id,
                "studentId": student_id,
                "reason": reason,
                "before": {
                    "totalScore": outcome.before.total_score,
                    "totalPossible": outcome.before.total_possible,
                },
                "after": {"totalScore": total_score, "totalPossible": total_possible},
                "delta": {
                    "totalScore": outcome.delta.total_score,
                    "totalPossible": outcome.delta.total_possible,
                },
                "driftFlagged": outcome.drift_flagged,
            },
            events=[PendingEvent(
                "gradebook.student.recomputed", course_id, Aggregate("gradebook", student_id),
                {
                    "courseId": course_id,
                    "studentId": student_id,
                    "totalScore": total_score,
                    "totalPossible": total_possible,
                    "reason": reason,
                    "deltaTotalScore": outcome.delta.total_score,
                    "deltaTotalPossible": outcome.delta.total_possible,
                    "driftFlagged": outcome.drift_flagged,
                },
                "gradebook.student.recomputed:"
                f"{course_id}:{student_id}:{_key_number(total_score)}:{_key_number(total_possible)}",
            )],
        )
        return outcome

    def course_gradebook(
        self,
        caller: Caller,
        ctx: RequestContext,
        course_id: str,
        limit: int = 100,
    ) -> List[GradebookEntry]:
        limit = max(1, min(200, limit))

        def work(repos) -> List[GradebookEntry]:
            require_instructor_or_platform(repos, course_id, caller)
            require_course_exists(repos, course_id)
            return repos.grades.list_gradebook(course_id, limit)

        entries = self._uow.read(work)
        self._activity.record(
            caller, ctx,
            action="gradebook.read",
            metadata={"courseId": course_id, "limit": limit},
        )
        return entries
