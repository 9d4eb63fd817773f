"""Application service — assignments, submissions and instructor grading.

Grading feeds the same grade records and gradebook totals as assessed test
attempts, with ``source_type="assignment"``.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from portal.application.activity_app_service import ActivityAppService, PendingEvent
from portal.application.calendar_fanout import emit_course_calendar_event, make_deterministic_event_id
from portal.application.course_access import (
    require_active_enrollment_or_platform,
    require_course_exists,
    require_instructor_or_platform,
)
from portal.application.rate_limiter import RateLimiter
from portal.core.clock import SystemClock
from portal.domain.access.models import Caller, RequestContext
from portal.domain.assignment.models import Assignment, GradeChange, Submission, SubmitOutcome
from portal.domain.assignment.rules import (
    check_can_submit,
    check_score,
    normalize_submission_content,
    validate_assignment_definition,
    validate_grade_input,
)
from portal.domain.common.errors import NotFoundError, RateLimitedError
from portal.domain.events.models import Aggregate
from portal.domain.gradebook.models import Grade
from portal.domain.gradebook.service import apply_submission
from portal.persistence.interfaces.unit_of_work import UnitOfWork

log = logging.getLogger(__name__)

DUE_EVENT_MILLIS = 60 * 60 * 1000


@dataclass
class PublishedAssignment:
    version: int
    calendar_event_id: Optional[str] = None


@dataclass
class GradedSubmission:
    grade_id: str
    points_possible: float
    change: GradeChange


def _require_assignment(repos, course_id: str, assignment_id: str) -> Assignment:
    assignment = repos.assignments.get(course_id, assignment_id)
    if assignment is None:
        raise NotFoundError("Assignment not found")
    return assignment


class AssignmentAppService:
    def __init__(
        self,
        uow: UnitOfWork,
        activity: ActivityAppService,
        rate_limiter: RateLimiter,
        clock: SystemClock,
    ):
        self._uow = uow
        self._activity = activity
        self._rate_limiter = rate_limiter
        self._clock = clock

    # ------------------------------------------------------------------
    # CREATE
    # ------------------------------------------------------------------
    def create_assignment(self, caller: Caller, ctx: RequestContext, course_id: str, data: dict) -> Assignment:
        draft = validate_assignment_definition(data).unwrap()
        now = self._clock.now_iso()

        def work(repos) -> Assignment:
            require_instructor_or_platform(repos, course_id, caller)
            require_course_exists(repos, course_id)
            assignment = Assignment(
                id=str(uuid.uuid4()),
                course_id=course_id,
                title=draft.title,
                description=draft.description,
                status="draft",
                version=1,
                due_millis=draft.due_millis,
                points_possible=draft.points_possible,
                allow_late=draft.allow_late,
                late_policy=draft.late_policy,
                penalty_percent=draft.penalty_percent,
                submission_type=draft.submission_type,
                submission_max_bytes=draft.submission_max_bytes,
                created_by=caller.uid,
                created_at=now,
                updated_at=now,
            )
            repos.assignments.save(assignment)
            return assignment

        assignment = self._uow.run(work)

        self._activity.record(
            caller, ctx,
            action="assignment.create",
            metadata={
                "courseId": course_id,
                "assignmentId": assignment.id,
                "title": assignment.title,
                "pointsPossible": assignment.points_possible,
            },
            events=[PendingEvent(
                "assignment.created", course_id, Aggregate("assignment", assignment.id, 1),
                {
                    "courseId": course_id,
                    "assignmentId": assignment.id,
                    "title": assignment.title,
                    "pointsPossible": assignment.points_possible,
                },
                f"assignment.created:{course_id}:{assignment.id}:v1",
            )],
        )
        return assignment

    # ------------------------------------------------------------------
    # PUBLISH
    # ------------------------------------------------------------------
    def publish_assignment(
        self,
        caller: Caller,
        ctx: RequestContext,
        course_id: str,
        assignment_id: str,
    ) -> PublishedAssignment:
        """Publish an assignment, bumping its version on every publish.

        An assignment with a due date gets a deadline on every member's calendar.
        """
        self._uow.read(lambda repos: require_instructor_or_platform(repos, course_id, caller))

        limiter_key = f"calendarFanout:assignment.publish:{caller.uid}:{course_id}:{assignment_id}"
        if self._rate_limiter.exceeded(limiter_key, fail_closed=True):
            raise RateLimitedError()

        now = self._clock.now_iso()

        def work(repos):
            course = require_course_exists(repos, course_id)
            assignment = _require_assignment(repos, course_id, assignment_id)
            before = {"status": assignment.status, "version": assignment.version}
            assignment.status = "published"
            assignment.version += 1
            assignment.published_at = now
            assignment.updated_at = now
            assignment.updated_by = caller.uid
            repos.assignments.save(assignment)
            return course, assignment, before

        course, assignment, before = self._uow.run(work)
        published = PublishedAssignment(version=assignment.version)

        if assignment.due_millis is not None:
            published.calendar_event_id = make_deterministic_event_id(
                f"course:{course_id}:assignment:{assignment_id}:due"
            )
            fanout = emit_course_calendar_event(
                self._uow,
                event_id=published.calendar_event_id,
                course_id=course_id,
                type="assignment_deadline",
                title=f"Assignment Due: {assignment.title}" if assignment.title else "Assignment Due",
                start_millis=assignment.due_millis,
                end_millis=assignment.due_millis + DUE_EVENT_MILLIS,
                created_by=caller.uid,
                course_name=course.name,
                now=self._clock.now_iso(),
            )
            log.info(
                "assignment %s published: calendar event %s fanned out to %d members",
                assignment_id, published.calendar_event_id, fanout,
            )

        self._activity.record(
            caller, ctx,
            action="assignment.publish",
            metadata={
                "courseId": course_id,
                "assignmentId": assignment_id,
                "before": before,
                "after": {"status": "published", "version": assignment.version},
                "calendarEventId": published.calendar_event_id,
            },
            events=[PendingEvent(
                "assignment.published", course_id, Aggregate("assignment", assignment_id, assignment.version),
                {
                    "courseId": course_id,
                    "assignmentId": assignment_id,
                    "version": assignment.version,
                    "calendarEventId": published.calendar_event_id,
                },
                f"assignment.published:{course_id}:{assignment_id}:v{assignment.version}",
            )],
        )
        return published

    # ------------------------------------------------------------------
    # SUBMIT
    # ------------------------------------------------------------------
    def submit(
        self,
        caller: Caller,
        ctx: RequestContext,
        course_id: str,
        assignment_id: str,
        raw_content: Any,
    ) -> SubmitOutcome:
        content = normalize_submission_content(raw_content).unwrap()

        def work(repos) -> SubmitOutcome:
            require_active_enrollment_or_platform(repos, course_id, caller)
            require_course_exists(repos, course_id)
            assignment = _require_assignment(repos, course_id, assignment_id)
            late = check_can_submit(assignment, self._clock.now_millis())

            now = self._clock.now_iso()
            existing = repos.assignments.get_submission(assignment_id, caller.uid)
            submission = Submission(
                course_id=course_id,
                assignment_id=assignment_id,
                user_id=caller.uid,
                status="resubmitted" if existing else "submitted",
                content=content,
                late=late,
                assignment_version=assignment.version,
                submitted_at=now,
                created_by=existing.created_by if existing else caller.uid,
                created_at=existing.created_at if existing else now,
                updated_at=now,
                updated_by=caller.uid,
            )
            if existing is not None:
                # Resubmitting keeps any grade already given.
                submission.grade_score = existing.grade_score
                submission.grade_feedback = existing.grade_feedback
                submission.graded_at = existing.graded_at
                submission.graded_by = existing.graded_by
                submission.grade_revision = existing.grade_revision
            repos.assignments.save_submission(submission)
            return SubmitOutcome(
                status=submission.status,
                late=late,
                was_resubmission=existing is not None,
                assignment_version=assignment.version,
                due_millis=assignment.due_millis,
            )

        outcome = self._uow.run(work)
        version = outcome.assignment_version

        self._activity.record(
            caller, ctx,
            action="submission.submit",
            metadata={
                "courseId": course_id,
                "assignmentId": assignment_id,
                "status": outcome.status,
                "late": outcome.late,
                "assignmentVersionAtSubmission": version,
                "dueMillis": outcome.due_millis,
            },
            events=[PendingEvent(
                "submission.submitted", course_id, Aggregate("submission", f"{assignment_id}:{caller.uid}", version),
                {
                    "courseId": course_id,
                    "assignmentId": assignment_id,
                    "studentId": caller.uid,
                    "assignmentVersionAtSubmission": version,
                },
                f"submission.submitted:{course_id}:{assignment_id}:{caller.uid}:v{version}",
            )],
        )
        return outcome

    # ------------------------------------------------------------------
    # GRADE
    # ------------------------------------------------------------------
    def grade(
        self,
        caller: Caller,
        ctx: RequestContext,
        course_id: str,
        assignment_id: str,
        student_id: str,
        score: Any,
        feedback: Any = None,
    ) -> GradedSubmission:
        """Set a submission's grade and fold it into the student's gradebook.

        Regrading revises the same grade record: the score enters the totals as
        a delta and the possible points are only counted once.
        """
        score, feedback = validate_grade_input(score, feedback).unwrap()
        grade_id = Grade.make_id("assignment", assignment_id, student_id)

        def work(repos) -> GradedSubmission:
            require_instructor_or_platform(repos, course_id, caller)
            require_course_exists(repos, course_id)
            assignment = _require_assignment(repos, course_id, assignment_id)
            points_possible = check_score(assignment, score)

            submission = repos.assignments.get_submission(assignment_id, student_id)
            if submission is None:
                raise NotFoundError("Submission not found")

            prior = repos.grades.get_grade(course_id, grade_id)
            now = self._clock.now_iso()
            grade, entry = apply_submission(
                prior,
                repos.grades.get_gradebook(course_id, student_id),
                course_id=course_id,
                student_id=student_id,
                source_type="assignment",
                source_id=assignment_id,
                source_version=submission.assignment_version,
                score=score,
                points_possible=points_possible,
                now=now,
                graded_by=caller.uid,
            )
            change = GradeChange(
                before_score=submission.grade_score,
                before_revision=submission.grade_revision,
                after_score=score,
                after_revision=grade.grade_revision,
            )

            submission.grade_score = score
            submission.grade_feedback = feedback
            submission.graded_at = now
            submission.graded_by = caller.uid
            submission.grade_revision = grade.grade_revision
            submission.updated_at = now
            submission.updated_by = caller.uid
            repos.assignments.save_submission(submission)
            repos.grades.save_grade(grade)
            repos.grades.save_gradebook(entry)
            return GradedSubmission(grade_id=grade_id, points_possible=points_possible, change=change)

        graded = self._uow.run(work)
        revision = graded.change.after_revision
        log.info(
            "assignment graded: course=%s assignment=%s student=%s score=%s/%s revision=%s",
            course_id, assignment_id, student_id, score, graded.points_possible, revision,
        )

        self._activity.record(
            caller, ctx,
            action="submission.grade.set",
            target_uid=student_id,
            metadata={
                "courseId": course_id,
                "assignmentId": assignment_id,
                "gradeId": grade_id,
                "pointsPossible": graded.points_possible,
                **graded.change.to_dict(),
            },
            events=[PendingEvent(
                "grade.mutated", course_id, Aggregate("grade", grade_id, revision),
                {
                    "courseId": course_id,
                    "sourceType": "assignment",
                    "sourceId": assignment_id,
                    "studentId": student_id,
                    **graded.change.to_dict(),
                },
                f"grade.mutated:assignment:{course_id}:{assignment_id}:{student_id}:r{revision}",
            )],
        )
        return graded
