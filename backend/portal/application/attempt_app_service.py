"""Application service — starting and submitting test attempts.

Both operations do all of their reads and writes inside one write
transaction, so concurrent starts by the same student cannot exceed the
attempt cap and a submission cannot be graded twice.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional

from portal.application.activity_app_service import ActivityAppService, PendingEvent
from portal.application.course_access import require_active_enrollment_or_platform
from portal.core.clock import SystemClock
from portal.domain.access.models import Caller, RequestContext
from portal.domain.assessment.models import Test
from portal.domain.attempt.form import build_form, new_form_seed
from portal.domain.attempt.grading import grade_attempt
from portal.domain.attempt.models import Attempt, ServedQuestion
from portal.domain.attempt.rules import check_can_start, check_can_submit, compute_expiry
from portal.domain.common.errors import ConflictError, InvariantViolation, NotFoundError
from portal.domain.events.models import Aggregate
from portal.domain.gradebook.models import Grade
from portal.domain.gradebook.service import apply_submission
from portal.persistence.interfaces.unit_of_work import UnitOfWork

log = logging.getLogger(__name__)


@dataclass
class StartedAttempt:
    attempt: Attempt
    test: Test
    questions: List[ServedQuestion]


@dataclass
class SubmittedAttempt:
    attempt: Attempt
    score: float
    points_possible: float
    is_assessed: bool
    grade_revision: Optional[int] = None


def _require_test(repos, course_id: str, test_id: str) -> Test:
    test = repos.tests.get(course_id, test_id)
    if test is None:
        raise NotFoundError("Test not found")
    return test


class AttemptAppService:
    def __init__(self, uow: UnitOfWork, activity: ActivityAppService, clock: SystemClock):
        self._uow = uow
        self._activity = activity
        self._clock = clock

    # ------------------------------------------------------------------
    # START
    # ------------------------------------------------------------------
    def start_attempt(self, caller: Caller, ctx: RequestContext, course_id: str, test_id: str) -> StartedAttempt:
        def work(repos) -> StartedAttempt:
            require_active_enrollment_or_platform(repos, course_id, caller)
            test = _require_test(repos, course_id, test_id)

            now_millis = self._clock.now_millis()
            used = repos.attempts.count_for_user(test_id, caller.uid)
            attempt_no = check_can_start(test, used, now_millis)
            attempt_id = Attempt.make_id(caller.uid, attempt_no)

            version = repos.tests.get_version(test_id, test.active_version)
            if version is None:
                raise InvariantViolation(f"Missing version {test.active_version} for test {test_id}")
            if not version.questions:
                raise ConflictError("Test has no questions")

            form_seed = new_form_seed()
            served, snapshot = build_form(version, form_seed, attempt_id, test.shuffle)

            attempt = Attempt(
                id=attempt_id,
                course_id=course_id,
                test_id=test_id,
                user_id=caller.uid,
                attempt_no=attempt_no,
                status="started",
                started_at=self._clock.now_iso(),
                expires_at_millis=compute_expiry(test, now_millis),
                test_version=version.version,
                form_seed=form_seed,
                form_snapshot=snapshot,
            )
            repos.attempts.create(attempt)
            return StartedAttempt(attempt=attempt, test=test, questions=served)

        started = self._uow.run(work)
        attempt = started.attempt
        log.info(
            "attempt started: course=%s test=%s attempt=%s version=%s",
            course_id, test_id, attempt.id, attempt.test_version,
        )

        self._activity.record(
            caller, ctx,
            action="test.attempt.start",
            metadata={
                "courseId": course_id,
                "testId": test_id,
                "attemptId": attempt.id,
                "testVersion": attempt.test_version,
            },
            events=[PendingEvent(
                "test.attempt.started", course_id, Aggregate("attempt", attempt.id, attempt.test_version),
                {"courseId": course_id, "testId": test_id, "attemptId": attempt.id, "testVersion": attempt.test_version},
                f"test.attempt.started:{course_id}:{test_id}:{attempt.id}:v{attempt.test_version}",
            )],
        )
        return started

    # ------------------------------------------------------------------
    # SUBMIT
    # ------------------------------------------------------------------
    def submit_attempt(
        self,
        caller: Caller,
        ctx: RequestContext,
        course_id: str,
        test_id: str,
        attempt_id: str,
        answers: Mapping[str, object],
    ) -> SubmittedAttempt:
        def work(repos) -> SubmittedAttempt:
            require_active_enrollment_or_platform(repos, course_id, caller)
            test = _require_test(repos, course_id, test_id)
            attempt = repos.attempts.get(test_id, attempt_id)
            if attempt is None:
                raise NotFoundError("Attempt not found")

            now_millis = self._clock.now_millis()
            check_can_submit(attempt, caller.uid, now_millis)

            version = repos.tests.get_version(test_id, attempt.test_version)
            if version is None:
                raise InvariantViolation(f"Missing version {attempt.test_version} for test {test_id}")

            outcome = grade_attempt(attempt.form_snapshot, version, answers)
            points_possible = test.points_possible if test.points_possible else outcome.score
            now = self._clock.now_iso()

            attempt.status = "graded"
            attempt.answers_snapshot = outcome.answers_snapshot
            attempt.score = outcome.score
            attempt.breakdown = list(outcome.breakdown)
            attempt.submitted_at = now
            attempt.graded_at = now
            attempt.graded_by = "system"
            repos.attempts.save_graded(attempt)

            result = SubmittedAttempt(
                attempt=attempt,
                score=outcome.score,
                points_possible=points_possible,
                is_assessed=test.is_assessed,
            )
            if test.is_assessed:
                grade_id = Grade.make_id("test", test_id, caller.uid)
                grade, entry = apply_submission(
                    repos.grades.get_grade(course_id, grade_id),
                    repos.grades.get_gradebook(course_id, caller.uid),
                    course_id=course_id,
                    student_id=caller.uid,
                    source_type="test",
                    source_id=test_id,
                    source_version=attempt.test_version,
                    score=outcome.score,
                    points_possible=points_possible,
                    now=now,
                )
                repos.grades.save_grade(grade)
                repos.grades.save_gradebook(entry)
                result.grade_revision = grade.grade_revision
            return result

        result = self._uow.run(work)
        attempt = result.attempt
        log.info(
            "attempt graded: course=%s test=%s attempt=%s score=%s/%s",
            course_id, test_id, attempt.id, result.score, result.points_possible,
        )

        events = [PendingEvent(
            "test.attempt.submitted", course_id, Aggregate("attempt", attempt.id, attempt.test_version),
            {"courseId": course_id, "testId": test_id, "attemptId": attempt.id, "score": result.score},
            f"test.attempt.submitted:{course_id}:{test_id}:{attempt.id}:v{attempt.test_version}",
        )]
        if result.is_assessed:
            grade_id = Grade.make_id("test", test_id, caller.uid)
            events.append(PendingEvent(
                "grade.mutated", course_id, Aggregate("grade", grade_id, result.grade_revision),
                {
                    "courseId": course_id,
                    "studentId": caller.uid,
                    "sourceType": "test",
                    "sourceId": test_id,
                    "score": result.score,
                    "pointsPossible": result.points_possible,
                    "gradeRevision": result.grade_revision,
                },
                f"grade.mutated:test:{course_id}:{test_id}:{caller.uid}:r{result.grade_revision}",
            ))

        self._activity.record(
            caller, ctx,
            action="test.attempt.submit",
            metadata={
                "courseId": course_id,
                "testId": test_id,
                "attemptId": attempt.id,
                "score": result.score,
                "pointsPossible": result.points_possible,
                "isAssessed": result.is_assessed,
            },
            events=events,
        )
        return result
