"""Assignments: create, publish, submit, grade, and their share of the gradebook."""
import pytest

from conftest import NOW, PROF, mcq, student
from portal.application.assignment_app_service import AssignmentAppService
from portal.application.rate_limiter import RateLimiter
from portal.domain.assignment.rules import sanitize_feedback
from portal.domain.common.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)

ALICE = student("alice")


def _gradebook(uow, course_id, uid="alice"):
    entry = uow.read(lambda repos: repos.grades.get_gradebook(course_id, uid))
    return entry.total_score, entry.total_possible


def _event_keys(uow, course_id, type):
    return [e.idempotency_key for e in uow.read(lambda repos: repos.events.list_events(course_id)) if e.type == type]


# ------------------------------------------------------------------
# Create / publish
# ------------------------------------------------------------------
@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"title": ""}, "Invalid payload"),
        ({"pointsPossible": -1}, "Invalid payload"),
        ({"pointsPossible": 2_000_000}, "Invalid payload"),
        ({"title": "x" * 201}, "Invalid title"),
        ({"latePolicy": {"type": "forgive"}}, "Invalid latePolicy"),
        ({"latePolicy": {"type": "accept_with_penalty", "penaltyPercent": 150}}, "Invalid penaltyPercent"),
        ({"submissionSpec": {"type": "video"}}, "Invalid submissionSpec"),
    ],
)
def test_invalid_definitions_are_rejected(make_assignment, overrides, message):
    with pytest.raises(ValidationError, match=message):
        make_assignment(publish=False, **overrides)


def test_students_cannot_create_assignments(assignment_svc, ctx, course):
    with pytest.raises(AuthorizationError):
        assignment_svc.create_assignment(ALICE, ctx, course.id, {"title": "Essay", "pointsPossible": 5})


def test_publish_bumps_version_each_time(make_assignment, assignment_svc, uow, ctx, course):
    assignment = make_assignment(publish=False)
    assert assignment_svc.publish_assignment(PROF, ctx, course.id, assignment.id).version == 2
    assert assignment_svc.publish_assignment(PROF, ctx, course.id, assignment.id).version == 3

    keys = _event_keys(uow, course.id, "assignment.published")
    assert sorted(keys) == [
        f"assignment.published:{course.id}:{assignment.id}:v2",
        f"assignment.published:{course.id}:{assignment.id}:v3",
    ]


def test_due_date_fans_out_a_deadline(make_assignment, assignment_svc, uow, ctx, course):
    assignment = make_assignment(publish=False, dueMillis=NOW + 86_400_000)
    published = assignment_svc.publish_assignment(PROF, ctx, course.id, assignment.id)
    assert len(published.calendar_event_id) == 64

    events = uow.read(lambda repos: repos.calendar.list_for_user("bob"))
    assert len(events) == 1
    assert events[0].type == "assignment_deadline"
    assert events[0].title == "Assignment Due: Problem set 1"
    assert events[0].end_millis - events[0].start_millis == 60 * 60 * 1000


def test_without_due_date_no_calendar_event(make_assignment, assignment_svc, uow, ctx, course):
    assignment = make_assignment(publish=False)
    assert assignment_svc.publish_assignment(PROF, ctx, course.id, assignment.id).calendar_event_id is None
    assert uow.read(lambda repos: repos.calendar.list_for_user("alice")) == []


def test_assignment_publish_is_rate_limited(uow, activity, clock, make_assignment, ctx, course):
    assignment = make_assignment(publish=False)
    limiter = RateLimiter(uow=uow, clock=clock, max_requests=1, window_seconds=60)
    svc = AssignmentAppService(uow=uow, activity=activity, rate_limiter=limiter, clock=clock)

    svc.publish_assignment(PROF, ctx, course.id, assignment.id)
    with pytest.raises(RateLimitedError):
        svc.publish_assignment(PROF, ctx, course.id, assignment.id)


# ------------------------------------------------------------------
# Submit
# ------------------------------------------------------------------
def test_draft_assignment_cannot_be_submitted(make_assignment, assignment_svc, ctx, course):
    assignment = make_assignment(publish=False)
    with pytest.raises(ConflictError, match="Assignment is not published"):
        assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "done"})


def test_late_submission_rules(make_assignment, assignment_svc, ctx, course):
    strict = make_assignment(dueMillis=NOW - 1)
    with pytest.raises(ConflictError, match="Late submissions are not allowed"):
        assignment_svc.submit(ALICE, ctx, course.id, strict.id, {"text": "sorry"})

    lenient = make_assignment(dueMillis=NOW - 1, allowLate=True)
    outcome = assignment_svc.submit(ALICE, ctx, course.id, lenient.id, {"text": "sorry"})
    assert outcome.late is True

    on_time = make_assignment(dueMillis=NOW)
    assert assignment_svc.submit(ALICE, ctx, course.id, on_time.id, {"text": "ok"}).late is False


def test_non_members_cannot_submit(make_assignment, assignment_svc, ctx, course):
    assignment = make_assignment()
    with pytest.raises(AuthorizationError):
        assignment_svc.submit(student("mallory"), ctx, course.id, assignment.id, {"text": "hi"})


def test_submission_content_is_cleaned(make_assignment, assignment_svc, uow, ctx, course):
    assignment = make_assignment()
    links = ["https://example.edu/a", "javascript:alert(1)", 42] + [f"http://x.test/{i}" for i in range(12)]
    assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "  essay  ", "links": links})

    stored = uow.read(lambda repos: repos.assignments.get_submission(assignment.id, "alice"))
    assert stored.content.text == "essay"
    assert stored.content.links[0] == "https://example.edu/a"
    assert len(stored.content.links) == 10
    assert stored.assignment_version == 2


def test_oversized_text_is_rejected(make_assignment, assignment_svc, ctx, course):
    assignment = make_assignment()
    with pytest.raises(ValidationError, match="Invalid text"):
        assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "x" * 50_001})


def test_resubmission_keeps_the_grade(make_assignment, assignment_svc, uow, ctx, course):
    assignment = make_assignment()
    assert assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "v1"}).status == "submitted"
    assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 6)

    again = assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "v2"})
    assert again.status == "resubmitted"
    assert again.was_resubmission is True

    stored = uow.read(lambda repos: repos.assignments.get_submission(assignment.id, "alice"))
    assert stored.content.text == "v2"
    assert stored.grade_score == 6
    assert stored.grade_revision == 1


# ------------------------------------------------------------------
# Grade
# ------------------------------------------------------------------
def test_grading_requires_a_submission(make_assignment, assignment_svc, ctx, course):
    assignment = make_assignment()
    with pytest.raises(NotFoundError, match="Submission not found"):
        assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 5)


def test_score_cannot_exceed_points_possible(make_assignment, assignment_svc, ctx, course):
    assignment = make_assignment()
    assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "done"})
    with pytest.raises(ValidationError, match="Score exceeds pointsPossible"):
        assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 11)


def test_students_cannot_grade(make_assignment, assignment_svc, ctx, course):
    assignment = make_assignment()
    assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "done"})
    with pytest.raises(AuthorizationError):
        assignment_svc.grade(ALICE, ctx, course.id, assignment.id, "alice", 10)


def test_regrade_revises_without_double_counting(make_assignment, assignment_svc, uow, ctx, course):
    assignment = make_assignment()
    assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "done"})

    first = assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 7, "<b>Good</b> work")
    assert first.change.after_revision == 1
    assert first.change.before_score is None
    assert _gradebook(uow, course.id) == (7, 10)

    second = assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 9)
    assert second.change.before_score == 7
    assert second.change.after_revision == 2
    assert _gradebook(uow, course.id) == (9, 10)

    grade = uow.read(lambda repos: repos.grades.get_grade(course.id, f"assignment_{assignment.id}_alice"))
    assert grade.source_type == "assignment"
    assert grade.graded_by == "prof"
    assert grade.source_version == 2

    assert sorted(_event_keys(uow, course.id, "grade.mutated")) == [
        f"grade.mutated:assignment:{course.id}:{assignment.id}:alice:r1",
        f"grade.mutated:assignment:{course.id}:{assignment.id}:alice:r2",
    ]


def test_feedback_is_stored_as_plain_text(make_assignment, assignment_svc, uow, ctx, course):
    assignment = make_assignment()
    assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "done"})
    assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 5, "<script>x()</script><i>Nice</i>\x07")
    stored = uow.read(lambda repos: repos.assignments.get_submission(assignment.id, "alice"))
    assert stored.grade_feedback == "Nice"


def test_sanitize_feedback():
    assert sanitize_feedback("  ") is None
    assert sanitize_feedback(None) is None
    assert sanitize_feedback("<style>p{}</style>line 1\nline 2") == "line 1\nline 2"


# ------------------------------------------------------------------
# Mixed sources
# ------------------------------------------------------------------
def test_gradebook_totals_span_tests_and_assignments(
    make_test, make_assignment, attempt_svc, assignment_svc, gradebook_svc, uow, ctx, course,
):
    test = make_test(mode="scheduled", questions=[mcq("q1", points=2), mcq("q2", correct="b", points=3)])
    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, {"q1": "a", "q2": "a"})
    assert _gradebook(uow, course.id) == (2, 5)

    assignment = make_assignment()
    assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "done"})
    assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 7)
    assert _gradebook(uow, course.id) == (9, 15)

    assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 8)
    assert _gradebook(uow, course.id) == (10, 15)

    outcome = gradebook_svc.recompute_student(PROF, ctx, course.id, "alice")
    assert (outcome.after.total_score, outcome.after.total_possible) == (10, 15)
    assert outcome.drift_flagged is False


def test_recompute_repairs_drift_across_sources(
    make_test, make_assignment, attempt_svc, assignment_svc, gradebook_svc, db, uow, ctx, course,
):
    test = make_test(mode="scheduled", questions=[mcq("q1", points=4)])
    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, {"q1": "a"})

    assignment = make_assignment()
    assignment_svc.submit(ALICE, ctx, course.id, assignment.id, {"text": "done"})
    assignment_svc.grade(PROF, ctx, course.id, assignment.id, "alice", 3)

    with db.transaction() as conn:
        conn.execute("UPDATE gradebook SET total_score = 0 WHERE student_id = 'alice'")

    outcome = gradebook_svc.recompute_student(PROF, ctx, course.id, "alice")
    assert outcome.drift_flagged is True
    assert outcome.delta.total_score == 7
    assert _gradebook(uow, course.id) == (7, 14)
