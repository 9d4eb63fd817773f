"""Gradebook: incremental folding, full recompute and drift detection."""
import pytest

from conftest import PROF, mcq, student
from portal.domain.common.errors import AuthorizationError, ResourceLimitError
from portal.domain.gradebook.models import Grade, GradebookEntry
from portal.domain.gradebook.service import apply_submission, reconcile, sum_grades

ALICE = student("alice")


def _submit(attempt_svc, ctx, course_id, test_id, answers):
    started = attempt_svc.start_attempt(ALICE, ctx, course_id, test_id)
    return attempt_svc.submit_attempt(ALICE, ctx, course_id, test_id, started.attempt.id, answers)


# ------------------------------------------------------------------
# Pure arithmetic
# ------------------------------------------------------------------
def test_apply_submission_adds_possible_only_for_new_grades():
    common = dict(course_id="c1", student_id="s1", source_type="test", source_id="t1", source_version=1, now="t")
    grade, entry = apply_submission(None, None, score=3, points_possible=5, **common)
    assert grade.grade_revision == 1
    assert (entry.total_score, entry.total_possible) == (3, 5)

    grade2, entry2 = apply_submission(grade, entry, score=4, points_possible=5, **common)
    assert grade2.grade_revision == 2
    assert (entry2.total_score, entry2.total_possible) == (4, 5)


def test_sum_grades_ignores_non_finite_values():
    grades = [
        Grade("c1", "s1", "test", "t1", 1, 2.0, 4.0, 1),
        Grade("c1", "s1", "test", "t2", 1, float("nan"), float("inf"), 1),
    ]
    totals = sum_grades(grades)
    assert (totals.total_score, totals.total_possible) == (2.0, 4.0)


def test_reconcile_flags_drift_of_one_point():
    entry = GradebookEntry("c1", "s1", total_score=9, total_possible=10)
    outcome = reconcile(entry, sum_grades([Grade("c1", "s1", "test", "t1", 1, 8, 10, 1)]))
    assert outcome.delta.total_score == -1
    assert outcome.drift_flagged is True

    small = reconcile(GradebookEntry("c1", "s1", total_score=8.5, total_possible=10), outcome.after)
    assert small.drift_flagged is False


# ------------------------------------------------------------------
# Through the services
# ------------------------------------------------------------------
def test_incremental_totals_across_tests(make_test, attempt_svc, uow, ctx, course):
    t1 = make_test(mode="scheduled", questions=[mcq("q1", points=4)])
    t2 = make_test(mode="practice", isAssessed=True, questions=[mcq("q1", points=6)])

    _submit(attempt_svc, ctx, course.id, t1.id, {"q1": "a"})
    _submit(attempt_svc, ctx, course.id, t2.id, {"q1": "b"})

    entry = uow.read(lambda repos: repos.grades.get_gradebook(course.id, "alice"))
    assert (entry.total_score, entry.total_possible) == (4, 10)


def test_resubmission_replaces_score_without_double_counting(make_test, attempt_svc, uow, ctx, course):
    test = make_test(mode="scheduled", attemptsAllowed=2, questions=[mcq("q1", points=5)])
    _submit(attempt_svc, ctx, course.id, test.id, {"q1": "b"})
    _submit(attempt_svc, ctx, course.id, test.id, {"q1": "a"})

    entry = uow.read(lambda repos: repos.grades.get_gradebook(course.id, "alice"))
    assert (entry.total_score, entry.total_possible) == (5, 5)
    grade = uow.read(lambda repos: repos.grades.get_grade(course.id, f"test_{test.id}_alice"))
    assert grade.grade_revision == 2


def test_recompute_matches_incremental_and_is_idempotent(make_test, attempt_svc, gradebook_svc, ctx, course):
    test = make_test(mode="scheduled", questions=[mcq("q1", points=3), mcq("q2", points=2)])
    _submit(attempt_svc, ctx, course.id, test.id, {"q1": "a", "q2": "c"})

    first = gradebook_svc.recompute_student(PROF, ctx, course.id, "alice")
    assert (first.after.total_score, first.after.total_possible) == (3, 5)
    assert first.drift_flagged is False

    second = gradebook_svc.recompute_student(PROF, ctx, course.id, "alice")
    assert second.after == first.after
    assert (second.delta.total_score, second.delta.total_possible) == (0, 0)


def test_out_of_band_edit_is_flagged_and_repaired(make_test, attempt_svc, gradebook_svc, uow, db, ctx, course):
    test = make_test(mode="scheduled", questions=[mcq("q1", points=5)])
    _submit(attempt_svc, ctx, course.id, test.id, {"q1": "a"})

    with db.transaction() as conn:
        conn.execute(
            "UPDATE gradebook SET total_score = 12 WHERE course_id = ? AND student_id = ?",
            (course.id, "alice"),
        )

    outcome = gradebook_svc.recompute_student(PROF, ctx, course.id, "alice", reason="  manual fix  ")
    assert outcome.drift_flagged is True
    assert outcome.delta.total_score == -7
    entry = uow.read(lambda repos: repos.grades.get_gradebook(course.id, "alice"))
    assert entry.total_score == 5

    audit = uow.read(lambda repos: repos.events.list_audit(request_id=ctx.request_id))
    recompute = [a for a in audit if a.action == "gradebook.recompute"][-1]
    assert recompute.metadata["reason"] == "manual fix"


def test_recompute_refuses_oversized_grade_sets(gradebook_svc, db, ctx, course):
    rows = [
        (f"test_t{i}_alice", course.id, "alice", "test", f"t{i}", 1, 1, 1, 1, "t", "system", "t")
        for i in range(1001)
    ]
    with db.transaction() as conn:
        conn.executemany(
            """
            INSERT INTO grades (
                id, course_id, student_id, source_type, source_id, source_version,
                score, points_possible, grade_revision, graded_at, graded_by, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    with pytest.raises(ResourceLimitError, match="Too many grades to recompute"):
        gradebook_svc.recompute_student(PROF, ctx, course.id, "alice")


def test_students_cannot_recompute(gradebook_svc, ctx, course):
    with pytest.raises(AuthorizationError):
        gradebook_svc.recompute_student(ALICE, ctx, course.id, "alice")


def test_course_gradebook_lists_rows(make_test, attempt_svc, gradebook_svc, ctx, course):
    test = make_test(mode="scheduled", questions=[mcq("q1", points=2)])
    _submit(attempt_svc, ctx, course.id, test.id, {"q1": "a"})
    rows = gradebook_svc.course_gradebook(PROF, ctx, course.id, limit=500)
    assert [(r.student_id, r.total_score) for r in rows] == [("alice", 2)]
