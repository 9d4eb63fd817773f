"""Attempt lifecycle: start, submit, caps, windows, expiry and ownership."""
import sqlite3
import threading

import pytest

from conftest import NOW, PROF, mcq, student
from portal.domain.assessment.models import TestVersion
from portal.domain.assessment.rules import MAX_QUESTIONS
from portal.domain.common.errors import AuthorizationError, ConflictError, NotFoundError

ALICE = student("alice")
BOB = student("bob")


def _answer_all(started, choice="a"):
    return {q.id: choice for q in started.questions}


# ------------------------------------------------------------------
# Practice scenario
# ------------------------------------------------------------------
def test_practice_attempt_scores_and_caps(make_test, attempt_svc, ctx, course):
    test = make_test(mode="practice", attemptsAllowed=1)

    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    assert started.attempt.id == "alice__1"
    assert started.attempt.expires_at_millis == NOW + 7 * 24 * 60 * 60 * 1000
    assert len(started.questions) == 5

    result = attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, _answer_all(started))
    assert result.score == 5
    assert result.points_possible == 5
    assert result.is_assessed is False

    with pytest.raises(ConflictError, match="No remaining attempts"):
        attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)


def test_practice_attempt_does_not_touch_gradebook(make_test, attempt_svc, uow, ctx, course):
    test = make_test(mode="practice")
    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, _answer_all(started))
    assert uow.read(lambda repos: repos.grades.get_gradebook(course.id, "alice")) is None


def test_graded_attempt_is_persisted(make_test, attempt_svc, uow, ctx, course):
    test = make_test()
    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    answers = _answer_all(started, "b")
    answers["not-served"] = "a"
    attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, answers)

    stored = uow.read(lambda repos: repos.attempts.get(test.id, "alice__1"))
    assert stored.status == "graded"
    assert stored.score == 0
    assert stored.graded_by == "system"
    assert "not-served" not in stored.answers_snapshot
    assert len(stored.breakdown) == 5


# ------------------------------------------------------------------
# Start preconditions
# ------------------------------------------------------------------
def test_unpublished_test_cannot_be_started(make_test, attempt_svc, ctx, course):
    test = make_test(publish=False)
    with pytest.raises(ConflictError, match="Test is not published"):
        attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)


def test_unknown_test_is_not_found(attempt_svc, ctx, course):
    with pytest.raises(NotFoundError):
        attempt_svc.start_attempt(ALICE, ctx, course.id, "nope")


def test_non_member_is_forbidden(make_test, attempt_svc, ctx, course):
    test = make_test()
    with pytest.raises(AuthorizationError):
        attempt_svc.start_attempt(student("mallory"), ctx, course.id, test.id)


def test_window_closed(make_test, attempt_svc, clock, ctx, course):
    test = make_test(mode="scheduled")
    clock.advance(minutes=120)
    with pytest.raises(ConflictError, match="Test window is not open"):
        attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)


def test_window_not_yet_open(make_test, attempt_svc, ctx, course):
    test = make_test(mode="scheduled", windowStartMillis=NOW + 60_000, windowEndMillis=NOW + 3_600_000)
    with pytest.raises(ConflictError, match="Test window is not open"):
        attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)


def test_window_bounds_are_inclusive(make_test, attempt_svc, clock, ctx, course):
    test = make_test(mode="scheduled", attemptsAllowed=2, windowStartMillis=NOW, windowEndMillis=NOW + 3_600_000)
    assert attempt_svc.start_attempt(ALICE, ctx, course.id, test.id).attempt.attempt_no == 1

    clock.advance(minutes=60)
    assert attempt_svc.start_attempt(ALICE, ctx, course.id, test.id).attempt.attempt_no == 2


def test_test_without_questions(make_test, attempt_svc, ctx, course):
    test = make_test(mode="practice", questions=[])
    with pytest.raises(ConflictError, match="Test has no questions"):
        attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)


def test_concurrent_starts_respect_the_cap(make_test, attempt_svc, ctx, course):
    test = make_test(attemptsAllowed=2)
    outcomes = []
    lock = threading.Lock()

    def start():
        try:
            attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
            result = "ok"
        except ConflictError:
            result = "conflict"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=start) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 2
    assert outcomes.count("conflict") == 4


# ------------------------------------------------------------------
# Submit preconditions
# ------------------------------------------------------------------
def test_expired_attempt_is_rejected(make_test, attempt_svc, clock, ctx, course):
    test = make_test(mode="scheduled")
    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    assert started.attempt.expires_at_millis == NOW + 30 * 60 * 1000

    clock.advance(minutes=31)
    with pytest.raises(ConflictError, match="Attempt expired"):
        attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, _answer_all(started))


def test_other_students_attempt_is_forbidden(make_test, attempt_svc, ctx, course):
    test = make_test()
    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    with pytest.raises(AuthorizationError):
        attempt_svc.submit_attempt(BOB, ctx, course.id, test.id, started.attempt.id, {})


def test_second_submit_is_rejected(make_test, attempt_svc, ctx, course):
    test = make_test()
    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, _answer_all(started))
    with pytest.raises(ConflictError, match="Attempt is not active"):
        attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, _answer_all(started))


def test_unknown_attempt_is_not_found(make_test, attempt_svc, ctx, course):
    test = make_test()
    with pytest.raises(NotFoundError):
        attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, "alice__9", {})


# ------------------------------------------------------------------
# Assessed submissions
# ------------------------------------------------------------------
def test_scheduled_submit_writes_grade_and_gradebook(make_test, attempt_svc, uow, ctx, course):
    test = make_test(mode="scheduled", questions=[mcq("q1", points=2), mcq("q2", correct="b", points=3)])
    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    result = attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, {"q1": "a", "q2": "a"})

    assert result.is_assessed is True
    assert result.score == 2
    assert result.points_possible == 5

    grade = uow.read(lambda repos: repos.grades.get_grade(course.id, f"test_{test.id}_alice"))
    assert grade.grade_revision == 1
    entry = uow.read(lambda repos: repos.grades.get_gradebook(course.id, "alice"))
    assert (entry.total_score, entry.total_possible) == (2, 5)

    events = uow.read(lambda repos: repos.events.list_events(course.id))
    assert "grade.mutated" in {e.type for e in events}


# ------------------------------------------------------------------
# Versions
# ------------------------------------------------------------------
def test_attempt_is_graded_against_its_own_version(make_test, test_svc, attempt_svc, uow, ctx, course):
    test = make_test(publish=False, questions=[mcq("q1")])
    test_svc.revise_questions(PROF, ctx, course.id, test.id, [mcq("q1", correct="b")])
    test_svc.publish_test(PROF, ctx, course.id, test.id)

    started = attempt_svc.start_attempt(ALICE, ctx, course.id, test.id)
    assert started.attempt.test_version == 2
    result = attempt_svc.submit_attempt(ALICE, ctx, course.id, test.id, started.attempt.id, {"q1": "b"})
    assert result.score == 1

    v1 = uow.read(lambda repos: repos.tests.get_version(test.id, 1))
    assert v1.questions[0].correct_option_id == "a"


def test_published_tests_cannot_be_revised(make_test, test_svc, ctx, course):
    test = make_test()
    with pytest.raises(ConflictError):
        test_svc.revise_questions(PROF, ctx, course.id, test.id, [mcq("q1")])


def test_existing_versions_cannot_be_rewritten(make_test, uow, db, course):
    test = make_test()
    duplicate = TestVersion(course_id=course.id, test_id=test.id, version=1, questions=())
    with pytest.raises(sqlite3.IntegrityError):
        uow.run(lambda repos: repos.tests.add_version(duplicate))

    with db.transaction() as conn, pytest.raises(sqlite3.DatabaseError):
        conn.execute("UPDATE test_versions SET questions = '[]' WHERE test_id = ?", (test.id,))


def test_points_only_count_served_questions(make_test, test_svc, uow, ctx, course):
    test = make_test(publish=False, questions=[mcq(f"q{i}") for i in range(MAX_QUESTIONS + 5)])
    assert test.points_possible == MAX_QUESTIONS

    version = uow.read(lambda repos: repos.tests.get_version(test.id, 1))
    assert len(version.questions) == MAX_QUESTIONS

    revised = test_svc.revise_questions(
        PROF, ctx, course.id, test.id, [mcq(f"r{i}", points=2) for i in range(MAX_QUESTIONS + 1)],
    )
    assert revised.points_possible == 2 * MAX_QUESTIONS


def test_pytest_does_not_collect_domain_test_classes(pytestconfig):
    assert pytestconfig.getini("python_classes") == []
