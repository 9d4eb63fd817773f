"""Shared fixtures: a throwaway SQLite file per test and services bound to a fixed clock."""
import pytest
from fastapi.testclient import TestClient

from portal.application.activity_app_service import ActivityAppService
from portal.application.assignment_app_service import AssignmentAppService
from portal.application.attempt_app_service import AttemptAppService
from portal.application.course_app_service import CourseAppService
from portal.application.gradebook_app_service import GradebookAppService
from portal.application.rate_limiter import RateLimiter
from portal.application.test_app_service import TestAppService
from portal.core.clock import FixedClock
from portal.domain.access.models import Caller, RequestContext
from portal.persistence.db import Database
from portal.persistence.repositories.sqlite.sqlite_unit_of_work import SqliteUnitOfWork

NOW = 1_700_000_000_000

PROF = Caller(uid="prof", role="instructor", email="prof@example.edu")


def student(uid: str) -> Caller:
    return Caller(uid=uid, role="student", email=f"{uid}@example.edu")


def mcq(qid: str, correct: str = "a", points: float = 1, options=("a", "b", "c")) -> dict:
    return {
        "id": qid,
        "type": "mcq",
        "prompt": f"Question {qid}?",
        "points": points,
        "correctOptionId": correct,
        "options": [{"id": o, "text": f"Option {o}"} for o in options],
    }


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "portal.db"), busy_timeout=10.0)
    database.init_schema()
    return database


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def uow(db):
    return SqliteUnitOfWork(db)


@pytest.fixture
def ctx():
    return RequestContext(request_id="req-test", ip="127.0.0.1", user_agent="pytest")


@pytest.fixture
def activity(uow, clock):
    return ActivityAppService(uow=uow, clock=clock)


@pytest.fixture
def course_svc(uow, activity, clock):
    return CourseAppService(uow=uow, activity=activity, clock=clock)


@pytest.fixture
def test_svc(uow, activity, clock):
    limiter = RateLimiter(uow=uow, clock=clock, max_requests=10, window_seconds=60)
    return TestAppService(uow=uow, activity=activity, rate_limiter=limiter, clock=clock)


@pytest.fixture
def attempt_svc(uow, activity, clock):
    return AttemptAppService(uow=uow, activity=activity, clock=clock)


@pytest.fixture
def gradebook_svc(uow, activity, clock):
    return GradebookAppService(uow=uow, activity=activity, clock=clock)


@pytest.fixture
def assignment_svc(uow, activity, clock):
    limiter = RateLimiter(uow=uow, clock=clock, max_requests=10, window_seconds=60)
    return AssignmentAppService(uow=uow, activity=activity, rate_limiter=limiter, clock=clock)


@pytest.fixture
def course(course_svc, ctx):
    """A course taught by PROF with two active students, alice and bob."""
    created = course_svc.create_course(PROF, ctx, "Algorithms", "CS 201", "Fall 2026")
    for uid in ("alice", "bob"):
        course_svc.set_enrollment(PROF, ctx, created.id, uid, "student", "active")
    return created


@pytest.fixture
def make_test(test_svc, ctx, course):
    def _make(mode="practice", publish=True, questions=None, **overrides):
        data = {
            "title": "Weekly quiz",
            "mode": mode,
            "attemptsAllowed": 1,
            "questions": questions if questions is not None else [mcq(f"q{i}") for i in range(1, 6)],
        }
        if mode == "scheduled":
            data.update(windowStartMillis=NOW - 60_000, windowEndMillis=NOW + 3_600_000, durationMinutes=30)
        data.update(overrides)
        test = test_svc.create_test(PROF, ctx, course.id, data)
        if publish:
            test_svc.publish_test(PROF, ctx, course.id, test.id)
        return test

    return _make


@pytest.fixture
def make_assignment(assignment_svc, ctx, course):
    def _make(publish=True, **overrides):
        data = {"title": "Problem set 1", "pointsPossible": 10}
        data.update(overrides)
        assignment = assignment_svc.create_assignment(PROF, ctx, course.id, data)
        if publish:
            assignment_svc.publish_assignment(PROF, ctx, course.id, assignment.id)
        return assignment

    return _make


# ------------------------------------------------------------------
# HTTP
# ------------------------------------------------------------------
@pytest.fixture
def client(db, course_svc, test_svc, attempt_svc, gradebook_svc, assignment_svc):
    from portal import container
    from portal.main import app

    app.dependency_overrides[container.get_database] = lambda: db
    app.dependency_overrides[container.get_course_app_service] = lambda: course_svc
    app.dependency_overrides[container.get_test_app_service] = lambda: test_svc
    app.dependency_overrides[container.get_attempt_app_service] = lambda: attempt_svc
    app.dependency_overrides[container.get_gradebook_app_service] = lambda: gradebook_svc
    app.dependency_overrides[container.get_assignment_app_service] = lambda: assignment_svc
    # No context manager: startup (real database path) is not run.
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from portal.api.auth import create_access_token

    def _headers(uid: str, role: str = "student") -> dict:
        return {"Authorization": f"Bearer {create_access_token(uid, uid, role)}"}

    return _headers
