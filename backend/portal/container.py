"""Dependency injection container — wires implementations to interfaces."""
from __future__ import annotations
from functools import lru_cache

from portal.application.activity_app_service import ActivityAppService
from portal.application.assignment_app_service import AssignmentAppService
from portal.application.attempt_app_service import AttemptAppService
from portal.application.course_app_service import CourseAppService
from portal.application.gradebook_app_service import GradebookAppService
from portal.application.rate_limiter import RateLimiter
from portal.application.test_app_service import TestAppService
from portal.core.clock import SystemClock
from portal.core.config import (
    DATABASE_PATH,
    DB_BUSY_TIMEOUT_SECONDS,
    PUBLISH_RATE_LIMIT_MAX,
    PUBLISH_RATE_LIMIT_WINDOW_SECONDS,
)
from portal.persistence.db import Database
from portal.persistence.repositories.sqlite.sqlite_unit_of_work import SqliteUnitOfWork


@lru_cache(maxsize=1)
def get_database() -> Database:
    return Database(DATABASE_PATH, busy_timeout=DB_BUSY_TIMEOUT_SECONDS)


@lru_cache(maxsize=1)
def get_clock() -> SystemClock:
    return SystemClock()


@lru_cache(maxsize=1)
def get_uow() -> SqliteUnitOfWork:
    return SqliteUnitOfWork(get_database())


@lru_cache(maxsize=1)
def get_activity_app_service() -> ActivityAppService:
    return ActivityAppService(uow=get_uow(), clock=get_clock())


@lru_cache(maxsize=1)
def get_publish_rate_limiter() -> RateLimiter:
    return RateLimiter(
        uow=get_uow(),
        clock=get_clock(),
        max_requests=PUBLISH_RATE_LIMIT_MAX,
        window_seconds=PUBLISH_RATE_LIMIT_WINDOW_SECONDS,
    )


@lru_cache(maxsize=1)
def get_course_app_service() -> CourseAppService:
    return CourseAppService(uow=get_uow(), activity=get_activity_app_service(), clock=get_clock())


@lru_cache(maxsize=1)
def get_test_app_service() -> TestAppService:
    return TestAppService(
        uow=get_uow(),
        activity=get_activity_app_service(),
        rate_limiter=get_publish_rate_limiter(),
        clock=get_clock(),
    )


@lru_cache(maxsize=1)
def get_attempt_app_service() -> AttemptAppService:
    return AttemptAppService(uow=get_uow(), activity=get_activity_app_service(), clock=get_clock())


@lru_cache(maxsize=1)
def get_gradebook_app_service() -> GradebookAppService:
    return GradebookAppService(uow=get_uow(), activity=get_activity_app_service(), clock=get_clock())


@lru_cache(maxsize=1)
def get_assignment_app_service() -> AssignmentAppService:
    return AssignmentAppService(
        uow=get_uow(),
        activity=get_activity_app_service(),
        rate_limiter=get_publish_rate_limiter(),
        clock=get_clock(),
    )
