"""SQLite unit of work: binds every repository to one transaction's connection."""
from __future__ import annotations
import sqlite3
from typing import Callable, TypeVar

from portal.persistence.db import Database
from portal.persistence.interfaces.unit_of_work import Repositories, UnitOfWork
from portal.persistence.repositories.sqlite.sqlite_assignment_repository import SqliteAssignmentRepository
from portal.persistence.repositories.sqlite.sqlite_attempt_repository import SqliteAttemptRepository
from portal.persistence.repositories.sqlite.sqlite_calendar_repository import SqliteCalendarRepository
from portal.persistence.repositories.sqlite.sqlite_course_repository import SqliteCourseRepository
from portal.persistence.repositories.sqlite.sqlite_event_repository import SqliteEventRepository
from portal.persistence.repositories.sqlite.sqlite_grade_repository import SqliteGradeRepository
from portal.persistence.repositories.sqlite.sqlite_rate_limit_repository import SqliteRateLimitRepository
from portal.persistence.repositories.sqlite.sqlite_test_repository import SqliteTestRepository

T = TypeVar("T")


class SqliteRepositories(Repositories):

    def __init__(self, conn: sqlite3.Connection):
        self.courses = SqliteCourseRepository(conn)
        self.tests = SqliteTestRepository(conn)
        self.attempts = SqliteAttemptRepository(conn)
        self.assignments = SqliteAssignmentRepository(conn)
        self.grades = SqliteGradeRepository(conn)
        self.events = SqliteEventRepository(conn)
        self.calendar = SqliteCalendarRepository(conn)
        self.rate_limits = SqliteRateLimitRepository(conn)


class SqliteUnitOfWork(UnitOfWork):

    def __init__(self, database: Database):
        self._database = database

    def run(self, work: Callable[[Repositories], T]) -> T:
        with self._database.transaction() as conn:
            return work(SqliteRepositories(conn))

    def read(self, work: Callable[[Repositories], T]) -> T:
        with self._database.reader() as conn:
            return work(SqliteRepositories(conn))
