"""Abstract unit of work: one transaction, every repository bound to it."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, TypeVar

from portal.persistence.interfaces.assignment_repository import AssignmentRepository
from portal.persistence.interfaces.attempt_repository import AttemptRepository
from portal.persistence.interfaces.calendar_repository import CalendarRepository
from portal.persistence.interfaces.course_repository import CourseRepository
from portal.persistence.interfaces.event_repository import EventRepository
from portal.persistence.interfaces.grade_repository import GradeRepository
from portal.persistence.interfaces.rate_limit_repository import RateLimitRepository
from portal.persistence.interfaces.test_repository import TestRepository

T = TypeVar("T")


class Repositories:
    """The set of repositories handed to a unit of work callback."""

    courses: CourseRepository
    tests: TestRepository
    attempts: AttemptRepository
    assignments: AssignmentRepository
    grades: GradeRepository
    events: EventRepository
    calendar: CalendarRepository
    rate_limits: RateLimitRepository


class UnitOfWork(ABC):

    @abstractmethod
    def run(self, work: Callable[[Repositories], T]) -> T:
        """Execute ``work`` in one write transaction and return its result.

        The transaction commits only if ``work`` returns; any exception rolls
        it back and propagates unchanged.
        """
        ...

    @abstractmethod
    def read(self, work: Callable[[Repositories], T]) -> T:
        """Execute ``work`` against a plain read connection."""
        ...
