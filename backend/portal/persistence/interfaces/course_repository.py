"""Abstract repository interface for courses and their enrollments."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

from portal.domain.course.models import Course, Enrollment


class CourseRepository(ABC):

    @abstractmethod
    def get(self, course_id: str) -> Optional[Course]:
        ...

    @abstractmethod
    def find_by_code_term(self, code_norm: str, term_norm: str) -> Optional[Course]:
        """Return the course holding this normalised code/term pair, or None."""
        ...

    @abstractmethod
    def save(self, course: Course) -> None:
        """Insert or update the course row."""
        ...

    @abstractmethod
    def get_enrollment(self, course_id: str, user_id: str) -> Optional[Enrollment]:
        ...

    @abstractmethod
    def save_enrollment(self, enrollment: Enrollment) -> None:
        """Upsert; created_at/created_by are never overwritten once set."""
        ...

    @abstractmethod
    def list_active_instructor_ids(self, course_id: str, limit: int) -> List[str]:
        ...

    @abstractmethod
    def list_active_member_ids(self, course_id: str, limit: int) -> List[str]:
        ...

    @abstractmethod
    def list_active_enrollments_for_user(self, user_id: str, limit: int) -> List[Enrollment]:
        ...
