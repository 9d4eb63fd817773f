"""Abstract repository interface for assignments and their submissions."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from portal.domain.assignment.models import Assignment, Submission


class AssignmentRepository(ABC):

    @abstractmethod
    def get(self, course_id: str, assignment_id: str) -> Optional[Assignment]:
        ...

    @abstractmethod
    def save(self, assignment: Assignment) -> None:
        """Insert or update the assignment row."""
        ...

    @abstractmethod
    def get_submission(self, assignment_id: str, user_id: str) -> Optional[Submission]:
        ...

    @abstractmethod
    def save_submission(self, submission: Submission) -> None:
        """Insert or overwrite the one submission a student has per assignment."""
        ...
