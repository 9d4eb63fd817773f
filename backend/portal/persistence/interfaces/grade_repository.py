"""Abstract repository interface for grade records and gradebook totals."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

from portal.domain.gradebook.models import Grade, GradebookEntry


class GradeRepository(ABC):

    @abstractmethod
    def get_grade(self, course_id: str, grade_id: str) -> Optional[Grade]:
        ...

    @abstractmethod
    def save_grade(self, grade: Grade) -> None:
        ...

    @abstractmethod
    def list_for_student(self, course_id: str, student_id: str, limit: int) -> List[Grade]:
        ...

    @abstractmethod
    def get_gradebook(self, course_id: str, student_id: str) -> Optional[GradebookEntry]:
        ...

    @abstractmethod
    def save_gradebook(self, entry: GradebookEntry) -> None:
        ...

    @abstractmethod
    def list_gradebook(self, course_id: str, limit: int) -> List[GradebookEntry]:
        ...
