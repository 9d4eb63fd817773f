"""Grade and gradebook models — pure Python, no DB or HTTP dependencies."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass
class Grade:
    course_id: str
    student_id: str
    source_type: str  # test | assignment
    source_id: str
    source_version: int
    score: float
    points_possible: float
    grade_revision: int
    graded_at: str = ""
    graded_by: str = "system"
    updated_at: str = ""

    @property
    def id(self) -> str:
        return self.make_id(self.source_type, self.source_id, self.student_id)

    @staticmethod
    def make_id(source_type: str, source_id: str, student_id: str) -> str:
        return f"{source_type}_{source_id}_{student_id}"


@dataclass
class GradebookEntry:
    """Per-student running totals. Derived data: always rebuildable from grades."""

    course_id: str
    student_id: str
    total_score: float = 0
    total_possible: float = 0
    computed_at: str = ""
    updated_at: str = ""
    updated_by: Optional[str] = None


@dataclass(frozen=True)
class Totals:
    total_score: float
    total_possible: float


@dataclass(frozen=True)
class RecomputeOutcome:
    before: Totals
    after: Totals
    delta: Totals
    drift_flagged: bool
