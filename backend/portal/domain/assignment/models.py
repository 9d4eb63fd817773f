"""Assignment and submission models — pure Python, no DB or HTTP dependencies."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass
class Assignment:
    id: str
    course_id: str
    title: str
    status: str  # draft | published
    points_possible: float
    version: int = 1
    description: Optional[str] = None
    due_millis: Optional[int] = None
    allow_late: bool = False
    late_policy: str = "none"  # none | accept_with_penalty
    penalty_percent: float = 0
    submission_type: str = "text"  # text | link | file_link
    submission_max_bytes: Optional[int] = None
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""
    updated_by: Optional[str] = None
    published_at: Optional[str] = None

    @property
    def is_published(self) -> bool:
        return self.status == "published"


@dataclass
class AssignmentDraft:
    """Validated input for creating an assignment, before ids are assigned."""

    title: str
    points_possible: float
    description: Optional[str] = None
    due_millis: Optional[int] = None
    allow_late: bool = False
    late_policy: str = "none"
    penalty_percent: float = 0
    submission_type: str = "text"
    submission_max_bytes: Optional[int] = None


@dataclass(frozen=True)
class SubmissionContent:
    text: Optional[str] = None
    links: tuple[str, ...] = ()


@dataclass
class Submission:
    """One student's work on an assignment. Resubmitting overwrites in place."""

    course_id: str
    assignment_id: str
    user_id: str
    status: str  # submitted | resubmitted
    content: SubmissionContent
    late: bool
    assignment_version: int
    submitted_at: str
    created_by: str
    created_at: str
    updated_at: str
    updated_by: Optional[str] = None
    grade_score: Optional[float] = None
    grade_feedback: Optional[str] = None
    graded_at: Optional[str] = None
    graded_by: Optional[str] = None
    grade_revision: int = 0


@dataclass(frozen=True)
class GradeChange:
    """Before/after view of a submission grade, as audited."""

    before_score: Optional[float]
    before_revision: int
    after_score: float
    after_revision: int

    def to_dict(self) -> dict:
        return {
            "before": {"score": self.before_score, "gradeRevision": self.before_revision},
            "after": {"score": self.after_score, "gradeRevision": self.after_revision},
        }


@dataclass
class SubmitOutcome:
    status: str
    late: bool
    was_resubmission: bool
    assignment_version: int
    due_millis: Optional[int] = None
