"""Test and test-version models — pure Python, no DB or HTTP dependencies."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Option:
    id: str
    text: str


@dataclass(frozen=True)
class Question:
    id: str
    prompt: str
    options: tuple[Option, ...]
    correct_option_id: str
    points: float
    type: str = "mcq"


@dataclass(frozen=True)
class TestVersion:
    """Immutable snapshot of a test's question bank.

    Attempts reference a version by number; once written a version is never
    rewritten, so grading always sees the answer key the student was served.
    """

    course_id: str
    test_id: str
    version: int
    questions: tuple[Question, ...]
    created_by: str = ""
    created_at: str = ""
    schema_version: int = 1

    def question_map(self) -> dict[str, Question]:
        return {q.id: q for q in self.questions}


@dataclass
class Test:
    id: str
    course_id: str
    title: str
    mode: str  # practice | scheduled
    status: str  # draft | published
    attempts_allowed: int
    active_version: int
    shuffle: bool = True
    is_assessed_flag: bool = False
    points_possible: float = 0
    description: Optional[str] = None
    duration_minutes: Optional[int] = None
    window_start_millis: Optional[int] = None
    window_end_millis: Optional[int] = None
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""
    published_at: Optional[str] = None
    updated_by: Optional[str] = None

    @property
    def is_assessed(self) -> bool:
        return self.is_assessed_flag or self.mode == "scheduled"

    @property
    def is_published(self) -> bool:
        return self.status == "published"


@dataclass
class TestDraft:
    """Validated input for creating a test, before ids are assigned."""

    title: str
    mode: str
    attempts_allowed: int
    shuffle: bool
    is_assessed: bool
    questions: List[Question] = field(default_factory=list)
    points_possible: float = 0
    description: Optional[str] = None
    duration_minutes: Optional[int] = None
    window_start_millis: Optional[int] = None
    window_end_millis: Optional[int] = None
