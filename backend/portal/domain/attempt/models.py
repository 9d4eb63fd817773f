"""Attempt domain models — pure Python, no DB or HTTP dependencies."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class FormEntry:
    """One served question and the option ids the student may answer with."""

    question_id: str
    option_ids: tuple[str, ...]

    def to_dict(self) -> dict:
        return {"questionId": self.question_id, "optionIds": list(self.option_ids)}


@dataclass
class ServedOption:
    id: str
    text: str


@dataclass
class ServedQuestion:
    """Client-facing question: no correct option id."""

    id: str
    prompt: str
    points: float
    options: List[ServedOption] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "points": self.points,
            "options": [{"id": o.id, "text": o.text} for o in self.options],
        }


@dataclass(frozen=True)
class QuestionResult:
    question_id: str
    correct: bool
    points_awarded: float

    def to_dict(self) -> dict:
        return {"questionId": self.question_id, "correct": self.correct, "pointsAwarded": self.points_awarded}


@dataclass(frozen=True)
class GradingOutcome:
    score: float
    breakdown: tuple[QuestionResult, ...]
    answers_snapshot: Dict[str, str]


@dataclass
class Attempt:
    id: str
    course_id: str
    test_id: str
    user_id: str
    attempt_no: int
    status: str  # started | graded
    started_at: str
    expires_at_millis: int
    test_version: int
    form_seed: str
    form_snapshot: List[FormEntry] = field(default_factory=list)
    answers_snapshot: Optional[Dict[str, str]] = None
    score: Optional[float] = None
    breakdown: Optional[List[QuestionResult]] = None
    submitted_at: Optional[str] = None
    graded_at: Optional[str] = None
    graded_by: Optional[str] = None

    @staticmethod
    def make_id(user_id: str, attempt_no: int) -> str:
        return f"{user_id}__{attempt_no}"
