"""Scoring a submitted answer set against a frozen form and its test version."""
from __future__ import annotations
import math
from typing import Any, Iterable, Mapping

from portal.domain.assessment.models import TestVersion
from portal.domain.attempt.models import FormEntry, GradingOutcome, QuestionResult


def grade_attempt(
    form_snapshot: Iterable[FormEntry],
    version: TestVersion,
    answers: Mapping[str, Any],
) -> GradingOutcome:
    """Grade ``answers`` (question id → option id).

    Walks the attempt's frozen snapshot, not the version, so the served set
    decides what is scored. An answer only counts when its option id is in
    that question's whitelist; questions absent from the version are skipped.
    """
    questions = version.question_map()
    score = 0.0
    breakdown = []
    accepted: dict[str, str] = {}

    for entry in form_snapshot:
        qid = entry.question_id.strip()
        if not qid:
            continue
        question = questions.get(qid)
        if question is None:
            continue

        raw = answers.get(qid)
        selected = raw.strip() if isinstance(raw, str) else ""
        allowed = bool(selected) and selected in entry.option_ids
        if allowed:
            accepted[qid] = selected

        correct = allowed and selected == question.correct_option_id
        points = question.points if math.isfinite(question.points) else 1
        awarded = points if correct else 0
        score += awarded
        breakdown.append(QuestionResult(question_id=qid, correct=correct, points_awarded=awarded))

    return GradingOutcome(score=score, breakdown=tuple(breakdown), answers_snapshot=accepted)
