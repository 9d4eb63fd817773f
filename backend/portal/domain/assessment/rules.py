"""Validation rules for test definitions and publishing."""
from __future__ import annotations
import math
from typing import Any, List, Optional

from portal.domain.common.result import Result
from portal.domain.assessment.models import Option, Question, Test, TestDraft

VALID_MODES = {"practice", "scheduled"}

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 20000
MAX_QUESTIONS = 200
MAX_OPTIONS = 10
MAX_QUESTION_ID_LENGTH = 80
MAX_PROMPT_LENGTH = 5000
MAX_POINTS = 1000
MAX_DURATION_MINUTES = 24 * 60
MIN_ATTEMPTS, MAX_ATTEMPTS = 1, 10


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_questions(raw_questions: Any) -> tuple[List[Question], float]:
    """Keep only well-formed MCQ questions; return them with their point total.

    Malformed entries are dropped rather than rejected so a partially valid
    bank can still be saved as a draft.
    """
    items = raw_questions if isinstance(raw_questions, list) else []
    questions: List[Question] = []

    for raw in items:
        if not isinstance(raw, dict):
            continue
        qid = _clean_str(raw.get("id"))
        prompt = _clean_str(raw.get("prompt"))
        points = _as_number(raw.get("points", 1))
        correct = _clean_str(raw.get("correctOptionId"))
        raw_options = raw.get("options") if isinstance(raw.get("options"), list) else []

        options = []
        for o in raw_options:
            if not isinstance(o, dict):
                continue
            oid, text = _clean_str(o.get("id")), _clean_str(o.get("text"))
            if oid and text:
                options.append(Option(id=oid, text=text))
        options = options[:MAX_OPTIONS]

        if not qid or len(qid) > MAX_QUESTION_ID_LENGTH:
            continue
        if raw.get("type") != "mcq":
            continue
        if not prompt or len(prompt) > MAX_PROMPT_LENGTH:
            continue
        if points is None or points <= 0 or points > MAX_POINTS:
            continue
        if len(options) < 2:
            continue
        if not any(o.id == correct for o in options):
            continue

        questions.append(Question(
            id=qid,
            prompt=prompt,
            options=tuple(options),
            correct_option_id=correct,
            points=points,
        ))

    # Points only count for questions that will actually be served.
    kept = questions[:MAX_QUESTIONS]
    return kept, sum((q.points for q in kept), 0.0)


def validate_attempts_allowed(value: Any) -> Result[int]:
    n = _as_number(value)
    if n is None or n != int(n) or not MIN_ATTEMPTS <= n <= MAX_ATTEMPTS:
        return Result.fail("Invalid attemptsAllowed")
    return Result.ok(int(n))


def validate_test_definition(data: dict) -> Result[TestDraft]:
    """Validate a create-test payload (camelCase keys as received over the wire)."""
    title = _clean_str(data.get("title"))
    mode = data.get("mode")
    description = _clean_str(data.get("description")) or None

    if not title or mode not in VALID_MODES:
        return Result.fail("Invalid payload")
    if len(title) > MAX_TITLE_LENGTH:
        return Result.fail("Invalid title")
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        return Result.fail("Invalid description")

    window_start = window_end = duration = None
    if mode == "scheduled":
        window_start = _as_number(data.get("windowStartMillis"))
        window_end = _as_number(data.get("windowEndMillis"))
        duration = _as_number(data.get("durationMinutes"))
        if window_start is None or window_end is None or duration is None:
            return Result.fail("Scheduled tests require windowStartMillis, windowEndMillis, durationMinutes")
        if window_end <= window_start:
            return Result.fail("Invalid test window")
        if duration <= 0 or duration > MAX_DURATION_MINUTES:
            return Result.fail("Invalid durationMinutes")

    attempts = validate_attempts_allowed(data.get("attemptsAllowed", 1))
    if not attempts.is_success:
        return Result.fail(attempts.error)

    questions, points_possible = normalize_questions(data.get("questions"))

    return Result.ok(TestDraft(
        title=title,
        description=description,
        mode=mode,
        attempts_allowed=attempts.value,
        shuffle=data.get("shuffle") is not False,
        is_assessed=True if mode == "scheduled" else data.get("isAssessed") is True,
        questions=questions,
        points_possible=points_possible,
        duration_minutes=int(duration) if duration is not None else None,
        window_start_millis=int(window_start) if window_start is not None else None,
        window_end_millis=int(window_end) if window_end is not None else None,
    ))


def validate_publish(test: Test) -> Result[Test]:
    if test.is_assessed and (not math.isfinite(test.points_possible) or test.points_possible <= 0):
        return Result.fail("Cannot publish assessed test with no questions/points")
    return Result.ok(test)


def validate_revision(test: Test) -> Result[Test]:
    if test.is_published:
        return Result.fail("Published tests are immutable. Cannot revise questions.")
    return Result.ok(test)
