"""Validation and state rules for assignments, submissions and grading.

Payload checks return ``Result`` like the test-definition rules; the
submission and grading checks run inside a transaction and raise
status-bearing errors directly, like the attempt rules.
"""
from __future__ import annotations
import math
import re
from typing import Any, List, Optional

from portal.domain.assessment.rules import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH
from portal.domain.assignment.models import Assignment, AssignmentDraft, SubmissionContent
from portal.domain.common.errors import ConflictError, InvariantViolation, ValidationError
from portal.domain.common.result import Result

MAX_POINTS_POSSIBLE = 1_000_000
MAX_SUBMISSION_TEXT_LENGTH = 50000
MAX_SUBMISSION_LINKS = 10
MAX_URL_LENGTH = 2000
MAX_FEEDBACK_LENGTH = 20000

LATE_POLICIES = {"none", "accept_with_penalty"}
SUBMISSION_TYPES = {"text", "link", "file_link"}

_SCRIPT_RE = re.compile(r"<script[\s\S]*?>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
# Control characters other than tab, newline and carriage return.
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)


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


def _type_of(spec: Any) -> Optional[str]:
    return spec.get("type") if isinstance(spec, dict) and spec.get("type") else None


def validate_assignment_definition(data: dict) -> Result[AssignmentDraft]:
    """Validate a create-assignment payload (camelCase keys as received)."""
    title = _clean_str(data.get("title"))
    description = _clean_str(data.get("description")) or None
    points = _as_number(data.get("pointsPossible"))

    if not title or points is None or points < 0 or points > MAX_POINTS_POSSIBLE:
        return Result.fail("Invalid payload")
    if len(title) > MAX_TITLE_LENGTH:
        return Result.fail("Invalid title")
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        return Result.fail("Invalid description")

    due_millis = None
    if data.get("dueMillis") is not None:
        due_millis = _as_number(data.get("dueMillis"))
        if due_millis is None:
            return Result.fail("Invalid dueMillis")

    late_spec = data.get("latePolicy")
    late_policy = _type_of(late_spec) or "none"
    if late_policy not in LATE_POLICIES:
        return Result.fail("Invalid latePolicy")
    penalty = 0.0
    if late_policy == "accept_with_penalty":
        penalty = _as_number(late_spec.get("penaltyPercent", 0))
        if penalty is None or not 0 <= penalty <= 100:
            return Result.fail("Invalid penaltyPercent")

    submission_spec = data.get("submissionSpec")
    submission_type = _type_of(submission_spec) or "text"
    if submission_type not in SUBMISSION_TYPES:
        return Result.fail("Invalid submissionSpec")
    max_bytes = _as_number(submission_spec.get("maxBytes")) if isinstance(submission_spec, dict) else None

    return Result.ok(AssignmentDraft(
        title=title,
        description=description,
        points_possible=points,
        due_millis=int(due_millis) if due_millis is not None else None,
        allow_late=data.get("allowLate") is True,
        late_policy=late_policy,
        penalty_percent=penalty,
        submission_type=submission_type,
        submission_max_bytes=int(max_bytes) if max_bytes is not None else None,
    ))


def is_http_url(url: Any) -> bool:
    u = _clean_str(url)
    return bool(u) and len(u) <= MAX_URL_LENGTH and _HTTP_RE.match(u) is not None


def normalize_submission_content(raw: Any) -> Result[SubmissionContent]:
    """Trim the text and keep up to ten http(s) links; anything else is dropped."""
    raw = raw if isinstance(raw, dict) else {}
    text = _clean_str(raw.get("text"))
    if len(text) > MAX_SUBMISSION_TEXT_LENGTH:
        return Result.fail("Invalid text")
    raw_links = raw.get("links") if isinstance(raw.get("links"), list) else []
    links: List[str] = [link.strip() for link in raw_links if is_http_url(link)]
    return Result.ok(SubmissionContent(text=text or None, links=tuple(links[:MAX_SUBMISSION_LINKS])))


def sanitize_feedback(feedback: Any) -> Optional[str]:
    """Reduce instructor feedback to plain text."""
    if not isinstance(feedback, str):
        return None
    s = feedback.strip()
    if not s:
        return None
    s = _SCRIPT_RE.sub("", s)
    s = _STYLE_RE.sub("", s)
    s = _TAG_RE.sub("", s)
    s = _CONTROL_RE.sub("", s).strip()
    return s or None


def validate_grade_input(score: Any, feedback: Any) -> Result[tuple[float, Optional[str]]]:
    n = _as_number(score)
    if n is None or n < 0 or n > MAX_POINTS_POSSIBLE:
        return Result.fail("Invalid payload")
    cleaned = sanitize_feedback(feedback)
    if cleaned and len(cleaned) > MAX_FEEDBACK_LENGTH:
        return Result.fail("Invalid feedback")
    return Result.ok((n, cleaned))


def check_can_submit(assignment: Assignment, now_millis: int) -> bool:
    """Validate a submission against the assignment; return whether it is late."""
    if not assignment.is_published:
        raise ConflictError("Assignment is not published")
    late = assignment.due_millis is not None and now_millis > assignment.due_millis
    if late and not assignment.allow_late:
        raise ConflictError("Late submissions are not allowed")
    return late


def check_score(assignment: Assignment, score: float) -> float:
    """Return the assignment's possible points once the score fits within them."""
    points = _as_number(assignment.points_possible)
    if points is None or points < 0:
        raise InvariantViolation(f"Invalid pointsPossible on assignment {assignment.id}")
    if score > points:
        raise ValidationError("Score exceeds pointsPossible")
    return points
