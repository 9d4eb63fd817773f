"""Gradebook arithmetic — pure functions, no I/O.

Two paths keep the gradebook current: an O(1) incremental fold applied when
an assessed attempt is submitted or an assignment is graded, and a full
recompute from grade records used to reconcile any drift the incremental
path accumulates.
"""
from __future__ import annotations
import math
from typing import Iterable, Optional

from portal.domain.gradebook.models import Grade, GradebookEntry, RecomputeOutcome, Totals

DRIFT_WARN_POINTS = 1


def _finite_or_zero(value) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def apply_submission(
    prior: Optional[Grade],
    entry: Optional[GradebookEntry],
    *,
    course_id: str,
    student_id: str,
    source_type: str,
    source_id: str,
    source_version: int,
    score: float,
    points_possible: float,
    now: str,
    graded_by: str = "system",
) -> tuple[Grade, GradebookEntry]:
    """Fold one graded attempt or assignment grade into the grade record and gradebook.

    The score enters the gradebook as a delta against the prior grade, and
    ``points_possible`` is only added the first time the grade is created, so
    a resubmission does not double count.
    """
    prior_revision = int(_finite_or_zero(prior.grade_revision)) if prior else 0
    prior_score = _finite_or_zero(prior.score) if prior else 0.0
    delta_score = score - prior_score

    grade = Grade(
        course_id=course_id,
        student_id=student_id,
        source_type=source_type,
        source_id=source_id,
        source_version=source_version,
        score=score,
        points_possible=points_possible,
        grade_revision=prior_revision + 1,
        graded_at=now,
        graded_by=graded_by,
        updated_at=now,
    )

    before_score = _finite_or_zero(entry.total_score) if entry else 0.0
    before_possible = _finite_or_zero(entry.total_possible) if entry else 0.0
    updated = GradebookEntry(
        course_id=course_id,
        student_id=student_id,
        total_score=before_score + delta_score,
        total_possible=before_possible + (0 if prior else points_possible),
        computed_at=now,
        updated_at=now,
        updated_by=graded_by,
    )
    return grade, updated


def sum_grades(grades: Iterable[Grade]) -> Totals:
    total_score = 0.0
    total_possible = 0.0
    for g in grades:
        total_score += _finite_or_zero(g.score)
        total_possible += _finite_or_zero(g.points_possible)
    return Totals(total_score=total_score, total_possible=total_possible)


def reconcile(entry: Optional[GradebookEntry], fresh: Totals) -> RecomputeOutcome:
    before = Totals(
        total_score=_finite_or_zero(entry.total_score) if entry else 0.0,
        total_possible=_finite_or_zero(entry.total_possible) if entry else 0.0,
    )
    delta = Totals(
        total_score=fresh.total_score - before.total_score,
        total_possible=fresh.total_possible - before.total_possible,
    )
    flagged = abs(delta.total_score) >= DRIFT_WARN_POINTS or abs(delta.total_possible) >= DRIFT_WARN_POINTS
    return RecomputeOutcome(before=before, after=fresh, delta=delta, drift_flagged=flagged)
