"""SQLite implementation of AttemptRepository."""
from __future__ import annotations
import json
import sqlite3
from typing import Optional

from portal.domain.attempt.models import Attempt, FormEntry, QuestionResult
from portal.domain.common.errors import InvariantViolation
from portal.persistence.interfaces.attempt_repository import AttemptRepository


def _decode_snapshot(raw: str) -> list:
    entries = []
    for e in json.loads(raw or "[]"):
        entries.append(FormEntry(
            question_id=str(e.get("questionId", "")),
            option_ids=tuple(str(x) for x in e.get("optionIds") or []),
        ))
    return entries


def _decode_breakdown(raw: Optional[str]) -> Optional[list]:
    if raw is None:
        return None
    return [
        QuestionResult(question_id=b["questionId"], correct=bool(b["correct"]), points_awarded=b["pointsAwarded"])
        for b in json.loads(raw)
    ]


def _row_to_attempt(row) -> Attempt:
    try:
        snapshot = _decode_snapshot(row["form_snapshot"])
        breakdown = _decode_breakdown(row["breakdown"])
        answers = json.loads(row["answers_snapshot"]) if row["answers_snapshot"] is not None else None
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise InvariantViolation(f"Malformed attempt {row['id']} on test {row['test_id']}: {e}") from e
    return Attempt(
        id=row["id"],
        course_id=row["course_id"],
        test_id=row["test_id"],
        user_id=row["user_id"],
        attempt_no=row["attempt_no"],
        status=row["status"],
        started_at=row["started_at"],
        expires_at_millis=row["expires_at_millis"],
        test_version=row["test_version"],
        form_seed=row["form_seed"],
        form_snapshot=snapshot,
        answers_snapshot=answers,
        score=row["score"],
        breakdown=breakdown,
        submitted_at=row["submitted_at"],
        graded_at=row["graded_at"],
        graded_by=row["graded_by"],
    )


class SqliteAttemptRepository(AttemptRepository):

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get(self, test_id: str, attempt_id: str) -> Optional[Attempt]:
        row = self._conn.execute(
            "SELECT * FROM attempts WHERE test_id = ? AND id = ?", (test_id, attempt_id)
        ).fetchone()
        return _row_to_attempt(row) if row else None

    def count_for_user(self, test_id: str, user_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM attempts WHERE test_id = ? AND user_id = ?", (test_id, user_id)
        ).fetchone()
        return row[0]

    def create(self, attempt: Attempt) -> None:
        self._conn.execute(
            """
            INSERT INTO attempts (
                id, test_id, course_id, user_id, attempt_no, status, started_at,
                expires_at_millis, test_version, form_seed, form_snapshot
            ) VALUES (
                :id, :test_id, :course_id, :user_id, :attempt_no, :status, :started_at,
                :expires_at_millis, :test_version, :form_seed, :form_snapshot
            )
            """,
            {
                "id": attempt.id,
                "test_id": attempt.test_id,
                "course_id": attempt.course_id,
                "user_id": attempt.user_id,
                "attempt_no": attempt.attempt_no,
                "status": attempt.status,
                "started_at": attempt.started_at,
                "expires_at_millis": attempt.expires_at_millis,
                "test_version": attempt.test_version,
                "form_seed": attempt.form_seed,
                "form_snapshot": json.dumps([e.to_dict() for e in attempt.form_snapshot]),
            },
        )

    def save_graded(self, attempt: Attempt) -> None:
        self._conn.execute(
            """
            UPDATE attempts SET
                status           = :status,
                answers_snapshot = :answers_snapshot,
                score            = :score,
                breakdown        = :breakdown,
                submitted_at     = :submitted_at,
                graded_at        = :graded_at,
                graded_by        = :graded_by
            WHERE test_id = :test_id AND id = :id
            """,
            {
                "id": attempt.id,
                "test_id": attempt.test_id,
                "status": attempt.status,
                "answers_snapshot": json.dumps(attempt.answers_snapshot or {}),
                "score": attempt.score,
                "breakdown": json.dumps([b.to_dict() for b in attempt.breakdown or []]),
                "submitted_at": attempt.submitted_at,
                "graded_at": attempt.graded_at,
                "graded_by": attempt.graded_by,
            },
        )
