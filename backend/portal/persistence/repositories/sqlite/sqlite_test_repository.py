"""SQLite implementation of TestRepository."""
from __future__ import annotations
import json
import sqlite3
from typing import Optional

from portal.domain.assessment.models import Option, Question, Test, TestVersion
from portal.domain.common.errors import InvariantViolation
from portal.persistence.interfaces.test_repository import TestRepository


def _question_to_dict(q: Question) -> dict:
    return {
        "id": q.id,
        "type": q.type,
        "prompt": q.prompt,
        "options": [{"id": o.id, "text": o.text} for o in q.options],
        "correctOptionId": q.correct_option_id,
        "points": q.points,
    }


def _question_from_dict(raw: dict) -> Question:
    return Question(
        id=str(raw["id"]),
        type=str(raw.get("type", "mcq")),
        prompt=str(raw.get("prompt", "")),
        options=tuple(Option(id=str(o["id"]), text=str(o["text"])) for o in raw.get("options") or []),
        correct_option_id=str(raw["correctOptionId"]),
        points=float(raw.get("points", 1)),
    )


def _row_to_test(row) -> Test:
    return Test(
        id=row["id"],
        course_id=row["course_id"],
        title=row["title"],
        description=row["description"],
        mode=row["mode"],
        status=row["status"],
        attempts_allowed=row["attempts_allowed"],
        duration_minutes=row["duration_minutes"],
        window_start_millis=row["window_start_millis"],
        window_end_millis=row["window_end_millis"],
        shuffle=bool(row["shuffle"]),
        is_assessed_flag=bool(row["is_assessed"]),
        points_possible=row["points_possible"],
        active_version=row["active_version"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
        published_at=row["published_at"],
    )


def _row_to_version(row) -> TestVersion:
    try:
        questions = tuple(_question_from_dict(q) for q in json.loads(row["questions"]))
    except (ValueError, KeyError, TypeError) as e:
        raise InvariantViolation(
            f"Malformed questions in version {row['version']} of test {row['test_id']}: {e}"
        ) from e
    return TestVersion(
        course_id=row["course_id"],
        test_id=row["test_id"],
        version=row["version"],
        questions=questions,
        created_by=row["created_by"],
        created_at=row["created_at"],
        schema_version=row["schema_version"],
    )


class SqliteTestRepository(TestRepository):

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get(self, course_id: str, test_id: str) -> Optional[Test]:
        row = self._conn.execute(
            "SELECT * FROM tests WHERE id = ? AND course_id = ?", (test_id, course_id)
        ).fetchone()
        return _row_to_test(row) if row else None

    def save(self, test: Test) -> None:
        self._conn.execute(
            """
            INSERT INTO tests (
                id, course_id, title, description, mode, status, attempts_allowed,
                duration_minutes, window_start_millis, window_end_millis, shuffle,
                is_assessed, points_possible, active_version,
                created_by, created_at, updated_at, updated_by, published_at
            ) VALUES (
                :id, :course_id, :title, :description, :mode, :status, :attempts_allowed,
                :duration_minutes, :window_start_millis, :window_end_millis, :shuffle,
                :is_assessed, :points_possible, :active_version,
                :created_by, :created_at, :updated_at, :updated_by, :published_at
            )
            ON CONFLICT(id) DO UPDATE SET
                status          = excluded.status,
                points_possible = excluded.points_possible,
                active_version  = excluded.active_version,
                updated_at      = excluded.updated_at,
                updated_by      = excluded.updated_by,
                published_at    = excluded.published_at
            """,
            {
                "id": test.id,
                "course_id": test.course_id,
                "title": test.title,
                "description": test.description,
                "mode": test.mode,
                "status": test.status,
                "attempts_allowed": test.attempts_allowed,
                "duration_minutes": test.duration_minutes,
                "window_start_millis": test.window_start_millis,
                "window_end_millis": test.window_end_millis,
                "shuffle": int(test.shuffle),
                "is_assessed": int(test.is_assessed_flag),
                "points_possible": test.points_possible,
                "active_version": test.active_version,
                "created_by": test.created_by,
                "created_at": test.created_at,
                "updated_at": test.updated_at,
                "updated_by": test.updated_by,
                "published_at": test.published_at,
            },
        )

    def get_version(self, test_id: str, version: int) -> Optional[TestVersion]:
        row = self._conn.execute(
            "SELECT * FROM test_versions WHERE test_id = ? AND version = ?", (test_id, version)
        ).fetchone()
        return _row_to_version(row) if row else None

    def add_version(self, version: TestVersion) -> None:
        # Plain INSERT: a duplicate (test_id, version) raises IntegrityError.
        self._conn.execute(
            """
            INSERT INTO test_versions (
                test_id, version, course_id, schema_version, questions, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                version.test_id,
                version.version,
                version.course_id,
                version.schema_version,
                json.dumps([_question_to_dict(q) for q in version.questions]),
                version.created_by,
                version.created_at,
            ),
        )

    def get_latest_version_number(self, test_id: str) -> int:
        row = self._conn.execute(
            "SELECT MAX(version) FROM test_versions WHERE test_id = ?", (test_id,)
        ).fetchone()
        return row[0] if row and row[0] is not None else 0
