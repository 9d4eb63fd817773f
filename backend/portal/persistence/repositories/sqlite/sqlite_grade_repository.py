"""SQLite implementation of GradeRepository."""
from __future__ import annotations
import sqlite3
from typing import List, Optional

from portal.domain.gradebook.models import Grade, GradebookEntry
from portal.persistence.interfaces.grade_repository import GradeRepository


def _row_to_grade(row) -> Grade:
    return Grade(
        course_id=row["course_id"],
        student_id=row["student_id"],
        source_type=row["source_type"],
        source_id=row["source_id"],
        source_version=row["source_version"],
        score=row["score"],
        points_possible=row["points_possible"],
        grade_revision=row["grade_revision"],
        graded_at=row["graded_at"],
        graded_by=row["graded_by"],
        updated_at=row["updated_at"],
    )


def _row_to_entry(row) -> GradebookEntry:
    return GradebookEntry(
        course_id=row["course_id"],
        student_id=row["student_id"],
        total_score=row["total_score"],
        total_possible=row["total_possible"],
        computed_at=row["computed_at"],
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
    )


class SqliteGradeRepository(GradeRepository):

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get_grade(self, course_id: str, grade_id: str) -> Optional[Grade]:
        row = self._conn.execute(
            "SELECT * FROM grades WHERE course_id = ? AND id = ?", (course_id, grade_id)
        ).fetchone()
        return _row_to_grade(row) if row else None

    def save_grade(self, grade: Grade) -> None:
        self._conn.execute(
            """
            INSERT INTO grades (
                id, course_id, student_id, source_type, source_id, source_version,
                score, points_possible, grade_revision, graded_at, graded_by, updated_at
            ) VALUES (
                :id, :course_id, :student_id, :source_type, :source_id, :source_version,
                :score, :points_possible, :grade_revision, :graded_at, :graded_by, :updated_at
            )
            ON CONFLICT(course_id, id) DO UPDATE SET
                source_version  = excluded.source_version,
                score           = excluded.score,
                points_possible = excluded.points_possible,
                grade_revision  = excluded.grade_revision,
                graded_at       = excluded.graded_at,
                graded_by       = excluded.graded_by,
                updated_at      = excluded.updated_at
            """,
            {
                "id": grade.id,
                "course_id": grade.course_id,
                "student_id": grade.student_id,
                "source_type": grade.source_type,
                "source_id": grade.source_id,
                "source_version": grade.source_version,
                "score": grade.score,
                "points_possible": grade.points_possible,
                "grade_revision": grade.grade_revision,
                "graded_at": grade.graded_at,
                "graded_by": grade.graded_by,
                "updated_at": grade.updated_at,
            },
        )

    def list_for_student(self, course_id: str, student_id: str, limit: int) -> List[Grade]:
        rows = self._conn.execute(
            "SELECT * FROM grades WHERE course_id = ? AND student_id = ? LIMIT ?",
            (course_id, student_id, limit),
        ).fetchall()
        return [_row_to_grade(r) for r in rows]

    def get_gradebook(self, course_id: str, student_id: str) -> Optional[GradebookEntry]:
        row = self._conn.execute(
            "SELECT * FROM gradebook WHERE course_id = ? AND student_id = ?", (course_id, student_id)
        ).fetchone()
        return _row_to_entry(row) if row else None

    def save_gradebook(self, entry: GradebookEntry) -> None:
        self._conn.execute(
            """
            INSERT INTO gradebook (
                course_id, student_id, total_score, total_possible, computed_at, updated_at, updated_by
            ) VALUES (
                :course_id, :student_id, :total_score, :total_possible, :computed_at, :updated_at, :updated_by
            )
            ON CONFLICT(course_id, student_id) DO UPDATE SET
                total_score    = excluded.total_score,
                total_possible = excluded.total_possible,
                computed_at    = excluded.computed_at,
                updated_at     = excluded.updated_at,
                updated_by     = excluded.updated_by
            """,
            {
                "course_id": entry.course_id,
                "student_id": entry.student_id,
                "total_score": entry.total_score,
                "total_possible": entry.total_possible,
                "computed_at": entry.computed_at,
                "updated_at": entry.updated_at,
                "updated_by": entry.updated_by,
            },
        )

    def list_gradebook(self, course_id: str, limit: int) -> List[GradebookEntry]:
        rows = self._conn.execute(
            "SELECT * FROM gradebook WHERE course_id = ? ORDER BY student_id LIMIT ?", (course_id, limit)
        ).fetchall()
        return [_row_to_entry(r) for r in rows]
