"""SQLite implementation of CourseRepository."""
from __future__ import annotations
import sqlite3
from typing import List, Optional

from portal.domain.course.models import Course, Enrollment
from portal.persistence.interfaces.course_repository import CourseRepository


def _row_to_course(row) -> Course:
    return Course(
        id=row["id"],
        name=row["name"],
        code=row["code"],
        term=row["term"],
        code_norm=row["code_norm"],
        term_norm=row["term_norm"],
        description=row["description"],
        archived=bool(row["archived"]),
        visibility=row["visibility"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
    )


def _row_to_enrollment(row) -> Enrollment:
    return Enrollment(
        course_id=row["course_id"],
        user_id=row["user_id"],
        role=row["role"],
        status=row["status"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
    )


class SqliteCourseRepository(CourseRepository):

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get(self, course_id: str) -> Optional[Course]:
        row = self._conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
        return _row_to_course(row) if row else None

    def find_by_code_term(self, code_norm: str, term_norm: str) -> Optional[Course]:
        row = self._conn.execute(
            "SELECT * FROM courses WHERE code_norm = ? AND term_norm = ?",
            (code_norm, term_norm),
        ).fetchone()
        return _row_to_course(row) if row else None

    def save(self, course: Course) -> None:
        self._conn.execute(
            """
            INSERT INTO courses (
                id, name, code, term, code_norm, term_norm, description,
                archived, visibility, created_by, created_at, updated_at, updated_by
            ) VALUES (
                :id, :name, :code, :term, :code_norm, :term_norm, :description,
                :archived, :visibility, :created_by, :created_at, :updated_at, :updated_by
            )
            ON CONFLICT(id) DO UPDATE SET
                name        = excluded.name,
                description = excluded.description,
                archived    = excluded.archived,
                visibility  = excluded.visibility,
                updated_at  = excluded.updated_at,
                updated_by  = excluded.updated_by
            """,
            {
                "id": course.id,
                "name": course.name,
                "code": course.code,
                "term": course.term,
                "code_norm": course.code_norm,
                "term_norm": course.term_norm,
                "description": course.description,
                "archived": int(course.archived),
                "visibility": course.visibility,
                "created_by": course.created_by,
                "created_at": course.created_at,
                "updated_at": course.updated_at,
                "updated_by": course.updated_by,
            },
        )

    def get_enrollment(self, course_id: str, user_id: str) -> Optional[Enrollment]:
        row = self._conn.execute(
            "SELECT * FROM enrollments WHERE course_id = ? AND user_id = ?",
            (course_id, user_id),
        ).fetchone()
        return _row_to_enrollment(row) if row else None

    def save_enrollment(self, enrollment: Enrollment) -> None:
        self._conn.execute(
            """
            INSERT INTO enrollments (
                course_id, user_id, role, status, created_by, created_at, updated_at, updated_by
            ) VALUES (
                :course_id, :user_id, :role, :status, :created_by, :created_at, :updated_at, :updated_by
            )
            ON CONFLICT(course_id, user_id) DO UPDATE SET
                role       = excluded.role,
                status     = excluded.status,
                updated_at = excluded.updated_at,
                updated_by = excluded.updated_by
            """,
            {
                "course_id": enrollment.course_id,
                "user_id": enrollment.user_id,
                "role": enrollment.role,
                "status": enrollment.status,
                "created_by": enrollment.created_by,
                "created_at": enrollment.created_at,
                "updated_at": enrollment.updated_at,
                "updated_by": enrollment.updated_by,
            },
        )

    def list_active_instructor_ids(self, course_id: str, limit: int) -> List[str]:
        rows = self._conn.execute(
            """
            SELECT user_id FROM enrollments
            WHERE course_id = ? AND status = 'active' AND role = 'instructor'
            LIMIT ?
            """,
            (course_id, limit),
        ).fetchall()
        return [r["user_id"] for r in rows]

    def list_active_member_ids(self, course_id: str, limit: int) -> List[str]:
        rows = self._conn.execute(
            "SELECT user_id FROM enrollments WHERE course_id = ? AND status = 'active' LIMIT ?",
            (course_id, limit),
        ).fetchall()
        return [r["user_id"] for r in rows]

    def list_active_enrollments_for_user(self, user_id: str, limit: int) -> List[Enrollment]:
        rows = self._conn.execute(
            "SELECT * FROM enrollments WHERE user_id = ? AND status = 'active' LIMIT ?",
            (user_id, limit),
        ).fetchall()
        return [_row_to_enrollment(r) for r in rows]
