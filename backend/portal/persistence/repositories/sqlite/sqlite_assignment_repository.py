"""SQLite implementation of AssignmentRepository."""
from __future__ import annotations
import json
import sqlite3
from typing import Optional

from portal.domain.assignment.models import Assignment, Submission, SubmissionContent
from portal.domain.common.errors import InvariantViolation
from portal.persistence.interfaces.assignment_repository import AssignmentRepository


def _row_to_assignment(row) -> Assignment:
    return Assignment(
        id=row["id"],
        course_id=row["course_id"],
        title=row["title"],
        description=row["description"],
        status=row["status"],
        version=row["version"],
        due_millis=row["due_millis"],
        points_possible=row["points_possible"],
        allow_late=bool(row["allow_late"]),
        late_policy=row["late_policy"],
        penalty_percent=row["penalty_percent"],
        submission_type=row["submission_type"],
        submission_max_bytes=row["submission_max_bytes"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
        published_at=row["published_at"],
    )


def _row_to_submission(row) -> Submission:
    try:
        links = tuple(str(link) for link in json.loads(row["content_links"]))
    except (ValueError, TypeError) as e:
        raise InvariantViolation(
            f"Malformed links on submission {row['assignment_id']}:{row['user_id']}: {e}"
        ) from e
    return Submission(
        course_id=row["course_id"],
        assignment_id=row["assignment_id"],
        user_id=row["user_id"],
        status=row["status"],
        content=SubmissionContent(text=row["content_text"], links=links),
        late=bool(row["late"]),
        assignment_version=row["assignment_version"],
        submitted_at=row["submitted_at"],
        grade_score=row["grade_score"],
        grade_feedback=row["grade_feedback"],
        graded_at=row["graded_at"],
        graded_by=row["graded_by"],
        grade_revision=row["grade_revision"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
    )


class SqliteAssignmentRepository(AssignmentRepository):

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get(self, course_id: str, assignment_id: str) -> Optional[Assignment]:
        row = self._conn.execute(
            "SELECT * FROM assignments WHERE id = ? AND course_id = ?", (assignment_id, course_id)
        ).fetchone()
        return _row_to_assignment(row) if row else None

    def save(self, assignment: Assignment) -> None:
        self._conn.execute(
            """
            INSERT INTO assignments (
                id, course_id, title, description, status, version, due_millis,
                points_possible, allow_late, late_policy, penalty_percent,
                submission_type, submission_max_bytes,
                created_by, created_at, updated_at, updated_by, published_at
            ) VALUES (
                :id, :course_id, :title, :description, :status, :version, :due_millis,
                :points_possible, :allow_late, :late_policy, :penalty_percent,
                :submission_type, :submission_max_bytes,
                :created_by, :created_at, :updated_at, :updated_by, :published_at
            )
            ON CONFLICT(id) DO UPDATE SET
                status       = excluded.status,
                version      = excluded.version,
                updated_at   = excluded.updated_at,
                updated_by   = excluded.updated_by,
                published_at = excluded.published_at
            """,
            {
                "id": assignment.id,
                "course_id": assignment.course_id,
                "title": assignment.title,
                "description": assignment.description,
                "status": assignment.status,
                "version": assignment.version,
                "due_millis": assignment.due_millis,
                "points_possible": assignment.points_possible,
                "allow_late": int(assignment.allow_late),
                "late_policy": assignment.late_policy,
                "penalty_percent": assignment.penalty_percent,
                "submission_type": assignment.submission_type,
                "submission_max_bytes": assignment.submission_max_bytes,
                "created_by": assignment.created_by,
                "created_at": assignment.created_at,
                "updated_at": assignment.updated_at,
                "updated_by": assignment.updated_by,
                "published_at": assignment.published_at,
            },
        )

    def get_submission(self, assignment_id: str, user_id: str) -> Optional[Submission]:
        row = self._conn.execute(
            "SELECT * FROM submissions WHERE assignment_id = ? AND user_id = ?", (assignment_id, user_id)
        ).fetchone()
        return _row_to_submission(row) if row else None

    def save_submission(self, submission: Submission) -> None:
        self._conn.execute(
            """
            INSERT INTO submissions (
                assignment_id, user_id, course_id, status, content_text, content_links,
                late, assignment_version, submitted_at,
                grade_score, grade_feedback, graded_at, graded_by, grade_revision,
                created_by, created_at, updated_at, updated_by
            ) VALUES (
                :assignment_id, :user_id, :course_id, :status, :content_text, :content_links,
                :late, :assignment_version, :submitted_at,
                :grade_score, :grade_feedback, :graded_at, :graded_by, :grade_revision,
                :created_by, :created_at, :updated_at, :updated_by
            )
            ON CONFLICT(assignment_id, user_id) DO UPDATE SET
                status             = excluded.status,
                content_text       = excluded.content_text,
                content_links      = excluded.content_links,
                late               = excluded.late,
                assignment_version = excluded.assignment_version,
                submitted_at       = excluded.submitted_at,
                grade_score        = excluded.grade_score,
                grade_feedback     = excluded.grade_feedback,
                graded_at          = excluded.graded_at,
                graded_by          = excluded.graded_by,
                grade_revision     = excluded.grade_revision,
                updated_at         = excluded.updated_at,
                updated_by         = excluded.updated_by
            """,
            {
                "assignment_id": submission.assignment_id,
                "user_id": submission.user_id,
                "course_id": submission.course_id,
                "status": submission.status,
                "content_text": submission.content.text,
                "content_links": json.dumps(list(submission.content.links)),
                "late": int(submission.late),
                "assignment_version": submission.assignment_version,
                "submitted_at": submission.submitted_at,
                "grade_score": submission.grade_score,
                "grade_feedback": submission.grade_feedback,
                "graded_at": submission.graded_at,
                "graded_by": submission.graded_by,
                "grade_revision": submission.grade_revision,
                "created_by": submission.created_by,
                "created_at": submission.created_at,
                "updated_at": submission.updated_at,
                "updated_by": submission.updated_by,
            },
        )
