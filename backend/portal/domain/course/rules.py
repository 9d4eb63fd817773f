"""Business rules for courses and enrollments."""
from __future__ import annotations
import re
from typing import Iterable, Optional

from portal.domain.common.result import Result
from portal.domain.course.models import Enrollment

VALID_ENROLLMENT_ROLES = {"student", "instructor"}
VALID_ENROLLMENT_STATUSES = {"active", "removed"}
VALID_VISIBILITIES = {"enrolled_only", "public_catalog"}

_WHITESPACE = re.compile(r"\s+")


def normalize_key_part(value: str) -> str:
    """Trim, lower-case and collapse whitespace so "CS 101 " == "cs   101"."""
    return _WHITESPACE.sub(" ", value.strip().lower())


def validate_course_fields(name: str, code: str, term: str) -> Result[tuple[str, str, str]]:
    name, code, term = name.strip(), code.strip(), term.strip()
    if not name or not code or not term:
        return Result.fail("name, code, and term are required")
    if len(name) > 200 or len(code) > 50 or len(term) > 50:
        return Result.fail("name, code, or term is too long")
    return Result.ok((name, code, term))


def validate_enrollment_change(role: str, status: str) -> Result[tuple[str, str]]:
    if role not in VALID_ENROLLMENT_ROLES:
        return Result.fail(f"role must be one of {sorted(VALID_ENROLLMENT_ROLES)}")
    if status not in VALID_ENROLLMENT_STATUSES:
        return Result.fail(f"status must be one of {sorted(VALID_ENROLLMENT_STATUSES)}")
    return Result.ok((role, status))


def leaves_course_without_instructor(
    existing: Optional[Enrollment],
    user_id: str,
    new_role: str,
    new_status: str,
    active_instructor_ids: Iterable[str],
) -> bool:
    """True when applying the change would drop the last active instructor.

    ``active_instructor_ids`` is the bounded sample of active instructors read
    inside the same transaction; it may or may not include ``user_id``.
    """
    currently_instructor = existing is not None and existing.is_active_instructor
    will_be_instructor = new_status == "active" and new_role == "instructor"
    if not currently_instructor or will_be_instructor:
        return False
    return not any(uid != user_id for uid in active_instructor_ids)
