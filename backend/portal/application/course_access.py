"""Access checks shared by the application services.

Each helper runs against the repositories of the caller's unit of work, so
when used inside a transaction the membership it saw is the one committed.
"""
from __future__ import annotations

from portal.domain.access.models import Caller
from portal.domain.access.rbac import has_course_permission, has_permission
from portal.domain.common.errors import AuthorizationError, NotFoundError
from portal.domain.course.models import Course


def require_course_exists(repos, course_id: str) -> Course:
    course = repos.courses.get(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    return course


def is_active_member(repos, course_id: str, uid: str) -> bool:
    enrollment = repos.courses.get_enrollment(course_id, uid)
    return enrollment is not None and enrollment.is_active


def is_active_instructor(repos, course_id: str, uid: str) -> bool:
    enrollment = repos.courses.get_enrollment(course_id, uid)
    return enrollment is not None and enrollment.is_active_instructor


def require_active_enrollment_or_platform(repos, course_id: str, caller: Caller) -> None:
    if has_permission(caller.role, "courses.manage"):
        return
    if not is_active_member(repos, course_id, caller.uid):
        raise AuthorizationError()


def require_instructor_or_platform(repos, course_id: str, caller: Caller) -> None:
    if has_permission(caller.role, "courses.manage"):
        return
    if not is_active_instructor(repos, course_id, caller.uid):
        raise AuthorizationError()


def can_manage_enrollments(repos, course_id: str, caller: Caller) -> bool:
    if has_permission(caller.role, "courses.manage"):
        return True
    enrollment = repos.courses.get_enrollment(course_id, caller.uid)
    return (
        enrollment is not None
        and enrollment.is_active
        and has_course_permission(enrollment.role, "enrollments.manage")
    )
