"""Application service — courses, enrollments, visibility."""
from __future__ import annotations
import uuid
from dataclasses import dataclass
from typing import List, Optional

from portal.application.activity_app_service import ActivityAppService, PendingEvent
from portal.application.course_access import (
    can_manage_enrollments,
    require_course_exists,
    require_instructor_or_platform,
)
from portal.core.clock import SystemClock
from portal.domain.access.models import Caller, RequestContext
from portal.domain.access.rbac import has_permission
from portal.domain.common.errors import AuthorizationError, ConflictError, ValidationError
from portal.domain.course.models import Course, Enrollment
from portal.domain.course.rules import (
    VALID_VISIBILITIES,
    leaves_course_without_instructor,
    normalize_key_part,
    validate_course_fields,
    validate_enrollment_change,
)
from portal.domain.events.models import Aggregate
from portal.persistence.interfaces.unit_of_work import UnitOfWork

MAX_INSTRUCTOR_CHECK = 10


@dataclass
class MyCourse:
    course: Course
    role: str
    status: str


class CourseAppService:
    def __init__(self, uow: UnitOfWork, activity: ActivityAppService, clock: SystemClock):
        self._uow = uow
        self._activity = activity
        self._clock = clock

    # ------------------------------------------------------------------
    # CREATE
    # ------------------------------------------------------------------
    def create_course(
        self,
        caller: Caller,
        ctx: RequestContext,
        name: str,
        code: str,
        term: str,
        description: Optional[str] = None,
    ) -> Course:
        if not has_permission(caller.role, "courses.create"):
            raise AuthorizationError()
        name, code, term = validate_course_fields(name, code, term).unwrap()
        description = (description or "").strip() or None

        now = self._clock.now_iso()
        course = Course(
            id=str(uuid.uuid4()),
            name=name,
            code=code,
            term=term,
            code_norm=normalize_key_part(code),
            term_norm=normalize_key_part(term),
            description=description,
            created_by=caller.uid,
            created_at=now,
            updated_at=now,
        )

        def work(repos) -> Course:
            if repos.courses.find_by_code_term(course.code_norm, course.term_norm) is not None:
                raise ConflictError("Course already exists for this code and term")
            repos.courses.save(course)
            # The creator is the first active instructor.
            repos.courses.save_enrollment(Enrollment(
                course_id=course.id,
                user_id=caller.uid,
                role="instructor",
                status="active",
                created_by=caller.uid,
                created_at=now,
                updated_at=now,
            ))
            return course

        created = self._uow.run(work)

        self._activity.record(
            caller, ctx,
            action="course.create",
            metadata={"courseId": created.id, "name": name, "code": code, "term": term},
            events=[PendingEvent(
                "course.created", created.id, Aggregate("course", created.id),
                {"courseId": created.id, "code": code, "term": term},
                f"course.created:{created.id}",
            )],
        )
        return created

    # ------------------------------------------------------------------
    # ENROLLMENT
    # ------------------------------------------------------------------
    def set_enrollment(
        self,
        caller: Caller,
        ctx: RequestContext,
        course_id: str,
        user_id: str,
        role: str,
        status: str,
    ) -> Enrollment:
        """Create or change a member's course role/status.

        A course must always keep one active instructor: demoting or removing
        the last one is rejected with a conflict.
        """
        role, status = validate_enrollment_change(role, status).unwrap()

        def work(repos) -> Enrollment:
            if not can_manage_enrollments(repos, course_id, caller):
                raise AuthorizationError()
            require_course_exists(repos, course_id)

            existing = repos.courses.get_enrollment(course_id, user_id)
            if existing is not None and existing.is_active_instructor:
                instructors = repos.courses.list_active_instructor_ids(course_id, MAX_INSTRUCTOR_CHECK)
                if leaves_course_without_instructor(existing, user_id, role, status, instructors):
                    raise ConflictError("Cannot remove or demote the last active instructor")

            now = self._clock.now_iso()
            enrollment = Enrollment(
                course_id=course_id,
                user_id=user_id,
                role=role,
                status=status,
                created_by=existing.created_by if existing else caller.uid,
                created_at=existing.created_at if existing else now,
                updated_at=now,
                updated_by=caller.uid,
            )
            repos.courses.save_enrollment(enrollment)
            return enrollment

        enrollment = self._uow.run(work)

        self._activity.record(
            caller, ctx,
            action="enrollment.set",
            target_uid=user_id,
            metadata={"courseId": course_id, "role": role, "status": status},
            events=[PendingEvent(
                "enrollment.set", course_id, Aggregate("enrollment", user_id),
                {"courseId": course_id, "userId": user_id, "role": role, "status": status},
                f"enrollment.set:{course_id}:{user_id}:{role}:{status}:{ctx.request_id}",
            )],
        )
        return enrollment

    # ------------------------------------------------------------------
    # VISIBILITY
    # ------------------------------------------------------------------
    def set_visibility(self, caller: Caller, ctx: RequestContext, course_id: str, visibility: str) -> Course:
        if visibility not in VALID_VISIBILITIES:
            raise ValidationError("Invalid payload")

        def work(repos) -> tuple[str, Course]:
            require_instructor_or_platform(repos, course_id, caller)
            course = require_course_exists(repos, course_id)
            before = course.visibility
            course.visibility = visibility
            course.updated_at = self._clock.now_iso()
            course.updated_by = caller.uid
            repos.courses.save(course)
            return before, course

        before, course = self._uow.run(work)

        self._activity.record(
            caller, ctx,
            action="course.visibility.set",
            metadata={"courseId": course_id, "before": {"visibility": before}, "after": {"visibility": visibility}},
            events=[PendingEvent(
                "course.visibility.set", course_id, Aggregate("course", course_id),
                {"courseId": course_id, "visibility": visibility},
                f"course.visibility.set:{course_id}:{visibility}:{ctx.request_id}",
            )],
        )
        return course

    # ------------------------------------------------------------------
    # READ
    # ------------------------------------------------------------------
    def my_courses(self, caller: Caller, include_archived: bool = False, limit: int = 50) -> List[MyCourse]:
        limit = max(1, min(200, limit))

        def work(repos) -> List[MyCourse]:
            results = []
            for e in repos.courses.list_active_enrollments_for_user(caller.uid, limit):
                course = repos.courses.get(e.course_id)
                if course is None:
                    continue
                if course.archived and not include_archived:
                    continue
                results.append(MyCourse(course=course, role=e.role, status=e.status))
            return results

        results = self._uow.read(work)
        # Term descending, then code, then name.
        results.sort(key=lambda m: (m.course.code, m.course.name))
        results.sort(key=lambda m: m.course.term, reverse=True)
        return results
