"""Course, enrollment and visibility API endpoints."""
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.api.auth import get_current_user
from portal.api.request_context import get_request_context, json_body
from portal.application.course_app_service import CourseAppService, MyCourse
from portal.container import get_course_app_service
from portal.domain.access.models import Caller, RequestContext
from portal.domain.common.errors import ValidationError

router = APIRouter(prefix="/api/courses", tags=["courses"])


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class CreateCourseBody(BaseModel):
    name: str = ""
    code: str = ""
    term: str = ""
    description: Optional[str] = None


class SetEnrollmentBody(BaseModel):
    courseId: str = ""
    userId: str = ""
    role: str = ""
    status: str = ""


class SetVisibilityBody(BaseModel):
    courseId: str = ""
    visibility: str = ""


class MyCoursesBody(BaseModel):
    includeArchived: bool = False
    limit: int = 50


def required(value: Optional[str]) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError("Invalid payload")
    return value


# ------------------------------------------------------------------
# Serializers
# ------------------------------------------------------------------
def _serialize_my_course(m: MyCourse) -> dict:
    c = m.course
    return {
        "courseId": c.id,
        "name": c.name,
        "code": c.code,
        "term": c.term,
        "description": c.description,
        "archived": c.archived,
        "visibility": c.visibility,
        "role": m.role,
        "status": m.status,
    }


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------
@router.post("/createCourse", dependencies=[Depends(json_body())])
def create_course(
    body: CreateCourseBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: CourseAppService = Depends(get_course_app_service),
):
    course = svc.create_course(caller, ctx, body.name, body.code, body.term, body.description)
    return {"ok": True, "courseId": course.id, "requestId": ctx.request_id}


@router.post("/setEnrollment", dependencies=[Depends(json_body())])
def set_enrollment(
    body: SetEnrollmentBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: CourseAppService = Depends(get_course_app_service),
):
    svc.set_enrollment(
        caller, ctx,
        course_id=required(body.courseId),
        user_id=required(body.userId),
        role=body.role.strip(),
        status=body.status.strip(),
    )
    return {"ok": True, "requestId": ctx.request_id}


@router.post("/setVisibility", dependencies=[Depends(json_body())])
def set_visibility(
    body: SetVisibilityBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: CourseAppService = Depends(get_course_app_service),
):
    svc.set_visibility(caller, ctx, required(body.courseId), body.visibility.strip())
    return {"ok": True, "requestId": ctx.request_id}


@router.post("/myCourses", dependencies=[Depends(json_body())])
def my_courses(
    body: MyCoursesBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: CourseAppService = Depends(get_course_app_service),
):
    courses = svc.my_courses(caller, include_archived=body.includeArchived, limit=body.limit)
    return {"ok": True, "courses": [_serialize_my_course(m) for m in courses], "requestId": ctx.request_id}
