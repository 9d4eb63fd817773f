"""Assignment, submission and grading API endpoints."""
from __future__ import annotations
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.api.auth import get_current_user
from portal.api.courses import required
from portal.api.request_context import get_request_context, json_body
from portal.application.assignment_app_service import AssignmentAppService
from portal.container import get_assignment_app_service
from portal.domain.access.models import Caller, RequestContext

router = APIRouter(prefix="/api/assignments", tags=["assignments"])

MAX_CREATE_BODY_BYTES = 40 * 1024
MAX_SUBMIT_BODY_BYTES = 60 * 1024
MAX_GRADE_BODY_BYTES = 20 * 1024


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class CreateAssignmentBody(BaseModel):
    courseId: str = ""
    title: str = ""
    description: Optional[str] = None
    pointsPossible: Optional[float] = None
    dueMillis: Optional[float] = None
    allowLate: Optional[bool] = None
    latePolicy: Optional[Dict[str, Any]] = None
    submissionSpec: Optional[Dict[str, Any]] = None


class AssignmentRefBody(BaseModel):
    courseId: str = ""
    assignmentId: str = ""


class SubmitBody(BaseModel):
    courseId: str = ""
    assignmentId: str = ""
    content: Any = None


class GradeBody(BaseModel):
    courseId: str = ""
    assignmentId: str = ""
    studentId: str = ""
    score: Optional[float] = None
    feedback: Optional[str] = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------
@router.post("/create", dependencies=[Depends(json_body(MAX_CREATE_BODY_BYTES))])
def create_assignment(
    body: CreateAssignmentBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: AssignmentAppService = Depends(get_assignment_app_service),
):
    data = body.model_dump()
    course_id = required(data.pop("courseId"))
    assignment = svc.create_assignment(caller, ctx, course_id, data)
    return {"ok": True, "assignmentId": assignment.id, "requestId": ctx.request_id}


@router.post("/publish", dependencies=[Depends(json_body())])
def publish_assignment(
    body: AssignmentRefBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: AssignmentAppService = Depends(get_assignment_app_service),
):
    published = svc.publish_assignment(caller, ctx, required(body.courseId), required(body.assignmentId))
    return {
        "ok": True,
        "version": published.version,
        "calendarEventId": published.calendar_event_id,
        "requestId": ctx.request_id,
    }


@router.post("/submit", dependencies=[Depends(json_body(MAX_SUBMIT_BODY_BYTES))])
def submit(
    body: SubmitBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: AssignmentAppService = Depends(get_assignment_app_service),
):
    outcome = svc.submit(caller, ctx, required(body.courseId), required(body.assignmentId), body.content)
    return {
        "ok": True,
        "status": outcome.status,
        "late": outcome.late,
        "wasResubmission": outcome.was_resubmission,
        "requestId": ctx.request_id,
    }


@router.post("/grade", dependencies=[Depends(json_body(MAX_GRADE_BODY_BYTES))])
def grade(
    body: GradeBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: AssignmentAppService = Depends(get_assignment_app_service),
):
    graded = svc.grade(
        caller, ctx,
        required(body.courseId),
        required(body.assignmentId),
        required(body.studentId),
        body.score,
        body.feedback,
    )
    return {
        "ok": True,
        "score": graded.change.after_score,
        "gradeRevision": graded.change.after_revision,
        "requestId": ctx.request_id,
    }
