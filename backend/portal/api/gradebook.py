"""Gradebook API endpoints."""
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.api.auth import get_current_user
from portal.api.courses import required
from portal.api.request_context import get_request_context, json_body
from portal.application.gradebook_app_service import GradebookAppService
from portal.container import get_gradebook_app_service
from portal.domain.access.models import Caller, RequestContext
from portal.domain.gradebook.models import GradebookEntry

router = APIRouter(prefix="/api/gradebook", tags=["gradebook"])


class RecomputeStudentBody(BaseModel):
    courseId: str = ""
    studentId: str = ""
    reason: Optional[str] = None


class CourseGradebookBody(BaseModel):
    courseId: str = ""
    limit: int = 100


def _serialize_entry(e: GradebookEntry) -> dict:
    return {
        "studentId": e.student_id,
        "totalScore": e.total_score,
        "totalPossible": e.total_possible,
        "computedAt": e.computed_at,
        "updatedAt": e.updated_at,
    }


@router.post("/recomputeStudent", dependencies=[Depends(json_body())])
def recompute_student(
    body: RecomputeStudentBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: GradebookAppService = Depends(get_gradebook_app_service),
):
    outcome = svc.recompute_student(caller, ctx, required(body.courseId), required(body.studentId), body.reason)
    return {
        "ok": True,
        "totalScore": outcome.after.total_score,
        "totalPossible": outcome.after.total_possible,
        "delta": {
            "totalScore": outcome.delta.total_score,
            "totalPossible": outcome.delta.total_possible,
        },
        "driftFlagged": outcome.drift_flagged,
        "requestId": ctx.request_id,
    }


@router.post("/course", dependencies=[Depends(json_body())])
def course_gradebook(
    body: CourseGradebookBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: GradebookAppService = Depends(get_gradebook_app_service),
):
    entries = svc.course_gradebook(caller, ctx, required(body.courseId), body.limit)
    return {"ok": True, "gradebook": [_serialize_entry(e) for e in entries], "requestId": ctx.request_id}
