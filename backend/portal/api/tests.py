"""Test definition, publishing and attempt API endpoints."""
from __future__ import annotations
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.api.auth import get_current_user
from portal.api.courses import required
from portal.api.request_context import get_request_context, json_body
from portal.application.attempt_app_service import AttemptAppService
from portal.application.test_app_service import TestAppService
from portal.container import get_attempt_app_service, get_test_app_service
from portal.domain.access.models import Caller, RequestContext

router = APIRouter(prefix="/api/tests", tags=["tests"])

# Question banks are the only large payloads.
MAX_TEST_BODY_BYTES = 512 * 1024
MAX_SUBMIT_BODY_BYTES = 64 * 1024


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class CreateTestBody(BaseModel):
    courseId: str = ""
    title: str = ""
    description: Optional[str] = None
    mode: str = ""
    windowStartMillis: Optional[float] = None
    windowEndMillis: Optional[float] = None
    durationMinutes: Optional[float] = None
    attemptsAllowed: Optional[float] = 1
    shuffle: Optional[bool] = None
    isAssessed: Optional[bool] = None
    questions: List[Any] = []


class ReviseQuestionsBody(BaseModel):
    courseId: str = ""
    testId: str = ""
    questions: List[Any] = []


class TestRefBody(BaseModel):
    courseId: str = ""
    testId: str = ""


class SubmitAttemptBody(BaseModel):
    courseId: str = ""
    testId: str = ""
    attemptId: str = ""
    answers: Any = None  # anything but an object is graded as no answers


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------
@router.post("/create", dependencies=[Depends(json_body(MAX_TEST_BODY_BYTES))])
def create_test(
    body: CreateTestBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: TestAppService = Depends(get_test_app_service),
):
    data = body.model_dump()
    course_id = required(data.pop("courseId"))
    test = svc.create_test(caller, ctx, course_id, data)
    return {"ok": True, "testId": test.id, "requestId": ctx.request_id}


@router.post("/reviseQuestions", dependencies=[Depends(json_body(MAX_TEST_BODY_BYTES))])
def revise_questions(
    body: ReviseQuestionsBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: TestAppService = Depends(get_test_app_service),
):
    test = svc.revise_questions(caller, ctx, required(body.courseId), required(body.testId), body.questions)
    return {
        "ok": True,
        "version": test.active_version,
        "pointsPossible": test.points_possible,
        "requestId": ctx.request_id,
    }


@router.post("/publish", dependencies=[Depends(json_body())])
def publish_test(
    body: TestRefBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: TestAppService = Depends(get_test_app_service),
):
    calendar_event_id = svc.publish_test(caller, ctx, required(body.courseId), required(body.testId))
    return {"ok": True, "calendarEventId": calendar_event_id, "requestId": ctx.request_id}


@router.post("/startAttempt", dependencies=[Depends(json_body())])
def start_attempt(
    body: TestRefBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: AttemptAppService = Depends(get_attempt_app_service),
):
    started = svc.start_attempt(caller, ctx, required(body.courseId), required(body.testId))
    test = started.test
    return {
        "ok": True,
        "attemptId": started.attempt.id,
        "expiresAtMillis": started.attempt.expires_at_millis,
        "test": {
            "testId": test.id,
            "title": test.title,
            "mode": test.mode,
            "durationMinutes": test.duration_minutes,
            "pointsPossible": test.points_possible,
        },
        "form": {"questions": [q.to_dict() for q in started.questions]},
        "requestId": ctx.request_id,
    }


@router.post("/submitAttempt", dependencies=[Depends(json_body(MAX_SUBMIT_BODY_BYTES))])
def submit_attempt(
    body: SubmitAttemptBody,
    caller: Caller = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    svc: AttemptAppService = Depends(get_attempt_app_service),
):
    result = svc.submit_attempt(
        caller, ctx,
        required(body.courseId),
        required(body.testId),
        required(body.attemptId),
        body.answers if isinstance(body.answers, dict) else {},
    )
    return {
        "ok": True,
        "score": result.score,
        "pointsPossible": result.points_possible,
        "isAssessed": result.is_assessed,
        "requestId": ctx.request_id,
    }
