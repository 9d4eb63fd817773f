"""Exception handlers rendering the ``{"error", "requestId"}`` envelope."""
from __future__ import annotations
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.api.request_context import request_id_for
from portal.domain.common.errors import InvariantViolation, PortalError

log = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


def error_response(request: Request, status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "requestId": request_id_for(request)},
        headers={**NO_STORE, **(headers or {})},
    )


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if isinstance(exc, InvariantViolation):
        log.error("invariant violation: %s requestId=%s", exc.message, request_id_for(request))
    return error_response(request, exc.status_code, exc.client_message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.debug("invalid payload on %s: %s", request.url.path, exc.errors())
    return error_response(request, 400, "Invalid payload")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(request, exc.status_code, message, getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error on %s requestId=%s", request.url.path, request_id_for(request))
    return error_response(request, 500, "Internal Server Error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
