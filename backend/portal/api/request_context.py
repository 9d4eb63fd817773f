"""Per-request correlation id, client address and JSON body guards."""
from __future__ import annotations
import uuid

from fastapi import Request

from portal.domain.access.models import RequestContext
from portal.domain.common.errors import ResourceLimitError, UnsupportedMediaType

DEFAULT_MAX_BODY_BYTES = 10 * 1024


def new_request_id() -> str:
    return str(uuid.uuid4())


def request_id_for(request: Request) -> str:
    """The id assigned by the request-id middleware (or a fresh one)."""
    rid = getattr(request.state, "request_id", None)
    if not rid:
        rid = new_request_id()
        request.state.request_id = rid
    return rid


def client_ip(request: Request) -> str:
    headers = request.headers
    for name in ("x-real-ip", "x-vercel-forwarded-for"):
        value = (headers.get(name) or "").strip()
        if value:
            return value
    forwarded = [p.strip() for p in (headers.get("x-forwarded-for") or "").split(",") if p.strip()]
    if forwarded:
        # Right-most entry is the one appended by our own proxy.
        return forwarded[-1]
    if request.client and request.client.host:
        return request.client.host
    return "unknown-ip"


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        request_id=request_id_for(request),
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )


def json_body(max_bytes: int = DEFAULT_MAX_BODY_BYTES):
    """Route dependency: require a JSON content type and cap the body size."""

    async def guard(request: Request) -> None:
        content_type = (request.headers.get("content-type") or "").lower()
        if not content_type.startswith("application/json"):
            raise UnsupportedMediaType()

        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > max_bytes:
            raise ResourceLimitError("Payload too large")
        if len(await request.body()) > max_bytes:
            raise ResourceLimitError("Payload too large")

    return guard
