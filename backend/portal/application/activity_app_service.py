"""Domain-event emission and audit logging.

``emit_domain_event`` is the only deduplication point for retried actions:
the event id is the SHA-256 of the caller's idempotency key, and a second
emit with the same key is a silent no-op. Both logs are append-only.

Services call ``record`` after their primary transaction has committed; it
never raises, so a failed audit or event write cannot fail a request whose
state change already happened.
"""
from __future__ import annotations
import logging
from typing import NamedTuple, Optional, Sequence

from portal.core.clock import SystemClock
from portal.domain.access.models import Caller, RequestContext
from portal.domain.events.models import Aggregate, AuditEntry, DomainEvent, EmitResult, event_id_for
from portal.persistence.interfaces.unit_of_work import UnitOfWork

log = logging.getLogger(__name__)


class PendingEvent(NamedTuple):
    type: str
    course_id: str
    aggregate: Aggregate
    payload: dict
    idempotency_key: str


class ActivityAppService:
    def __init__(self, uow: UnitOfWork, clock: SystemClock):
        self._uow = uow
        self._clock = clock

    def emit_domain_event(
        self,
        *,
        type: str,
        course_id: str,
        actor_uid: str,
        actor_role: str,
        aggregate: Aggregate,
        idempotency_key: str,
        payload: Optional[dict] = None,
        request_id: Optional[str] = None,
    ) -> EmitResult:
        event_id = event_id_for(idempotency_key)

        def work(repos) -> EmitResult:
            if repos.events.get_event(event_id) is not None:
                log.debug("domain event %s already recorded (key=%s)", event_id, idempotency_key)
                return EmitResult(event_id=event_id, created=False)
            repos.events.insert_event(DomainEvent(
                type=type,
                course_id=course_id,
                actor_uid=actor_uid,
                actor_role=actor_role,
                aggregate=aggregate,
                idempotency_key=idempotency_key,
                payload=payload or {},
                request_id=request_id,
                occurred_at=self._clock.now_iso(),
            ))
            return EmitResult(event_id=event_id, created=True)

        return self._uow.run(work)

    def write_audit_log(
        self,
        *,
        action: str,
        caller: Caller,
        ctx: Optional[RequestContext] = None,
        target_uid: Optional[str] = None,
        target_email: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> int:
        entry = AuditEntry(
            action=action,
            actor_uid=caller.uid,
            actor_email=caller.email,
            actor_role=caller.role,
            target_uid=target_uid,
            target_email=target_email,
            request_id=ctx.request_id if ctx else None,
            ip=ctx.ip if ctx else None,
            user_agent=ctx.user_agent if ctx else None,
            metadata=metadata or {},
            created_at=self._clock.now_iso(),
        )
        return self._uow.run(lambda repos: repos.events.append_audit(entry))

    def record(
        self,
        caller: Caller,
        ctx: RequestContext,
        *,
        action: str,
        metadata: dict,
        target_uid: Optional[str] = None,
        events: Sequence[PendingEvent] = (),
    ) -> None:
        """Write the audit entry, then each pending domain event.

        Failures are logged with the request id and swallowed.
        """
        try:
            self.write_audit_log(action=action, caller=caller, ctx=ctx, target_uid=target_uid, metadata=metadata)
        except Exception:
            log.exception("audit log write failed: action=%s requestId=%s", action, ctx.request_id)

        for event in events:
            try:
                self.emit_domain_event(
                    type=event.type,
                    course_id=event.course_id,
                    actor_uid=caller.uid,
                    actor_role=caller.role,
                    aggregate=event.aggregate,
                    payload=event.payload,
                    idempotency_key=event.idempotency_key,
                    request_id=ctx.request_id,
                )
            except Exception:
                log.exception("domain event emit failed: type=%s requestId=%s", event.type, ctx.request_id)
