"""Attempt state-machine rules.

Unlike content validation these checks carry distinct outcomes (conflict vs.
corrupt stored data), so they raise status-bearing errors directly; they are
called inside the attempt transaction, which rolls back on any of them.
"""
from __future__ import annotations
import math

from portal.domain.assessment.models import Test
from portal.domain.assessment.rules import MAX_ATTEMPTS, MAX_DURATION_MINUTES, MIN_ATTEMPTS
from portal.domain.attempt.models import Attempt
from portal.domain.common.errors import AuthorizationError, ConflictError, InvariantViolation

PRACTICE_EXPIRY_MILLIS = 7 * 24 * 60 * 60 * 1000


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def check_can_start(test: Test, attempts_used: int, now_millis: int) -> int:
    """Validate a start request and return the next attempt number."""
    if not test.is_published:
        raise ConflictError("Test is not published")

    if not _finite(test.attempts_allowed) or not MIN_ATTEMPTS <= test.attempts_allowed <= MAX_ATTEMPTS:
        raise InvariantViolation(f"Invalid attemptsAllowed on test {test.id}: {test.attempts_allowed!r}")

    if test.mode == "scheduled":
        if not (_finite(test.window_start_millis) and _finite(test.window_end_millis)
                and _finite(test.duration_minutes)):
            raise InvariantViolation(f"Invalid scheduled test configuration on test {test.id}")
        if now_millis < test.window_start_millis or now_millis > test.window_end_millis:
            raise ConflictError("Test window is not open")
        if test.duration_minutes <= 0 or test.duration_minutes > MAX_DURATION_MINUTES:
            raise InvariantViolation(f"Invalid durationMinutes on test {test.id}: {test.duration_minutes!r}")

    if attempts_used >= test.attempts_allowed:
        raise ConflictError("No remaining attempts")

    return attempts_used + 1


def compute_expiry(test: Test, now_millis: int) -> int:
    if test.mode == "scheduled":
        return now_millis + int(test.duration_minutes) * 60 * 1000
    # Practice attempts get a generous ceiling, not a real timer.
    return now_millis + PRACTICE_EXPIRY_MILLIS


def check_can_submit(attempt: Attempt, caller_uid: str, now_millis: int) -> None:
    if attempt.user_id != caller_uid:
        raise AuthorizationError("Forbidden")
    if attempt.status != "started":
        raise ConflictError("Attempt is not active")
    if not _finite(attempt.expires_at_millis) or now_millis > attempt.expires_at_millis:
        raise ConflictError("Attempt expired")
    if not _finite(attempt.test_version) or not attempt.form_snapshot:
        raise InvariantViolation(f"Invalid attempt state for {attempt.id}")
