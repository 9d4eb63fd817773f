"""Status-bearing exceptions raised inside request handling.

Every failure the core can produce maps to one of these. The API layer turns
them into the ``{"error": ..., "requestId": ...}`` envelope; a transaction that
raises one is rolled back before the exception leaves the unit of work.
"""
from __future__ import annotations


class PortalError(Exception):
    status_code: int = 500
    public_message: str | None = None

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)
        self.message = message

    @property
    def client_message(self) -> str:
        return self.public_message or self.message


class ValidationError(PortalError):
    status_code = 400


class AuthenticationError(PortalError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class AuthorizationError(PortalError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(PortalError):
    status_code = 404


class ConflictError(PortalError):
    status_code = 409


class ResourceLimitError(PortalError):
    status_code = 413


class UnsupportedMediaType(PortalError):
    status_code = 415

    def __init__(self, message: str = "Unsupported Media Type. Use application/json."):
        super().__init__(message)


class RateLimitedError(PortalError):
    status_code = 429

    def __init__(self, message: str = "Too Many Requests"):
        super().__init__(message)


class InvariantViolation(PortalError):
    """Stored data is malformed (missing version, non-finite numbers, ...).

    The detailed message is logged; clients only ever see the generic one.
    """

    status_code = 500
    public_message = "Internal Server Error"
