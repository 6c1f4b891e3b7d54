"""Application error kinds.

Every failure a caller can act on has its own class so the HTTP layer (and
any other caller) can tell a duplicate scan apart from a missing participant
without parsing messages. Each kind carries a stable ``code`` and the HTTP
status it maps to.
"""
from typing import Optional


PROBLEM_TYPE_BASE_URL = "https://api.checkin.local/problems"


class AppError(Exception):
    code = "INTERNAL_ERROR"
    title = "Internal Server Error"
    status_code = 500
    retriable = False

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.code}: {self.message}: {self.cause}"
        return f"{self.code}: {self.message}"

    @property
    def type_url(self) -> str:
        return f"{PROBLEM_TYPE_BASE_URL}/{self.code.lower().replace('_', '-')}"

    def to_problem(self) -> dict:
        """Render as an RFC 9457 problem details body."""
        return {
            "type": self.type_url,
            "title": self.title,
            "status": self.status_code,
            "detail": self.message,
            "code": self.code,
        }


class NotFoundError(AppError):
    code = "NOT_FOUND"
    title = "Resource Not Found"
    status_code = 404


class BadRequestError(AppError):
    code = "BAD_REQUEST"
    title = "Bad Request"
    status_code = 400


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    title = "Unauthorized"
    status_code = 401


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    title = "Forbidden"
    status_code = 403


class MethodNotAllowedError(AppError):
    code = "METHOD_NOT_ALLOWED"
    title = "Method Not Allowed"
    status_code = 405


class ConflictError(AppError):
    code = "CONFLICT"
    title = "Conflict"
    status_code = 409


class DuplicateCheckinError(ConflictError):
    """Raised by the check-in gateway when the (event, participant) unique
    constraint rejects an insert."""

    def __init__(self, message: str = "participant has already checked in", *, cause=None):
        super().__init__(message, cause=cause)


class DomainValidationError(AppError):
    code = "VALIDATION_ERROR"
    title = "Validation Error"
    status_code = 400


class InvalidStatusTransitionError(DomainValidationError):
    def __init__(self, current: str, target: str):
        super().__init__(f"invalid event status transition: {current} -> {target}")
        self.current = current
        self.target = target


class InternalError(AppError):
    pass


class RequestCancelledError(AppError):
    """The caller cancelled or its deadline passed. Safe to retry."""

    code = "REQUEST_CANCELLED"
    title = "Request Cancelled"
    status_code = 503
    retriable = True
