# common/errors.py
"""
Application error taxonomy.

Services raise these; the DRF exception handler in common.responses turns
them into the response envelope. Each error knows its HTTP status so views
never map errors by hand.

    ValidationError     400  client-fixable, carries every field error
    AuthorizationError  401/403  Unauthenticated -> 401, otherwise 403
    NotFoundError       404
    ConflictError       409  unique constraint violated
    DependencyError     502  downstream collaborator failed
    InternalError       500
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class FieldError:
    field: str
    error: str

    def to_dict(self) -> dict:
        return asdict(self)


class DenyReason(str, Enum):
    UNAUTHENTICATED = "Unauthenticated"
    INSUFFICIENT_ROLE = "InsufficientRole"
    NOT_OWNER = "NotOwner"


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, detail=None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def diagnostic(self):
        """Extra detail exposed in the envelope's `error` field (non-production only)."""
        return self.detail


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors: List[FieldError], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message)

    def diagnostic(self):
        return [e.to_dict() for e in self.errors]


class AuthorizationError(AppError):
    default_message = "You are not allowed to perform this action"

    def __init__(self, reason: DenyReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message, detail={"reason": reason.value})

    @property
    def status_code(self) -> int:
        return 401 if self.reason == DenyReason.UNAUTHENTICATED else 403


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"

    def __init__(self, message: Optional[str] = None, fields: Optional[List[str]] = None):
        self.fields = list(fields or [])
        super().__init__(message, detail={"fields": self.fields})


class DependencyError(AppError):
    status_code = 502
    default_message = "A downstream service failed"


class InternalError(AppError):
    status_code = 500
