"""
core/errors.py -- The error taxonomy shared by every layer.

Each failure a caller can observe belongs to exactly one ErrorKind. The kind
set is the contract; the HTTP status for each kind is fixed here so the api/
layer does not re-decide it per route.

Propagation:
  auth/policy.py produces only AUTHENTICATION_REQUIRED and FORBIDDEN.
  Route handlers raise NOT_FOUND before consulting the policy.
  Anything that is not an AppError is an unexpected collaborator failure and
  is rendered as INTERNAL by the catch-all handler in api/main.py.

Layer rule: core/ is the kernel. No imports from api/, auth/, or blog/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    AUTHENTICATION_REQUIRED = "authentication_required"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    INTERNAL = "internal_error"


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION_REQUIRED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class AppError(Exception):
    """Base class for failures that map onto an ErrorKind.

    Subclasses pin the kind and a default message; callers may pass a more
    specific message, which is shown to the client verbatim.
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]


class AuthenticationRequired(AppError):
    kind = ErrorKind.AUTHENTICATION_REQUIRED
    default_message = "Authentication required."


class Forbidden(AppError):
    kind = ErrorKind.FORBIDDEN
    default_message = "You do not have permission to perform this action."


class NotFound(AppError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found."


class ValidationFailed(AppError):
    kind = ErrorKind.VALIDATION_ERROR
    default_message = "Request validation failed."


class Conflict(AppError):
    kind = ErrorKind.CONFLICT
    default_message = "Resource already exists."


_BY_KIND: dict[ErrorKind, type[AppError]] = {
    ErrorKind.AUTHENTICATION_REQUIRED: AuthenticationRequired,
    ErrorKind.FORBIDDEN: Forbidden,
    ErrorKind.NOT_FOUND: NotFound,
    ErrorKind.VALIDATION_ERROR: ValidationFailed,
    ErrorKind.CONFLICT: Conflict,
    ErrorKind.INTERNAL: AppError,
}


def error_for(kind: ErrorKind, message: str | None = None) -> AppError:
    """Build the AppError subclass instance for a given kind."""
    return _BY_KIND[kind](message)
