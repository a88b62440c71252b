from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    INTERNAL = "internal"


HTTP_STATUS = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 422,
    ErrorKind.INTERNAL: 500,
}


class ScoutingError(Exception):
    """Base for every error the service surfaces to a caller."""

    kind = ErrorKind.INTERNAL
    default_message = "Internal server error"

    def __init__(self, message: str = None, reason: Optional[str] = None):
        self.message = message or self.default_message
        self.reason = reason
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self) -> dict:
        body = {'error': self.message, 'kind': self.kind.value}
        if self.reason:
            body['reason'] = self.reason
        return body


class Unauthenticated(ScoutingError):
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Authentication required"


class Forbidden(ScoutingError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Operation not permitted"


class NotFound(ScoutingError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class Conflict(ScoutingError):
    kind = ErrorKind.CONFLICT
    default_message = "Resource already exists"


class ValidationFailed(ScoutingError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid payload"


class InternalFault(ScoutingError):
    kind = ErrorKind.INTERNAL

    def to_dict(self) -> dict:
        # Never leak the underlying failure.
        return {'error': self.default_message, 'kind': self.kind.value}


ERRORS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: Unauthenticated,
    ErrorKind.FORBIDDEN: Forbidden,
    ErrorKind.NOT_FOUND: NotFound,
    ErrorKind.CONFLICT: Conflict,
    ErrorKind.VALIDATION: ValidationFailed,
    ErrorKind.INTERNAL: InternalFault,
}


def error_for(kind: ErrorKind, message: str = None, reason: str = None) -> ScoutingError:
    return ERRORS_BY_KIND[kind](message, reason=reason)
