"""
Domain error taxonomy

Every engine failure is raised as one of these and mapped to the response
envelope by the handlers in app.core.errors.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    status_code: int = 400
    code: str = "ERROR"
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed dates, non-positive day counts, missing fields."""
    status_code = 422
    code = "VALIDATION"
    default_message = "Invalid request data"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION"
    default_message = "Could not validate credentials"


class AuthorizationError(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    """
    Resource absent or owned by another company.

    Both cases share this class and message so that cross-tenant existence
    is never revealed.
    """
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class EmployeeNotFoundError(NotFoundError):
    default_message = "Employee not found"


class RoleNotFoundError(NotFoundError):
    default_message = "Role not found"


class CrossCompanyReferenceError(NotFoundError):
    pass


class InvalidStateTransitionError(AppError):
    status_code = 409
    code = "INVALID_STATE"
    default_message = "Operation not allowed in the current state"


class ConcurrencyConflictError(AppError):
    """Optimistic check lost a race; the caller may retry."""
    status_code = 409
    code = "CONFLICT"
    default_message = "The resource was modified concurrently, please retry"


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL"
    default_message = "Internal server error"
