"""
errors.py – Error taxonomy for the API
Each error knows the HTTP status and machine-readable code it maps to, so the
router can turn any of them into the JSON error envelope.
"""

from typing import Optional


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    code        = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        error = {"message": self.message, "code": self.code}
        if self.details:
            error["details"] = self.details
        return error


class ValidationError(ApiError):
    status_code = 400
    code        = "VALIDATION_ERROR"


class AuthenticationError(ApiError):
    status_code = 401
    code        = "UNAUTHORIZED"


class AuthorizationError(ApiError):
    """Raised by the stores when the acting user does not own the record."""

    status_code = 403
    code        = "FORBIDDEN"


class NotFoundError(ApiError):
    status_code = 404
    code        = "NOT_FOUND"


class ConflictError(ApiError):
    status_code = 409
    code        = "CONFLICT"
