"""
Shared error handling for the Tattler restaurant directory.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from .logging import get_request_id


class ErrorResponse(BaseModel):
    """Standard error response format."""

    status: str
    code: str
    message: str
    details: Dict[str, Any] = {}
    request_id: Optional[str] = None


class TattlerException(Exception):
    """Base exception for the directory service.

    ``status_code`` is the HTTP status the error surfaces as. 4xx errors are
    reported with ``status: "fail"``, everything else with ``status: "error"``.
    """

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            status=self.status,
            code=self.code,
            message=self.message,
            details=self.details,
            request_id=get_request_id(),
        )


class ValidationError(TattlerException):
    """A required parameter is missing or out of domain."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(TattlerException):
    """The referenced entity does not exist."""

    status_code = 404

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class DuplicateError(TattlerException):
    """The entity already exists for the caller."""

    status_code = 400

    def __init__(self, message: str = "Resource already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__("DUPLICATE_ERROR", message, details)


class ServiceError(TattlerException):
    """Service-related errors."""

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)


def internal_error_response() -> ErrorResponse:
    """Generic body for unexpected failures; never carries internal detail."""
    return ErrorResponse(
        status="error",
        code="INTERNAL_ERROR",
        message="Internal server error",
        request_id=get_request_id(),
    )
