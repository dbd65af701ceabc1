"""
Shared error handling for the song listing access service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    status_code: int = Field(serialization_alias="statusCode")
    code: str
    message: str
    details: Dict[str, Any] = {}


class SongsAccessException(Exception):
    """Base exception for the song listing access service."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            status_code=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthenticationError(SongsAccessException):
    """Missing or rejected caller identity."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class InternalError(SongsAccessException):
    """Catch-all failure raised at the façade boundary."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", details: Optional[Dict[str, Any]] = None):
        super().__init__("INTERNAL_ERROR", message, details)


def as_service_error(exc: BaseException, fallback_message: str) -> SongsAccessException:
    """Pass through errors that already carry a status code, wrap the rest as 500."""
    if isinstance(exc, SongsAccessException):
        return exc

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        message = getattr(exc, "message", None) or getattr(exc, "detail", None) or str(exc)
        return SongsAccessException("UPSTREAM_ERROR", str(message), status_code=status_code)

    return InternalError(fallback_message)
