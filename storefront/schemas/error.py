"""Error envelope returned by the favorites HTTP surface."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    """Categories of failures exposed to API clients."""

    VALIDATION_ERROR = "validation_error"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    AUTHENTICATION_ERROR = "authentication_error"
    DATABASE_ERROR = "database_error"
    INTERNAL_ERROR = "internal_error"


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_type": "remote_unavailable",
                "message": "Favorites store unavailable",
                "detail": "Remote favorites fetch failed for user-1",
                "status_code": 503,
                "timestamp": "2025-11-03T10:30:00Z",
                "request_id": "5b0e6c9e-0c1a-4c55-9f1b-2f8f5c1f4d1a",
                "path": "/favorites/user-1",
                "retry_after": 5,
            }
        }
    )

    error_type: ErrorType = Field(..., description="Category of error")
    message: str = Field(..., description="Human-readable error message")
    detail: str | None = Field(None, description="Additional error details or context")
    status_code: int = Field(..., description="HTTP status code")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When error occurred"
    )
    request_id: str | None = Field(None, description="Correlation id of the request")
    path: str | None = Field(None, description="Request path that caused the error")
    retry_after: int | None = Field(
        None, description="Seconds to wait before retrying transient failures"
    )


class ValidationErrorDetail(BaseModel):
    """A single rejected field."""

    field: str = Field(..., description="Dotted location of the offending field")
    message: str = Field(..., description="Validation error message")
    value: Any = Field(None, description="Value that failed validation")


class ValidationErrorResponse(ErrorResponse):
    """Error envelope carrying per-field validation failures."""

    error_type: ErrorType = Field(default=ErrorType.VALIDATION_ERROR)
    errors: list[ValidationErrorDetail] = Field(
        default_factory=list, description="List of validation errors"
    )
