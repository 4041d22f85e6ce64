"""Translate favorites failures into the structured error envelope.

Each exception the favorites API lets escape maps to one :class:`ErrorSpec`;
handlers in :mod:`storefront.main` only log and delegate here. The request id
comes from the active request context unless one is passed explicitly.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DatabaseError

from storefront.schemas.error import (
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from storefront.services.favorites.errors import AuthError, ConnectivityError
from storefront.utils.request_context import get_request_id

__all__ = [
    "ErrorSpec",
    "build_error_response",
    "build_validation_error_response",
    "describe_error",
    "to_json_response",
]

RETRY_AFTER_SECONDS = 5


@dataclass(frozen=True)
class ErrorSpec:
    error_type: ErrorType
    status_code: int
    message: str
    detail: str
    retry_after: int | None = None


_KNOWN_ERRORS: dict[type[BaseException], ErrorSpec] = {
    ConnectivityError: ErrorSpec(
        ErrorType.REMOTE_UNAVAILABLE,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Favorites store unavailable",
        "Unable to reach the favorites database. Please try again later.",
        RETRY_AFTER_SECONDS,
    ),
    AuthError: ErrorSpec(
        ErrorType.AUTHENTICATION_ERROR,
        status.HTTP_401_UNAUTHORIZED,
        "Favorites access rejected",
        "The favorites database rejected the configured credentials.",
    ),
    DatabaseError: ErrorSpec(
        ErrorType.DATABASE_ERROR,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Database operation failed",
        "An error occurred while accessing the favorites database.",
    ),
}


def _current_timestamp() -> datetime:
    """Timezone-aware "now"; tests monkeypatch it for stable payloads."""

    return datetime.now(UTC)


def describe_error(exc: BaseException) -> ErrorSpec:
    """Return the envelope settings for ``exc``, falling back to a retryable 500."""

    for cls in type(exc).__mro__:
        entry = _KNOWN_ERRORS.get(cls)
        if entry is not None:
            return entry
    return ErrorSpec(
        ErrorType.INTERNAL_ERROR,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        f"An unexpected error occurred: {type(exc).__name__}",
        RETRY_AFTER_SECONDS,
    )


def build_error_response(
    exc: BaseException,
    *,
    path: str,
    request_id: str | None = None,
) -> ErrorResponse:
    entry = describe_error(exc)
    return ErrorResponse(
        error_type=entry.error_type,
        message=entry.message,
        detail=entry.detail,
        status_code=entry.status_code,
        timestamp=_current_timestamp(),
        request_id=request_id or get_request_id() or None,
        path=path,
        retry_after=entry.retry_after,
    )


def build_validation_error_response(
    errors: Sequence[Mapping[str, Any]],
    *,
    path: str,
    request_id: str | None = None,
) -> ValidationErrorResponse:
    """Flatten pydantic error dicts (``loc``/``msg``/``input``) into the envelope."""

    details = [
        ValidationErrorDetail(
            field=".".join(str(part) for part in error.get("loc", ())),
            message=error.get("msg", ""),
            value=error.get("input"),
        )
        for error in errors
    ]
    return ValidationErrorResponse(
        message="Request validation failed",
        detail=f"{len(details)} validation error(s)",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        timestamp=_current_timestamp(),
        request_id=request_id or get_request_id() or None,
        path=path,
        errors=details,
    )


def to_json_response(error: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=error.model_dump(mode="json"),
    )
