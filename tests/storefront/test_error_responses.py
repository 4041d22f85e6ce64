"""Tests covering the helper utilities that construct error responses."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import OperationalError

from storefront.schemas.error import ErrorType
from storefront.services.favorites import AuthError, ConnectivityError
from storefront.utils import error_responses
from storefront.utils.error_responses import (
    build_error_response,
    build_validation_error_response,
    describe_error,
    to_json_response,
)
from storefront.utils.request_context import clear_request_id, set_request_id


def _freeze_timestamp(monkeypatch: pytest.MonkeyPatch, fixed: datetime) -> None:
    monkeypatch.setattr(error_responses, "_current_timestamp", lambda: fixed)


def test_build_validation_error_response_includes_context_metadata(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The helper should embed the request ID and a timezone-aware timestamp."""

    fixed_timestamp = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
    _freeze_timestamp(monkeypatch, fixed_timestamp)

    token = set_request_id("req-123")
    try:
        response = build_validation_error_response(
            [
                {
                    "loc": ("body", "product_ids"),
                    "msg": "List should have at least 1 item after validation",
                    "input": [],
                }
            ],
            path="/favorites/alice",
        )
    finally:
        clear_request_id(token)

    assert response.request_id == "req-123"
    assert response.timestamp == fixed_timestamp
    assert response.error_type is ErrorType.VALIDATION_ERROR
    assert response.status_code == 422
    assert response.detail == "1 validation error(s)"
    assert response.errors[0].field == "body.product_ids"
    assert response.errors[0].value == []


def test_build_error_response_without_request_context(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fixed_timestamp = datetime(2024, 6, 1, tzinfo=UTC)
    _freeze_timestamp(monkeypatch, fixed_timestamp)

    response = build_error_response(
        ConnectivityError("connection refused"), path="/favorites/alice"
    )

    assert response.request_id is None
    assert response.status_code == 503
    assert response.retry_after == 5
    payload = response.model_dump(mode="json")
    assert payload["error_type"] == "remote_unavailable"
    assert payload["timestamp"].startswith("2024-06-01T00:00:00")


def test_explicit_request_id_wins_over_context() -> None:
    token = set_request_id("from-context")
    try:
        response = build_error_response(
            AuthError("rejected"), path="/favorites/alice", request_id="explicit"
        )
    finally:
        clear_request_id(token)

    assert response.request_id == "explicit"
    assert response.status_code == 401
    assert response.retry_after is None


@pytest.mark.parametrize(
    ("exc", "error_type", "status_code"),
    [
        (ConnectivityError("down"), ErrorType.REMOTE_UNAVAILABLE, 503),
        (AuthError("denied"), ErrorType.AUTHENTICATION_ERROR, 401),
        (
            OperationalError("SELECT 1", {}, Exception("gone")),
            ErrorType.DATABASE_ERROR,
            500,
        ),
        (KeyError("missing"), ErrorType.INTERNAL_ERROR, 500),
    ],
)
def test_describe_error_follows_exception_hierarchy(
    exc: BaseException, error_type: ErrorType, status_code: int
) -> None:
    entry = describe_error(exc)

    assert entry.error_type is error_type
    assert entry.status_code == status_code


def test_unknown_errors_name_the_exception_type() -> None:
    entry = describe_error(KeyError("missing"))

    assert entry.detail == "An unexpected error occurred: KeyError"
    assert entry.retry_after == 5


def test_to_json_response_uses_envelope_status() -> None:
    response = to_json_response(
        build_error_response(AuthError("denied"), path="/favorites/alice")
    )

    assert response.status_code == 401
    assert json.loads(response.body.decode())["path"] == "/favorites/alice"
