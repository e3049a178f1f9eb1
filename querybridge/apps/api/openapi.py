from __future__ import annotations

from typing import Any

from querybridge.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1", "elapsed_ms": 1.7},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _response(description: str, example: dict[str, Any]) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": example}},
    }


DEFAULT_ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    400: _response(
        "Bad request",
        _error_example(
            code="UNSAFE_STATEMENT",
            message="Query contains forbidden keyword: DELETE",
            details={"keyword": "delete"},
        ),
    ),
    401: _response(
        "Unauthorized",
        _error_example(code="AUTH_UNAUTHORIZED", message="X-Org-Id and X-User-Id headers are required"),
    ),
    404: _response("Not found", _error_example(code="NOT_FOUND", message="Resource not found")),
    422: _response(
        "Validation error",
        _error_example(
            code="INVALID_CONNECTION_CONFIG",
            message="invalid postgres connection parameters: host",
        ),
    ),
    500: _response("Internal server error", _error_example(code="INTERNAL_ERROR", message="Internal server error")),
    502: _response(
        "External database unreachable",
        _error_example(code="EXTERNAL_CONNECTION_FAILED", message="could not connect to postgres"),
    ),
}
