from __future__ import annotations

import time
from typing import Any, Generic, TypeVar
from uuid import uuid4

from fastapi import Request
from pydantic import BaseModel, Field


API_VERSION = "v1"

T = TypeVar("T")


class ResponseMeta(BaseModel):
    request_id: str
    api_version: str = Field(default=API_VERSION)
    # Server-side handling time up to envelope creation.
    elapsed_ms: float | None = None
    # Item count for list payloads (tables, activity entries).
    count: int | None = None


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class SuccessEnvelope(BaseModel, Generic[T]):
    data: T
    meta: ResponseMeta


class ErrorEnvelope(BaseModel):
    error: ErrorDetail
    meta: ResponseMeta


def mark_request_start(request: Request, request_id: str) -> None:
    request.state.request_id = request_id
    request.state.started_at = time.monotonic()


def _meta(request: Request, *, count: int | None = None) -> dict[str, Any]:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        # Requests that bypass the context middleware still get an id.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
    started_at = getattr(request.state, "started_at", None)
    elapsed_ms = round((time.monotonic() - started_at) * 1000.0, 2) if started_at is not None else None
    meta = ResponseMeta(request_id=request_id, elapsed_ms=elapsed_ms, count=count)
    return meta.model_dump(exclude_none=True)


def success_response(*, request: Request, data: Any) -> dict[str, Any]:
    count = len(data) if isinstance(data, list) else None
    return {"data": data, "meta": _meta(request, count=count)}


def error_response(
    *,
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error = ErrorDetail(code=code, message=message, details=details)
    return {"error": error.model_dump(exclude_none=True), "meta": _meta(request)}
