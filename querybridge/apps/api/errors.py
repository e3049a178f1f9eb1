from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from querybridge.apps.api.response import error_response
from querybridge.core.errors import (
    DatabaseError,
    DriverUnavailableError,
    ExternalConnectionError,
    GenericExecutionError,
    IntrospectionError,
    IntrospectionTimeoutError,
    InvalidConnectionConfigError,
    OrganizationNotFoundError,
    QueryBridgeError,
    StatementRejectedError,
    TargetObjectMissing,
    UnsafeStatementRejected,
)


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}

# Most specific first; the first isinstance match wins.
_DOMAIN_STATUS: list[tuple[type[QueryBridgeError], int, str]] = [
    (StatementRejectedError, 400, "STATEMENT_REJECTED"),
    (TargetObjectMissing, 400, "TARGET_OBJECT_MISSING"),
    (InvalidConnectionConfigError, 422, "INVALID_CONNECTION_CONFIG"),
    (OrganizationNotFoundError, 404, "ORG_NOT_FOUND"),
    (ExternalConnectionError, 502, "EXTERNAL_CONNECTION_FAILED"),
    (IntrospectionError, 502, "INTROSPECTION_FAILED"),
    (GenericExecutionError, 500, "QUERY_EXECUTION_FAILED"),
    (DatabaseError, 500, "DATABASE_ERROR"),
]


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Extract code/message/details from FastAPI HTTPException detail payloads.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


def map_domain_error(exc: QueryBridgeError) -> tuple[int, str, dict[str, Any] | None]:
    """Resolve status code, error code and details for a domain exception."""
    for exc_type, status_code, code in _DOMAIN_STATUS:
        if not isinstance(exc, exc_type):
            continue
        details: dict[str, Any] | None = None
        if isinstance(exc, StatementRejectedError):
            code = exc.code
            if isinstance(exc, UnsafeStatementRejected) and exc.keyword:
                details = {"keyword": exc.keyword}
        elif isinstance(exc, TargetObjectMissing):
            details = {"hint": "resync_schema"}
        elif isinstance(exc, IntrospectionTimeoutError):
            details = {"reason": "introspection_timeout"}
        elif isinstance(exc, DriverUnavailableError):
            details = {"reason": "driver_unavailable"}
        elif isinstance(exc, GenericExecutionError) and exc.detail:
            details = {"detail": exc.detail}
        return status_code, code, details
    return 500, "INTERNAL_ERROR", None


async def domain_exception_handler(request: Request, exc: QueryBridgeError) -> JSONResponse:
    status_code, code, details = map_domain_error(exc)
    if status_code >= 500:
        logger.warning("request_failed path=%s code=%s error=%s", request.url.path, code, type(exc).__name__)
    message = str(exc) if code != "INTERNAL_ERROR" else "Internal server error"
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=status_code)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Ensure Starlette-raised exceptions (404 on unknown paths) are wrapped too.
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Surface validation errors with structured details for UI/SDK parsing.
    payload = error_response(
        request=request,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=payload, status_code=422)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.exception("request_unhandled_error path=%s", request.url.path, exc_info=exc)
    payload = error_response(
        request=request,
        code="INTERNAL_ERROR",
        message="Internal server error",
    )
    return JSONResponse(content=payload, status_code=500)
