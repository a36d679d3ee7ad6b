"""Global exception handlers for consistent error responses.

Every error body has the same shape:

    {"error": "<STABLE_CODE>", "message": "...", "timestamp": "<ISO-8601>",
     "correlation_id": "..."}

plus ``fieldErrors`` for validation failures and ``retryAfter`` for rate
limiting.

Design:
- AppError subclasses → 400 / 401 / 429 / 500 by type
- RequestValidationError → ValidationAppError → 400 VALIDATION_FAILED
- Starlette HTTPException (404, 405, malformed Basic header) → its status
  with a stable code
- Unexpected Exception → generic 500 (safety net, no internals leaked)
"""

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.dependencies import get_settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    GenerationAppError,
    RateLimitAppError,
    ValidationAppError,
)
from app.core.logging import get_correlation_id, utc_timestamp

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "RATE_LIMIT_EXCEEDED",
}


def _error_body(code: str, message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "error": code,
        "message": message,
        "timestamp": utc_timestamp(),
    }
    correlation_id = get_correlation_id()
    if correlation_id:
        body["correlation_id"] = correlation_id
    body.update(extra)
    return body


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 401
    if isinstance(exc, RateLimitAppError):
        return 429
    if isinstance(exc, GenerationAppError):
        return 500
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to HTTP status codes:
    - ValidationAppError → 400 Bad Request
    - AuthenticationAppError → 401 Unauthorized (with WWW-Authenticate)
    - RateLimitAppError → 429 Too Many Requests (with Retry-After)
    - GenerationAppError → 500 Internal Server Error
    """
    status_code = _status_for(exc)
    details = exc.details or {}

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    extra: dict[str, Any] = {}
    headers: dict[str, str] = {}

    if isinstance(exc, AuthenticationAppError):
        headers["WWW-Authenticate"] = "Basic"
    elif isinstance(exc, RateLimitAppError):
        cfg = get_settings(request).app
        extra["retryAfter"] = cfg.rate_limit_refill_seconds
        if cfg.rate_limit_include_headers:
            headers["Retry-After"] = str(details.get("retry_after", cfg.rate_limit_refill_seconds))
            if "limit" in details:
                headers["X-RateLimit-Limit"] = str(details["limit"])
            if "remaining" in details:
                headers["X-RateLimit-Remaining"] = str(details["remaining"])
            if "reset_at" in details:
                headers["X-RateLimit-Reset"] = str(details["reset_at"])
    elif "field_errors" in details:
        extra["fieldErrors"] = details["field_errors"]

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, **extra),
        headers=headers or None,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Translate FastAPI/Pydantic request validation failures into ValidationAppError.

    ``fieldErrors`` maps each offending field name to its first error message.
    Missing and mistyped parameters share the VALIDATION_FAILED code.
    """
    field_errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("query", "body", "path", "header")]
        field = ".".join(loc) or "request"
        field_errors.setdefault(field, error.get("msg", "Invalid value"))

    return await app_error_handler(
        request,
        ValidationAppError(
            code="VALIDATION_FAILED",
            message="Request validation failed",
            details={"field_errors": field_errors},
        ),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Give framework-raised HTTP errors the shared error body.

    Covers unknown routes, unsupported methods and Authorization headers
    that ``HTTPBasic`` cannot decode.
    """
    status_code = exc.status_code
    code = HTTP_ERROR_CODES.get(status_code, "HTTP_ERROR")
    if isinstance(exc.detail, str) and exc.detail:
        message = exc.detail
    else:
        message = HTTPStatus(status_code).phrase

    logger.warning(
        "http_error_handled",
        extra={
            "error_code": code,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    headers = dict(exc.headers or {})
    if status_code == 401:
        headers["WWW-Authenticate"] = "Basic"

    return JSONResponse(
        status_code=status_code,
        content=_error_body(code, message),
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces or exception text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content=_error_body(
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
