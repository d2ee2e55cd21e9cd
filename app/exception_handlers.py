"""
Global Exception Handlers

Every failure leaves the API in one envelope:

{
    "error": {
        "status_code": 409,
        "error_code": "INVALID_TRANSITION",
        "message": "Cannot apply 'approve' to ContentDraft in status 'approved'",
        "type": "Conflict",
        "details": {"resource_type": "ContentDraft", "current_status": "approved", "target": "approve"},
        "path": "/api/v1/drafts/12/transitions",
        "request_id": "5f0c..."
    }
}

`error_code` separates "you lack permission" (ACCESS_DENIED) from "this
transition does not exist" (INVALID_TRANSITION) and "someone else changed
this" (CONCURRENT_MODIFICATION), which share HTTP statuses.
"""

import logging
from typing import Any, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.exceptions import ContentFlowError, ErrorCode
from app.middleware.logging import request_id_var

logger = logging.getLogger(__name__)

ERROR_TYPES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Validation Error",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}

# Error codes for exceptions raised by the framework rather than our services
HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_FAILED,
    401: ErrorCode.AUTH_FAILED,
    403: ErrorCode.ACCESS_DENIED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    422: ErrorCode.VALIDATION_FAILED,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.SERVICE_UNAVAILABLE,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def get_error_type(status_code: int) -> str:
    return ERROR_TYPES.get(status_code, "Error")


def get_http_error_code(status_code: int) -> ErrorCode:
    return HTTP_ERROR_CODES.get(status_code, ErrorCode.UNKNOWN_ERROR)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """
    Build the error envelope.

    Args:
        status_code: HTTP status code
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Structured context (resource, statuses, offending fields)
        path: Request path that caused the error
        headers: Extra response headers

    Returns:
        JSONResponse with the envelope as its body
    """
    error: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": get_error_type(status_code),
    }
    if error_code:
        error["error_code"] = error_code.value if isinstance(error_code, ErrorCode) else error_code
    if details:
        error["details"] = details
    if path:
        error["path"] = path
    request_id = request_id_var.get("")
    if request_id:
        error["request_id"] = request_id

    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


async def contentflow_exception_handler(request: Request, exc: ContentFlowError) -> JSONResponse:
    """Render errors raised by services, the tenancy resolver and auth dependencies."""
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "%s on %s %s: %s",
        exc.error_code.value,
        request.method,
        request.url.path,
        exc.message,
        extra={"status_code": exc.status_code, "path": request.url.path},
    )
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        path=request.url.path,
        headers={"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes, wrong methods and other framework-level HTTP errors."""
    logger.warning(
        "HTTP %d on %s %s: %s",
        exc.status_code,
        request.method,
        request.url.path,
        exc.detail,
        extra={"status_code": exc.status_code, "path": request.url.path},
    )
    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=get_http_error_code(exc.status_code),
        path=request.url.path,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Request bodies and query parameters that fail schema validation."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Validation error on %s: %d field(s)", request.url.path, len(errors))

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code=ErrorCode.VALIDATION_FAILED,
        details={"validation_errors": errors},
        path=request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else is a bug; log it with the traceback and hide the internals."""
    logger.error(
        "Unhandled %s on %s %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ContentFlowError, contentflow_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
