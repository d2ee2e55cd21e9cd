"""
Structured Logging Middleware

JSON request logging with request ids, timing and the organization each
request was resolved to.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# Context variables for per-request log fields
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
organization_id_var: ContextVar[int | None] = ContextVar("organization_id", default=None)

_EXTRA_FIELDS = (
    "organization_id",
    "user_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_ip",
)


class RequestIdFilter(logging.Filter):
    """Logging filter adding request and organization ids to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        if not hasattr(record, "organization_id"):
            organization_id = organization_id_var.get()
            if organization_id is not None:
                record.organization_id = organization_id
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if "X-Real-IP" in request.headers:
        return request.headers["X-Real-IP"]
    return request.client.host if request.client else "unknown"


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Writes one access line per request and echoes ``X-Request-ID``.

    The organization id is read from ``request.state`` where the
    organization-context dependency leaves it.
    """

    quiet_paths = frozenset({"/health"})

    def __init__(self, app: ASGIApp, logger_name: str = "contentflow.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request_id_var.set(request_id)
        organization_id_var.set(None)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            self.access(request, 500, started, error=exc)
            raise

        response.headers["X-Request-ID"] = request_id
        self.access(request, response.status_code, started)
        return response

    def access(
        self,
        request: Request,
        status_code: int,
        started: float,
        error: Exception | None = None,
    ) -> None:
        if request.url.path in self.quiet_paths:
            return

        elapsed = round((time.perf_counter() - started) * 1000, 2)
        fields = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": elapsed,
            "client_ip": client_address(request),
        }
        organization_id = getattr(request.state, "organization_id", None)
        if organization_id is not None:
            fields["organization_id"] = organization_id

        level = logging.INFO if status_code < 400 else logging.WARNING if status_code < 500 else logging.ERROR
        if error is None:
            self.logger.log(level, "%s %s %d %.2fms", request.method, request.url.path, status_code, elapsed, extra=fields)
        else:
            self.logger.log(
                level,
                "%s %s failed after %.2fms: %r",
                request.method,
                request.url.path,
                elapsed,
                error,
                extra=fields,
            )


def setup_structured_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """Replace the root handlers with one handler carrying request and organization ids."""
    level = logging.getLevelName(log_level.upper())
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler: logging.Handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(
        StructuredFormatter()
        if json_format
        else logging.Formatter("%(asctime)s %(levelname)-7s %(name)s [%(request_id)s] %(message)s")
    )
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    for name in ("app", "contentflow.access"):
        logging.getLogger(name).setLevel(level)
    for name in ("apscheduler", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)
