"""
Access logging for the StockTrail API.

Every request gets a short correlation id, echoed in the X-Request-ID
response header and bound to loguru records emitted by the services while
the request runs. Access lines go through stdlib logging so they can be
rendered as JSON in non-development environments.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import FastAPI, Request, Response
from loguru import logger as service_logger
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

access_logger = logging.getLogger("stocktrail.access")

REDACTED = "[REDACTED]"

# Body keys are compared lowercased, so camelCase keys match too
SENSITIVE_KEYS = frozenset({
    "password",
    "newpassword",
    "temppassword",
    "accesstoken",
    "firstlogintoken",
    "token",
})

WRITE_METHODS = ("POST", "PUT", "DELETE")


@dataclass
class LoggingConfig:
    enabled: bool = True
    # Mutation bodies are logged redacted; only in debug
    log_request_body: bool = False
    max_body_bytes: int = 4096
    quiet_paths: frozenset = field(default_factory=lambda: frozenset({"/health", "/favicon.ico"}))
    slow_request_seconds: float = 1.5
    header: str = "X-Request-ID"


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per access line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "msg": record.getMessage(),
            "request_id": request_id_var.get() or None,
        }
        for key in ("method", "path", "status", "duration_ms", "client", "body"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def redact_sensitive_data(data: Any) -> Any:
    """Replace password and token values anywhere in a decoded JSON body."""
    if isinstance(data, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else redact_sensitive_data(v)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(v) for v in data]
    return data


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    async def _body_for_log(self, request: Request) -> Optional[str]:
        raw = await request.body()
        if not raw:
            return None
        if len(raw) > self.config.max_body_bytes:
            return f"<{len(raw)} bytes>"
        try:
            return json.dumps(redact_sensitive_data(json.loads(raw)))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return "<non-json>"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.config.header) or uuid.uuid4().hex[:8]
        request_id_var.set(request_id)
        path = request.url.path

        if not self.config.enabled or path in self.config.quiet_paths:
            response = await call_next(request)
            response.headers[self.config.header] = request_id
            return response

        extra = {
            "method": request.method,
            "path": path,
            "client": request.client.host if request.client else None,
        }
        if self.config.log_request_body and request.method in WRITE_METHODS:
            extra["body"] = await self._body_for_log(request)

        started = time.perf_counter()
        with service_logger.contextualize(request_id=request_id):
            response = await call_next(request)
        elapsed = time.perf_counter() - started

        response.headers[self.config.header] = request_id
        extra.update(status=response.status_code, duration_ms=round(elapsed * 1000, 2))

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400 or elapsed > self.config.slow_request_seconds:
            level = logging.WARNING
        else:
            level = logging.INFO

        access_logger.log(
            level,
            "%s %s -> %s (%sms)",
            request.method,
            path,
            response.status_code,
            extra["duration_ms"],
            extra=extra,
        )
        return response


def setup_logging(app: FastAPI, config: Optional[LoggingConfig] = None, structured: bool = True) -> None:
    """
    Install the access log middleware.

    With structured=True a JSON handler is attached to the "stocktrail"
    logger hierarchy once per process.
    """
    if structured:
        root = logging.getLogger("stocktrail")
        if not any(isinstance(h.formatter, StructuredLogFormatter) for h in root.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredLogFormatter())
            root.addHandler(handler)
            root.propagate = False
        root.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, config=config or LoggingConfig())
