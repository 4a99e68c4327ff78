"""Structured JSON logging for the Movie Catalog API.

``configure_logging()`` is called once when the application is created. After
that every ``logging.getLogger(__name__)`` record is written to stdout as one
JSON object per line, with any ``extra=`` fields merged in.

``RequestIdMiddleware`` tags each request with an ``X-Request-ID`` (taken from
the incoming header or generated), exposes it to the formatter through a
context variable, and writes one access record per request. When the request
was authenticated with an API key the access record carries ``api_key_id``;
the plaintext key is never logged.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Attributes every LogRecord has; anything else came from ``extra=``.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Loggers that are noisy at INFO and duplicate our access log
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine")


def get_request_id() -> str:
    """Return the current request ID, or an empty string outside a request."""
    return _request_id_var.get()


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            payload["request_id"] = request_id

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                payload[key] = value

        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO") -> None:
    """Route all logging through a single JSON handler on stdout.

    Args:
        level: Root level name, e.g. ``"INFO"`` or ``"DEBUG"``. Unknown names
            fall back to INFO.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request ID for the duration of the request and log the outcome."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self._header_name) or uuid.uuid4().hex
        token = _request_id_var.set(request_id)
        start = time.monotonic()

        try:
            response = await call_next(request)
        finally:
            duration_ms = round((time.monotonic() - start) * 1000, 1)
            _request_id_var.reset(token)

        response.headers[self._header_name] = request_id

        extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        api_key = getattr(request.state, "api_key", None)
        if api_key is not None:
            extra["api_key_id"] = api_key.api_key_id

        logging.getLogger("app.access").info(
            "%s %s %s", request.method, request.url.path, response.status_code, extra=extra
        )
        return response
