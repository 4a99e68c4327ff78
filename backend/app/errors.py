"""Error types and the handlers that render them.

Every error response uses the same envelope::

    {"statusCode": 401, "message": "Invalid API key", "timestamp": "..."}

Validation failures add an ``errors`` list of ``{field, message}`` items.
Unexpected exceptions are logged with their traceback and rendered as a
generic 500 so internal error text never reaches the client.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base error that maps directly to an HTTP status."""

    status_code: int = 500
    message: str = "internal server error"

    def __init__(
        self,
        message: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.headers = headers or {}
        super().__init__(self.message)


class ValidationError(ApiError):
    """Malformed request input (400)."""

    status_code = 400
    message = "Validation failed"

    def __init__(
        self,
        errors: list[dict[str, str]],
        message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors


class AuthenticationError(ApiError):
    """Missing or unknown credentials (401)."""

    status_code = 401
    message = "Unauthorized"


class AuthorizationError(ApiError):
    """Credentials recognised but not usable: revoked or expired (403)."""

    status_code = 403
    message = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    message = "Not found"


class QuotaExceededError(ApiError):
    """Rate limit exceeded (429). Clients should back off, not re-authenticate."""

    status_code = 429
    message = "Rate limit exceeded. Please try again later."


class DependencyError(ApiError):
    """A backing service (the database) failed while serving the request (500)."""

    status_code = 500
    message = "internal server error"


def error_envelope(status_code: int, message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "statusCode": status_code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    body.update(extra)
    return body


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``{field, message}`` pairs.

    The leading location segment (``body``, ``query``, ``path``) is dropped so
    ``("body", "email")`` becomes ``"email"``.
    """
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())[1:]]
        message = err.get("msg", "Invalid value")
        # Messages raised from our own validators are already user-facing
        if err.get("type") == "value_error" and "error" in err.get("ctx", {}):
            message = str(err["ctx"]["error"])
        errors.append({"field": ".".join(loc) or "body", "message": message})
    return errors


def _pending_usage_tasks(request: Request):
    """Side effects scheduled by a successful authentication, if any."""
    return getattr(request.state, "usage_tasks", None)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that render every failure in the standard envelope."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        extra = {"errors": exc.errors} if isinstance(exc, ValidationError) else {}
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(exc.status_code, exc.message, **extra),
            headers=exc.headers or None,
            background=_pending_usage_tasks(request),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = _field_errors(exc)
        logger.info(
            "Request validation failed",
            extra={"path": request.url.path, "fields": [e["field"] for e in errors]},
        )
        return JSONResponse(
            status_code=400,
            content=error_envelope(400, ValidationError.message, errors=errors),
            background=_pending_usage_tasks(request),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(exc.status_code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
            background=_pending_usage_tasks(request),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled exception",
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(
            status_code=500,
            content=error_envelope(500, ApiError.message),
            background=_pending_usage_tasks(request),
        )
