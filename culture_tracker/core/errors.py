"""
Custom exception hierarchy for Culture Tracker.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Store-layer errors (`StoreError` and subclasses) are raised by the file
stores and propagate unchanged through the services; the transport layer
maps them to 5xx responses. Missing files are not errors: `read` returns
None and callers decide whether to initialize.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class CultureTrackerException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class SubmissionValidationError(CultureTrackerException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        super().__init__(
            message=message,
            details={"errors": [{"field": field, "message": message, "type": "value_error"}]},
        )
        self.field = field


class DuplicateSubmissionError(CultureTrackerException):
    http_status = status.HTTP_409_CONFLICT
    code = "DUPLICATE_SUBMISSION"

    def __init__(self, name: str, day: date):
        super().__init__(
            message=f"{name} has already submitted a rating for {day}.",
            details={"name": name, "day": str(day)},
        )


class WriteConflictError(CultureTrackerException):
    http_status = status.HTTP_409_CONFLICT
    code = "WRITE_CONFLICT"

    def __init__(self, path: str, attempts: int):
        super().__init__(
            message=(
                f"{path} was changed by another submission. "
                "Please try again in a moment."
            ),
            details={"path": path, "attempts": attempts},
        )


class ConfigError(CultureTrackerException):
    code = "CONFIG_ERROR"

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(
            message=message,
            details={"missing": missing} if missing else {},
        )


class StoreError(CultureTrackerException):
    """Any failure of the backing file store that is not one of the subclasses."""
    code = "STORE_ERROR"

    def __init__(self, message: str, path: str | None = None, upstream_status: int | None = None):
        details: dict[str, Any] = {}
        if path:
            details["path"] = path
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        super().__init__(message=message, details=details)
        self.path = path
        self.upstream_status = upstream_status


class VersionConflictError(StoreError):
    """The expected version is stale, or a create found the file already present."""
    http_status = status.HTTP_409_CONFLICT
    code = "VERSION_CONFLICT"


class AuthFailureError(StoreError):
    code = "STORE_AUTH_FAILURE"


class TransientStoreError(StoreError):
    """Network, timeout, rate-limit or upstream 5xx. Safe to retry with backoff."""
    code = "STORE_UNAVAILABLE"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def culture_tracker_exception_handler(
    request: Request, exc: CultureTrackerException
) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 400 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
