"""
Typed API errors with machine-readable codes.

Plain precondition failures raise ``HTTPException`` directly; the errors
here carry a code so clients can branch on it (e.g. show an upgrade prompt
on QUOTA_EXCEEDED). Rendered as::

    {"error": {"code": ..., "message": ..., "status": ...}, "details": ...}
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

MISSING_FILE = "MISSING_FILE"
INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
FILE_TOO_LARGE = "FILE_TOO_LARGE"
CONFIG_ERROR = "CONFIG_ERROR"
INVALID_INPUT = "INVALID_INPUT"
NOT_FOUND = "NOT_FOUND"
GENERATION_ERROR = "GENERATION_ERROR"
QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
SOLE_OWNER = "SOLE_OWNER"


class ApiError(HTTPException):
    """An HTTPException that also carries an error code and optional details."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Any = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.details = details


class QuotaExceeded(ApiError):
    """Raised when a metered operation would exceed the brand's quota."""

    def __init__(self, quota_type: str, requested: int, remaining: int | None = None):
        super().__init__(
            status_code=402,
            code=QUOTA_EXCEEDED,
            message=f"Quota exceeded for {quota_type}",
            details={"quota_type": quota_type, "requested": requested, "remaining": remaining},
        )
        self.quota_type = quota_type
        self.requested = requested
        self.remaining = remaining


def config_error(feature: str) -> ApiError:
    return ApiError(
        status_code=500,
        code=CONFIG_ERROR,
        message=f"{feature} is not configured on this server",
    )


def error_body(code: str, message: str, status: int, details: Any = None) -> dict:
    body: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "status": status,
        }
    }
    if details is not None:
        body["details"] = details
    return body


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    log.warning(
        "api.error",
        code=exc.code,
        status=exc.status_code,
        path=request.url.path,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, exc.status_code, exc.details),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
