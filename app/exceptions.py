# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
#
# Every error body has the same shape as a successful one:
#   {"success": false, "message": "...", "code": "..."}
# Internal details (upstream bodies, stack traces) are logged, never returned.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

# Permissive CORS headers attached to every key-lifecycle response
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


class KeyManagerException(Exception):
    """
    Base exception for the key manager API.

    All HTTP-facing exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: str = "KEY_MANAGER_ERROR",
        status_code: int = 500,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.headers = headers

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        return {
            "success": False,
            "message": self.message,
            "code": self.code,
        }


class MissingFieldsError(KeyManagerException):
    """Raised when required request fields are absent or empty."""

    def __init__(self, fields: list[str]):
        super().__init__(
            message=f"Missing required fields: {' and '.join(fields)}",
            code="MISSING_FIELDS",
            status_code=400,
        )


class InvalidFieldsError(KeyManagerException):
    """Raised when a request field is present but malformed."""

    def __init__(self, fields: list[str]):
        super().__init__(
            message=f"Invalid fields: {' and '.join(fields)}",
            code="INVALID_FIELDS",
            status_code=400,
        )


class HunterNotFoundError(KeyManagerException):
    """Raised when no profile exists for a hunter ID."""

    def __init__(self):
        super().__init__(
            message="Hunter profile not found",
            code="HUNTER_NOT_FOUND",
            status_code=404,
        )


class UnauthorizedError(KeyManagerException):
    """Raised when the cron shared secret is missing or wrong."""

    def __init__(self):
        super().__init__(
            message="Unauthorized",
            code="UNAUTHORIZED",
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
        )


class RotationFailedError(KeyManagerException):
    """Raised when a rotation batch fails at the infra level."""

    def __init__(self, message: str = "Internal server error during key rotation"):
        super().__init__(message=message, code="ROTATION_FAILED", status_code=500)


# =============================================================================
# Exception Handlers
# =============================================================================

async def key_manager_exception_handler(
    request: Request,
    exc: KeyManagerException
) -> JSONResponse:
    """Convert KeyManagerException to a JSON response."""
    headers = {**CORS_HEADERS, **(exc.headers or {})}
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """Render framework HTTP errors (404, 405, 401 ...) in the common shape."""
    message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers={**CORS_HEADERS, **(getattr(exc, "headers", None) or {})},
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors (malformed JSON, wrong types).

    Returned as 400 so clients see one status for every bad request.
    """
    logger.info(f"Rejected invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid request body",
            "code": "VALIDATION_ERROR",
        },
        headers=CORS_HEADERS,
    )
