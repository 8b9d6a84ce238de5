"""
Custom exceptions and error handlers for consistent error responses.

Provides the ledger error taxonomy and the global exception handlers.
Store-level failures are logged with their raw text but only a generic
message is returned to the caller.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from typing import Any, Dict, List

logger = logging.getLogger("ledger.errors")

GENERIC_FAILURE_MESSAGE = "Failed to save. Please try again."


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthenticatedError(AppException):
    """Raised when no valid actor can be resolved for the request."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class AlreadyVoidedError(AppException):
    """Raised when voiding an entry that is already voided."""

    def __init__(self, entry_id: int):
        super().__init__(
            message="This entry has already been voided.",
            error_code="ERR_LEDGER_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": entry_id}
        )


class AlreadyActiveError(AppException):
    """Raised when restoring an entry that is not voided."""

    def __init__(self, entry_id: int):
        super().__init__(
            message="This entry is already active.",
            error_code="ERR_LEDGER_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": entry_id}
        )


class InventoryAlreadyConsumedError(AppException):
    """Raised when an inventory-backed entry has consumption or transfer records."""

    def __init__(self, entry_id: int):
        super().__init__(
            message=(
                "This item has already been used or transferred. "
                "Reverse those records before voiding the entry."
            ),
            error_code="ERR_LEDGER_003",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": entry_id}
        )


class GuardUnavailableError(AppException):
    """Raised when the inventory consumption check itself fails."""

    def __init__(self, entry_id: int):
        super().__init__(
            message="Could not verify inventory usage. Please try again.",
            error_code="ERR_LEDGER_004",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"id": entry_id}
        )


class ValidationFailureError(AppException):
    """Raised for malformed input. Carries per-field messages."""

    def __init__(self, fields: Dict[str, List[str]]):
        first = next(iter(fields.values()), ["Invalid input"])
        super().__init__(
            message=first[0] if first else "Invalid input",
            error_code="ERR_VALIDATION",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"fields": fields}
        )
        self.fields = fields


class RateLimitExceededError(AppException):
    """Raised when a client exceeds the public verification rate limit."""

    def __init__(self):
        super().__init__(
            message="Too many attempts. Please try again in a minute.",
            error_code="ERR_RATE_LIMIT",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS
        )


def flatten_validation_errors(errors: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Collapse pydantic error dicts into {field: [messages]}."""
    fields: Dict[str, List[str]] = {}
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        # Discriminated unions prefix the location with the tag value
        field = loc[-1] if loc else "__root__"
        fields.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return fields


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors. Field messages are echoed back."""
    fields = flatten_validation_errors(exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {"fields": fields}
        }
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handler for store failures. Raw error text stays in the server log."""
    logger.error(
        "Database error on %s %s: %s", request.method, request.url.path, exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_DATABASE",
            "message": GENERIC_FAILURE_MESSAGE,
            "details": {}
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
