"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when the caller may not act on another club's data."""

    def __init__(self, message: str = "Access denied", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
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


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class ValidationError(AppException):
    """
    Raised when a ledger entry breaks one or more validation rules.

    Carries every violation at once so callers can show them together.
    """

    error_code = "ERR_VALIDATION_001"

    def __init__(self, errors: List[str], message: str = "Validation failed"):
        self.errors = list(errors)
        super().__init__(
            message=message,
            error_code=type(self).error_code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": self.errors}
        )


class MutualExclusivityError(ValidationError):
    """Raised when an entry would be attached to both a campaign and an event."""

    error_code = "ERR_VALIDATION_002"


class AmountCoercionError(ValidationError):
    """Raised when a stored or submitted amount is not a usable number."""

    error_code = "ERR_VALIDATION_003"

    def __init__(self, value: Any):
        self.value = value
        super().__init__([f"Amount must be a number (got {value!r})"], message="Invalid amount")


class AllocationOverrunError(AppException):
    """Raised when hard blocking is enabled and an allocation exceeds available funds."""

    def __init__(self, requested: Any, available: Any):
        super().__init__(
            message="Requested allocation exceeds funds available for allocation",
            error_code="ERR_ALLOC_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"requested": str(requested), "available": str(available)}
        )


class PartialFetchFailure(AppException):
    """Raised when a rollup needs a complete read but some sub-scopes failed."""

    def __init__(self, failed_scopes: Optional[List[str]] = None):
        self.failed_scopes = failed_scopes or []
        super().__init__(
            message="Some ledger sub-scopes could not be read",
            error_code="ERR_FETCH_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"failed_scopes": self.failed_scopes}
        )


class RecomputeFailure(AppException):
    """Raised when a summary refresh keeps failing after every retry."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException] = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            message=f"{operation} failed after {attempts} attempts",
            error_code="ERR_RECOMPUTE_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"operation": operation, "attempts": attempts, "last_error": repr(last_error)}
        )


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
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for request shape errors caught by FastAPI before our own validator runs."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
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
