"""
Custom exceptions and error handlers for consistent error responses.

Every custody failure is recoverable at the call site. The handlers surface
the specific reason (guard, resource, verification kind) so a client can tell
a lost race from a genuine mistake.
"""

import enum
import logging
from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class TransitionGuard(str, enum.Enum):
    """Guards a transition can fail on."""
    WRONG_ROLE = "wrong_role"
    WRONG_ACTOR = "wrong_actor"
    WRONG_STATE = "wrong_state"
    ALREADY_BOUND = "already_bound"
    NOT_BOUND = "not_bound"
    ZONE_MISMATCH = "zone_mismatch"
    ALREADY_VERIFIED = "already_verified"
    VERIFICATION_REQUIRED = "verification_required"
    NOT_A_RIDER = "not_a_rider"
    INACTIVE_RIDER = "inactive_rider"


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised for malformed input or an operation that does not apply to the package."""

    def __init__(self, message: str, field: str = None, details: Dict[str, Any] = None):
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class TransitionRejected(AppException):
    """Raised when a transition guard fails. Nothing has been written."""

    error_code = "ERR_TRANSITION_001"

    def __init__(self, guard: TransitionGuard, message: str, package_id: Any = None):
        self.guard = guard
        self.package_id = package_id
        super().__init__(
            message=message,
            error_code=self.error_code,
            status_code=status.HTTP_409_CONFLICT,
            details={"guard": guard.value, "package_id": package_id}
        )


class ConflictLost(TransitionRejected):
    """
    Raised when another actor already holds the binding being claimed.

    Callers should move on to a different package rather than retry.
    """

    error_code = "ERR_TRANSITION_002"

    def __init__(self, message: str, package_id: Any = None):
        super().__init__(TransitionGuard.ALREADY_BOUND, message, package_id)


class CodeMismatch(AppException):
    """Raised when a submitted verification code does not match. State is untouched."""

    def __init__(self, kind: str, package_id: Any = None):
        super().__init__(
            message=f"Incorrect {kind} verification code",
            error_code="ERR_VERIFY_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"kind": kind, "package_id": package_id}
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
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


class LedgerImmutableError(AppException):
    """Raised when anything attempts to rewrite or remove a custody log entry."""

    def __init__(self, entry_id: Any, operation: str):
        super().__init__(
            message=f"Custody log entries are append-only ({operation} rejected)",
            error_code="ERR_LEDGER_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"entry_id": entry_id, "operation": operation}
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
    """Handler for Pydantic validation errors. Rejected input is not echoed back."""
    errors = [
        {key: value for key, value in error.items() if key != "input"}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(errors)
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
