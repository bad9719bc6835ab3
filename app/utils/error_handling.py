"""
Error Handling Module for Sanprinon Lite

This module provides centralized error handling with:
- Custom exception hierarchy for the ledger core
- Standardized error responses carrying an outcome
- Error logging and tracking
- Database error handling

Every error payload tells the caller which of three outcomes occurred:
``already_done`` (an idempotent no-op), ``rejected`` (validation, state or
lookup failure) or ``internal_failure``.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configure logging
logger = logging.getLogger("sanprinon.errors")

CENT = Decimal("0.01")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_DIRECTION = "INVALID_DIRECTION"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    ACCOUNT_TYPE_MISMATCH = "ACCOUNT_TYPE_MISMATCH"
    UNBALANCED_TRANSACTION = "UNBALANCED_TRANSACTION"

    # Authentication Errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    LEASE_NOT_FOUND = "LEASE_NOT_FOUND"
    RECONCILIATION_NOT_FOUND = "RECONCILIATION_NOT_FOUND"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    INVALID_STATE = "INVALID_STATE"

    # Storage Errors (500)
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    STORAGE_FAILURE = "STORAGE_FAILURE"
    LEDGER_IMMUTABLE = "LEDGER_IMMUTABLE"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorOutcome(str, Enum):
    """What the caller should conclude from an error response."""
    ALREADY_DONE = "already_done"
    REJECTED = "rejected"
    INTERNAL_FAILURE = "internal_failure"


def outcome_for_status(status_code: int) -> ErrorOutcome:
    if status_code >= 500:
        return ErrorOutcome.INTERNAL_FAILURE
    return ErrorOutcome.REJECTED


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
        outcome: Optional[ErrorOutcome] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.outcome = outcome or outcome_for_status(status_code)
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "outcome": self.outcome.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""

    def __init__(self, amount: Any, field: str = "amount", message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid amount: {amount}. Amount must be a positive number.",
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_amount": str(amount)},
        )


class InvalidDirectionException(ValidationException):
    """Direction is neither DR nor CR"""

    def __init__(self, direction: Any, message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid direction: {direction}. Expected DR or CR.",
            field="direction",
            code=ErrorCode.INVALID_DIRECTION,
            details={"provided_direction": str(direction)},
        )


class InvalidDateRangeException(ValidationException):
    """Invalid date range"""

    def __init__(self, start_date: str, end_date: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid date range: {start_date} to {end_date}. Start date must be before end date.",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": start_date, "end_date": end_date},
        )


class AccountNotFoundException(ValidationException):
    """Account code does not resolve in the chart of accounts"""

    def __init__(self, account_code: str):
        super().__init__(
            message=f"Account '{account_code}' not found",
            field="account_code",
            code=ErrorCode.ACCOUNT_NOT_FOUND,
            details={"account_code": account_code},
        )


class AccountInactiveException(ValidationException):
    """Posting to an inactive account"""

    def __init__(self, account_code: str):
        super().__init__(
            message=f"Account '{account_code}' is inactive",
            field="account_code",
            code=ErrorCode.ACCOUNT_INACTIVE,
            details={"account_code": account_code},
        )


class AccountTypeMismatchException(ValidationException):
    """Account exists but is the wrong type for the posting"""

    def __init__(self, account_code: str, expected: str, actual: str):
        super().__init__(
            message=f"Account '{account_code}' is {actual}, expected {expected}",
            field="account_code",
            code=ErrorCode.ACCOUNT_TYPE_MISMATCH,
            details={"account_code": account_code, "expected": expected, "actual": actual},
        )


class UnbalancedTransactionException(ValidationException):
    """Debits and credits of one unit do not match"""

    def __init__(self, total_debits: Decimal, total_credits: Decimal):
        super().__init__(
            message=(
                f"Transaction is not balanced. Debits: {total_debits:,.2f}, "
                f"Credits: {total_credits:,.2f}"
            ),
            code=ErrorCode.UNBALANCED_TRANSACTION,
            details={
                "total_debits": str(total_debits),
                "total_credits": str(total_credits),
            },
        )


# ============================================================================
# Authentication/Authorization Exceptions
# ============================================================================

class AuthenticationException(AppException):
    """Base authentication exception"""

    def __init__(
        self,
        message: str = "Authentication required",
        code: ErrorCode = ErrorCode.UNAUTHORIZED,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )


class InvalidSignatureException(AuthenticationException):
    """Webhook signature verification failed"""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message=message, code=ErrorCode.INVALID_SIGNATURE)


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class EntryNotFoundException(NotFoundException):
    """Ledger entry not found"""

    def __init__(self, entry_id: Union[str, UUID]):
        super().__init__(
            resource_type="LedgerEntry",
            resource_id=entry_id,
            code=ErrorCode.ENTRY_NOT_FOUND,
        )


class LeaseNotFoundException(NotFoundException):
    """Lease not found"""

    def __init__(self, lease_id: Union[str, UUID]):
        super().__init__(
            resource_type="Lease",
            resource_id=lease_id,
            code=ErrorCode.LEASE_NOT_FOUND,
        )


class ReconciliationNotFoundException(NotFoundException):
    """Reconciliation session not found"""

    def __init__(self, reconciliation_id: Union[str, UUID]):
        super().__init__(
            resource_type="Reconciliation",
            resource_id=reconciliation_id,
            code=ErrorCode.RECONCILIATION_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        resource_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        outcome: Optional[ErrorOutcome] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
            outcome=outcome,
        )


class DuplicateEntryException(ConflictException):
    """
    Idempotency key collision.

    System-initiated retries (webhooks, the scheduler) treat this as
    "already applied"; user-initiated submissions surface it as a conflict.
    """

    def __init__(
        self,
        resource_type: str,
        field: str,
        value: str,
    ):
        self.value = value
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            resource_type=resource_type,
            code=ErrorCode.DUPLICATE_ENTRY,
            details={"field": field, "value": value},
            outcome=ErrorOutcome.ALREADY_DONE,
        )


class InvalidStateException(ConflictException):
    """Operation not valid for the entity's current state"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        current_state: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = dict(details or {})
        if current_state:
            _details["current_state"] = current_state
        super().__init__(
            message=message,
            resource_type=resource_type,
            code=ErrorCode.INVALID_STATE,
            details=_details,
        )


# ============================================================================
# Storage Exceptions
# ============================================================================

class LedgerImmutableError(AppException):
    """A ledger row was about to be deleted or rewritten"""

    def __init__(self, message: str = "Ledger entries are append-only and cannot be deleted or modified"):
        super().__init__(
            code=ErrorCode.LEDGER_IMMUTABLE,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
    outcome: Optional[ErrorOutcome] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "outcome": (outcome or outcome_for_status(status_code)).value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
        outcome=exc.outcome,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    # Map status codes to error codes
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        401: ErrorCode.UNAUTHORIZED,
        404: ErrorCode.NOT_FOUND,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.STORAGE_FAILURE
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    # In production, don't expose internal error details
    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================================================
# Error Tracking Middleware
# ============================================================================

class ErrorTrackingMiddleware:
    """Middleware for tracking and logging all errors"""

    def __init__(self, app: FastAPI):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            # Log error with request context
            logger.error(
                f"Request failed: {scope.get('path', 'unknown')}",
                extra={
                    "path": scope.get("path"),
                    "method": scope.get("method"),
                    "exception_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise


# ============================================================================
# Utility Functions
# ============================================================================

def to_cents(amount: Any) -> Decimal:
    """Coerce a monetary value to a Decimal rounded half-up to cents."""
    try:
        return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountException(amount)


def validate_amount(amount: Any, field: str = "amount", allow_zero: bool = False) -> Decimal:
    """Validate monetary amount, returning it rounded to cents"""
    value = to_cents(amount) if amount is not None else None
    if value is None or not value.is_finite():
        raise InvalidAmountException(amount, field)
    if value < 0 or (not allow_zero and value == 0):
        raise InvalidAmountException(amount, field)
    return value


# Export all exceptions for easy importing
__all__ = [
    # Base
    "AppException",
    "ErrorCode",
    "ErrorOutcome",

    # Validation
    "ValidationException",
    "InvalidAmountException",
    "InvalidDirectionException",
    "InvalidDateRangeException",
    "AccountNotFoundException",
    "AccountInactiveException",
    "AccountTypeMismatchException",
    "UnbalancedTransactionException",

    # Auth
    "AuthenticationException",
    "InvalidSignatureException",

    # Resource
    "NotFoundException",
    "EntryNotFoundException",
    "LeaseNotFoundException",
    "ReconciliationNotFoundException",
    "ConflictException",
    "DuplicateEntryException",
    "InvalidStateException",

    # Storage
    "LedgerImmutableError",

    # Handlers
    "setup_exception_handlers",
    "create_error_response",
    "ErrorTrackingMiddleware",

    # Utilities
    "to_cents",
    "validate_amount",
]
