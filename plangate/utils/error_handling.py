"""
Error Handling Module for PlanGate

This module provides centralized error handling with:
- Application exception hierarchy
- Standardized error responses
- Mapping of policy-engine errors to HTTP responses
- Database error handling
"""

from datetime import datetime, timezone
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

from plangate.services.addon_lifecycle import IllegalTransitionError
from plangate.services.quote_calculator import (
    CouponRejectedError,
    CycleUnavailableError,
    QuoteRequestError,
    UnknownPlanError,
)

logger = logging.getLogger("plangate.errors")


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_BILLING_CYCLE = "INVALID_BILLING_CYCLE"
    CYCLE_UNAVAILABLE = "CYCLE_UNAVAILABLE"
    COUPON_REJECTED = "COUPON_REJECTED"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    PLAN_NOT_FOUND = "PLAN_NOT_FOUND"
    SUBSCRIPTION_NOT_FOUND = "SUBSCRIPTION_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"

    # Business Logic Errors (403/422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    ROLLOUT_DENIED = "ROLLOUT_DENIED"

    # Authentication/Authorization Errors (401/403)
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Rate Limiting (429)
    RATE_LIMITED = "RATE_LIMITED"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


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
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = _utc_timestamp()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp,
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
            status_code=422,
            details=details,
            field=field,
        )


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
                message = f"{resource_type} '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class PlanNotFoundException(NotFoundException):
    """Plan not found"""

    def __init__(self, plan_code: str):
        super().__init__(
            resource_type="Plan",
            resource_id=plan_code,
            code=ErrorCode.PLAN_NOT_FOUND,
        )


class SubscriptionNotFoundException(NotFoundException):
    """Add-on subscription not found"""

    def __init__(self, tenant_id: Union[str, UUID], addon_id: str):
        super().__init__(
            resource_type="AddonSubscription",
            resource_id=f"{tenant_id}/{addon_id}",
            code=ErrorCode.SUBSCRIPTION_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 422,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details=_details,
        )


class RolloutDeniedException(BusinessRuleException):
    """A country rollout check rejected the operation"""

    def __init__(self, rejection_code: str, message: str, disclaimer: Optional[str] = None):
        details = {}
        if disclaimer:
            details["disclaimer"] = disclaimer
        super().__init__(
            message=message,
            rule=rejection_code,
            code=ErrorCode.ROLLOUT_DENIED,
            details=details,
            status_code=status.HTTP_403_FORBIDDEN,
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
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": _utc_timestamp(),
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    logger.error(
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
    )


async def quote_request_exception_handler(request: Request, exc: QuoteRequestError) -> JSONResponse:
    """Handle structurally invalid quote requests"""
    if isinstance(exc, UnknownPlanError):
        code, status_code = ErrorCode.PLAN_NOT_FOUND, status.HTTP_404_NOT_FOUND
    elif isinstance(exc, CycleUnavailableError):
        code, status_code = ErrorCode.CYCLE_UNAVAILABLE, status.HTTP_400_BAD_REQUEST
    else:
        code, status_code = ErrorCode.INVALID_BILLING_CYCLE, status.HTTP_400_BAD_REQUEST

    logger.warning(
        f"QuoteRequestError: {exc}",
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(code=code, message=str(exc), status_code=status_code)


async def coupon_rejected_exception_handler(request: Request, exc: CouponRejectedError) -> JSONResponse:
    """Handle coupons the customer can correct"""
    logger.info(
        f"CouponRejected: {exc.code} - {exc.reason}",
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(
        code=ErrorCode.COUPON_REJECTED,
        message=str(exc),
        status_code=422,
        details={"coupon": exc.code, "reason": exc.reason},
        field="coupon_code",
    )


async def illegal_transition_exception_handler(request: Request, exc: IllegalTransitionError) -> JSONResponse:
    """Handle add-on lifecycle events that are not legal in the current status"""
    logger.warning(
        f"IllegalTransition: {exc}",
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(
        code=ErrorCode.ILLEGAL_TRANSITION,
        message=str(exc),
        status_code=status.HTTP_409_CONFLICT,
        details={"status": exc.status.value, "event": exc.event.value},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        429: ErrorCode.RATE_LIMITED,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        503: ErrorCode.EXTERNAL_SERVICE_ERROR,
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
        status_code=422,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = 422

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

    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(QuoteRequestError, quote_request_exception_handler)
    app.add_exception_handler(CouponRejectedError, coupon_rejected_exception_handler)
    app.add_exception_handler(IllegalTransitionError, illegal_transition_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "ErrorCode",
    "AppException",
    "ValidationException",
    "NotFoundException",
    "PlanNotFoundException",
    "SubscriptionNotFoundException",
    "ConflictException",
    "BusinessRuleException",
    "RolloutDeniedException",
    "create_error_response",
    "setup_exception_handlers",
]
