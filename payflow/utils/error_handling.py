"""
Centralized Error Handling for PayFlow HR

This module provides:
- Custom exception hierarchy for the payroll core
- Standardized error responses
- Error logging
- Database error mapping
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)

# Configure logging
logger = logging.getLogger("payflow.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (422)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_PERIOD = "INVALID_PERIOD"
    AMOUNT_EXCEEDS_LIMIT = "AMOUNT_EXCEEDS_LIMIT"

    # Authorization Errors (403)
    FORBIDDEN = "FORBIDDEN"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    ADVANCE_NOT_FOUND = "ADVANCE_NOT_FOUND"
    PAYSLIP_NOT_FOUND = "PAYSLIP_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    DUPLICATE_PERIOD = "DUPLICATE_PERIOD"
    INVALID_STATE = "INVALID_STATE"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    NO_FINANCIAL_INFO = "NO_FINANCIAL_INFO"
    NO_REPAYMENT_PLAN = "NO_REPAYMENT_PLAN"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


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
        self.timestamp = datetime.utcnow()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat() + "Z",
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


class InvalidPeriodException(ValidationException):
    """Invalid payslip period"""

    def __init__(self, month: Any, year: Any, min_year: int):
        super().__init__(
            message=f"Invalid payslip period {month}/{year}. Month must be 1-12 and year at least {min_year}.",
            field="period",
            code=ErrorCode.INVALID_PERIOD,
            details={"month": month, "year": year, "min_year": min_year},
        )


class AmountExceedsLimitException(ValidationException):
    """Requested advance is above the allowed share of net salary"""

    def __init__(self, amount: Decimal, limit: Decimal, ratio: Decimal, currency: str = "EUR"):
        super().__init__(
            message=f"Advance amount cannot exceed {ratio:.0%} of monthly net salary ({currency} {limit:,.2f})",
            field="amount",
            code=ErrorCode.AMOUNT_EXCEEDS_LIMIT,
            details={
                "requested_amount": str(amount),
                "max_amount": str(limit),
                "currency": currency,
            },
        )


# ============================================================================
# Authorization Exceptions
# ============================================================================

class AuthorizationException(AppException):
    """Authorization denied exception"""

    def __init__(
        self,
        message: str = "Permission denied",
        required_permission: Optional[str] = None,
        code: ErrorCode = ErrorCode.FORBIDDEN,
    ):
        details = {}
        if required_permission:
            details["required_permission"] = required_permission
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
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
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class EmployeeNotFoundException(NotFoundException):
    """Employee not found"""

    def __init__(self, employee_id: Union[str, UUID]):
        super().__init__(
            resource_type="Employee",
            resource_id=employee_id,
            code=ErrorCode.EMPLOYEE_NOT_FOUND,
        )


class AdvanceNotFoundException(NotFoundException):
    """Salary advance not found"""

    def __init__(self, advance_id: Union[str, UUID]):
        super().__init__(
            resource_type="Salary advance",
            resource_id=advance_id,
            code=ErrorCode.ADVANCE_NOT_FOUND,
        )


class PayslipNotFoundException(NotFoundException):
    """Payslip not found"""

    def __init__(self, payslip_id: Union[str, UUID]):
        super().__init__(
            resource_type="Payslip",
            resource_id=payslip_id,
            code=ErrorCode.PAYSLIP_NOT_FOUND,
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


class InvalidStateException(ConflictException):
    """Operation is not allowed in the record's current status"""

    def __init__(
        self,
        resource_type: str,
        operation: str,
        current_status: Any,
        allowed_statuses: Iterable[Any],
    ):
        current = getattr(current_status, "name", str(current_status))
        allowed = [getattr(s, "name", str(s)) for s in allowed_statuses]
        super().__init__(
            message=f"Can only {operation} {resource_type.lower()}s in {' or '.join(allowed)} status (current: {current})",
            resource_type=resource_type,
            code=ErrorCode.INVALID_STATE,
            details={
                "operation": operation,
                "current_status": current,
                "allowed_statuses": allowed,
            },
        )


class DuplicatePeriodException(ConflictException):
    """A payslip already exists for the employee and period"""

    def __init__(self, employee_id: Union[str, UUID], month: int, year: int):
        super().__init__(
            message=f"Payslip already exists for {month}/{year}",
            resource_type="Payslip",
            code=ErrorCode.DUPLICATE_PERIOD,
            details={"employee_id": str(employee_id), "month": month, "year": year},
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
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class NoFinancialInfoException(BusinessRuleException):
    """Employee has no salary configuration"""

    def __init__(self, employee_id: Union[str, UUID]):
        super().__init__(
            message="Employee has no financial information configured",
            rule="FINANCIAL_INFO_REQUIRED",
            code=ErrorCode.NO_FINANCIAL_INFO,
            details={"employee_id": str(employee_id)},
        )


class NoRepaymentPlanException(BusinessRuleException):
    """Advance has no monthly deduction configured"""

    def __init__(self, advance_id: Union[str, UUID]):
        super().__init__(
            message="No repayment plan configured",
            rule="REPAYMENT_PLAN_REQUIRED",
            code=ErrorCode.NO_REPAYMENT_PLAN,
            details={"advance_id": str(advance_id)},
        )


# ============================================================================
# Database Exceptions
# ============================================================================

class DatabaseException(AppException):
    """Database error exception"""

    def __init__(
        self,
        message: str = "A database error occurred",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
        )


class DataIntegrityException(DatabaseException):
    """Data integrity error"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=message,
            code=ErrorCode.DATA_INTEGRITY_ERROR,
            original_error=original_error,
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
            "timestamp": datetime.utcnow().isoformat() + "Z",
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


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        # Check for specific constraints
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

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


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the payroll exception handlers with a FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)


# ============================================================================
# Utility Functions
# ============================================================================

def validate_amount(amount: Any, field: str = "amount", allow_zero: bool = False) -> Decimal:
    """Validate monetary amount and return it as a Decimal"""
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (TypeError, ValueError, InvalidOperation):
        raise InvalidAmountException(amount, field)
    if not value.is_finite() or value < 0 or (not allow_zero and value == 0):
        raise InvalidAmountException(amount, field)
    return value


# Export all exceptions for easy importing
__all__ = [
    # Base
    "AppException",
    "ErrorCode",

    # Validation
    "ValidationException",
    "InvalidAmountException",
    "InvalidPeriodException",
    "AmountExceedsLimitException",

    # Auth
    "AuthorizationException",

    # Resource
    "NotFoundException",
    "EmployeeNotFoundException",
    "AdvanceNotFoundException",
    "PayslipNotFoundException",
    "ConflictException",
    "InvalidStateException",
    "DuplicatePeriodException",

    # Business Logic
    "BusinessRuleException",
    "NoFinancialInfoException",
    "NoRepaymentPlanException",

    # Database
    "DatabaseException",
    "DataIntegrityException",

    # Handlers
    "setup_exception_handlers",
    "create_error_response",

    # Utilities
    "validate_amount",
]
