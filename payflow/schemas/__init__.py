"""
PayFlow HR - Schemas Package

Pydantic schemas for request/response validation.
"""

from payflow.schemas.payroll import (
    # Advances
    AdvanceCreate,
    AdvanceUpdate,
    AdvanceReview,
    AdvanceResponse,
    AdvanceRepaymentResponse,
    # Payslips
    BreakdownLine,
    BonusLine,
    PayslipGenerate,
    PayslipUpdate,
    PayslipResponse,
    PayslipSummary,
    # Lists & dashboard
    PaginatedResponse,
    PayrollStats,
)

__all__ = [
    "AdvanceCreate",
    "AdvanceUpdate",
    "AdvanceReview",
    "AdvanceResponse",
    "AdvanceRepaymentResponse",
    "BreakdownLine",
    "BonusLine",
    "PayslipGenerate",
    "PayslipUpdate",
    "PayslipResponse",
    "PayslipSummary",
    "PaginatedResponse",
    "PayrollStats",
]
