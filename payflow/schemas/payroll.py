"""
PayFlow HR - Payroll Schemas

Pydantic schemas for salary advance and payslip requests and responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Literal, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from payflow.models.advance import AdvanceStatus
from payflow.models.payslip import PayslipStatus


# ===========================================
# ENUMS AS LITERALS
# ===========================================

ReviewDecisionEnum = Literal["approved", "rejected"]


# ===========================================
# SALARY ADVANCE SCHEMAS
# ===========================================

class AdvanceBase(BaseModel):
    """Base advance schema."""
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    reason: str = Field(..., min_length=1, max_length=2000)
    needed_by_date: Optional[date] = None
    repayment_months: Optional[int] = Field(None, ge=1, le=12)


class AdvanceCreate(AdvanceBase):
    """Create advance request."""
    pass


class AdvanceUpdate(BaseModel):
    """Update advance request (DRAFT only). Unset fields are left unchanged."""
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    reason: Optional[str] = Field(None, min_length=1, max_length=2000)
    needed_by_date: Optional[date] = None
    repayment_months: Optional[int] = Field(None, ge=1, le=12)


class AdvanceReview(BaseModel):
    """Approve or reject a pending advance."""
    decision: ReviewDecisionEnum
    reviewer_comment: Optional[str] = None

    @field_validator("decision", mode="before")
    @classmethod
    def normalize_decision(cls, v):
        return v.lower() if isinstance(v, str) else v


class AdvanceRepaymentResponse(BaseModel):
    """Advance repayment response schema."""
    id: UUID
    advance_id: UUID
    payslip_month: int
    payslip_year: int
    amount: Decimal
    deducted_at: datetime

    class Config:
        from_attributes = True


class AdvanceResponse(AdvanceBase):
    """Advance response schema."""
    id: UUID
    employee_id: UUID
    monthly_deduction: Optional[Decimal] = None
    status: AdvanceStatus
    submitted_at: Optional[datetime] = None
    reviewed_by_id: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    reviewer_comment: Optional[str] = None
    repayment_start: Optional[date] = None
    total_repaid: Decimal
    remaining_balance: Decimal
    fully_repaid_at: Optional[datetime] = None
    repayments: List[AdvanceRepaymentResponse] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===========================================
# PAYSLIP SCHEMAS
# ===========================================

class BreakdownLine(BaseModel):
    """One named amount on a payslip breakdown."""
    code: Optional[str] = None
    name: str
    amount: Decimal


class BonusLine(BaseModel):
    """Bonus entry on a payslip breakdown."""
    bonus_id: UUID
    name: str
    amount: Decimal


class PayslipGenerate(BaseModel):
    """Generate payslip request."""
    employee_id: UUID
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2020)
    notes: Optional[str] = None


class PayslipUpdate(BaseModel):
    """Update payslip request (DRAFT only, notes only)."""
    notes: Optional[str] = None


class PayslipResponse(BaseModel):
    """Payslip response schema."""
    id: UUID
    employee_id: UUID
    month: int
    year: int
    salary_basic: Decimal
    salary_gross: Decimal
    allowances_total: Decimal
    allowances_breakdown: List[BreakdownLine] = []
    deductions_total: Decimal
    deductions_breakdown: List[BreakdownLine] = []
    bonuses_total: Decimal
    bonuses_breakdown: List[BonusLine] = []
    advances_deducted: Decimal
    salary_net: Decimal
    status: PayslipStatus
    generated_by_id: Optional[UUID] = None
    published_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayslipSummary(BaseModel):
    """Payslip summary for list views."""
    id: UUID
    employee_id: UUID
    month: int
    year: int
    salary_gross: Decimal
    salary_net: Decimal
    status: PayslipStatus

    class Config:
        from_attributes = True


# ===========================================
# LISTS & DASHBOARD
# ===========================================

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated list wrapper."""
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, items: List[T], total: int, page: int, limit: int) -> "PaginatedResponse[T]":
        total_pages = (total + limit - 1) // limit if limit > 0 else 0
        return cls(items=items, total=total, page=page, limit=limit, total_pages=total_pages)


class PayrollStats(BaseModel):
    """Payroll dashboard counters."""
    total_payslips: int
    published_payslips: int
    total_advances: int
    pending_advances: int
    repaying_advances: int
    total_bonuses: int
    pending_bonuses: int
    outstanding_advance_balance: Decimal
