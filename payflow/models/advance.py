"""
PayFlow HR - Salary Advance Models

Salary advances are employer-funded cash advances repaid through payroll
deductions over an optional schedule of 1-12 months.

Lifecycle:
    DRAFT -> PENDING -> APPROVED | REJECTED
    DRAFT | PENDING -> CANCELLED
    APPROVED -> REPAYING -> COMPLETED  (driven by repayment charges)
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Date, DateTime, ForeignKey, Integer, Numeric, Text,
    Enum as SQLEnum, UniqueConstraint, CheckConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payflow.models.base import BaseModel


class AdvanceStatus(str, Enum):
    """Salary advance status."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    REPAYING = "repaying"
    COMPLETED = "completed"


# Statuses a payslip run charges repayments against
REPAYABLE_STATUSES = (AdvanceStatus.APPROVED, AdvanceStatus.REPAYING)

TERMINAL_STATUSES = (
    AdvanceStatus.REJECTED,
    AdvanceStatus.CANCELLED,
    AdvanceStatus.COMPLETED,
)


# ===========================================
# SALARY ADVANCE
# ===========================================

class SalaryAdvance(BaseModel):
    """
    Salary advance requested by an employee.
    """

    __tablename__ = "salary_advances"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
        comment="Principal advanced",
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    needed_by_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Repayment schedule
    repayment_months: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    monthly_deduction: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=True,
        comment="amount / repayment_months, rounded to cents",
    )
    repayment_start: Mapped[Optional[date]] = mapped_column(
        Date, nullable=True,
        comment="First day of the month following approval",
    )

    status: Mapped[AdvanceStatus] = mapped_column(
        SQLEnum(AdvanceStatus),
        default=AdvanceStatus.DRAFT,
        nullable=False,
        index=True,
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # Review
    reviewed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    reviewer_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Repayment progress
    total_repaid: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    fully_repaid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    repayments: Mapped[List["AdvanceRepayment"]] = relationship(
        "AdvanceRepayment",
        back_populates="advance",
        cascade="all, delete-orphan",
        order_by="AdvanceRepayment.deducted_at",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint('amount > 0', name='advance_amount_positive'),
        CheckConstraint(
            'repayment_months IS NULL OR (repayment_months >= 1 AND repayment_months <= 12)',
            name='advance_repayment_months_range',
        ),
        CheckConstraint(
            'total_repaid >= 0 AND total_repaid <= amount',
            name='advance_total_repaid_bounds',
        ),
    )

    @property
    def has_repayment_plan(self) -> bool:
        return self.monthly_deduction is not None

    @property
    def remaining_balance(self) -> Decimal:
        """Principal still to be repaid."""
        return max(self.amount - self.total_repaid, Decimal("0.00"))

    @property
    def is_fully_repaid(self) -> bool:
        return self.total_repaid >= self.amount

    def __repr__(self) -> str:
        return f"<SalaryAdvance(id={self.id}, amount={self.amount}, status={self.status})>"


# ===========================================
# ADVANCE REPAYMENT
# ===========================================

class AdvanceRepayment(BaseModel):
    """
    One payroll deduction charged against an advance for a payslip period.
    """

    __tablename__ = "advance_repayments"

    advance_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("salary_advances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    payslip_month: Mapped[int] = mapped_column(Integer, nullable=False)
    payslip_year: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    deducted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    advance: Mapped["SalaryAdvance"] = relationship(
        "SalaryAdvance", back_populates="repayments",
    )

    __table_args__ = (
        UniqueConstraint(
            'advance_id', 'payslip_month', 'payslip_year',
            name='uq_advance_repayment_period',
        ),
        CheckConstraint('amount > 0', name='repayment_amount_positive'),
    )

    def __repr__(self) -> str:
        return (
            f"<AdvanceRepayment(advance={self.advance_id}, "
            f"period={self.payslip_month}/{self.payslip_year}, amount={self.amount})>"
        )
