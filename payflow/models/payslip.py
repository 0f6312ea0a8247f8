"""
PayFlow HR - Payslip Model

A payslip is the immutable monthly pay statement of one employee. Its
breakdowns are captured at generation time and never recomputed on read, so a
historical payslip stays correct after the employee's salary configuration
changes.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    DateTime, ForeignKey, Integer, Numeric, Text,
    Enum as SQLEnum, JSON, UniqueConstraint, CheckConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from payflow.models.base import BaseModel


class PayslipStatus(str, Enum):
    """Payslip status."""
    DRAFT = "draft"
    PUBLISHED = "published"


class Payslip(BaseModel):
    """
    Monthly payslip of an employee.

    salary_gross = salary_basic + allowances_total
    deductions_total = plain deductions + advances_deducted
    salary_net = salary_gross + bonuses_total - deductions_total
    """

    __tablename__ = "payslips"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Earnings
    salary_basic: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    salary_gross: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    allowances_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    bonuses_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )

    # Deductions
    deductions_total: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    advances_deducted: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )

    # Net Pay
    salary_net: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )

    # Breakdown snapshots, ordered line items captured at generation
    allowances_breakdown: Mapped[List[dict]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    deductions_breakdown: Mapped[List[dict]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    bonuses_breakdown: Mapped[List[dict]] = mapped_column(
        JSON, nullable=False, default=list,
    )

    status: Mapped[PayslipStatus] = mapped_column(
        SQLEnum(PayslipStatus),
        default=PayslipStatus.DRAFT,
        nullable=False,
        index=True,
    )
    generated_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('employee_id', 'month', 'year', name='uq_payslip_employee_period'),
        CheckConstraint('month >= 1 AND month <= 12', name='payslip_month_range'),
        CheckConstraint('year >= 2020', name='payslip_year_min'),
    )

    @property
    def period_label(self) -> str:
        return f"{self.year}-{self.month:02d}"

    def __repr__(self) -> str:
        return f"<Payslip(id={self.id}, period={self.period_label}, net={self.salary_net})>"
