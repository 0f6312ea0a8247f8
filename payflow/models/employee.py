"""
PayFlow HR - Employee Models

The employee directory and per-employee financial configuration are owned by
the HR side of the platform. Payroll only reads them: the financial row is the
source of the snapshot a payslip is computed from.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payflow.models.base import BaseModel


class Employee(BaseModel):
    """Employee directory entry (minimal projection used by payroll)."""

    __tablename__ = "employees"

    employee_code: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True,
        comment="Company staff number e.g., EMP-0042",
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    financial_info: Mapped[Optional["EmployeeFinancialInfo"]] = relationship(
        "EmployeeFinancialInfo",
        back_populates="employee",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Employee(id={self.id}, code={self.employee_code})>"


class EmployeeFinancialInfo(BaseModel):
    """
    Current salary configuration of an employee.

    Every amount is optional; payroll treats a missing amount as zero.
    """

    __tablename__ = "employee_financial_info"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    salary_basic: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)

    # Allowances
    allowance_house_rent: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    allowance_medical: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    allowance_special: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    allowance_fuel: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    allowance_phone_bill: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    allowance_other: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    allowance_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)

    # Deductions
    deduction_provident_fund: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    deduction_tax: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    deduction_other: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    deduction_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)

    salary_gross: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=15, scale=2), nullable=True)
    salary_net: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=15, scale=2), nullable=True,
        comment="Monthly net salary, used for the advance cap",
    )

    employee: Mapped["Employee"] = relationship(
        "Employee", back_populates="financial_info",
    )
