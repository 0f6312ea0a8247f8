"""
PayFlow HR - Financial Snapshot Provider

Reads an employee's current salary configuration and freezes it into an
immutable FinancialSnapshot for payslip computation and the advance cap.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payflow.models.employee import EmployeeFinancialInfo


ZERO = Decimal("0.00")


def _amount(value: Optional[Decimal]) -> Decimal:
    """Absent amounts count as zero."""
    if value is None:
        return ZERO
    return Decimal(str(value))


@dataclass(frozen=True)
class FinancialSnapshot:
    """Salary configuration of one employee at a point in time."""
    salary_basic: Decimal = ZERO

    allowance_housing: Decimal = ZERO
    allowance_medical: Decimal = ZERO
    allowance_special: Decimal = ZERO
    allowance_fuel: Decimal = ZERO
    allowance_phone: Decimal = ZERO
    allowance_other: Decimal = ZERO
    allowance_total: Optional[Decimal] = None

    deduction_provident_fund: Decimal = ZERO
    deduction_tax: Decimal = ZERO
    deduction_other: Decimal = ZERO
    deduction_total: Optional[Decimal] = None

    # None when the configuration does not expose a net salary
    salary_net: Optional[Decimal] = None

    @property
    def allowances_total(self) -> Decimal:
        """Configured total, or the sum of the components when not configured."""
        if self.allowance_total is not None:
            return self.allowance_total
        return (
            self.allowance_housing + self.allowance_medical + self.allowance_special
            + self.allowance_fuel + self.allowance_phone + self.allowance_other
        )

    @property
    def deductions_total(self) -> Decimal:
        """Configured total, or the sum of the components when not configured."""
        if self.deduction_total is not None:
            return self.deduction_total
        return self.deduction_provident_fund + self.deduction_tax + self.deduction_other

    @classmethod
    def from_financial_info(cls, info: EmployeeFinancialInfo) -> "FinancialSnapshot":
        salary_net = _amount(info.salary_net) if info.salary_net else None
        return cls(
            salary_basic=_amount(info.salary_basic),
            allowance_housing=_amount(info.allowance_house_rent),
            allowance_medical=_amount(info.allowance_medical),
            allowance_special=_amount(info.allowance_special),
            allowance_fuel=_amount(info.allowance_fuel),
            allowance_phone=_amount(info.allowance_phone_bill),
            allowance_other=_amount(info.allowance_other),
            allowance_total=_amount(info.allowance_total) if info.allowance_total is not None else None,
            deduction_provident_fund=_amount(info.deduction_provident_fund),
            deduction_tax=_amount(info.deduction_tax),
            deduction_other=_amount(info.deduction_other),
            deduction_total=_amount(info.deduction_total) if info.deduction_total is not None else None,
            salary_net=salary_net,
        )


class FinancialSnapshotProvider:
    """Loads financial snapshots from the employee financial table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_snapshot(self, employee_id: uuid.UUID) -> Optional[FinancialSnapshot]:
        """Return the employee's snapshot, or None when nothing is configured."""
        result = await self.db.execute(
            select(EmployeeFinancialInfo).where(
                EmployeeFinancialInfo.employee_id == employee_id
            )
        )
        info = result.scalar_one_or_none()
        if info is None:
            return None
        return FinancialSnapshot.from_financial_info(info)
