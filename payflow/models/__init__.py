"""
PayFlow HR - Database Models

All SQLAlchemy models are imported here for easy access and
to ensure they are registered with the Base metadata.
"""

from payflow.models.base import BaseModel, TimestampMixin
from payflow.models.employee import Employee, EmployeeFinancialInfo
from payflow.models.bonus import Bonus, BonusStatus, BonusType
from payflow.models.advance import (
    SalaryAdvance,
    AdvanceRepayment,
    AdvanceStatus,
    REPAYABLE_STATUSES,
    TERMINAL_STATUSES,
)
from payflow.models.payslip import Payslip, PayslipStatus

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    # Employee
    "Employee",
    "EmployeeFinancialInfo",
    # Bonus
    "Bonus",
    "BonusStatus",
    "BonusType",
    # Advances
    "SalaryAdvance",
    "AdvanceRepayment",
    "AdvanceStatus",
    "REPAYABLE_STATUSES",
    "TERMINAL_STATUSES",
    # Payslips
    "Payslip",
    "PayslipStatus",
]
