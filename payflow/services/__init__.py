"""
PayFlow HR - Services Package

Business logic of the payroll core.
"""

from payflow.services.advance_service import AdvanceService
from payflow.services.financial_snapshot import FinancialSnapshot, FinancialSnapshotProvider
from payflow.services.notifications import PayrollNotifier
from payflow.services.payslip_calculator import BonusItem, PayslipCalculator, PayslipComputation
from payflow.services.payslip_service import PayslipService
from payflow.services.repayment_ledger import RepaymentLedger, calculate_monthly_deduction

__all__ = [
    "AdvanceService",
    "FinancialSnapshot",
    "FinancialSnapshotProvider",
    "PayrollNotifier",
    "BonusItem",
    "PayslipCalculator",
    "PayslipComputation",
    "PayslipService",
    "RepaymentLedger",
    "calculate_monthly_deduction",
]
