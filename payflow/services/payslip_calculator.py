"""
PayFlow HR - Payslip Calculator

Pure computation of a monthly payslip from a financial snapshot, the bonuses
paid with it and the advance repayments charged for the period.

Rules:
- salary_gross = basic + allowances_total
- deductions_total = plain deductions + advance repayments
- salary_net = salary_gross + bonuses_total - deductions_total
- A breakdown line appears only when its amount is non-zero.
- Allowance lines: housing, medical, special, fuel, phone, other.
- Deduction lines: provident fund, tax, other, then advance repayment.

All arithmetic is exact Decimal; nothing is rounded here.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from payflow.services.financial_snapshot import FinancialSnapshot


ZERO = Decimal("0.00")

# (code, snapshot attribute, label) in payslip order
ALLOWANCE_LINES: Tuple[Tuple[str, str, str], ...] = (
    ("housing", "allowance_housing", "Housing allowance"),
    ("medical", "allowance_medical", "Medical allowance"),
    ("special", "allowance_special", "Special allowance"),
    ("fuel", "allowance_fuel", "Fuel allowance"),
    ("phone", "allowance_phone", "Phone allowance"),
    ("other", "allowance_other", "Other allowances"),
)

DEDUCTION_LINES: Tuple[Tuple[str, str, str], ...] = (
    ("provident_fund", "deduction_provident_fund", "Provident fund"),
    ("tax", "deduction_tax", "Tax"),
    ("other", "deduction_other", "Other deductions"),
)

ADVANCE_REPAYMENT_CODE = "advance_repayment"
ADVANCE_REPAYMENT_LABEL = "Advance repayment"


@dataclass(frozen=True)
class BonusItem:
    """Bonus paid with a payslip."""
    bonus_id: Any
    name: str
    amount: Decimal


@dataclass
class PayslipComputation:
    """Totals and breakdown snapshots of one payslip."""
    salary_basic: Decimal
    salary_gross: Decimal
    allowances_total: Decimal
    deductions_total: Decimal
    bonuses_total: Decimal
    advances_deducted: Decimal
    salary_net: Decimal
    allowances_breakdown: List[Dict[str, str]] = field(default_factory=list)
    deductions_breakdown: List[Dict[str, str]] = field(default_factory=list)
    bonuses_breakdown: List[Dict[str, str]] = field(default_factory=list)


def _line(code: str, name: str, amount: Decimal) -> Dict[str, str]:
    # Amounts are kept as strings so the JSON snapshot stays exact
    return {"code": code, "name": name, "amount": str(amount)}


class PayslipCalculator:
    """
    Stateless payslip calculator.

    Works from a FinancialSnapshot, the bonuses consumed by the period and the
    advance repayments already charged for it. Nothing is read from or written
    to the database, so the same inputs always give the same payslip.
    """

    def build_allowances_breakdown(self, snapshot: FinancialSnapshot) -> List[Dict[str, str]]:
        """Allowance lines in display order, zero amounts omitted."""
        lines = []
        for code, attr, label in ALLOWANCE_LINES:
            amount = getattr(snapshot, attr)
            if amount:
                lines.append(_line(code, label, amount))
        return lines

    def build_deductions_breakdown(
        self,
        snapshot: FinancialSnapshot,
        advances_deducted: Decimal = ZERO,
    ) -> List[Dict[str, str]]:
        """
        Deduction lines in display order, zero amounts omitted.

        The advance repayment line comes last and is only present when
        something was charged for the period.
        """
        lines = []
        for code, attr, label in DEDUCTION_LINES:
            amount = getattr(snapshot, attr)
            if amount:
                lines.append(_line(code, label, amount))
        if advances_deducted:
            lines.append(_line(ADVANCE_REPAYMENT_CODE, ADVANCE_REPAYMENT_LABEL, advances_deducted))
        return lines

    def build_bonuses_breakdown(self, bonuses: Sequence[BonusItem]) -> List[Dict[str, str]]:
        """One line per consumed bonus, keyed by bonus id."""
        return [
            {"bonus_id": str(b.bonus_id), "name": b.name, "amount": str(b.amount)}
            for b in bonuses
        ]

    def compute(
        self,
        snapshot: FinancialSnapshot,
        bonuses: Optional[Sequence[BonusItem]] = None,
        advances_deducted: Decimal = ZERO,
    ) -> PayslipComputation:
        """
        Compute payslip totals and breakdowns.

        Args:
            snapshot: Employee salary configuration
            bonuses: Eligible bonuses consumed by this payslip
            advances_deducted: Sum of advance repayments charged for the period

        Returns:
            PayslipComputation with every total and breakdown
        """
        bonuses = list(bonuses or [])

        salary_basic = snapshot.salary_basic
        allowances_total = snapshot.allowances_total
        salary_gross = salary_basic + allowances_total

        bonuses_total = sum((b.amount for b in bonuses), ZERO)
        deductions_total = snapshot.deductions_total + advances_deducted

        salary_net = salary_gross + bonuses_total - deductions_total

        return PayslipComputation(
            salary_basic=salary_basic,
            salary_gross=salary_gross,
            allowances_total=allowances_total,
            deductions_total=deductions_total,
            bonuses_total=bonuses_total,
            advances_deducted=advances_deducted,
            salary_net=salary_net,
            allowances_breakdown=self.build_allowances_breakdown(snapshot),
            deductions_breakdown=self.build_deductions_breakdown(snapshot, advances_deducted),
            bonuses_breakdown=self.build_bonuses_breakdown(bonuses),
        )
