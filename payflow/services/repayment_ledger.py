"""
PayFlow HR - Repayment Ledger

Records payroll deductions against approved salary advances and keeps the
advance's cumulative repaid total and status in step with them.

The ledger only flushes; the caller owns the transaction.
"""

import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payflow.models.advance import AdvanceRepayment, AdvanceStatus, SalaryAdvance, REPAYABLE_STATUSES
from payflow.utils.clock import Clock
from payflow.utils.error_handling import (
    AdvanceNotFoundException,
    InvalidStateException,
    NoRepaymentPlanException,
)


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def calculate_monthly_deduction(amount: Decimal, repayment_months: Optional[int]) -> Optional[Decimal]:
    """
    Nominal monthly installment: amount / months rounded to cents.

    Returns None when no schedule is given. Never less than one cent, so a
    tiny principal is settled in fewer installments than scheduled.
    """
    if not repayment_months:
        return None
    monthly = (Decimal(amount) / Decimal(repayment_months)).quantize(CENT, rounding=ROUND_HALF_UP)
    return max(monthly, CENT)


class RepaymentLedger:
    """Charges advance installments for a payslip period."""

    def __init__(self, db: AsyncSession, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or Clock()

    async def _lock_advance(self, advance_id: uuid.UUID) -> SalaryAdvance:
        result = await self.db.execute(
            select(SalaryAdvance)
            .where(SalaryAdvance.id == advance_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        advance = result.scalar_one_or_none()
        if not advance:
            raise AdvanceNotFoundException(advance_id)
        return advance

    async def get_repayment(
        self,
        advance_id: uuid.UUID,
        month: int,
        year: int,
    ) -> Optional[AdvanceRepayment]:
        """Repayment already recorded for the advance in the period, if any."""
        result = await self.db.execute(
            select(AdvanceRepayment).where(
                AdvanceRepayment.advance_id == advance_id,
                AdvanceRepayment.payslip_month == month,
                AdvanceRepayment.payslip_year == year,
            )
        )
        return result.scalar_one_or_none()

    def _next_charge(self, advance: SalaryAdvance) -> Decimal:
        remaining = advance.remaining_balance
        # The last scheduled installment absorbs the rounding remainder
        if advance.repayment_months and len(advance.repayments) + 1 >= advance.repayment_months:
            return remaining
        return min(max(advance.monthly_deduction, CENT), remaining)

    async def process_repayment(
        self,
        advance_id: uuid.UUID,
        month: int,
        year: int,
    ) -> Optional[AdvanceRepayment]:
        """
        Charge one installment of an advance for a payslip period.

        Returns the repayment recorded for the period. When the period was
        already charged the existing repayment is returned unchanged; when the
        advance is already settled nothing is written and None is returned.

        Raises:
            AdvanceNotFoundException: Unknown advance
            InvalidStateException: Advance is not approved for repayment
            NoRepaymentPlanException: Advance has no monthly deduction
        """
        advance = await self._lock_advance(advance_id)

        existing = await self.get_repayment(advance_id, month, year)
        if existing:
            logger.info(
                f"Advance {advance_id} already charged {existing.amount} for {month}/{year}"
            )
            return existing

        if advance.status == AdvanceStatus.COMPLETED:
            logger.info(f"Advance {advance_id} already settled, nothing to charge")
            return None

        if advance.status not in REPAYABLE_STATUSES:
            raise InvalidStateException(
                "Salary advance", "charge", advance.status, REPAYABLE_STATUSES,
            )

        if not advance.has_repayment_plan:
            raise NoRepaymentPlanException(advance_id)

        if advance.is_fully_repaid:
            logger.info(f"Advance {advance_id} already settled, nothing to charge")
            return None

        charge = self._next_charge(advance)
        now = self.clock.now()

        repayment = AdvanceRepayment(
            payslip_month=month,
            payslip_year=year,
            amount=charge,
            deducted_at=now,
        )
        advance.repayments.append(repayment)

        advance.total_repaid = advance.total_repaid + charge
        if advance.total_repaid >= advance.amount:
            advance.status = AdvanceStatus.COMPLETED
            advance.fully_repaid_at = now
            logger.info(f"Advance {advance_id} fully repaid ({advance.total_repaid})")
        else:
            advance.status = AdvanceStatus.REPAYING

        await self.db.flush()

        logger.info(
            f"Charged {charge} against advance {advance_id} for {month}/{year}, "
            f"total repaid {advance.total_repaid} of {advance.amount}"
        )
        return repayment
