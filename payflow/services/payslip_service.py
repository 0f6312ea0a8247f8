"""
PayFlow HR - Payslip Service

Generates monthly payslips and manages their DRAFT -> PUBLISHED lifecycle.

Generation of one (employee, month, year) runs as a single unit of work:
charge the period's advance installments, consume eligible bonuses, compute
totals and insert the payslip, then commit once. Any failure rolls the whole
unit back.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payflow.config import Settings, settings as default_settings
from payflow.models.advance import AdvanceRepayment, AdvanceStatus, SalaryAdvance, REPAYABLE_STATUSES
from payflow.models.bonus import Bonus, BonusStatus
from payflow.models.employee import Employee
from payflow.models.payslip import Payslip, PayslipStatus
from payflow.services.financial_snapshot import FinancialSnapshot, FinancialSnapshotProvider
from payflow.services.notifications import PAYSLIP_PUBLISHED, PayrollNotifier, send_notification
from payflow.services.payslip_calculator import BonusItem, PayslipCalculator
from payflow.services.repayment_ledger import RepaymentLedger
from payflow.utils.clock import Clock
from payflow.utils.error_handling import (
    DataIntegrityException,
    DuplicatePeriodException,
    EmployeeNotFoundException,
    InvalidPeriodException,
    InvalidStateException,
    NoFinancialInfoException,
    PayslipNotFoundException,
)


logger = logging.getLogger(__name__)

RESOURCE = "Payslip"
ZERO = Decimal("0.00")


class PayslipService:
    """Service for payslip generation and publication."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Clock] = None,
        notifier: Optional[PayrollNotifier] = None,
        snapshot_provider: Optional[FinancialSnapshotProvider] = None,
        calculator: Optional[PayslipCalculator] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.notifier = notifier or PayrollNotifier()
        self.snapshot_provider = snapshot_provider or FinancialSnapshotProvider(db)
        self.calculator = calculator or PayslipCalculator()
        self.ledger = RepaymentLedger(db, clock=self.clock)
        self.config = config or default_settings

    def _validate_period(self, month: int, year: int) -> None:
        min_year = self.config.payslip_min_year
        valid = (
            isinstance(month, int) and isinstance(year, int)
            and not isinstance(month, bool) and not isinstance(year, bool)
            and 1 <= month <= 12 and year >= min_year
        )
        if not valid:
            raise InvalidPeriodException(month, year, min_year)

    async def _find_payslip(self, employee_id: uuid.UUID, month: int, year: int) -> Optional[Payslip]:
        result = await self.db.execute(
            select(Payslip).where(
                Payslip.employee_id == employee_id,
                Payslip.month == month,
                Payslip.year == year,
            )
        )
        return result.scalar_one_or_none()

    async def _get_for_update(self, payslip_id: uuid.UUID) -> Payslip:
        result = await self.db.execute(
            select(Payslip)
            .where(Payslip.id == payslip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payslip = result.scalar_one_or_none()
        if not payslip:
            raise PayslipNotFoundException(payslip_id)
        return payslip

    def _ensure_draft(self, payslip: Payslip, operation: str) -> None:
        if payslip.status != PayslipStatus.DRAFT:
            raise InvalidStateException(
                resource_type=RESOURCE,
                operation=operation,
                current_status=payslip.status,
                allowed_statuses=(PayslipStatus.DRAFT,),
            )

    # ===========================================
    # GENERATION
    # ===========================================

    async def _collect_bonuses(self, employee_id: uuid.UUID, month: int, year: int) -> List[Bonus]:
        """
        Eligible bonuses plus those already stamped with this period.

        Bonuses stamped with the period belong to a payslip of that period
        that was deleted while DRAFT; they are paid again, not twice.
        """
        eligible = await self.db.execute(
            select(Bonus)
            .where(
                Bonus.employee_id == employee_id,
                Bonus.status == BonusStatus.APPROVED,
                Bonus.payslip_month.is_(None),
            )
            .order_by(Bonus.created_at)
            .with_for_update()
        )
        already_paid = await self.db.execute(
            select(Bonus)
            .where(
                Bonus.employee_id == employee_id,
                Bonus.status == BonusStatus.PAID,
                Bonus.payslip_month == month,
                Bonus.payslip_year == year,
            )
            .order_by(Bonus.created_at)
        )
        return list(already_paid.scalars().all()) + list(eligible.scalars().all())

    async def _charge_advances(self, employee_id: uuid.UUID, month: int, year: int) -> Decimal:
        """
        Charge the period's installment on every repayable advance and return
        the sum of what was recorded for the period.
        """
        # Repayments recorded for this period by an earlier, deleted payslip
        recorded = await self.db.execute(
            select(AdvanceRepayment)
            .join(SalaryAdvance, AdvanceRepayment.advance_id == SalaryAdvance.id)
            .where(
                SalaryAdvance.employee_id == employee_id,
                AdvanceRepayment.payslip_month == month,
                AdvanceRepayment.payslip_year == year,
            )
        )
        recorded = list(recorded.scalars().all())
        charged_ids = {r.advance_id for r in recorded}
        total = sum((r.amount for r in recorded), ZERO)

        period_start = date(year, month, 1)
        result = await self.db.execute(
            select(SalaryAdvance.id)
            .where(
                SalaryAdvance.employee_id == employee_id,
                SalaryAdvance.status.in_(REPAYABLE_STATUSES),
                SalaryAdvance.repayment_start.is_not(None),
                SalaryAdvance.repayment_start <= period_start,
            )
            .order_by(SalaryAdvance.repayment_start)
        )
        for advance_id in result.scalars().all():
            if advance_id in charged_ids:
                continue
            repayment = await self.ledger.process_repayment(advance_id, month, year)
            if repayment is not None:
                total += repayment.amount
        return total

    async def _build_payslip(
        self,
        generated_by_id: Optional[uuid.UUID],
        employee_id: uuid.UUID,
        month: int,
        year: int,
        snapshot: FinancialSnapshot,
        notes: Optional[str],
    ) -> Payslip:
        bonuses = await self._collect_bonuses(employee_id, month, year)
        advances_deducted = await self._charge_advances(employee_id, month, year)

        computation = self.calculator.compute(
            snapshot,
            bonuses=[BonusItem(bonus_id=b.id, name=b.title, amount=b.amount) for b in bonuses],
            advances_deducted=advances_deducted,
        )

        payslip = Payslip(
            employee_id=employee_id,
            month=month,
            year=year,
            salary_basic=computation.salary_basic,
            salary_gross=computation.salary_gross,
            allowances_total=computation.allowances_total,
            allowances_breakdown=computation.allowances_breakdown,
            deductions_total=computation.deductions_total,
            deductions_breakdown=computation.deductions_breakdown,
            bonuses_total=computation.bonuses_total,
            bonuses_breakdown=computation.bonuses_breakdown,
            advances_deducted=computation.advances_deducted,
            salary_net=computation.salary_net,
            status=PayslipStatus.DRAFT,
            generated_by_id=generated_by_id,
            notes=notes,
        )
        self.db.add(payslip)

        now = self.clock.now()
        for bonus in bonuses:
            if bonus.status == BonusStatus.PAID:
                continue
            bonus.payslip_month = month
            bonus.payslip_year = year
            bonus.status = BonusStatus.PAID
            bonus.paid_at = now

        await self.db.flush()

        if bonuses:
            logger.info(f"Consumed {len(bonuses)} bonuses for {employee_id} in {month}/{year}")
        return payslip

    async def generate_payslip(
        self,
        generated_by_id: Optional[uuid.UUID],
        employee_id: uuid.UUID,
        month: int,
        year: int,
        notes: Optional[str] = None,
    ) -> Payslip:
        """
        Generate the DRAFT payslip of an employee for a period.

        Raises:
            InvalidPeriodException: Month outside 1-12 or year too early
            EmployeeNotFoundException: Unknown employee
            DuplicatePeriodException: A payslip exists for the period
            NoFinancialInfoException: Employee has no salary configuration
            DataIntegrityException: Storage conflict persisted after retries
        """
        self._validate_period(month, year)

        employee = await self.db.get(Employee, employee_id)
        if not employee:
            raise EmployeeNotFoundException(employee_id)

        max_attempts = max(self.config.payslip_generation_max_attempts, 1)
        for attempt in range(1, max_attempts + 1):
            if await self._find_payslip(employee_id, month, year):
                raise DuplicatePeriodException(employee_id, month, year)

            snapshot = await self.snapshot_provider.get_snapshot(employee_id)
            if snapshot is None:
                raise NoFinancialInfoException(employee_id)

            try:
                payslip = await self._build_payslip(
                    generated_by_id, employee_id, month, year, snapshot, notes,
                )
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                if await self._find_payslip(employee_id, month, year):
                    raise DuplicatePeriodException(employee_id, month, year)
                if attempt == max_attempts:
                    raise DataIntegrityException(
                        f"Could not generate payslip for {month}/{year} after {max_attempts} attempts",
                        original_error=e,
                    )
                logger.warning(
                    f"Payslip generation for {employee_id} {month}/{year} conflicted "
                    f"(attempt {attempt}/{max_attempts}), retrying"
                )
                continue
            except Exception:
                await self.db.rollback()
                raise

            await self.db.refresh(payslip)
            logger.info(
                f"Payslip {payslip.id} generated for {employee_id} {month}/{year}: "
                f"gross {payslip.salary_gross}, net {payslip.salary_net}"
            )
            return payslip

    # ===========================================
    # PUBLICATION & DRAFT EDITS
    # ===========================================

    async def publish_payslip(self, payslip_id: uuid.UUID) -> Payslip:
        """Publish a DRAFT payslip to its employee."""
        payslip = await self._get_for_update(payslip_id)
        self._ensure_draft(payslip, "publish")

        payslip.status = PayslipStatus.PUBLISHED
        payslip.published_at = self.clock.now()

        await self.db.commit()
        await self.db.refresh(payslip)

        logger.info(f"Payslip {payslip_id} published")
        await send_notification(
            self.notifier,
            PAYSLIP_PUBLISHED,
            payslip.employee_id,
            {
                "payslip_id": str(payslip.id),
                "period": payslip.period_label,
                "salary_net": str(payslip.salary_net),
            },
        )
        return payslip

    async def update_payslip_notes(self, payslip_id: uuid.UUID, notes: Optional[str]) -> Payslip:
        """Replace the notes of a DRAFT payslip."""
        payslip = await self._get_for_update(payslip_id)
        self._ensure_draft(payslip, "update")

        payslip.notes = notes

        await self.db.commit()
        await self.db.refresh(payslip)
        return payslip

    async def delete_payslip(self, payslip_id: uuid.UUID) -> bool:
        """Delete a DRAFT payslip."""
        payslip = await self._get_for_update(payslip_id)
        self._ensure_draft(payslip, "delete")

        await self.db.delete(payslip)
        await self.db.commit()

        logger.info(f"Payslip {payslip_id} deleted")
        return True

    # ===========================================
    # QUERIES
    # ===========================================

    async def get_payslip(self, payslip_id: uuid.UUID) -> Payslip:
        payslip = await self.db.get(Payslip, payslip_id)
        if not payslip:
            raise PayslipNotFoundException(payslip_id)
        return payslip

    async def list_payslips(
        self,
        employee_id: Optional[uuid.UUID] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        status: Optional[PayslipStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[Payslip], int]:
        """List payslips with filters, latest period first."""
        limit = min(limit or self.config.default_page_size, self.config.max_page_size)
        page = max(page, 1)

        query = select(Payslip)
        if employee_id:
            query = query.where(Payslip.employee_id == employee_id)
        if month:
            query = query.where(Payslip.month == month)
        if year:
            query = query.where(Payslip.year == year)
        if status:
            query = query.where(Payslip.status == status)

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        query = query.order_by(Payslip.year.desc(), Payslip.month.desc())
        query = query.offset((page - 1) * limit).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def list_own_payslips(
        self,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> List[Payslip]:
        """Published payslips of the employee, latest period first."""
        query = select(Payslip).where(
            Payslip.employee_id == employee_id,
            Payslip.status == PayslipStatus.PUBLISHED,
        )
        if year:
            query = query.where(Payslip.year == year)
        query = query.order_by(Payslip.year.desc(), Payslip.month.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_payroll_stats(self) -> Dict[str, Any]:
        """Dashboard counters across payslips, advances and bonuses."""
        async def count(model, *conditions) -> int:
            query = select(func.count(model.id))
            if conditions:
                query = query.where(*conditions)
            result = await self.db.execute(query)
            return result.scalar() or 0

        outstanding_result = await self.db.execute(
            select(
                func.coalesce(func.sum(SalaryAdvance.amount - SalaryAdvance.total_repaid), 0)
            ).where(SalaryAdvance.status.in_(REPAYABLE_STATUSES))
        )
        outstanding = Decimal(str(outstanding_result.scalar() or 0)).quantize(Decimal("0.01"))

        return {
            "total_payslips": await count(Payslip),
            "published_payslips": await count(Payslip, Payslip.status == PayslipStatus.PUBLISHED),
            "total_advances": await count(SalaryAdvance),
            "pending_advances": await count(SalaryAdvance, SalaryAdvance.status == AdvanceStatus.PENDING),
            "repaying_advances": await count(SalaryAdvance, SalaryAdvance.status == AdvanceStatus.REPAYING),
            "total_bonuses": await count(Bonus),
            "pending_bonuses": await count(Bonus, Bonus.status == BonusStatus.PENDING),
            "outstanding_advance_balance": outstanding,
        }
