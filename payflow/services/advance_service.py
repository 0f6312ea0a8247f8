"""
PayFlow HR - Salary Advance Service

Lifecycle of salary advances requested by employees:
create/update while DRAFT, submit for review, approve or reject, cancel,
delete. Repayments are charged by the RepaymentLedger during payslip
generation, never here.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from payflow.config import Settings, settings as default_settings
from payflow.models.advance import AdvanceStatus, SalaryAdvance
from payflow.models.employee import Employee
from payflow.services.financial_snapshot import FinancialSnapshotProvider
from payflow.services.notifications import (
    ADVANCE_REVIEWED,
    ADVANCE_SUBMITTED,
    PayrollNotifier,
    send_notification,
)
from payflow.services.repayment_ledger import calculate_monthly_deduction
from payflow.utils.clock import Clock, first_day_of_next_month
from payflow.utils.error_handling import (
    AdvanceNotFoundException,
    AmountExceedsLimitException,
    AuthorizationException,
    EmployeeNotFoundException,
    InvalidStateException,
    ValidationException,
    validate_amount,
)


logger = logging.getLogger(__name__)

RESOURCE = "Salary advance"

# Fields an owner may change while the advance is DRAFT
UPDATABLE_FIELDS = ("amount", "reason", "needed_by_date", "repayment_months")


class AdvanceService:
    """Service for salary advance operations."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Clock] = None,
        notifier: Optional[PayrollNotifier] = None,
        snapshot_provider: Optional[FinancialSnapshotProvider] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.notifier = notifier or PayrollNotifier()
        self.snapshot_provider = snapshot_provider or FinancialSnapshotProvider(db)
        self.config = config or default_settings

    # ===========================================
    # VALIDATION HELPERS
    # ===========================================

    def _validate_reason(self, reason: Any) -> str:
        if not isinstance(reason, str) or not reason.strip():
            raise ValidationException(
                message="Reason is required",
                field="reason",
                details={"provided_value": reason},
            )
        return reason

    def _validate_repayment_months(self, repayment_months: Optional[int]) -> None:
        if repayment_months is None:
            return
        max_months = self.config.advance_max_repayment_months
        if (
            isinstance(repayment_months, bool)
            or not isinstance(repayment_months, int)
            or not 1 <= repayment_months <= max_months
        ):
            raise ValidationException(
                message=f"Repayment months must be between 1 and {max_months}",
                field="repayment_months",
                details={"provided_value": repayment_months},
            )

    async def _check_salary_cap(self, employee_id: uuid.UUID, amount: Decimal) -> None:
        """Reject amounts above the allowed share of the monthly net salary."""
        snapshot = await self.snapshot_provider.get_snapshot(employee_id)
        if snapshot is None or snapshot.salary_net is None:
            # No net salary exposed, nothing to cap against
            return

        ratio = self.config.advance_max_salary_ratio
        limit = snapshot.salary_net * ratio
        if amount > limit:
            raise AmountExceedsLimitException(
                amount=amount,
                limit=limit,
                ratio=ratio,
                currency=self.config.currency,
            )

    def _ensure_owner(self, advance: SalaryAdvance, actor_id: uuid.UUID, operation: str) -> None:
        if advance.employee_id != actor_id:
            raise AuthorizationException(
                message=f"Only the employee who requested the advance can {operation} it",
            )

    def _ensure_status(
        self,
        advance: SalaryAdvance,
        operation: str,
        allowed: Iterable[AdvanceStatus],
    ) -> None:
        allowed = tuple(allowed)
        if advance.status not in allowed:
            raise InvalidStateException(
                resource_type=RESOURCE,
                operation=operation,
                current_status=advance.status,
                allowed_statuses=allowed,
            )

    async def _get_for_update(self, advance_id: uuid.UUID) -> SalaryAdvance:
        """Load and lock an advance for a read-compute-write."""
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

    # ===========================================
    # LIFECYCLE
    # ===========================================

    async def create_advance(
        self,
        employee_id: uuid.UUID,
        amount: Union[Decimal, str, int],
        reason: str,
        needed_by_date: Optional[date] = None,
        repayment_months: Optional[int] = None,
    ) -> SalaryAdvance:
        """
        Create a DRAFT advance for an employee.

        Raises:
            EmployeeNotFoundException: Unknown employee
            InvalidAmountException: Amount is not positive
            ValidationException: Empty reason or repayment months outside the allowed range
            AmountExceedsLimitException: Amount above the salary cap
        """
        employee = await self.db.get(Employee, employee_id)
        if not employee:
            raise EmployeeNotFoundException(employee_id)

        amount = validate_amount(amount)
        reason = self._validate_reason(reason)
        self._validate_repayment_months(repayment_months)
        await self._check_salary_cap(employee_id, amount)

        advance = SalaryAdvance(
            employee_id=employee_id,
            amount=amount,
            reason=reason,
            needed_by_date=needed_by_date,
            repayment_months=repayment_months,
            monthly_deduction=calculate_monthly_deduction(amount, repayment_months),
            status=AdvanceStatus.DRAFT,
            total_repaid=Decimal("0.00"),
        )
        self.db.add(advance)
        await self.db.commit()
        await self.db.refresh(advance)

        logger.info(f"Advance {advance.id} created for employee {employee_id}: {amount}")
        return advance

    async def update_advance(
        self,
        advance_id: uuid.UUID,
        actor_id: uuid.UUID,
        data: Dict[str, Any],
    ) -> SalaryAdvance:
        """
        Update a DRAFT advance. Only keys present in data are changed; the
        monthly deduction is recomputed from the merged amount and months.
        """
        advance = await self._get_for_update(advance_id)
        self._ensure_owner(advance, actor_id, "update")
        self._ensure_status(advance, "update", (AdvanceStatus.DRAFT,))

        changes = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}

        amount = advance.amount
        if "amount" in changes:
            amount = validate_amount(changes["amount"])
        if "reason" in changes:
            changes["reason"] = self._validate_reason(changes["reason"])
        repayment_months = changes.get("repayment_months", advance.repayment_months)
        self._validate_repayment_months(repayment_months)
        if "amount" in changes:
            await self._check_salary_cap(advance.employee_id, amount)

        for field, value in changes.items():
            setattr(advance, field, value)
        advance.amount = amount
        advance.monthly_deduction = calculate_monthly_deduction(amount, repayment_months)

        await self.db.commit()
        await self.db.refresh(advance)

        logger.info(f"Advance {advance_id} updated: {sorted(changes)}")
        return advance

    async def submit_advance(self, advance_id: uuid.UUID, actor_id: uuid.UUID) -> SalaryAdvance:
        """Submit a DRAFT advance for review."""
        advance = await self._get_for_update(advance_id)
        self._ensure_owner(advance, actor_id, "submit")
        self._ensure_status(advance, "submit", (AdvanceStatus.DRAFT,))

        advance.status = AdvanceStatus.PENDING
        advance.submitted_at = self.clock.now()

        await self.db.commit()
        await self.db.refresh(advance)

        logger.info(f"Advance {advance_id} submitted for review")
        await send_notification(
            self.notifier,
            ADVANCE_SUBMITTED,
            None,
            {
                "advance_id": str(advance.id),
                "employee_id": str(advance.employee_id),
                "amount": str(advance.amount),
            },
        )
        return advance

    async def review_advance(
        self,
        advance_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        decision: Union[AdvanceStatus, str],
        comment: Optional[str] = None,
    ) -> SalaryAdvance:
        """
        Approve or reject a PENDING advance.

        On approval of an advance with a repayment schedule, repayments start
        on the first day of the month following the review.
        """
        try:
            decision = AdvanceStatus(str(getattr(decision, "value", decision)).lower())
        except ValueError:
            decision = None
        if decision not in (AdvanceStatus.APPROVED, AdvanceStatus.REJECTED):
            raise ValidationException(
                message="Decision must be 'approved' or 'rejected'",
                field="decision",
            )

        advance = await self._get_for_update(advance_id)
        self._ensure_status(advance, "review", (AdvanceStatus.PENDING,))

        now = self.clock.now()
        advance.status = decision
        advance.reviewed_by_id = reviewer_id
        advance.reviewed_at = now
        advance.reviewer_comment = comment

        if decision == AdvanceStatus.APPROVED and advance.has_repayment_plan:
            advance.repayment_start = first_day_of_next_month(now.date())

        await self.db.commit()
        await self.db.refresh(advance)

        logger.info(f"Advance {advance_id} {decision.value} by {reviewer_id}")
        await send_notification(
            self.notifier,
            ADVANCE_REVIEWED,
            advance.employee_id,
            {
                "advance_id": str(advance.id),
                "decision": decision.value,
                "comment": comment,
            },
        )
        return advance

    async def cancel_advance(self, advance_id: uuid.UUID, actor_id: uuid.UUID) -> SalaryAdvance:
        """Cancel a DRAFT or PENDING advance."""
        advance = await self._get_for_update(advance_id)
        self._ensure_owner(advance, actor_id, "cancel")
        self._ensure_status(advance, "cancel", (AdvanceStatus.DRAFT, AdvanceStatus.PENDING))

        advance.status = AdvanceStatus.CANCELLED

        await self.db.commit()
        await self.db.refresh(advance)

        logger.info(f"Advance {advance_id} cancelled")
        return advance

    async def delete_advance(self, advance_id: uuid.UUID, actor_id: uuid.UUID) -> bool:
        """Delete a DRAFT or CANCELLED advance."""
        advance = await self._get_for_update(advance_id)
        self._ensure_owner(advance, actor_id, "delete")
        self._ensure_status(advance, "delete", (AdvanceStatus.DRAFT, AdvanceStatus.CANCELLED))

        await self.db.delete(advance)
        await self.db.commit()

        logger.info(f"Advance {advance_id} deleted")
        return True

    # ===========================================
    # QUERIES
    # ===========================================

    async def get_advance(
        self,
        advance_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> SalaryAdvance:
        """Get an advance; when an actor is given it must be the owner."""
        advance = await self.db.get(SalaryAdvance, advance_id)
        if not advance:
            raise AdvanceNotFoundException(advance_id)
        if actor_id is not None:
            self._ensure_owner(advance, actor_id, "view")
        return advance

    async def list_advances(
        self,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[AdvanceStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[SalaryAdvance], int]:
        """List advances with filters, newest first."""
        limit = min(limit or self.config.default_page_size, self.config.max_page_size)
        page = max(page, 1)

        query = select(SalaryAdvance)
        if employee_id:
            query = query.where(SalaryAdvance.employee_id == employee_id)
        if status:
            query = query.where(SalaryAdvance.status == status)

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        query = query.order_by(SalaryAdvance.created_at.desc(), SalaryAdvance.id)
        query = query.offset((page - 1) * limit).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def list_my_advances(self, employee_id: uuid.UUID) -> List[SalaryAdvance]:
        """All advances of one employee, newest first."""
        result = await self.db.execute(
            select(SalaryAdvance)
            .where(SalaryAdvance.employee_id == employee_id)
            .order_by(SalaryAdvance.created_at.desc())
        )
        return list(result.scalars().all())
