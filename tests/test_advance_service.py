"""
PayFlow HR - Salary Advance Service Tests

Unit tests for the salary advance lifecycle.
"""

import logging

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import select

from payflow.config import Settings
from payflow.models import AdvanceStatus, SalaryAdvance
from payflow.services.advance_service import AdvanceService
from payflow.services.notifications import ADVANCE_REVIEWED, ADVANCE_SUBMITTED
from payflow.utils.error_handling import (
    AdvanceNotFoundException,
    AmountExceedsLimitException,
    AuthorizationException,
    EmployeeNotFoundException,
    ErrorCode,
    InvalidAmountException,
    InvalidStateException,
    ValidationException,
)


class TestCreateAdvance:
    """Test cases for AdvanceService.create_advance."""

    @pytest.mark.asyncio
    async def test_create_with_schedule(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)

        advance = await service.create_advance(
            employee_id=test_employee.id,
            amount=Decimal("1200.00"),
            reason="Car repair",
            needed_by_date=date(2025, 1, 31),
            repayment_months=6,
        )

        assert advance.id is not None
        assert advance.status == AdvanceStatus.DRAFT
        assert advance.monthly_deduction == Decimal("200.00")
        assert advance.total_repaid == Decimal("0")
        assert advance.needed_by_date == date(2025, 1, 31)
        assert advance.repayment_start is None

    @pytest.mark.asyncio
    async def test_create_without_schedule(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)

        advance = await service.create_advance(test_employee.id, "500", "Rent deposit")

        assert advance.amount == Decimal("500")
        assert advance.repayment_months is None
        assert advance.monthly_deduction is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10.00"), "abc"])
    async def test_rejects_non_positive_amount(self, db_session, test_employee, amount):
        service = AdvanceService(db_session)

        with pytest.raises(InvalidAmountException) as exc_info:
            await service.create_advance(test_employee.id, amount, "Invalid")

        assert exc_info.value.status_code == 422
        assert exc_info.value.field == "amount"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("months", [0, 13, -1])
    async def test_rejects_months_out_of_range(self, db_session, test_employee, months):
        service = AdvanceService(db_session)

        with pytest.raises(ValidationException) as exc_info:
            await service.create_advance(test_employee.id, Decimal("100.00"), "Invalid", repayment_months=months)

        assert exc_info.value.field == "repayment_months"

    @pytest.mark.asyncio
    async def test_amount_above_half_net_salary(self, db_session, test_employee, test_financial_info):
        test_financial_info.salary_net = Decimal("8000.00")
        await db_session.commit()
        service = AdvanceService(db_session)

        with pytest.raises(AmountExceedsLimitException) as exc_info:
            await service.create_advance(test_employee.id, Decimal("5000.00"), "Wedding")

        error = exc_info.value
        assert error.code == ErrorCode.AMOUNT_EXCEEDS_LIMIT
        assert Decimal(error.details["max_amount"]) == Decimal("4000")
        assert "50%" in error.message

        result = await db_session.execute(select(SalaryAdvance))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_amount_equal_to_cap_is_allowed(self, db_session, test_employee, test_financial_info):
        test_financial_info.salary_net = Decimal("8000.00")
        await db_session.commit()
        service = AdvanceService(db_session)

        advance = await service.create_advance(test_employee.id, Decimal("4000.00"), "Wedding")

        assert advance.status == AdvanceStatus.DRAFT

    @pytest.mark.asyncio
    async def test_no_cap_without_net_salary(self, db_session, test_employee, test_financial_info):
        test_financial_info.salary_net = Decimal("0.00")
        await db_session.commit()
        service = AdvanceService(db_session)

        advance = await service.create_advance(test_employee.id, Decimal("100000.00"), "House")

        assert advance.amount == Decimal("100000.00")

    @pytest.mark.asyncio
    async def test_no_cap_without_financial_info(self, db_session, test_employee):
        service = AdvanceService(db_session)

        advance = await service.create_advance(test_employee.id, Decimal("9999.99"), "Medical bill")

        assert advance.amount == Decimal("9999.99")

    @pytest.mark.asyncio
    async def test_configured_salary_ratio(self, db_session, test_employee, test_financial_info):
        config = Settings(advance_max_salary_ratio=Decimal("0.25"))
        service = AdvanceService(db_session, config=config)

        with pytest.raises(AmountExceedsLimitException) as exc_info:
            await service.create_advance(test_employee.id, Decimal("1400.00"), "Trip")

        assert "25%" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unknown_employee(self, db_session):
        service = AdvanceService(db_session)

        with pytest.raises(EmployeeNotFoundException):
            await service.create_advance(uuid4(), Decimal("100.00"), "Ghost")


class TestUpdateAdvance:
    """Test cases for AdvanceService.update_advance."""

    @pytest.mark.asyncio
    async def test_update_recomputes_monthly_deduction(
        self, db_session, clock, test_employee, test_financial_info,
    ):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("1200.00"), "Car", repayment_months=6)

        updated = await service.update_advance(
            advance.id, test_employee.id, {"amount": Decimal("900.00"), "reason": "Car (partial)"},
        )
        assert updated.monthly_deduction == Decimal("150.00")
        assert updated.reason == "Car (partial)"

        updated = await service.update_advance(advance.id, test_employee.id, {"repayment_months": 4})
        assert updated.amount == Decimal("900.00")
        assert updated.monthly_deduction == Decimal("225.00")

        updated = await service.update_advance(advance.id, test_employee.id, {"repayment_months": None})
        assert updated.monthly_deduction is None

    @pytest.mark.asyncio
    async def test_update_ignores_unknown_fields(self, db_session, test_employee, test_financial_info):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("100.00"), "Books")

        updated = await service.update_advance(
            advance.id, test_employee.id, {"status": AdvanceStatus.APPROVED, "total_repaid": Decimal("100.00")},
        )

        assert updated.status == AdvanceStatus.DRAFT
        assert updated.total_repaid == Decimal("0")

    @pytest.mark.asyncio
    async def test_update_revalidates_cap_and_months(self, db_session, test_employee, test_financial_info):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("100.00"), "Books")

        with pytest.raises(AmountExceedsLimitException):
            await service.update_advance(advance.id, test_employee.id, {"amount": Decimal("2700.01")})
        with pytest.raises(ValidationException):
            await service.update_advance(advance.id, test_employee.id, {"repayment_months": 24})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "", "   "])
    async def test_update_rejects_empty_reason(self, db_session, test_employee, test_financial_info, reason):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("100.00"), "Books")

        with pytest.raises(ValidationException) as exc_info:
            await service.update_advance(advance.id, test_employee.id, {"reason": reason})

        assert exc_info.value.field == "reason"
        await db_session.refresh(advance)
        assert advance.reason == "Books"

    @pytest.mark.asyncio
    async def test_update_by_other_employee_is_forbidden(
        self, db_session, test_employee, other_employee, test_financial_info,
    ):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("100.00"), "Books")

        with pytest.raises(AuthorizationException) as exc_info:
            await service.update_advance(advance.id, other_employee.id, {"amount": Decimal("50.00")})

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_update_after_submit_is_invalid(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("100.00"), "Books")
        await service.submit_advance(advance.id, test_employee.id)

        with pytest.raises(InvalidStateException) as exc_info:
            await service.update_advance(advance.id, test_employee.id, {"amount": Decimal("50.00")})

        assert exc_info.value.code == ErrorCode.INVALID_STATE
        assert exc_info.value.status_code == 409
        assert exc_info.value.details["current_status"] == "PENDING"

    @pytest.mark.asyncio
    async def test_update_unknown_advance(self, db_session, test_employee):
        service = AdvanceService(db_session)

        with pytest.raises(AdvanceNotFoundException):
            await service.update_advance(uuid4(), test_employee.id, {"reason": "x"})


class TestSubmitAndReview:
    """Submission and review transitions."""

    @pytest.mark.asyncio
    async def test_submit(self, db_session, clock, notifier, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock, notifier=notifier)
        advance = await service.create_advance(test_employee.id, Decimal("600.00"), "Dentist", repayment_months=3)

        submitted = await service.submit_advance(advance.id, test_employee.id)

        assert submitted.status == AdvanceStatus.PENDING
        assert submitted.submitted_at is not None
        assert [e["event"] for e in notifier.events] == [ADVANCE_SUBMITTED]
        assert notifier.events[0]["payload"]["advance_id"] == str(advance.id)

    @pytest.mark.asyncio
    async def test_submit_twice_is_invalid(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("600.00"), "Dentist")
        await service.submit_advance(advance.id, test_employee.id)

        with pytest.raises(InvalidStateException):
            await service.submit_advance(advance.id, test_employee.id)

    @pytest.mark.asyncio
    async def test_submit_by_other_employee_is_forbidden(
        self, db_session, test_employee, other_employee, test_financial_info,
    ):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("600.00"), "Dentist")

        with pytest.raises(AuthorizationException):
            await service.submit_advance(advance.id, other_employee.id)

    @pytest.mark.asyncio
    async def test_approve_sets_repayment_start(
        self, db_session, clock, notifier, test_employee, test_financial_info,
    ):
        service = AdvanceService(db_session, clock=clock, notifier=notifier)
        advance = await service.create_advance(test_employee.id, Decimal("1200.00"), "Car", repayment_months=6)
        await service.submit_advance(advance.id, test_employee.id)
        reviewer_id = uuid4()

        approved = await service.review_advance(advance.id, reviewer_id, "approved", "Fine by me")

        assert approved.status == AdvanceStatus.APPROVED
        assert approved.reviewed_by_id == reviewer_id
        assert approved.reviewer_comment == "Fine by me"
        assert approved.reviewed_at is not None
        assert approved.repayment_start == date(2025, 2, 1)

        reviewed = notifier.events[-1]
        assert reviewed["event"] == ADVANCE_REVIEWED
        assert reviewed["recipient_id"] == test_employee.id
        assert reviewed["payload"]["decision"] == "approved"

    @pytest.mark.asyncio
    async def test_approve_in_december_starts_next_year(self, db_session, clock, test_employee, test_financial_info):
        clock.set(datetime(2025, 12, 31, 23, 0, tzinfo=timezone.utc))
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("1200.00"), "Holidays", repayment_months=2)
        await service.submit_advance(advance.id, test_employee.id)

        approved = await service.review_advance(advance.id, uuid4(), AdvanceStatus.APPROVED)

        assert approved.repayment_start == date(2026, 1, 1)

    @pytest.mark.asyncio
    async def test_approve_without_schedule(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")
        await service.submit_advance(advance.id, test_employee.id)

        approved = await service.review_advance(advance.id, uuid4(), "APPROVED")

        assert approved.status == AdvanceStatus.APPROVED
        assert approved.repayment_start is None

    @pytest.mark.asyncio
    async def test_reject(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees", repayment_months=3)
        await service.submit_advance(advance.id, test_employee.id)

        rejected = await service.review_advance(advance.id, uuid4(), "rejected", "Budget freeze")

        assert rejected.status == AdvanceStatus.REJECTED
        assert rejected.repayment_start is None
        assert rejected.reviewer_comment == "Budget freeze"

    @pytest.mark.asyncio
    async def test_review_requires_pending(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")

        with pytest.raises(InvalidStateException):
            await service.review_advance(advance.id, uuid4(), "approved")

    @pytest.mark.asyncio
    async def test_review_rejects_unknown_decision(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")
        await service.submit_advance(advance.id, test_employee.id)

        for decision in ("maybe", AdvanceStatus.COMPLETED):
            with pytest.raises(ValidationException) as exc_info:
                await service.review_advance(advance.id, uuid4(), decision)
            assert exc_info.value.field == "decision"

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_roll_back(
        self, db_session, clock, failing_notifier, test_employee, test_financial_info, caplog,
    ):
        service = AdvanceService(db_session, clock=clock, notifier=failing_notifier)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")

        with caplog.at_level(logging.ERROR):
            submitted = await service.submit_advance(advance.id, test_employee.id)

        assert submitted.status == AdvanceStatus.PENDING
        assert "Failed to send advance.submitted notification" in caplog.text

        result = await db_session.execute(select(SalaryAdvance.status).where(SalaryAdvance.id == advance.id))
        assert result.scalar_one() == AdvanceStatus.PENDING


class TestCancelAndDelete:
    """Cancellation and deletion."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("submit_first", [False, True])
    async def test_cancel_draft_or_pending(
        self, db_session, clock, test_employee, test_financial_info, submit_first,
    ):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")
        if submit_first:
            await service.submit_advance(advance.id, test_employee.id)

        cancelled = await service.cancel_advance(advance.id, test_employee.id)

        assert cancelled.status == AdvanceStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_approved_is_invalid(
        self, db_session, test_employee, test_financial_info, make_approved_advance,
    ):
        advance = await make_approved_advance(test_employee, "300.00", repayment_months=3)
        service = AdvanceService(db_session)

        with pytest.raises(InvalidStateException):
            await service.cancel_advance(advance.id, test_employee.id)

    @pytest.mark.asyncio
    async def test_cancel_by_other_employee_is_forbidden(
        self, db_session, test_employee, other_employee, test_financial_info,
    ):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")

        with pytest.raises(AuthorizationException):
            await service.cancel_advance(advance.id, other_employee.id)

    @pytest.mark.asyncio
    async def test_delete_draft(self, db_session, test_employee, test_financial_info):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")
        advance_id = advance.id

        assert await service.delete_advance(advance_id, test_employee.id) is True

        with pytest.raises(AdvanceNotFoundException):
            await service.get_advance(advance_id)

    @pytest.mark.asyncio
    async def test_delete_cancelled(self, db_session, test_employee, test_financial_info):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")
        await service.cancel_advance(advance.id, test_employee.id)

        assert await service.delete_advance(advance.id, test_employee.id) is True

    @pytest.mark.asyncio
    async def test_delete_pending_is_invalid(self, db_session, clock, test_employee, test_financial_info):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")
        await service.submit_advance(advance.id, test_employee.id)

        with pytest.raises(InvalidStateException):
            await service.delete_advance(advance.id, test_employee.id)

    @pytest.mark.asyncio
    async def test_delete_by_other_employee_is_forbidden(
        self, db_session, test_employee, other_employee, test_financial_info,
    ):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")

        with pytest.raises(AuthorizationException):
            await service.delete_advance(advance.id, other_employee.id)


class TestQueries:
    """Advance lookups and listings."""

    @pytest.mark.asyncio
    async def test_get_advance_for_owner_and_reviewer(
        self, db_session, test_employee, other_employee, test_financial_info,
    ):
        service = AdvanceService(db_session)
        advance = await service.create_advance(test_employee.id, Decimal("300.00"), "Fees")

        assert (await service.get_advance(advance.id)).id == advance.id
        assert (await service.get_advance(advance.id, test_employee.id)).id == advance.id
        with pytest.raises(AuthorizationException):
            await service.get_advance(advance.id, other_employee.id)

    @pytest.mark.asyncio
    async def test_get_unknown_advance(self, db_session):
        with pytest.raises(AdvanceNotFoundException):
            await AdvanceService(db_session).get_advance(uuid4())

    @pytest.mark.asyncio
    async def test_list_filters_and_total(
        self, db_session, clock, test_employee, other_employee, test_financial_info,
    ):
        service = AdvanceService(db_session, clock=clock)
        first = await service.create_advance(test_employee.id, Decimal("100.00"), "One")
        await service.create_advance(test_employee.id, Decimal("200.00"), "Two")
        await service.create_advance(other_employee.id, Decimal("300.00"), "Three")
        await service.submit_advance(first.id, test_employee.id)

        advances, total = await service.list_advances()
        assert total == 3
        assert len(advances) == 3

        advances, total = await service.list_advances(employee_id=test_employee.id)
        assert total == 2
        assert {a.employee_id for a in advances} == {test_employee.id}

        advances, total = await service.list_advances(status=AdvanceStatus.PENDING)
        assert total == 1
        assert advances[0].id == first.id

    @pytest.mark.asyncio
    async def test_list_pagination_is_clamped(self, db_session, test_employee, test_financial_info):
        service = AdvanceService(db_session, config=Settings(max_page_size=2))
        for amount in ("10.00", "20.00", "30.00"):
            await service.create_advance(test_employee.id, Decimal(amount), "Small")

        page_one, total = await service.list_advances(page=1, limit=100)
        page_two, _ = await service.list_advances(page=2, limit=100)

        assert total == 3
        assert len(page_one) == 2
        assert len(page_two) == 1
        assert {a.id for a in page_one}.isdisjoint({a.id for a in page_two})

    @pytest.mark.asyncio
    async def test_list_my_advances(
        self, db_session, test_employee, other_employee, test_financial_info,
    ):
        service = AdvanceService(db_session)
        await service.create_advance(test_employee.id, Decimal("100.00"), "Mine")
        await service.create_advance(other_employee.id, Decimal("100.00"), "Theirs")

        mine = await service.list_my_advances(test_employee.id)

        assert [a.reason for a in mine] == ["Mine"]
        assert mine[0].repayments == []
