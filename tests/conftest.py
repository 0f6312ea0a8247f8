"""
PayFlow HR - Test Configuration

Pytest fixtures and configuration.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from payflow.database import build_engine, create_session_maker, drop_db, init_db
from payflow.models import (
    Employee,
    EmployeeFinancialInfo,
    Bonus,
    BonusStatus,
    BonusType,
)
from payflow.services.advance_service import AdvanceService
from payflow.services.notifications import PayrollNotifier
from payflow.utils.clock import FixedClock


# Test database URL (in-memory SQLite unless a real database is given)
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create the schema on a fresh engine for each test."""
    engine = build_engine(TEST_DATABASE_URL, echo=False)
    await init_db(engine)

    yield engine

    await drop_db(engine)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    session_maker = create_session_maker(db_engine)
    async with session_maker() as session:
        yield session
        await session.rollback()


# ===========================================
# COLLABORATORS
# ===========================================

class RecordingNotifier(PayrollNotifier):
    """Notifier that keeps every event it receives."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    async def notify(self, event, recipient_id, payload):
        self.events.append({"event": event, "recipient_id": recipient_id, "payload": payload})


class FailingNotifier(PayrollNotifier):
    """Notifier whose delivery always fails."""

    async def notify(self, event, recipient_id, payload):
        raise ConnectionError("mail relay unavailable")


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 15 January 2025, 09:00 UTC."""
    return FixedClock(datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


# ===========================================
# DATA FIXTURES
# ===========================================

async def _create_employee(db: AsyncSession, code: str, name: str) -> Employee:
    employee = Employee(
        id=uuid4(),
        employee_code=code,
        full_name=name,
        email=f"{code.lower()}@example.com",
        is_active=True,
    )
    db.add(employee)
    await db.commit()
    await db.refresh(employee)
    return employee


@pytest_asyncio.fixture
async def test_employee(db_session: AsyncSession) -> Employee:
    """Create a test employee."""
    return await _create_employee(db_session, "EMP-0007", "Amara Okafor")


@pytest_asyncio.fixture
async def other_employee(db_session: AsyncSession) -> Employee:
    """Create a second employee."""
    return await _create_employee(db_session, "EMP-0042", "Lukas Meier")


@pytest_asyncio.fixture
async def test_financial_info(db_session: AsyncSession, test_employee: Employee) -> EmployeeFinancialInfo:
    """
    Salary configuration of the test employee.

    basic 5000, allowances 1400 (housing 1000, medical 200, fuel 150, phone 50),
    deductions 1000 (provident fund 300, tax 700), net 5400.
    """
    info = EmployeeFinancialInfo(
        id=uuid4(),
        employee_id=test_employee.id,
        salary_basic=Decimal("5000.00"),
        allowance_house_rent=Decimal("1000.00"),
        allowance_medical=Decimal("200.00"),
        allowance_special=Decimal("0.00"),
        allowance_fuel=Decimal("150.00"),
        allowance_phone_bill=Decimal("50.00"),
        allowance_other=None,
        allowance_total=Decimal("1400.00"),
        deduction_provident_fund=Decimal("300.00"),
        deduction_tax=Decimal("700.00"),
        deduction_other=None,
        deduction_total=Decimal("1000.00"),
        salary_gross=Decimal("6400.00"),
        salary_net=Decimal("5400.00"),
    )
    db_session.add(info)
    await db_session.commit()
    await db_session.refresh(info)
    return info


@pytest_asyncio.fixture
async def make_bonus(db_session: AsyncSession):
    """Factory for bonuses of an employee."""

    async def _make_bonus(
        employee: Employee,
        amount: str,
        title: str = "Performance bonus",
        status: BonusStatus = BonusStatus.APPROVED,
    ) -> Bonus:
        bonus = Bonus(
            id=uuid4(),
            employee_id=employee.id,
            bonus_type=BonusType.PERFORMANCE,
            title=title,
            amount=Decimal(amount),
            status=status,
        )
        db_session.add(bonus)
        await db_session.commit()
        await db_session.refresh(bonus)
        return bonus

    return _make_bonus


@pytest_asyncio.fixture
async def make_approved_advance(db_session: AsyncSession, clock: FixedClock):
    """Factory for advances taken through create, submit and approval."""

    async def _make_approved_advance(
        employee: Employee,
        amount: str,
        repayment_months: Optional[int] = None,
        reviewer_id=None,
    ):
        service = AdvanceService(db_session, clock=clock)
        advance = await service.create_advance(
            employee_id=employee.id,
            amount=Decimal(amount),
            reason="Unexpected expense",
            repayment_months=repayment_months,
        )
        await service.submit_advance(advance.id, employee.id)
        return await service.review_advance(
            advance.id, reviewer_id or uuid4(), "approved", "OK",
        )

    return _make_approved_advance
