"""
PayFlow HR - Error Handling Tests

Exception hierarchy and the FastAPI error rendering.
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import IntegrityError

from payflow.models import AdvanceStatus
from payflow.utils.error_handling import (
    AdvanceNotFoundException,
    AmountExceedsLimitException,
    AppException,
    DuplicatePeriodException,
    ErrorCode,
    InvalidAmountException,
    InvalidStateException,
    NoFinancialInfoException,
    ValidationException,
    setup_exception_handlers,
    validate_amount,
)


ADVANCE_ID = uuid4()


def build_app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/advances/missing")
    async def missing_advance():
        raise AdvanceNotFoundException(ADVANCE_ID)

    @app.get("/advances/too-large")
    async def too_large():
        raise AmountExceedsLimitException(
            amount=Decimal("5000.00"), limit=Decimal("4000.00"), ratio=Decimal("0.5"),
        )

    @app.get("/advances/submitted")
    async def submitted():
        raise InvalidStateException(
            "Salary advance", "submit", AdvanceStatus.PENDING, [AdvanceStatus.DRAFT],
        )

    @app.get("/payslips/duplicate")
    async def duplicate():
        raise IntegrityError(
            "INSERT INTO payslips", {}, Exception("duplicate key value violates unique constraint"),
        )

    return app


@pytest.fixture
def app() -> FastAPI:
    return build_app()


class TestExceptionHierarchy:
    """Codes and statuses carried by payroll exceptions."""

    def test_invalid_amount_is_validation_error(self):
        error = InvalidAmountException(Decimal("-1"))

        assert isinstance(error, ValidationException)
        assert error.code == ErrorCode.INVALID_AMOUNT
        assert error.status_code == 422

    def test_amount_exceeds_limit_message(self):
        error = AmountExceedsLimitException(
            amount=Decimal("5000.00"), limit=Decimal("4000.00"), ratio=Decimal("0.5"), currency="EUR",
        )

        assert error.message == "Advance amount cannot exceed 50% of monthly net salary (EUR 4,000.00)"
        assert error.details["requested_amount"] == "5000.00"

    def test_duplicate_period(self):
        employee_id = uuid4()
        error = DuplicatePeriodException(employee_id, 3, 2025)

        assert error.status_code == 409
        assert error.to_dict()["code"] == "DUPLICATE_PERIOD"
        assert error.details == {
            "employee_id": str(employee_id),
            "month": 3,
            "year": 2025,
            "resource_type": "Payslip",
        }

    def test_no_financial_info(self):
        error = NoFinancialInfoException(uuid4())

        assert isinstance(error, AppException)
        assert error.status_code == 422
        assert error.details["violated_rule"] == "FINANCIAL_INFO_REQUIRED"

    def test_invalid_state_lists_allowed_statuses(self):
        error = InvalidStateException(
            "Salary advance", "cancel", AdvanceStatus.APPROVED,
            [AdvanceStatus.DRAFT, AdvanceStatus.PENDING],
        )

        assert error.message == (
            "Can only cancel salary advances in DRAFT or PENDING status (current: APPROVED)"
        )
        assert error.details["allowed_statuses"] == ["DRAFT", "PENDING"]


class TestValidateAmount:
    """Amount coercion."""

    def test_coerces_to_decimal(self):
        assert validate_amount("12.50") == Decimal("12.50")
        assert validate_amount(7) == Decimal("7")

    @pytest.mark.parametrize("value", [0, "-0.01", "NaN", "Infinity", None, "twelve"])
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidAmountException):
            validate_amount(value)

    def test_allow_zero(self):
        assert validate_amount("0", allow_zero=True) == Decimal("0")


class TestExceptionHandlers:
    """Rendering of errors by the registered handlers."""

    @pytest.mark.asyncio
    async def test_not_found(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/advances/missing")

        assert response.status_code == 404
        detail = response.json()["detail"]
        assert detail["code"] == "ADVANCE_NOT_FOUND"
        assert str(ADVANCE_ID) in detail["message"]
        assert detail["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_validation_error_carries_field(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/advances/too-large")

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "AMOUNT_EXCEEDS_LIMIT"
        assert detail["field"] == "amount"
        assert detail["details"]["max_amount"] == "4000.00"

    @pytest.mark.asyncio
    async def test_invalid_state(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/advances/submitted")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_integrity_error(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/payslips/duplicate")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "DUPLICATE_ENTRY"
