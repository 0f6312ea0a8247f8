"""
PayFlow HR - Bonus Model

Bonuses are granted and approved elsewhere. Payslip generation consumes
APPROVED bonuses that are not yet linked to a period and marks them PAID.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    DateTime, ForeignKey, Integer, Numeric, String, Text,
    Enum as SQLEnum, CheckConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from payflow.models.base import BaseModel


class BonusType(str, Enum):
    """Bonus type classification."""
    PERFORMANCE = "performance"
    ANNUAL = "annual"
    EXCEPTIONAL = "exceptional"
    PROJECT_COMPLETION = "project_completion"
    RETENTION = "retention"
    REFERRAL = "referral"


class BonusStatus(str, Enum):
    """Bonus status."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    CANCELLED = "cancelled"


class Bonus(BaseModel):
    """One-off bonus awarded to an employee."""

    __tablename__ = "bonuses"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    bonus_type: Mapped[BonusType] = mapped_column(
        SQLEnum(BonusType),
        default=BonusType.PERFORMANCE,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )

    status: Mapped[BonusStatus] = mapped_column(
        SQLEnum(BonusStatus),
        default=BonusStatus.DRAFT,
        nullable=False,
        index=True,
    )
    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # Set when a payslip consumes the bonus
    payslip_month: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    payslip_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    __table_args__ = (
        CheckConstraint('amount > 0', name='bonus_amount_positive'),
    )

    @property
    def is_eligible_for_payslip(self) -> bool:
        """Approved and not yet linked to any payslip period."""
        return self.status == BonusStatus.APPROVED and self.payslip_month is None

    def __repr__(self) -> str:
        return f"<Bonus(id={self.id}, amount={self.amount}, status={self.status})>"
