"""Add payroll core tables

Revision ID: 20261019_0900
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration creates the payroll core:
- employees: Directory projection used by payroll
- employee_financial_info: Current salary configuration (one per employee)
- bonuses: One-off bonuses consumed by payslip generation
- salary_advances: Salary advances with optional repayment schedule
- advance_repayments: Payroll deductions charged against advances
- payslips: Monthly pay statements with breakdown snapshots
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSON
import uuid


# revision identifiers, used by Alembic.
revision = '20261019_0900'
down_revision = None
branch_labels = None
depends_on = None


ADVANCE_STATUSES = ('DRAFT', 'PENDING', 'APPROVED', 'REJECTED', 'CANCELLED', 'REPAYING', 'COMPLETED')
BONUS_STATUSES = ('DRAFT', 'PENDING', 'APPROVED', 'REJECTED', 'PAID', 'CANCELLED')
BONUS_TYPES = ('PERFORMANCE', 'ANNUAL', 'EXCEPTIONAL', 'PROJECT_COMPLETION', 'RETENTION', 'REFERRAL')
PAYSLIP_STATUSES = ('DRAFT', 'PUBLISHED')


def table_exists(table_name: str) -> bool:
    """Check if a table exists."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return table_name in inspector.get_table_names()


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def money(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(15, 2), **kwargs)


def upgrade() -> None:
    # ===========================================
    # EMPLOYEES
    # ===========================================
    if not table_exists('employees'):
        op.create_table('employees',
            sa.Column('id', UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
            sa.Column('employee_code', sa.String(50), nullable=False, comment='Company staff number e.g., EMP-0042'),
            sa.Column('full_name', sa.String(200), nullable=False),
            sa.Column('email', sa.String(255), nullable=True),
            sa.Column('is_active', sa.Boolean, default=True, nullable=False),
            *timestamps(),

            sa.UniqueConstraint('employee_code', name='uq_employees_employee_code'),
        )

    if not table_exists('employee_financial_info'):
        op.create_table('employee_financial_info',
            sa.Column('id', UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
            sa.Column('employee_id', UUID(as_uuid=True), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),

            money('salary_basic', nullable=True),

            # Allowances
            money('allowance_house_rent', nullable=True),
            money('allowance_medical', nullable=True),
            money('allowance_special', nullable=True),
            money('allowance_fuel', nullable=True),
            money('allowance_phone_bill', nullable=True),
            money('allowance_other', nullable=True),
            money('allowance_total', nullable=True),

            # Deductions
            money('deduction_provident_fund', nullable=True),
            money('deduction_tax', nullable=True),
            money('deduction_other', nullable=True),
            money('deduction_total', nullable=True),

            money('salary_gross', nullable=True),
            money('salary_net', nullable=True, comment='Monthly net salary, used for the advance cap'),
            *timestamps(),

            sa.UniqueConstraint('employee_id', name='uq_employee_financial_info_employee_id'),
        )

    # ===========================================
    # BONUSES
    # ===========================================
    if not table_exists('bonuses'):
        op.create_table('bonuses',
            sa.Column('id', UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
            sa.Column('employee_id', UUID(as_uuid=True), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('bonus_type', sa.Enum(*BONUS_TYPES, name='bonustype'), nullable=False),
            sa.Column('title', sa.String(200), nullable=False),
            sa.Column('description', sa.Text, nullable=True),
            money('amount', nullable=False),
            sa.Column('status', sa.Enum(*BONUS_STATUSES, name='bonusstatus'), nullable=False, index=True),
            sa.Column('approved_by_id', UUID(as_uuid=True), nullable=True),
            sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('payslip_month', sa.Integer, nullable=True),
            sa.Column('payslip_year', sa.Integer, nullable=True),
            sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
            *timestamps(),

            sa.CheckConstraint('amount > 0', name='ck_bonuses_bonus_amount_positive'),
        )

    # ===========================================
    # SALARY ADVANCES
    # ===========================================
    if not table_exists('salary_advances'):
        op.create_table('salary_advances',
            sa.Column('id', UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
            sa.Column('employee_id', UUID(as_uuid=True), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True),
            money('amount', nullable=False, comment='Principal advanced'),
            sa.Column('reason', sa.Text, nullable=False),
            sa.Column('needed_by_date', sa.Date, nullable=True),

            # Repayment schedule
            sa.Column('repayment_months', sa.Integer, nullable=True),
            money('monthly_deduction', nullable=True, comment='amount / repayment_months, rounded to cents'),
            sa.Column('repayment_start', sa.Date, nullable=True, comment='First day of the month following approval'),

            sa.Column('status', sa.Enum(*ADVANCE_STATUSES, name='advancestatus'), nullable=False, index=True),
            sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),

            # Review
            sa.Column('reviewed_by_id', UUID(as_uuid=True), nullable=True),
            sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('reviewer_comment', sa.Text, nullable=True),

            # Repayment progress
            money('total_repaid', nullable=False, server_default='0.00'),
            sa.Column('fully_repaid_at', sa.DateTime(timezone=True), nullable=True),
            *timestamps(),

            sa.CheckConstraint('amount > 0', name='ck_salary_advances_advance_amount_positive'),
            sa.CheckConstraint(
                'repayment_months IS NULL OR (repayment_months >= 1 AND repayment_months <= 12)',
                name='ck_salary_advances_advance_repayment_months_range',
            ),
            sa.CheckConstraint(
                'total_repaid >= 0 AND total_repaid <= amount',
                name='ck_salary_advances_advance_total_repaid_bounds',
            ),
        )

    if not table_exists('advance_repayments'):
        op.create_table('advance_repayments',
            sa.Column('id', UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
            sa.Column('advance_id', UUID(as_uuid=True), sa.ForeignKey('salary_advances.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('payslip_month', sa.Integer, nullable=False),
            sa.Column('payslip_year', sa.Integer, nullable=False),
            money('amount', nullable=False),
            sa.Column('deducted_at', sa.DateTime(timezone=True), nullable=False),
            *timestamps(),

            sa.UniqueConstraint('advance_id', 'payslip_month', 'payslip_year', name='uq_advance_repayment_period'),
            sa.CheckConstraint('amount > 0', name='ck_advance_repayments_repayment_amount_positive'),
        )

    # ===========================================
    # PAYSLIPS
    # ===========================================
    if not table_exists('payslips'):
        op.create_table('payslips',
            sa.Column('id', UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
            sa.Column('employee_id', UUID(as_uuid=True), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('month', sa.Integer, nullable=False),
            sa.Column('year', sa.Integer, nullable=False),

            # Earnings
            money('salary_basic', nullable=False, server_default='0.00'),
            money('salary_gross', nullable=False, server_default='0.00'),
            money('allowances_total', nullable=False, server_default='0.00'),
            money('bonuses_total', nullable=False, server_default='0.00'),

            # Deductions
            money('deductions_total', nullable=False, server_default='0.00'),
            money('advances_deducted', nullable=False, server_default='0.00'),

            # Net Pay
            money('salary_net', nullable=False, server_default='0.00'),

            # Breakdown snapshots
            sa.Column('allowances_breakdown', JSON, nullable=False),
            sa.Column('deductions_breakdown', JSON, nullable=False),
            sa.Column('bonuses_breakdown', JSON, nullable=False),

            sa.Column('status', sa.Enum(*PAYSLIP_STATUSES, name='payslipstatus'), nullable=False, index=True),
            sa.Column('generated_by_id', UUID(as_uuid=True), nullable=True),
            sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('notes', sa.Text, nullable=True),
            *timestamps(),

            sa.UniqueConstraint('employee_id', 'month', 'year', name='uq_payslip_employee_period'),
            sa.CheckConstraint('month >= 1 AND month <= 12', name='ck_payslips_payslip_month_range'),
            sa.CheckConstraint('year >= 2020', name='ck_payslips_payslip_year_min'),
        )


def downgrade() -> None:
    op.drop_table('payslips')
    op.drop_table('advance_repayments')
    op.drop_table('salary_advances')
    op.drop_table('bonuses')
    op.drop_table('employee_financial_info')
    op.drop_table('employees')

    for enum_name in ('payslipstatus', 'advancestatus', 'bonusstatus', 'bonustype'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
