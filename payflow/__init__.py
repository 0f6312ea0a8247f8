"""
PayFlow HR - Payroll Core

Salary advances, advance repayments and monthly payslips.
"""

__version__ = "0.1.0"
