# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    employee, attendance, leave_request, loan, variable_payment,
    investment_declaration, salary_component, payroll
)

# Explicit class exports for cleaner imports
from .employee import Employee
from .salary_component import SalaryComponentRule
from .payroll import Payroll, PayrollLock

__all__ = [
    "Employee",
    "SalaryComponentRule",
    "Payroll",
    "PayrollLock",
]
