from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base
import enum

class PayrollStatus(str, enum.Enum):
    POSTED = "posted"
    PAID = "paid"

class Payroll(Base):
    """Posted payroll history, one row per employee per period."""
    __tablename__ = "payrolls"
    __table_args__ = (
        UniqueConstraint("employee_id", "year", "month", name="uq_payroll_employee_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    record_id = Column(String, index=True) # "<employee_id>-<year>-<month>"
    employee_id = Column(String, index=True)
    month = Column(Integer)
    year = Column(Integer)
    basic = Column(Integer, default=0)
    hra = Column(Integer, default=0)
    special_allowance = Column(Integer, default=0)
    provident_fund = Column(Integer, default=0)
    professional_tax = Column(Integer, default=0)
    income_tax = Column(Integer, default=0)
    gross_earnings = Column(Integer, default=0)
    total_deductions = Column(Integer, default=0)
    net_salary = Column(Integer, default=0)
    paid_days = Column(Float, default=0.0)
    total_days_in_month = Column(Integer)
    attendance_summary = Column(JSON)
    leave_summary = Column(JSON)
    component_breakdown = Column(JSON)
    loan_deduction = Column(Float, default=0.0)
    variable_payments = Column(JSON)
    status = Column(String, default=PayrollStatus.POSTED.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class PayrollLock(Base):
    __tablename__ = "payroll_locks"
    __table_args__ = (
        UniqueConstraint("year", "month", name="uq_payroll_lock_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    month = Column(Integer)
    year = Column(Integer)
    locked_by = Column(String, nullable=True)
    locked_at = Column(DateTime(timezone=True), server_default=func.now())
