from sqlalchemy import Column, Integer, String, Float, Date, DateTime
from sqlalchemy.sql import func
from app.database import Base
from app.schemas.payroll import LoanStatus

class EmployeeLoan(Base):
    __tablename__ = "employee_loans"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True)
    loan_amount = Column(Float)
    emi = Column(Float) # Fixed monthly deduction
    start_date = Column(Date)
    end_date = Column(Date, nullable=True)
    status = Column(String, default=LoanStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
