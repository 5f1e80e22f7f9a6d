from sqlalchemy import Column, Integer, String, Date, DateTime
from sqlalchemy.sql import func
from app.database import Base
from app.schemas.payroll import LeaveStatus

class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True)
    leave_type = Column(String, index=True) # LeaveType value, e.g. "Casual Leave"
    start_date = Column(Date)
    end_date = Column(Date)
    reason = Column(String, nullable=True)
    status = Column(String, default=LeaveStatus.PENDING_REPORTING_MANAGER_APPROVAL.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
