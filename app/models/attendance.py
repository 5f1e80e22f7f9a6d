from sqlalchemy import Column, Integer, String, Date, UniqueConstraint
from app.database import Base

class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("employee_id", "attendance_date", name="uq_attendance_employee_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True)
    attendance_date = Column(Date, index=True)
    status = Column(String) # AttendanceStatus value, e.g. "Present", "Half Day Leave"
