from sqlalchemy import Column, Integer, String, Float, DateTime
from sqlalchemy.sql import func
from app.database import Base

class VariablePayment(Base):
    __tablename__ = "variable_payments"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True)
    year = Column(Integer, index=True)
    month = Column(Integer, index=True)
    description = Column(String)
    type = Column(String) # "earning" or "deduction"
    amount = Column(Float, default=0.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
