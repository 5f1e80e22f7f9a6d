from sqlalchemy import Column, String, Float, DateTime
from sqlalchemy.sql import func
from app.database import Base

class Employee(Base):
    __tablename__ = "employees"

    id = Column(String, primary_key=True, index=True)
    name = Column(String)
    ctc = Column(Float, nullable=True) # Annual Cost To Company
    created_at = Column(DateTime(timezone=True), server_default=func.now())
