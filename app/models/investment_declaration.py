from sqlalchemy import Column, Integer, String, Float
from app.database import Base
from app.schemas.payroll import DeclarationStatus

class InvestmentDeclaration(Base):
    __tablename__ = "investment_declarations"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True)
    financial_year = Column(String, index=True) # e.g. "2024-2025"
    section = Column(String) # e.g. "80C", "80D"
    declared_amount = Column(Float, default=0.0)
    status = Column(String, default=DeclarationStatus.PENDING.value)
