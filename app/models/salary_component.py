from sqlalchemy import Column, Integer, String, Float, Boolean
from app.database import Base

class SalaryComponentRule(Base):
    """
    One persisted salary component rule.

    Rows with ``employee_id`` NULL form the organisation default set; rows
    with an employee id form that employee's custom structure. A set is
    always replaced as a whole, never edited row by row.
    """
    __tablename__ = "salary_component_rules"

    id = Column(Integer, primary_key=True, index=True)
    component_id = Column(String, index=True)
    employee_id = Column(String, index=True, nullable=True)
    name = Column(String)
    component_type = Column(String) # "earning" or "deduction"
    calculation_type = Column(String) # Store enum value as string
    value = Column(Float, default=0.0) # Percentage or fixed amount
    sort_order = Column(Integer, default=0)
    editable = Column(Boolean, default=True)
    is_basic_anchor = Column(Boolean, default=False)
