"""
Salary Components Router

Configuration endpoints for the organisation default salary structure and
per-employee custom structures. Every save replaces the whole set and is
validated before anything is persisted.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.payroll import (
    ComponentSetRequest,
    ComponentValidationResponse,
    SalaryComponent,
)
from app.services import payroll_service
from app.services.salary_calculator import component_set_problems


router = APIRouter(
    prefix="/payroll/components",
    tags=["salary-components"],
)


@router.get("", response_model=List[SalaryComponent])
def get_default_components(db: Session = Depends(get_db)):
    """
    Get the organisation default salary structure in evaluation order.
    """
    return payroll_service.get_default_components(db)


@router.put("", response_model=List[SalaryComponent])
def replace_default_components(request: ComponentSetRequest, db: Session = Depends(get_db)):
    """
    Replace the organisation default salary structure.

    Rejected with 422 when the set does not have exactly one balance
    earning component, repeats a name, or has more than one Basic anchor.
    """
    return payroll_service.replace_default_components(db, request.components)


@router.post("/validate", response_model=ComponentValidationResponse)
def validate_components(request: ComponentSetRequest):
    """
    Check a component set without saving it.
    """
    problems = component_set_problems(request.components)
    return ComponentValidationResponse(valid=not problems, problems=problems)


@router.get("/employee/{employee_id}", response_model=Optional[List[SalaryComponent]])
def get_employee_components(employee_id: str, db: Session = Depends(get_db)):
    """
    Get an employee's custom salary structure (null when the default applies).
    """
    return payroll_service.get_employee_components(db, employee_id)


@router.put("/employee/{employee_id}", response_model=Optional[List[SalaryComponent]])
def replace_employee_components(
    employee_id: str,
    request: ComponentSetRequest,
    db: Session = Depends(get_db)
):
    """
    Replace an employee's custom salary structure. An empty list reverts to the default.
    """
    return payroll_service.replace_employee_components(db, employee_id, request.components)
