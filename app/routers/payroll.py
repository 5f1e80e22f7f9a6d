"""
Payroll Router

Handles HTTP endpoints for payroll operations.
All business logic is delegated to the payroll service layer.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.payroll import (
    CTCCalculatorRequest,
    LoanCreate,
    LoanResponse,
    PayrollPeriodRequest,
    PayrollRecord,
    PayrollRunResult,
    SalaryBreakdownResult,
    SalaryRevisionPreview,
    SalaryRevisionRequest,
    VariablePaymentCreate,
    VariablePaymentResponse,
)
from app.services import payroll_service


router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
)


class LockPayrollRequest(PayrollPeriodRequest):
    locked_by: Optional[str] = None


class PostPayrollResponse(BaseModel):
    posted: int
    run: PayrollRunResult


@router.post("/calculator", response_model=SalaryBreakdownResult)
def ctc_calculator(request: CTCCalculatorRequest, db: Session = Depends(get_db)):
    """
    Break an annual CTC down into monthly components.
    """
    return payroll_service.calculate_ctc_breakdown(db, request.annual_ctc, request.employee_id)


@router.post("/revision/{employee_id}/preview", response_model=SalaryRevisionPreview)
def preview_salary_revision(
    employee_id: str,
    request: SalaryRevisionRequest,
    db: Session = Depends(get_db)
):
    """
    Compare the current and proposed monthly breakdowns of a CTC revision.
    """
    return payroll_service.preview_salary_revision(db, employee_id, request.new_ctc)


@router.post("/revision/{employee_id}", response_model=SalaryRevisionPreview)
def apply_salary_revision(
    employee_id: str,
    request: SalaryRevisionRequest,
    db: Session = Depends(get_db)
):
    """
    Store a new annual CTC for an employee.
    """
    return payroll_service.apply_salary_revision(db, employee_id, request.new_ctc)


@router.get("/preview/{employee_id}", response_model=PayrollRecord)
def preview_payroll(
    employee_id: str,
    year: int = Query(..., ge=1900, le=9999),
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db)
):
    """
    Calculate one employee's payroll for a period without posting it.
    """
    return payroll_service.preview_employee_payroll(db, employee_id, year, month)


@router.post("/run", response_model=PayrollRunResult)
def run_payroll(request: PayrollPeriodRequest, db: Session = Depends(get_db)):
    """
    Calculate payroll for all employees for a period (preview, nothing is posted).
    """
    return payroll_service.run_payroll(db, request.year, request.month)


@router.post("/post", response_model=PostPayrollResponse)
def post_payroll(request: PayrollPeriodRequest, db: Session = Depends(get_db)):
    """
    Run payroll for a period and post the results to payroll history.

    Re-posting an unlocked period replaces its history.
    """
    result = payroll_service.run_and_post_payroll(db, request.year, request.month)
    return PostPayrollResponse(posted=len(result.records), run=result)


@router.post("/lock")
def lock_payroll_period(payload: LockPayrollRequest, db: Session = Depends(get_db)):
    """
    Lock a payroll period so its posted history cannot be replaced.
    """
    result = payroll_service.lock_payroll_period(
        db,
        payload.month,
        payload.year,
        locked_by=payload.locked_by
    )

    if result["status"] == "already_locked":
        return {"message": "Period already locked", "locked_at": result["lock"]["locked_at"]}

    return {"message": f"Payroll for {payload.month}/{payload.year} locked successfully."}


@router.get("/history/{employee_id}", response_model=List[PayrollRecord])
def get_payroll_history(employee_id: str, db: Session = Depends(get_db)):
    """
    Get posted payroll history for an employee, newest first.
    """
    return payroll_service.get_employee_payroll_history(db, employee_id)


@router.post("/loans", response_model=LoanResponse)
def add_loan(request: LoanCreate, db: Session = Depends(get_db)):
    """
    Record an active employee loan; its EMI is deducted from the start month on.
    """
    return payroll_service.add_loan(
        db,
        request.employee_id,
        request.loan_amount,
        request.emi,
        request.start_date
    )


@router.post("/loans/{loan_id}/paid-off", response_model=LoanResponse)
def mark_loan_paid_off(loan_id: int, db: Session = Depends(get_db)):
    """
    Mark a loan as paid off so it is no longer deducted.
    """
    return payroll_service.mark_loan_paid_off(db, loan_id)


@router.post("/variable-payments", response_model=VariablePaymentResponse)
def add_variable_payment(request: VariablePaymentCreate, db: Session = Depends(get_db)):
    """
    Record a one-off earning or deduction for an employee's payroll month.
    """
    return payroll_service.add_variable_payment(
        db,
        request.employee_id,
        request.year,
        request.month,
        request.description,
        request.type,
        request.amount
    )
