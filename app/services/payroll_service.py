"""
Payroll Service Layer

This module provides the business logic layer for payroll operations.
It encapsulates all database access, keeping the router focused on
HTTP request/response handling and the payroll engine free of I/O.

Architecture:
- Router -> Service (this module) -> Models / Payroll engine
- Inputs are read once per run and become immutable snapshots per employee
- A component set is always replaced as a whole inside one transaction
"""

import calendar
import logging
import math
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AppException, NotFoundError, PayrollLockedError
from app.models.attendance import AttendanceRecord as AttendanceRow
from app.models.employee import Employee as EmployeeRow
from app.models.investment_declaration import InvestmentDeclaration as DeclarationRow
from app.models.leave_request import LeaveRequest as LeaveRow
from app.models.loan import EmployeeLoan as LoanRow
from app.models.payroll import Payroll, PayrollLock, PayrollStatus
from app.models.salary_component import SalaryComponentRule
from app.models.variable_payment import VariablePayment as VariablePaymentRow
from app.schemas.payroll import (
    AttendanceRecord,
    CalculationType,
    ComponentKind,
    Employee,
    EmployeeLoan,
    InvestmentDeclaration,
    LeaveRequest,
    LeaveStatus,
    LoanStatus,
    PayrollRecord,
    PayrollRunError,
    PayrollRunResult,
    SalaryBreakdownResult,
    SalaryComponent,
    SalaryRevisionPreview,
    VariablePayment,
)
from app.services.payroll_engine import compute_monthly_payroll, days_in_month, financial_year_label
from app.services.salary_calculator import normalize_component_order, resolve, validate_component_set

logger = logging.getLogger(__name__)

DEFAULT_COMPONENTS = [
    SalaryComponent(id="c1", name="Basic", type=ComponentKind.EARNING,
                    calculation_type=CalculationType.PERCENTAGE_OF_GROSS, value=40, order=1,
                    is_basic_anchor=True),
    SalaryComponent(id="c2", name="HRA", type=ComponentKind.EARNING,
                    calculation_type=CalculationType.PERCENTAGE_OF_BASIC, value=50, order=2),
    SalaryComponent(id="c3", name="Special Allowance", type=ComponentKind.EARNING,
                    calculation_type=CalculationType.BALANCE_COMPONENT, value=0, order=100,
                    editable=False),
    SalaryComponent(id="c4", name="Provident Fund", type=ComponentKind.DEDUCTION,
                    calculation_type=CalculationType.PERCENTAGE_OF_BASIC, value=12, order=201),
    SalaryComponent(id="c5", name="Professional Tax", type=ComponentKind.DEDUCTION,
                    calculation_type=CalculationType.FIXED_AMOUNT, value=200, order=202,
                    editable=False),
    # Placeholder; the engine replaces it with the slab based estimate
    SalaryComponent(id="c6", name="Income Tax (TDS)", type=ComponentKind.DEDUCTION,
                    calculation_type=CalculationType.PERCENTAGE_OF_GROSS, value=5, order=203),
]


# ---------------------------------------------------------------------------
# Salary component configuration
# ---------------------------------------------------------------------------

def _component_snapshot(row: SalaryComponentRule) -> SalaryComponent:
    return SalaryComponent(
        id=row.component_id,
        name=row.name,
        type=row.component_type,
        calculation_type=row.calculation_type,
        value=row.value or 0.0,
        order=row.sort_order or 0,
        editable=bool(row.editable),
        is_basic_anchor=bool(row.is_basic_anchor),
    )


def _component_rows(db: Session, employee_id: Optional[str]) -> List[SalaryComponentRule]:
    query = db.query(SalaryComponentRule)
    if employee_id is None:
        query = query.filter(SalaryComponentRule.employee_id.is_(None))
    else:
        query = query.filter(SalaryComponentRule.employee_id == employee_id)
    return query.order_by(SalaryComponentRule.sort_order, SalaryComponentRule.id).all()


def get_default_components(db: Session) -> List[SalaryComponent]:
    """Organisation-wide salary structure, in evaluation order."""
    return [_component_snapshot(r) for r in _component_rows(db, None)]


def get_employee_components(db: Session, employee_id: str) -> Optional[List[SalaryComponent]]:
    """Custom salary structure of an employee, or None when the employee uses the default."""
    _get_employee_row(db, employee_id)
    rows = _component_rows(db, employee_id)
    if not rows:
        return None
    return [_component_snapshot(r) for r in rows]


def _replace_components(
    db: Session,
    employee_id: Optional[str],
    components: Sequence[SalaryComponent],
) -> List[SalaryComponent]:
    normalized = normalize_component_order(components)

    db.query(SalaryComponentRule).filter(
        SalaryComponentRule.employee_id.is_(None) if employee_id is None
        else SalaryComponentRule.employee_id == employee_id
    ).delete(synchronize_session=False)

    for comp in normalized:
        db.add(SalaryComponentRule(
            component_id=comp.id,
            employee_id=employee_id,
            name=comp.name.strip(),
            component_type=comp.type.value,
            calculation_type=comp.calculation_type.value,
            value=comp.value,
            sort_order=comp.order,
            editable=comp.editable,
            is_basic_anchor=comp.is_basic_anchor,
        ))
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return normalized


def replace_default_components(db: Session, components: Sequence[SalaryComponent]) -> List[SalaryComponent]:
    """
    Validate and atomically replace the organisation default component set.

    Raises:
        ComponentConfigError: if the set is structurally invalid (nothing is saved)
    """
    validate_component_set(components)
    saved = _replace_components(db, None, components)
    logger.info(f"Default salary structure replaced with {len(saved)} components")
    return saved


def replace_employee_components(
    db: Session,
    employee_id: str,
    components: Sequence[SalaryComponent],
) -> Optional[List[SalaryComponent]]:
    """
    Replace an employee's custom salary structure.

    An empty list removes the custom structure so the default applies again.
    """
    _get_employee_row(db, employee_id)
    if not components:
        _replace_components(db, employee_id, [])
        logger.info(f"Custom salary structure removed for employee {employee_id}")
        return None
    validate_component_set(components)
    saved = _replace_components(db, employee_id, components)
    logger.info(f"Custom salary structure for employee {employee_id} replaced with {len(saved)} components")
    return saved


def seed_default_components(db: Session) -> bool:
    """Install the default salary structure when no organisation set exists yet."""
    if _component_rows(db, None):
        return False
    _replace_components(db, None, DEFAULT_COMPONENTS)
    logger.info("✓ Seeded default salary structure")
    return True


# ---------------------------------------------------------------------------
# Input snapshots
# ---------------------------------------------------------------------------

def _get_employee_row(db: Session, employee_id: str) -> EmployeeRow:
    employee = db.query(EmployeeRow).filter(EmployeeRow.id == employee_id).first()
    if not employee:
        raise NotFoundError(f"Employee {employee_id} not found")
    return employee


def _group_by_employee(rows: Iterable) -> Dict[str, list]:
    grouped: Dict[str, list] = defaultdict(list)
    for row in rows:
        grouped[row.employee_id].append(row)
    return grouped


class PayrollSnapshot:
    """Raw rows for one payroll period, grouped by employee id."""

    def __init__(self, db: Session, year: int, month: int, employee_ids: Optional[List[str]] = None):
        first_day = date(year, month, 1)
        last_day = date(year, month, days_in_month(year, month))

        def scoped(query, column):
            if employee_ids is not None:
                query = query.filter(column.in_(employee_ids))
            return query

        self.attendance = _group_by_employee(scoped(
            db.query(AttendanceRow).filter(
                AttendanceRow.attendance_date >= first_day,
                AttendanceRow.attendance_date <= last_day,
            ),
            AttendanceRow.employee_id,
        ).all())
        self.leave_requests = _group_by_employee(scoped(
            db.query(LeaveRow).filter(LeaveRow.status == LeaveStatus.APPROVED.value),
            LeaveRow.employee_id,
        ).all())
        self.declarations = _group_by_employee(scoped(
            db.query(DeclarationRow).filter(DeclarationRow.financial_year == financial_year_label(year)),
            DeclarationRow.employee_id,
        ).all())
        self.loans = _group_by_employee(scoped(
            db.query(LoanRow).filter(LoanRow.status == LoanStatus.ACTIVE.value).order_by(LoanRow.id),
            LoanRow.employee_id,
        ).all())
        self.variable_payments = _group_by_employee(scoped(
            db.query(VariablePaymentRow).filter(
                VariablePaymentRow.year == year,
                VariablePaymentRow.month == month,
            ),
            VariablePaymentRow.employee_id,
        ).all())
        self.custom_components = _group_by_employee(scoped(
            db.query(SalaryComponentRule).filter(SalaryComponentRule.employee_id.isnot(None)),
            SalaryComponentRule.employee_id,
        ).all())


def load_payroll_snapshot(
    db: Session,
    year: int,
    month: int,
    employee_ids: Optional[List[str]] = None,
) -> PayrollSnapshot:
    """
    Read every payroll input for a period with one query per collection.

    Rows are grouped by employee but stay ORM rows; each employee's rows
    become pydantic snapshots when that employee is computed.
    """
    snapshot = PayrollSnapshot(db, year, month, employee_ids)
    logger.debug(
        f"Loaded payroll inputs for {month}/{year}: "
        f"{sum(len(v) for v in snapshot.attendance.values())} attendance rows, "
        f"{sum(len(v) for v in snapshot.loans.values())} active loans"
    )
    return snapshot


def _compute_for_employee(
    row: EmployeeRow,
    inputs: PayrollSnapshot,
    year: int,
    month: int,
    fallback_components: Sequence[SalaryComponent],
) -> PayrollRecord:
    """Snapshot one employee's rows and run the engine on them."""
    custom = sorted(inputs.custom_components.get(row.id, []), key=lambda r: (r.sort_order or 0, r.id))
    employee = Employee(
        id=row.id,
        name=row.name or "",
        ctc=row.ctc,
        salary_structure=[_component_snapshot(r) for r in custom] or None,
    )
    return compute_monthly_payroll(
        employee,
        year,
        month,
        attendance=[AttendanceRecord.model_validate(r) for r in inputs.attendance.get(row.id, [])],
        leave_requests=[LeaveRequest.model_validate(r) for r in inputs.leave_requests.get(row.id, [])],
        declarations=[InvestmentDeclaration.model_validate(r) for r in inputs.declarations.get(row.id, [])],
        loans=[EmployeeLoan.model_validate(r) for r in inputs.loans.get(row.id, [])],
        variable_payments=[VariablePayment.model_validate(r) for r in inputs.variable_payments.get(row.id, [])],
        fallback_components=fallback_components,
        standard_deduction=settings.payroll.standard_deduction,
    )


# ---------------------------------------------------------------------------
# Payroll runs
# ---------------------------------------------------------------------------

def preview_employee_payroll(db: Session, employee_id: str, year: int, month: int) -> PayrollRecord:
    """
    Calculate (without posting) one employee's payroll for a period.

    Raises:
        NotFoundError: if the employee does not exist
    """
    employee = _get_employee_row(db, employee_id)
    inputs = load_payroll_snapshot(db, year, month, employee_ids=[employee_id])
    return _compute_for_employee(employee, inputs, year, month, get_default_components(db))


def run_payroll(db: Session, year: int, month: int) -> PayrollRunResult:
    """
    Calculate payroll for every employee for a period.

    The default component set is read once at the start of the run. Each
    employee is computed independently; a failure is recorded against that
    employee and the run carries on.
    """
    employees = db.query(EmployeeRow).order_by(EmployeeRow.id).all()
    fallback_components = get_default_components(db)
    inputs = load_payroll_snapshot(db, year, month)

    records: List[PayrollRecord] = []
    errors: List[PayrollRunError] = []
    for emp in employees:
        try:
            records.append(_compute_for_employee(emp, inputs, year, month, fallback_components))
        except Exception as e:
            logger.error(f"Payroll calculation failed for employee {emp.id} ({month}/{year}): {e}")
            errors.append(PayrollRunError(employee_id=emp.id, error=str(e)))

    total_gross = sum(r.gross_earnings for r in records)
    total_deductions = sum(r.total_deductions for r in records)

    logger.info(
        f"Payroll run {month}/{year}: {len(records)}/{len(employees)} calculated, "
        f"{len(errors)} failed, gross={total_gross}, net={total_gross - total_deductions}"
    )
    return PayrollRunResult(
        year=year,
        month=month,
        processed=len(records),
        employee_count=len(employees),
        total_gross=total_gross,
        total_deductions=total_deductions,
        total_net=total_gross - total_deductions,
        records=records,
        errors=errors,
    )


def check_payroll_lock(db: Session, month: int, year: int) -> Optional[Dict]:
    """Return lock info if the period is locked, None otherwise."""
    lock = db.query(PayrollLock).filter(
        PayrollLock.month == month,
        PayrollLock.year == year,
    ).first()

    if lock:
        return {
            "id": lock.id,
            "month": lock.month,
            "year": lock.year,
            "locked_at": lock.locked_at.isoformat() if lock.locked_at else None,
            "locked_by": lock.locked_by,
        }
    return None


def lock_payroll_period(db: Session, month: int, year: int, locked_by: Optional[str] = None) -> Dict:
    """Lock a payroll period so its posted history can no longer be replaced."""
    existing = check_payroll_lock(db, month, year)
    if existing:
        return {"status": "already_locked", "lock": existing}

    new_lock = PayrollLock(month=month, year=year, locked_by=locked_by)
    db.add(new_lock)
    try:
        db.commit()
        db.refresh(new_lock)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Payroll period {month}/{year} locked by {locked_by or 'system'}")
    return {"status": "locked", "lock": check_payroll_lock(db, month, year)}


def post_payroll(db: Session, records: Sequence[PayrollRecord], year: int, month: int) -> int:
    """
    Post a period's payroll records to history.

    History already posted for the period is replaced per employee; rows of
    employees without a new record (e.g. a failed calculation) are kept.

    Raises:
        PayrollLockedError: if the period is locked
    """
    if check_payroll_lock(db, month, year):
        raise PayrollLockedError(month, year)

    for record in records:
        if record.year != year or record.month != month:
            raise AppException(
                f"Record {record.id} does not belong to payroll period {month}/{year}",
                error_code="PAYROLL_PERIOD_MISMATCH",
            )

    employee_ids = {record.employee_id for record in records}
    replaced = 0
    if employee_ids:
        replaced = db.query(Payroll).filter(
            Payroll.year == year,
            Payroll.month == month,
            Payroll.employee_id.in_(employee_ids),
        ).delete(synchronize_session=False)

    for record in records:
        data = record.model_dump(mode="json")
        data["record_id"] = data.pop("id")
        db.add(Payroll(status=PayrollStatus.POSTED.value, **data))
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Posted {len(records)} payroll records for {month}/{year} (replaced {replaced})")
    return len(records)


def run_and_post_payroll(db: Session, year: int, month: int) -> PayrollRunResult:
    """Run payroll for a period and post every successfully computed record."""
    if check_payroll_lock(db, month, year):
        raise PayrollLockedError(month, year)
    result = run_payroll(db, year, month)
    post_payroll(db, result.records, year, month)
    return result


def _history_to_record(row: Payroll) -> PayrollRecord:
    return PayrollRecord(
        id=row.record_id,
        employee_id=row.employee_id,
        year=row.year,
        month=row.month,
        basic=row.basic,
        hra=row.hra,
        special_allowance=row.special_allowance,
        provident_fund=row.provident_fund,
        professional_tax=row.professional_tax,
        income_tax=row.income_tax,
        gross_earnings=row.gross_earnings,
        total_deductions=row.total_deductions,
        net_salary=row.net_salary,
        paid_days=row.paid_days,
        total_days_in_month=row.total_days_in_month,
        attendance_summary=row.attendance_summary or {},
        leave_summary=row.leave_summary or {},
        component_breakdown=row.component_breakdown or {},
        loan_deduction=row.loan_deduction or 0.0,
        variable_payments=row.variable_payments or {},
    )


def get_employee_payroll_history(db: Session, employee_id: str) -> List[PayrollRecord]:
    """Posted payroll records of an employee, newest period first."""
    rows = db.query(Payroll).filter(
        Payroll.employee_id == employee_id
    ).order_by(Payroll.year.desc(), Payroll.month.desc()).all()
    return [_history_to_record(r) for r in rows]


# ---------------------------------------------------------------------------
# Loans, variable pay and the CTC calculator
# ---------------------------------------------------------------------------

def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def loan_end_date(start_date: date, loan_amount: float, emi: float) -> date:
    """End of repayment: the start date plus ceil(loan_amount / emi) months."""
    if emi <= 0:
        raise AppException("Loan EMI must be greater than zero", error_code="INVALID_LOAN")
    return _add_months(start_date, math.ceil(loan_amount / emi))


def add_loan(db: Session, employee_id: str, loan_amount: float, emi: float, start_date: date) -> LoanRow:
    _get_employee_row(db, employee_id)
    loan = LoanRow(
        employee_id=employee_id,
        loan_amount=loan_amount,
        emi=emi,
        start_date=start_date,
        end_date=loan_end_date(start_date, loan_amount, emi),
        status=LoanStatus.ACTIVE.value,
    )
    db.add(loan)
    try:
        db.commit()
        db.refresh(loan)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Loan {loan.id} added for employee {employee_id} (EMI {emi:.2f})")
    return loan


def mark_loan_paid_off(db: Session, loan_id: int) -> LoanRow:
    loan = db.query(LoanRow).filter(LoanRow.id == loan_id).first()
    if not loan:
        raise NotFoundError(f"Loan {loan_id} not found")
    loan.status = LoanStatus.PAID_OFF.value
    try:
        db.commit()
        db.refresh(loan)
    except Exception:
        db.rollback()
        raise
    return loan


def add_variable_payment(
    db: Session,
    employee_id: str,
    year: int,
    month: int,
    description: str,
    payment_type: ComponentKind,
    amount: float,
) -> VariablePaymentRow:
    _get_employee_row(db, employee_id)
    payment = VariablePaymentRow(
        employee_id=employee_id,
        year=year,
        month=month,
        description=description,
        type=ComponentKind(payment_type).value,
        amount=amount,
    )
    db.add(payment)
    try:
        db.commit()
        db.refresh(payment)
    except Exception:
        db.rollback()
        raise
    return payment


def calculate_ctc_breakdown(
    db: Session,
    annual_ctc: float,
    employee_id: Optional[str] = None,
) -> SalaryBreakdownResult:
    """Monthly breakdown of an annual CTC against the employee's (or the default) structure."""
    components = None
    if employee_id is not None:
        components = get_employee_components(db, employee_id)
    if not components:
        components = get_default_components(db)
    return resolve(annual_ctc / 12, components)


# ---------------------------------------------------------------------------
# Salary revisions
# ---------------------------------------------------------------------------

def preview_salary_revision(db: Session, employee_id: str, new_ctc: float) -> SalaryRevisionPreview:
    """
    Compare the monthly breakdown of an employee's current CTC with a proposed one.

    Both sides use the employee's custom structure, or the default when there is none.

    Raises:
        NotFoundError: if the employee does not exist
        AppException: if the new CTC is not positive or equals the current CTC
    """
    employee = _get_employee_row(db, employee_id)
    current_ctc = employee.ctc or 0.0
    if new_ctc <= 0:
        raise AppException("Please enter a valid CTC amount.", error_code="INVALID_CTC")
    if new_ctc == current_ctc:
        raise AppException("The new CTC is the same as the current CTC.", error_code="CTC_UNCHANGED")

    return SalaryRevisionPreview(
        employee_id=employee_id,
        current_ctc=current_ctc,
        new_ctc=new_ctc,
        current=calculate_ctc_breakdown(db, current_ctc, employee_id),
        proposed=calculate_ctc_breakdown(db, new_ctc, employee_id),
    )


def apply_salary_revision(db: Session, employee_id: str, new_ctc: float) -> SalaryRevisionPreview:
    """Validate a revision like ``preview_salary_revision`` and store the new CTC."""
    revision = preview_salary_revision(db, employee_id, new_ctc)
    employee = _get_employee_row(db, employee_id)
    employee.ctc = new_ctc
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"CTC for employee {employee_id} revised from {revision.current_ctc:.2f} to {new_ctc:.2f}")
    return revision
