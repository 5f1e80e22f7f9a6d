"""
Pro-Rata Payroll Engine

Computes one employee's payroll record for one calendar month from
immutable input snapshots:

- attendance for the month decides the paid days
- annual CTC is pro-rated to the paid days and broken down by the
  salary structure resolver
- variable payments, the active loan EMI and a recomputed income tax
  estimate are layered on top

Every function here is pure. Nothing reads the database and no input
collection is mutated, so a payroll run is a set of independent calls.
"""

import calendar
import logging
import math
from datetime import date
from typing import Dict, Iterable, Optional, Sequence

from app.core.config import settings
from app.schemas.payroll import (
    AttendanceRecord,
    AttendanceStatus,
    AttendanceSummary,
    ComponentKind,
    DeclarationStatus,
    Employee,
    EmployeeLoan,
    InvestmentDeclaration,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    LoanStatus,
    PayrollRecord,
    SalaryComponent,
    VariablePayment,
)
from app.services.salary_calculator import resolve

logger = logging.getLogger(__name__)

# Breakdown keys projected onto the fixed payroll record fields
BASIC = "Basic"
HRA = "HRA"
SPECIAL_ALLOWANCE = "Special Allowance"
PROVIDENT_FUND = "Provident Fund"
PROFESSIONAL_TAX = "Professional Tax"
INCOME_TAX = "Income Tax (TDS)"

# (upper bound inclusive, base tax, rate, slab floor); illustrative INR slabs
TAX_SLABS = (
    (300000.0, 0.0, 0.0, 0.0),
    (600000.0, 0.0, 0.05, 300000.0),
    (900000.0, 15000.0, 0.10, 600000.0),
    (1200000.0, 45000.0, 0.15, 900000.0),
    (1500000.0, 90000.0, 0.20, 1200000.0),
)
TOP_SLAB = (150000.0, 0.30, 1500000.0)

_ATTENDANCE_FIELDS = {
    AttendanceStatus.PRESENT: "present",
    AttendanceStatus.ABSENT: "absent",
    AttendanceStatus.ON_LEAVE: "on_leave",
    AttendanceStatus.HOLIDAY: "holiday",
    AttendanceStatus.WEEK_OFF: "week_off",
    AttendanceStatus.HALF_DAY_LEAVE: "half_day_leave",
    AttendanceStatus.HALF_DAY_PRESENT_ABSENT: "half_day_present_absent",
}


def calculate_annual_tax(annual_taxable_income: float) -> float:
    """Progressive annual tax on the taxable income, using inclusive slab thresholds."""
    for upper, base, rate, floor in TAX_SLABS:
        if annual_taxable_income <= upper:
            return base + (annual_taxable_income - floor) * rate
    base, rate, floor = TOP_SLAB
    return base + (annual_taxable_income - floor) * rate


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def financial_year_label(year: int) -> str:
    return f"{year}-{year + 1}"


def round_currency(amount: float) -> int:
    """Round half-up to the nearest whole currency unit."""
    return int(math.floor(amount + 0.5))


def summarize_attendance(
    attendance: Iterable[AttendanceRecord],
    employee_id: str,
    year: int,
    month: int,
) -> AttendanceSummary:
    counts: Dict[str, int] = {}
    for record in attendance:
        if record.employee_id != employee_id:
            continue
        if record.attendance_date.year != year or record.attendance_date.month != month:
            continue
        field = _ATTENDANCE_FIELDS[AttendanceStatus(record.status)]
        counts[field] = counts.get(field, 0) + 1
    return AttendanceSummary(**counts)


def summarize_leave(leave_requests: Iterable[LeaveRequest], employee_id: str) -> Dict[str, int]:
    """
    Count approved leave requests per leave type.

    Each approved request counts as one, whatever its date range, and
    requests are not restricted to the payroll month.
    """
    summary = {leave_type.value: 0 for leave_type in LeaveType}
    for request in leave_requests:
        if request.employee_id != employee_id or request.status != LeaveStatus.APPROVED:
            continue
        key = LeaveType(request.leave_type).value
        summary[key] = summary.get(key, 0) + 1
    return summary


def calculate_paid_days(summary: AttendanceSummary, total_days: int) -> float:
    paid_days = (
        summary.present
        + summary.on_leave
        + summary.holiday
        + summary.week_off
        + 0.5 * (summary.half_day_leave + summary.half_day_present_absent)
    )
    if paid_days > total_days:
        # More than one record for the same day
        logger.warning(f"Paid days {paid_days} exceed {total_days} days in month; clamping")
        paid_days = float(total_days)
    return max(0.0, paid_days)


def pro_rata_monthly_gross(annual_ctc: float, total_days: int, paid_days: float) -> float:
    if total_days <= 0:
        return 0.0
    return (annual_ctc / 12 / total_days) * paid_days


def find_active_loan(loans: Iterable[EmployeeLoan], employee_id: str) -> Optional[EmployeeLoan]:
    return next(
        (l for l in loans if l.employee_id == employee_id and l.status == LoanStatus.ACTIVE),
        None,
    )


def approved_declarations_total(
    declarations: Iterable[InvestmentDeclaration],
    employee_id: str,
    financial_year: str,
) -> float:
    return sum(
        d.declared_amount
        for d in declarations
        if d.employee_id == employee_id
        and d.status == DeclarationStatus.APPROVED
        and d.financial_year == financial_year
    )


def compute_monthly_payroll(
    employee: Employee,
    year: int,
    month: int,
    attendance: Sequence[AttendanceRecord],
    leave_requests: Sequence[LeaveRequest],
    declarations: Sequence[InvestmentDeclaration],
    loans: Sequence[EmployeeLoan],
    variable_payments: Sequence[VariablePayment],
    fallback_components: Sequence[SalaryComponent],
    standard_deduction: Optional[float] = None,
) -> PayrollRecord:
    """
    Calculate the pro-rata payroll record for a single employee and month.

    Args:
        employee: Employee snapshot (annual CTC and optional custom structure)
        year: Payroll year
        month: Payroll month (1-12)
        attendance: Attendance records; filtered to the employee and month here
        leave_requests: Leave requests; only the employee's approved ones count
        declarations: Investment declarations; approved ones for the year reduce tax
        loans: Loan records; the employee's first active loan is deducted
        variable_payments: One-off payments; filtered to the employee and month here
        fallback_components: Organisation salary structure used when the employee has none
        standard_deduction: Annual standard deduction; defaults to the configured value

    Returns:
        PayrollRecord with rounded monetary fields and the unrounded breakdown
    """
    if standard_deduction is None:
        standard_deduction = settings.payroll.standard_deduction

    total_days = days_in_month(year, month)

    attendance_summary = summarize_attendance(attendance, employee.id, year, month)
    leave_summary = summarize_leave(leave_requests, employee.id)
    paid_days = calculate_paid_days(attendance_summary, total_days)

    ctc = employee.ctc or 0.0
    monthly_gross = pro_rata_monthly_gross(ctc, total_days, paid_days)
    components = employee.salary_structure or fallback_components

    initial = resolve(monthly_gross, components)
    breakdown = dict(initial.components)
    gross_earnings = initial.gross
    total_deductions = initial.deductions

    variable_breakdown: Dict[str, float] = {}
    for payment in variable_payments:
        if payment.employee_id != employee.id or payment.year != year or payment.month != month:
            continue
        kind = ComponentKind(payment.type)
        variable_breakdown[f"{payment.description} ({kind.value})"] = payment.amount
        if kind == ComponentKind.EARNING:
            gross_earnings += payment.amount
        else:
            total_deductions += payment.amount

    loan_deduction = 0.0
    loan = find_active_loan(loans, employee.id)
    if loan is not None and loan.start_date <= date(year, month, 1):
        loan_deduction = loan.emi
        total_deductions += loan_deduction

    # Income tax is estimated on the full annual CTC, not the pro-rated figure
    declared = approved_declarations_total(declarations, employee.id, financial_year_label(year))
    professional_tax_annual = breakdown.get(PROFESSIONAL_TAX, 0.0) * 12
    taxable_income = max(0.0, ctc - standard_deduction - professional_tax_annual - declared)
    annual_tax = calculate_annual_tax(taxable_income)
    monthly_tds = annual_tax / 12 if annual_tax > 0 else 0.0

    total_deductions = total_deductions - breakdown.get(INCOME_TAX, 0.0) + monthly_tds
    breakdown[INCOME_TAX] = monthly_tds

    net_salary = gross_earnings - total_deductions
    rounded_gross = round_currency(gross_earnings)
    rounded_deductions = round_currency(total_deductions)

    logger.debug(
        f"Payroll for employee {employee.id} {month}/{year}: paid_days={paid_days}/{total_days}, "
        f"gross={gross_earnings:.2f}, deductions={total_deductions:.2f}, net={net_salary:.2f}"
    )

    return PayrollRecord(
        id=f"{employee.id}-{year}-{month}",
        employee_id=employee.id,
        year=year,
        month=month,
        basic=round_currency(breakdown.get(BASIC, 0.0)),
        hra=round_currency(breakdown.get(HRA, 0.0)),
        special_allowance=round_currency(breakdown.get(SPECIAL_ALLOWANCE, 0.0)),
        provident_fund=round_currency(breakdown.get(PROVIDENT_FUND, 0.0)),
        professional_tax=round_currency(breakdown.get(PROFESSIONAL_TAX, 0.0)),
        income_tax=round_currency(breakdown[INCOME_TAX]),
        gross_earnings=rounded_gross,
        total_deductions=rounded_deductions,
        # Derived from the rounded totals so the record always balances
        net_salary=rounded_gross - rounded_deductions,
        paid_days=paid_days,
        total_days_in_month=total_days,
        attendance_summary=attendance_summary,
        leave_summary=leave_summary,
        component_breakdown=breakdown,
        loan_deduction=loan_deduction,
        variable_payments=variable_breakdown,
    )
