from datetime import date

import pytest

from app.schemas.payroll import (
    AttendanceRecord,
    AttendanceStatus,
    AttendanceSummary,
    CalculationType,
    ComponentKind,
    DeclarationStatus,
    Employee,
    EmployeeLoan,
    InvestmentDeclaration,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    LoanStatus,
    SalaryComponent,
    VariablePayment,
)
from app.services.payroll_engine import (
    calculate_annual_tax,
    calculate_paid_days,
    compute_monthly_payroll,
    financial_year_label,
    round_currency,
    summarize_leave,
)
from app.services.payroll_service import DEFAULT_COMPONENTS


def _attendance(employee_id, year, month, days, status=AttendanceStatus.PRESENT):
    return [
        AttendanceRecord(employee_id=employee_id, attendance_date=date(year, month, d), status=status)
        for d in days
    ]


def _run(employee, year, month, attendance=(), leave_requests=(), declarations=(), loans=(),
         variable_payments=(), components=DEFAULT_COMPONENTS):
    return compute_monthly_payroll(
        employee,
        year,
        month,
        attendance=list(attendance),
        leave_requests=list(leave_requests),
        declarations=list(declarations),
        loans=list(loans),
        variable_payments=list(variable_payments),
        fallback_components=components,
        standard_deduction=50000,
    )


@pytest.fixture
def employee():
    return Employee(id="EMP001", name="Asha", ctc=1200000)


# --- Tax slabs ---

@pytest.mark.parametrize("income,expected", [
    (0, 0),
    (300000, 0),
    (500000, 10000),
    (600000, 15000),
    (900000, 45000),
    (1200000, 90000),
    (1500000, 150000),
    (2000000, 300000),
])
def test_annual_tax_slabs(income, expected):
    assert calculate_annual_tax(income) == pytest.approx(expected)


@pytest.mark.parametrize("boundary", [300000, 600000, 900000, 1200000, 1500000])
def test_annual_tax_is_continuous_at_slab_boundaries(boundary):
    assert calculate_annual_tax(boundary + 0.01) == pytest.approx(calculate_annual_tax(boundary), abs=0.01)


def test_annual_tax_never_decreases():
    incomes = [i * 2500.0 for i in range(0, 1001)]  # 0 to 2,500,000
    taxes = [calculate_annual_tax(income) for income in incomes]

    for lower, higher in zip(taxes, taxes[1:]):
        assert higher >= lower
    assert all(tax >= 0 for tax in taxes)


def test_round_currency_is_half_up():
    assert round_currency(2.5) == 3
    assert round_currency(2.4999) == 2
    assert round_currency(6845.0) == 6845
    assert round_currency(-0.5) == 0


def test_financial_year_label():
    assert financial_year_label(2024) == "2024-2025"


# --- Paid days ---

def test_paid_days_counts_half_days():
    summary = AttendanceSummary(present=20, on_leave=2, holiday=1, week_off=4,
                                half_day_leave=2, half_day_present_absent=1, absent=1)
    assert calculate_paid_days(summary, 31) == pytest.approx(28.5)


def test_paid_days_are_clamped_to_month_length():
    summary = AttendanceSummary(present=31)
    assert calculate_paid_days(summary, 30) == 30


# --- Monthly payroll ---

def test_pro_rata_half_month(employee):
    """15 paid days of a 30 day month earn half of CTC / 12."""
    record = _run(employee, 2024, 6, attendance=_attendance("EMP001", 2024, 6, range(1, 16)))

    assert record.id == "EMP001-2024-6"
    assert record.total_days_in_month == 30
    assert record.paid_days == 15
    assert record.gross_earnings == 50000
    assert record.basic == 20000
    assert record.hra == 10000
    assert record.special_allowance == 20000
    assert record.provident_fund == 2400
    assert record.professional_tax == 200
    # (1,200,000 - 50,000 - 2,400) taxed at the 15% slab: 82,140 / 12
    assert record.income_tax == 6845
    assert record.total_deductions == 9445
    assert record.net_salary == 40555
    assert record.attendance_summary.present == 15


def test_full_month_attendance(employee):
    record = _run(employee, 2024, 6, attendance=_attendance("EMP001", 2024, 6, range(1, 31)))

    assert record.paid_days == 30
    assert record.gross_earnings == 100000
    assert record.basic == 40000


def test_no_attendance_means_no_pay(employee):
    record = _run(employee, 2024, 6)

    assert record.paid_days == 0
    assert record.gross_earnings == 0
    assert record.basic == 0
    # Tax is estimated on the full annual CTC regardless of attendance
    assert record.income_tax == 6845


def test_attendance_outside_month_or_of_others_is_ignored(employee):
    attendance = (
        _attendance("EMP001", 2024, 6, range(1, 11))
        + _attendance("EMP001", 2024, 7, range(1, 11))
        + _attendance("EMP002", 2024, 6, range(1, 11))
    )
    record = _run(employee, 2024, 6, attendance=attendance)

    assert record.paid_days == 10
    assert record.attendance_summary.present == 10


def test_half_day_statuses_pay_half(employee):
    attendance = (
        _attendance("EMP001", 2024, 6, [1, 2], AttendanceStatus.HALF_DAY_LEAVE)
        + _attendance("EMP001", 2024, 6, [3], AttendanceStatus.HALF_DAY_PRESENT_ABSENT)
        + _attendance("EMP001", 2024, 6, [4], AttendanceStatus.ABSENT)
    )
    record = _run(employee, 2024, 6, attendance=attendance)

    assert record.paid_days == pytest.approx(1.5)
    assert record.attendance_summary.half_day_leave == 2
    assert record.attendance_summary.half_day_present_absent == 1
    assert record.attendance_summary.absent == 1
    assert record.gross_earnings == 5000


def test_duplicate_attendance_does_not_exceed_month(employee):
    attendance = _attendance("EMP001", 2024, 6, range(1, 31)) + _attendance("EMP001", 2024, 6, [1, 2])
    record = _run(employee, 2024, 6, attendance=attendance)

    assert record.paid_days == 30
    assert record.gross_earnings == 100000


def test_active_loan_emi_is_deducted(employee):
    loan = EmployeeLoan(id="1", employee_id="EMP001", loan_amount=60000, emi=5000,
                        start_date=date(2024, 1, 1))
    without = _run(employee, 2024, 3, attendance=_attendance("EMP001", 2024, 3, range(1, 32)))
    record = _run(employee, 2024, 3, attendance=_attendance("EMP001", 2024, 3, range(1, 32)), loans=[loan])

    assert record.loan_deduction == 5000
    assert record.total_deductions == without.total_deductions + 5000
    assert record.net_salary == without.net_salary - 5000


def test_loan_starting_mid_month_is_not_deducted_yet(employee):
    loan = EmployeeLoan(employee_id="EMP001", loan_amount=60000, emi=5000, start_date=date(2024, 3, 15))
    record = _run(employee, 2024, 3, loans=[loan])
    assert record.loan_deduction == 0


def test_paid_off_loan_is_ignored_and_first_active_wins(employee):
    loans = [
        EmployeeLoan(id="1", employee_id="EMP001", loan_amount=10000, emi=9000,
                     start_date=date(2023, 1, 1), status=LoanStatus.PAID_OFF),
        EmployeeLoan(id="2", employee_id="EMP001", loan_amount=20000, emi=2000, start_date=date(2024, 1, 1)),
        EmployeeLoan(id="3", employee_id="EMP001", loan_amount=30000, emi=3000, start_date=date(2024, 1, 1)),
    ]
    record = _run(employee, 2024, 3, loans=loans)
    assert record.loan_deduction == 2000


def test_variable_payments_for_the_month(employee):
    payments = [
        VariablePayment(employee_id="EMP001", year=2024, month=10, description="Festival Bonus",
                        type=ComponentKind.EARNING, amount=10000),
        VariablePayment(employee_id="EMP001", year=2024, month=10, description="Canteen",
                        type=ComponentKind.DEDUCTION, amount=1500),
        VariablePayment(employee_id="EMP001", year=2024, month=9, description="Arrears",
                        type=ComponentKind.EARNING, amount=7000),
    ]
    attendance = _attendance("EMP001", 2024, 10, range(1, 32))
    base = _run(employee, 2024, 10, attendance=attendance)
    record = _run(employee, 2024, 10, attendance=attendance, variable_payments=payments)

    assert record.variable_payments == {"Festival Bonus (earning)": 10000, "Canteen (deduction)": 1500}
    assert record.gross_earnings == base.gross_earnings + 10000
    assert record.total_deductions == base.total_deductions + 1500
    assert record.net_salary == base.net_salary + 8500


def test_approved_declarations_for_financial_year_reduce_tax(employee):
    declarations = [
        InvestmentDeclaration(employee_id="EMP001", financial_year="2024-2025", section="80C",
                              declared_amount=150000, status=DeclarationStatus.APPROVED),
        InvestmentDeclaration(employee_id="EMP001", financial_year="2024-2025", section="80D",
                              declared_amount=25000, status=DeclarationStatus.PENDING),
        InvestmentDeclaration(employee_id="EMP001", financial_year="2023-2024", section="80C",
                              declared_amount=150000, status=DeclarationStatus.APPROVED),
    ]
    record = _run(employee, 2024, 6, declarations=declarations)

    # (1,147,600 - 150,000) taxed at the 15% slab: 59,640 / 12
    assert record.income_tax == 4970
    assert record.component_breakdown["Income Tax (TDS)"] == pytest.approx(4970)


def test_low_income_pays_no_tax():
    employee = Employee(id="EMP009", ctc=300000)
    record = _run(employee, 2024, 6, attendance=_attendance("EMP009", 2024, 6, range(1, 31)))

    assert record.income_tax == 0
    assert record.component_breakdown["Income Tax (TDS)"] == 0


def test_missing_ctc_is_zero_salary():
    employee = Employee(id="EMP010", ctc=None)
    record = _run(employee, 2024, 6, attendance=_attendance("EMP010", 2024, 6, range(1, 31)))

    assert record.gross_earnings == 0
    assert record.income_tax == 0
    assert record.net_salary == record.gross_earnings - record.total_deductions


def test_custom_salary_structure_takes_precedence():
    structure = [
        SalaryComponent(id="x1", name="Basic", type=ComponentKind.EARNING,
                        calculation_type=CalculationType.PERCENTAGE_OF_GROSS, value=50, order=1),
        SalaryComponent(id="x2", name="Special Allowance", type=ComponentKind.EARNING,
                        calculation_type=CalculationType.BALANCE_COMPONENT, order=2),
    ]
    employee = Employee(id="EMP011", ctc=1200000, salary_structure=structure)
    record = _run(employee, 2024, 6, attendance=_attendance("EMP011", 2024, 6, range(1, 31)))

    assert record.basic == 50000
    assert record.special_allowance == 50000
    assert record.hra == 0
    assert record.provident_fund == 0


def test_leave_summary_counts_approved_requests(employee):
    requests = [
        LeaveRequest(employee_id="EMP001", leave_type=LeaveType.CASUAL, start_date=date(2024, 6, 3),
                     end_date=date(2024, 6, 5), status=LeaveStatus.APPROVED),
        LeaveRequest(employee_id="EMP001", leave_type=LeaveType.CASUAL, start_date=date(2024, 2, 1),
                     end_date=date(2024, 2, 1), status=LeaveStatus.APPROVED),
        LeaveRequest(employee_id="EMP001", leave_type=LeaveType.SICK, start_date=date(2024, 6, 10),
                     end_date=date(2024, 6, 10), status=LeaveStatus.REJECTED),
        LeaveRequest(employee_id="EMP002", leave_type=LeaveType.EARNED, start_date=date(2024, 6, 10),
                     end_date=date(2024, 6, 12), status=LeaveStatus.APPROVED),
    ]
    assert summarize_leave(requests, "EMP001") == {
        "Casual Leave": 2,
        "Sick Leave": 0,
        "Earned Leave": 0,
        "On Duty": 0,
    }
    record = _run(employee, 2024, 6, leave_requests=requests)
    assert record.leave_summary["Casual Leave"] == 2


@pytest.mark.parametrize("ctc,days_present", [(0, 30), (450000, 7), (987654.32, 19), (3600000, 30)])
def test_record_always_balances(ctc, days_present):
    employee = Employee(id="EMP012", ctc=ctc)
    record = _run(employee, 2024, 6, attendance=_attendance("EMP012", 2024, 6, range(1, days_present + 1)))

    assert record.net_salary == record.gross_earnings - record.total_deductions
    assert 0 <= record.paid_days <= record.total_days_in_month


def test_inputs_are_not_mutated(employee):
    attendance = _attendance("EMP001", 2024, 6, range(1, 11))
    components = list(DEFAULT_COMPONENTS)
    before_attendance = list(attendance)
    before_components = [c.model_copy() for c in components]

    first = _run(employee, 2024, 6, attendance=attendance, components=components)
    second = _run(employee, 2024, 6, attendance=attendance, components=components)

    assert attendance == before_attendance
    assert components == before_components
    assert first == second
