"""
Payroll domain schemas.

These pydantic models are the immutable snapshots the salary resolver and
the payroll engine operate on. They are built either from request bodies
or from ORM rows (``from_attributes``), so the engine never touches a
database session.
"""
import enum
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ComponentKind(str, enum.Enum):
    EARNING = "earning"
    DEDUCTION = "deduction"


class CalculationType(str, enum.Enum):
    PERCENTAGE_OF_GROSS = "percentage_of_gross"
    PERCENTAGE_OF_BASIC = "percentage_of_basic"
    FIXED_AMOUNT = "fixed_amount"
    BALANCE_COMPONENT = "balance_component"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    ON_LEAVE = "On Leave"
    HOLIDAY = "Holiday"
    WEEK_OFF = "Week Off"
    HALF_DAY_LEAVE = "Half Day Leave"
    HALF_DAY_PRESENT_ABSENT = "Half Day Present/Absent"


class LeaveType(str, enum.Enum):
    CASUAL = "Casual Leave"
    SICK = "Sick Leave"
    EARNED = "Earned Leave"
    ON_DUTY = "On Duty"


class LeaveStatus(str, enum.Enum):
    PENDING_REPORTING_MANAGER_APPROVAL = "Pending Reporting Manager Approval"
    PENDING_FUNCTIONAL_MANAGER_APPROVAL = "Pending Functional Manager Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class LoanStatus(str, enum.Enum):
    ACTIVE = "Active"
    PAID_OFF = "Paid Off"


class DeclarationStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class _Snapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True, coerce_numbers_to_str=True)


class SalaryComponent(_Snapshot):
    id: str
    name: str
    type: ComponentKind
    calculation_type: CalculationType
    value: float = 0.0
    order: int = 0
    editable: bool = True
    is_basic_anchor: bool = False


class SalaryBreakdownResult(BaseModel):
    components: Dict[str, float] = Field(default_factory=dict)
    gross: float = 0.0
    deductions: float = 0.0
    net: float = 0.0


class Employee(_Snapshot):
    id: str
    name: str = ""
    ctc: Optional[float] = None
    salary_structure: Optional[List[SalaryComponent]] = None


class AttendanceRecord(_Snapshot):
    employee_id: str
    attendance_date: date
    status: AttendanceStatus


class LeaveRequest(_Snapshot):
    employee_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    status: LeaveStatus


class EmployeeLoan(_Snapshot):
    id: Optional[str] = None
    employee_id: str
    loan_amount: float
    emi: float
    start_date: date
    end_date: Optional[date] = None
    status: LoanStatus = LoanStatus.ACTIVE


class VariablePayment(_Snapshot):
    employee_id: str
    year: int
    month: int
    description: str
    type: ComponentKind
    amount: float


class InvestmentDeclaration(_Snapshot):
    employee_id: str
    financial_year: str
    section: str = ""
    declared_amount: float
    status: DeclarationStatus


class AttendanceSummary(BaseModel):
    present: int = 0
    absent: int = 0
    on_leave: int = 0
    holiday: int = 0
    week_off: int = 0
    half_day_leave: int = 0
    half_day_present_absent: int = 0


class PayrollRecord(BaseModel):
    id: str
    employee_id: str
    year: int
    month: int
    basic: int
    hra: int
    special_allowance: int
    provident_fund: int
    professional_tax: int
    income_tax: int
    gross_earnings: int
    total_deductions: int
    net_salary: int
    paid_days: float
    total_days_in_month: int
    attendance_summary: AttendanceSummary
    leave_summary: Dict[str, int]
    component_breakdown: Dict[str, float]
    loan_deduction: float = 0.0
    variable_payments: Dict[str, float] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class PayrollRunError(BaseModel):
    employee_id: str
    error: str


class PayrollRunResult(BaseModel):
    year: int
    month: int
    processed: int
    employee_count: int = 0
    # Sums of the rounded record totals of the processed employees
    total_gross: int = 0
    total_deductions: int = 0
    total_net: int = 0
    records: List[PayrollRecord]
    errors: List[PayrollRunError] = Field(default_factory=list)


class SalaryRevisionPreview(BaseModel):
    employee_id: str
    current_ctc: float
    new_ctc: float
    current: SalaryBreakdownResult
    proposed: SalaryBreakdownResult


# --- Request / response bodies ---

class ComponentSetRequest(BaseModel):
    components: List[SalaryComponent]


class ComponentValidationResponse(BaseModel):
    valid: bool
    problems: List[str] = Field(default_factory=list)


class PayrollPeriodRequest(BaseModel):
    year: int = Field(ge=1900, le=9999)
    month: int = Field(ge=1, le=12)


class CTCCalculatorRequest(BaseModel):
    annual_ctc: float = Field(ge=0)
    employee_id: Optional[str] = None


class SalaryRevisionRequest(BaseModel):
    new_ctc: float = Field(gt=0)


class LoanCreate(BaseModel):
    employee_id: str
    loan_amount: float = Field(gt=0)
    emi: float = Field(gt=0)
    start_date: date


class LoanResponse(BaseModel):
    id: int
    employee_id: str
    loan_amount: float
    emi: float
    start_date: date
    end_date: Optional[date] = None
    status: LoanStatus

    model_config = ConfigDict(from_attributes=True)


class VariablePaymentCreate(BaseModel):
    employee_id: str
    year: int = Field(ge=1900, le=9999)
    month: int = Field(ge=1, le=12)
    description: str = Field(min_length=1)
    type: ComponentKind
    amount: float = Field(ge=0)


class VariablePaymentResponse(VariablePaymentCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)


# Resolve forward references for Pydantic V2
Employee.model_rebuild()
PayrollRecord.model_rebuild()
PayrollRunResult.model_rebuild()
