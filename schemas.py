from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["employee", "manager", "hr", "admin"]


# ---- auth ----

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenData(BaseModel):
    id: int
    email: str
    role: str
    employee_id: Optional[int] = None
    token_version: int = 0


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    employee_id: Optional[int] = None


class LoginResponse(BaseModel):
    token: str
    user: UserOut


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class MessageResponse(BaseModel):
    message: str
    force_logout: bool = False


# ---- attendance ----

class ClockInRequest(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    project: Optional[str] = None


class ClockInResponse(BaseModel):
    status: str
    clock_in: datetime
    message: str


class ClockOutRequest(BaseModel):
    project: str = ""
    task: str = ""


class AttendanceStatusResponse(BaseModel):
    status: str
    message: str


class TodayStatus(BaseModel):
    status: str
    clock_in: Optional[datetime] = None
    break_start: Optional[datetime] = None
    total_break_seconds: int = 0
    worked_seconds: int = 0
    break_seconds: int = 0


class AttendanceHistoryRow(BaseModel):
    log_date: date
    clock_in: datetime
    clock_out: Optional[datetime] = None
    total_work_minutes: Optional[int] = None
    total_break_minutes: int = 0
    status: str


# ---- timesheets ----

class CalendarDay(BaseModel):
    work_date: date
    day: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    project: Optional[str] = None
    task: Optional[str] = None
    hours: Optional[float] = None
    status: str = ""
    type: str = ""


class TimesheetRow(BaseModel):
    id: int
    employee_id: int
    employee_name: str
    work_date: date
    project: Optional[str] = None
    task: Optional[str] = None
    hours: float
    status: str
    rejection_reason: Optional[str] = None
    type: str = "P"


class TimesheetStatusUpdate(BaseModel):
    status: Literal["APPROVED", "REJECTED"]
    reason: Optional[str] = None


class RejectedTimesheetUpdate(BaseModel):
    project: str = Field(min_length=1)
    task: str = Field(min_length=1)
    hours: float = Field(ge=0, le=24)
    status: Literal["SUBMITTED", "APPROVED", "REJECTED"] = "SUBMITTED"


class CountResponse(BaseModel):
    count: int


# ---- leaves ----

class LeaveApply(BaseModel):
    from_date: date
    to_date: date
    leave_type: str
    reason: Optional[str] = None


class LeaveActionRequest(BaseModel):
    action: str


class LeaveTypeOut(BaseModel):
    code: str
    name: str
    annual_quota: int

    class Config:
        from_attributes = True


class LeaveBalanceRow(BaseModel):
    code: str
    name: str
    total: int
    used: int
    balance: int


class LeaveHistoryRow(BaseModel):
    id: int
    type_code: str
    type: str
    from_date: date
    to_date: date
    days: int
    status: str
    reason: Optional[str] = None


class TeamLeaveRow(BaseModel):
    id: int
    employee_name: str
    leave_type: str
    from_date: date
    to_date: date
    days: int
    status: str


# ---- notifications ----

class NotificationOut(BaseModel):
    id: int
    type: Optional[str] = None
    message: str
    created_at: datetime
    is_read: bool

    class Config:
        from_attributes = True


# ---- employees / org ----

class EmployeeBase(BaseModel):
    name: str
    email: EmailStr
    department: Optional[str] = None
    designation: Optional[str] = None
    client_name: Optional[str] = None
    work_location: Optional[str] = None
    manager_id: Optional[int] = None
    phone: Optional[str] = None
    emp_code: Optional[str] = None


class EmployeeCreate(EmployeeBase):
    password: str
    role: Role = "employee"


class EmployeeUpdate(BaseModel):
    name: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    client_name: Optional[str] = None
    work_location: Optional[str] = None
    manager_id: Optional[int] = None
    phone: Optional[str] = None
    emp_code: Optional[str] = None
    role: Optional[Role] = None
    active: Optional[bool] = None
    bench_since: Optional[date] = None


class Employee(EmployeeBase):
    id: int
    email: Optional[str] = None
    user_id: Optional[int] = None
    role: Optional[str] = None
    manager_name: Optional[str] = None
    active: bool
    bench_since: Optional[date] = None


class TeamMember(BaseModel):
    id: int
    name: str
    designation: Optional[str] = None

    class Config:
        from_attributes = True


class TeamContext(BaseModel):
    manager: Optional[TeamMember] = None
    peers: List[TeamMember] = []


class OrgNode(BaseModel):
    id: int
    name: str
    role: Optional[str] = None
    manager_id: Optional[int] = None
    manager_name: Optional[str] = None


class TeamNode(BaseModel):
    id: int
    name: str
    designation: Optional[str] = None
    manager_id: Optional[int] = None
    role: Optional[str] = None
    online: bool = False


class HierarchyNode(BaseModel):
    id: int
    name: str
    designation: Optional[str] = None
    manager_id: Optional[int] = None
    role: Optional[str] = None
    level: int


class TeamStatusRow(BaseModel):
    id: int
    name: str
    designation: Optional[str] = None
    status: str


# ---- dashboard ----

class HolidayBrief(BaseModel):
    name: str
    date: date


class DashboardHome(BaseModel):
    holiday: Optional[HolidayBrief] = None
    upcoming_holidays: List[HolidayBrief] = []


class WorkedToday(BaseModel):
    worked_seconds: int = 0
    break_seconds: int = 0


class DashboardLeaveRow(BaseModel):
    id: int
    name: str
    reason: Optional[str] = None
    status: str
    leave_type: str
    start_date: date
    end_date: date
    total_days: int


class TeamAttendanceRow(BaseModel):
    id: int
    name: str
    designation: Optional[str] = None
    status: str
    in_time: Optional[str] = None


class ManagerSummary(BaseModel):
    present: int
    total: int
    on_leave: int
    pending_leaves: int
    pending_timesheets: int


# ---- holidays ----

class HolidayCreate(BaseModel):
    name: str
    holiday_date: date
    description: Optional[str] = None
    is_public: bool = True


class Holiday(HolidayCreate):
    id: int

    class Config:
        from_attributes = True


# ---- payroll ----

class Payslip(BaseModel):
    month: str
    working_days: Optional[int] = None
    paid_days: Optional[float] = None
    basic: float = 0
    hra: float = 0
    da: float = 0
    lta: float = 0
    special_allowance: float = 0
    other_allowance: float = 0
    pf: float = 0
    esi: float = 0
    tds: float = 0
    other_deductions: float = 0
    gross_pay: float = 0
    net_pay: float = 0
    total_deductions: float = 0

    class Config:
        from_attributes = True


class PayrollUploadResult(BaseModel):
    uploaded: int
    errors: List[str]
