from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(150), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="employee")
    active = Column(Boolean, nullable=False, default=True)
    token_version = Column(Integer, nullable=False, default=0)
    last_seen = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    employee = relationship("Employee", back_populates="user", uselist=False)


class PasswordHistory(Base):
    __tablename__ = "user_password_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=True)
    emp_code = Column(String(30), unique=True, nullable=True)
    name = Column(String(100), nullable=False)
    email = Column(String(150), nullable=True)
    phone = Column(String(30), nullable=True)
    department = Column(String(100), nullable=True)
    designation = Column(String(100), nullable=True)
    client_name = Column(String(100), nullable=True)
    work_location = Column(String(100), nullable=True)
    manager_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True)
    active = Column(Boolean, nullable=False, default=True)
    bench_since = Column(Date, nullable=True)

    user = relationship("User", back_populates="employee")
    manager = relationship("Employee", remote_side=[id])


class AttendanceLog(Base):
    __tablename__ = "attendance_logs"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    log_date = Column(Date, nullable=False, index=True)
    clock_in = Column(DateTime, nullable=False)
    clock_out = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="WORKING")
    break_start = Column(DateTime, nullable=True)
    total_break_minutes = Column(Integer, nullable=False, default=0)
    total_work_minutes = Column(Integer, nullable=True)
    project = Column(String(200), nullable=True)
    task = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    alert_level = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())


class Timesheet(Base):
    __tablename__ = "timesheets"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    work_date = Column(Date, nullable=False, index=True)
    project = Column(String(200), nullable=True)
    task = Column(Text, nullable=True)
    hours = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="SUBMITTED")
    rejection_reason = Column(Text, nullable=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)

    employee = relationship("Employee")


class LeaveType(Base):
    __tablename__ = "leave_types"

    code = Column(String(10), primary_key=True)
    name = Column(String(100), nullable=False)
    annual_quota = Column(Integer, nullable=False, default=0)


class Leave(Base):
    __tablename__ = "leaves"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)
    leave_type = Column(String(10), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="PENDING")
    approved_by = Column(Integer, nullable=True)
    approved_role = Column(String(20), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    employee = relationship("Employee")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(40), nullable=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)


class Payroll(Base):
    __tablename__ = "payroll"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    month = Column(String(7), nullable=False)
    working_days = Column(Integer, nullable=True)
    paid_days = Column(Float, nullable=True)
    basic = Column(Float, default=0)
    hra = Column(Float, default=0)
    da = Column(Float, default=0)
    lta = Column(Float, default=0)
    special_allowance = Column(Float, default=0)
    other_allowance = Column(Float, default=0)
    pf = Column(Float, default=0)
    esi = Column(Float, default=0)
    tds = Column(Float, default=0)
    other_deductions = Column(Float, default=0)
    gross_pay = Column(Float, default=0)
    net_pay = Column(Float, default=0)
    created_at = Column(DateTime, server_default=func.now())


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    holiday_date = Column(Date, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
