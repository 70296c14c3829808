"""Read-only views behind the home dashboard, the team page and the manager summary.

Counters and lists are scoped the same way approvals are: HR and admin see the
whole company except themselves, managers see their direct reports.
"""
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from config import Settings
from exceptions import AuthorizationError, NotFound
from model import AttendanceLog, Employee, Holiday, Leave, Timesheet, User
from schemas import (
    DashboardHome,
    DashboardLeaveRow,
    HierarchyNode,
    HolidayBrief,
    ManagerSummary,
    TeamAttendanceRow,
    TeamNode,
    TeamStatusRow,
    TokenData,
    WorkedToday,
)
from services.notifications import ConnectionRegistry
from workday import business_date_for, inclusive_days, now_in

UPCOMING_HOLIDAYS = 3
PENDING_LIST_LIMIT = 10
ABSENT = "Absent"


def _require_approver(user: TokenData):
    if user.role not in crud.APPROVER_ROLES:
        raise AuthorizationError("Access denied")


def _scoped(query, user: TokenData, employee_column):
    """Restrict a query joined to Employee to what the user may see"""
    if user.role in crud.HR_ROLES:
        if user.employee_id:
            query = query.where(employee_column != user.employee_id)
        return query
    return query.where(Employee.manager_id == user.employee_id, employee_column != user.employee_id)


def _leave_row(leave: Leave, name: str) -> DashboardLeaveRow:
    return DashboardLeaveRow(
        id=leave.id,
        name=name,
        reason=leave.reason,
        status=leave.status.title(),
        leave_type=leave.leave_type,
        start_date=leave.from_date,
        end_date=leave.to_date,
        total_days=inclusive_days(leave.from_date, leave.to_date),
    )


class DashboardService:
    def __init__(self, settings: Settings, registry: Optional[ConnectionRegistry] = None):
        self.timezone = settings.timezone
        self.offset_hours = settings.business_day_offset_hours
        self.registry = registry

    def _now(self, now: Optional[datetime]) -> datetime:
        return now or now_in(self.timezone)

    # ---- home ----

    async def home(self, db: AsyncSession, today: Optional[date] = None) -> DashboardHome:
        today = today or self._now(None).date()
        result = await db.execute(
            select(Holiday)
            .where(Holiday.is_public.is_(True), Holiday.holiday_date >= today)
            .order_by(Holiday.holiday_date)
            .limit(UPCOMING_HOLIDAYS + 1)
        )
        holidays = result.scalars().all()
        briefs = [HolidayBrief(name=h.name, date=h.holiday_date) for h in holidays]
        return DashboardHome(
            holiday=briefs[0] if briefs else None,
            upcoming_holidays=[b for b in briefs if b.date > today][:UPCOMING_HOLIDAYS],
        )

    async def worked_today(self, db: AsyncSession, employee_id: int, now: Optional[datetime] = None) -> WorkedToday:
        """Seconds worked and on break in the latest session of the current business day"""
        now = self._now(now)
        result = await db.execute(
            select(AttendanceLog)
            .where(
                AttendanceLog.employee_id == employee_id,
                AttendanceLog.log_date == business_date_for(now, self.offset_hours),
            )
            .order_by(AttendanceLog.id.desc())
            .limit(1)
        )
        log = result.scalars().first()
        if log is None:
            return WorkedToday()

        break_seconds = (log.total_break_minutes or 0) * 60
        if log.clock_out is None:
            if log.break_start is not None:
                break_seconds += max(int((now - log.break_start).total_seconds()), 0)
            worked = int((now - log.clock_in).total_seconds()) - break_seconds
        else:
            worked = (log.total_work_minutes or 0) * 60
        return WorkedToday(worked_seconds=max(worked, 0), break_seconds=break_seconds)

    # ---- counters ----

    async def team_attendance_count(self, db: AsyncSession, user: TokenData, now: Optional[datetime] = None) -> int:
        _require_approver(user)
        work_day = business_date_for(self._now(now), self.offset_hours)
        query = (
            select(func.count(distinct(AttendanceLog.employee_id)))
            .join(Employee, Employee.id == AttendanceLog.employee_id)
            .where(AttendanceLog.log_date == work_day)
        )
        return (await db.execute(_scoped(query, user, AttendanceLog.employee_id))).scalar_one()

    async def pending_leaves_count(self, db: AsyncSession, user: TokenData) -> int:
        _require_approver(user)
        query = (
            select(func.count(Leave.id))
            .join(Employee, Employee.id == Leave.employee_id)
            .where(Leave.status == "PENDING")
        )
        return (await db.execute(_scoped(query, user, Leave.employee_id))).scalar_one()

    async def pending_timesheets_count(self, db: AsyncSession, user: TokenData) -> int:
        _require_approver(user)
        query = (
            select(func.count(Timesheet.id))
            .join(Employee, Employee.id == Timesheet.employee_id)
            .where(Timesheet.status == "SUBMITTED")
        )
        return (await db.execute(_scoped(query, user, Timesheet.employee_id))).scalar_one()

    async def on_leave_count(self, db: AsyncSession, user: TokenData, today: Optional[date] = None) -> int:
        _require_approver(user)
        today = today or self._now(None).date()
        query = (
            select(func.count(Leave.id))
            .join(Employee, Employee.id == Leave.employee_id)
            .where(Leave.status == "APPROVED", Leave.from_date <= today, Leave.to_date >= today)
        )
        return (await db.execute(_scoped(query, user, Leave.employee_id))).scalar_one()

    # ---- detail lists ----

    async def pending_leaves(self, db: AsyncSession, user: TokenData) -> List[DashboardLeaveRow]:
        _require_approver(user)
        query = (
            select(Leave, Employee.name)
            .join(Employee, Employee.id == Leave.employee_id)
            .where(Leave.status == "PENDING")
            .order_by(Leave.id.desc())
            .limit(PENDING_LIST_LIMIT)
        )
        result = await db.execute(_scoped(query, user, Leave.employee_id))
        return [_leave_row(leave, name) for leave, name in result.all()]

    async def on_leave(self, db: AsyncSession, user: TokenData, today: Optional[date] = None) -> List[DashboardLeaveRow]:
        _require_approver(user)
        today = today or self._now(None).date()
        query = (
            select(Leave, Employee.name)
            .join(Employee, Employee.id == Leave.employee_id)
            .where(Leave.status == "APPROVED", Leave.from_date <= today, Leave.to_date >= today)
            .order_by(Employee.name)
        )
        result = await db.execute(_scoped(query, user, Leave.employee_id))
        return [_leave_row(leave, name) for leave, name in result.all()]

    async def team_attendance(
        self, db: AsyncSession, user: TokenData, now: Optional[datetime] = None
    ) -> List[TeamAttendanceRow]:
        _require_approver(user)
        work_day = business_date_for(self._now(now), self.offset_hours)
        query = (
            select(AttendanceLog, Employee)
            .join(Employee, Employee.id == AttendanceLog.employee_id)
            .where(AttendanceLog.log_date == work_day)
            .order_by(Employee.name, AttendanceLog.id)
        )
        result = await db.execute(_scoped(query, user, AttendanceLog.employee_id))
        return [
            TeamAttendanceRow(
                id=employee.id,
                name=employee.name,
                designation=employee.designation,
                status=log.status,
                in_time=log.clock_in.strftime("%H:%M"),
            )
            for log, employee in result.all()
        ]

    async def manager_summary(self, db: AsyncSession, user: TokenData, now: Optional[datetime] = None) -> ManagerSummary:
        if user.role != "manager":
            raise AuthorizationError("Manager only")
        now = self._now(now)
        total = (
            await db.execute(select(func.count(Employee.id)).where(Employee.manager_id == user.employee_id))
        ).scalar_one()
        return ManagerSummary(
            present=await self.team_attendance_count(db, user, now),
            total=total,
            on_leave=await self.on_leave_count(db, user, now.date()),
            pending_leaves=await self.pending_leaves_count(db, user),
            pending_timesheets=await self.pending_timesheets_count(db, user),
        )

    # ---- team tree ----

    async def _subtree_ids(self, db: AsyncSession, root_id: int) -> List[int]:
        """The root and everyone reporting to it, directly or not"""
        rows = (
            await db.execute(select(Employee.id, Employee.manager_id).where(Employee.active.is_(True)))
        ).all()
        reports: Dict[int, List[int]] = defaultdict(list)
        active = set()
        for emp_id, manager_id in rows:
            active.add(emp_id)
            if manager_id is not None:
                reports[manager_id].append(emp_id)
        if root_id not in active:
            return []

        ids, queue, seen = [], [root_id], {root_id}
        while queue:
            current = queue.pop(0)
            ids.append(current)
            for child in reports.get(current, ()):
                if child not in seen:
                    seen.add(child)
                    queue.append(child)
        return ids

    def _online(self, user_id: Optional[int]) -> bool:
        return bool(user_id and self.registry is not None and self.registry.is_connected(user_id))

    async def team(self, db: AsyncSession, user: TokenData) -> List[TeamNode]:
        """Approvers get every active employee; everyone else their own subtree"""
        if not user.employee_id or await crud.get_employee(db, user.employee_id) is None:
            raise NotFound("Employee profile not found.")
        query = (
            select(Employee, User.role)
            .outerjoin(User, User.id == Employee.user_id)
            .where(Employee.active.is_(True))
        )
        if user.role not in crud.APPROVER_ROLES:
            query = query.where(Employee.id.in_(await self._subtree_ids(db, user.employee_id)))
        result = await db.execute(query.order_by(Employee.manager_id, Employee.name))
        return [
            TeamNode(
                id=emp.id,
                name=emp.name,
                designation=emp.designation,
                manager_id=emp.manager_id,
                role=role,
                online=self._online(emp.user_id),
            )
            for emp, role in result.all()
        ]

    async def hierarchy_path(self, db: AsyncSession, employee_id: int) -> List[HierarchyNode]:
        """Reporting chain from an employee up to the top"""
        path: List[HierarchyNode] = []
        seen = set()
        current: Optional[int] = employee_id
        while current is not None and current not in seen:
            seen.add(current)
            row = (
                await db.execute(
                    select(Employee, User.role)
                    .outerjoin(User, User.id == Employee.user_id)
                    .where(Employee.id == current)
                )
            ).first()
            if row is None:
                break
            emp, role = row
            path.append(
                HierarchyNode(
                    id=emp.id,
                    name=emp.name,
                    designation=emp.designation,
                    manager_id=emp.manager_id,
                    role=role,
                    level=len(path),
                )
            )
            current = emp.manager_id
        if not path:
            raise NotFound("Employee not found")
        return path

    async def team_status_today(
        self, db: AsyncSession, employee_id: int, now: Optional[datetime] = None
    ) -> List[TeamStatusRow]:
        """Today's attendance state for the caller and everyone below them"""
        ids = await self._subtree_ids(db, employee_id)
        if not ids:
            raise NotFound("Employee not found")
        work_day = business_date_for(self._now(now), self.offset_hours)

        latest: Dict[int, AttendanceLog] = {}
        logs = (
            await db.execute(
                select(AttendanceLog)
                .where(AttendanceLog.employee_id.in_(ids), AttendanceLog.log_date == work_day)
                .order_by(AttendanceLog.id)
            )
        ).scalars().all()
        for log in logs:
            latest[log.employee_id] = log

        employees = (
            await db.execute(select(Employee).where(Employee.id.in_(ids)).order_by(Employee.name))
        ).scalars().all()
        return [
            TeamStatusRow(
                id=emp.id,
                name=emp.name,
                designation=emp.designation,
                status=latest[emp.id].status if emp.id in latest else ABSENT,
            )
            for emp in employees
        ]
