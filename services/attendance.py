import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from config import Settings
from exceptions import NotFound, StateConflict, ValidationError
from model import AttendanceLog, Employee, Timesheet
from schemas import AttendanceHistoryRow, TodayStatus
from services.notifications import NotificationDispatcher
from workday import (
    business_date_for,
    elapsed_minutes,
    format_duration,
    history_status,
    hours_from_minutes,
    net_worked_minutes,
    now_in,
)

logger = logging.getLogger(__name__)

WORKING = "WORKING"
ON_BREAK = "ON_BREAK"
COMPLETED = "COMPLETED"
NOT_STARTED = "NOT_STARTED"

AUTO_CLOSE_TASK = "Auto-closed (System)"
AUTO_CLOSE_HOURS = 12
HISTORY_LIMIT = 10

CLOCK_IN = "CLOCK_IN"
CLOCK_OUT = "CLOCK_OUT"
BREAK_START = "BREAK_START"
BREAK_END = "BREAK_END"


def _messages(action: str, name: str, time_str: str, details: str = ""):
    """(message for the employee, message for manager and HR)"""
    if action == CLOCK_IN:
        return f"You clocked in at {time_str}.", f"{name} clocked in at {time_str}."
    if action == CLOCK_OUT:
        return (
            f"You clocked out at {time_str}. Duration: {details}",
            f"{name} clocked out at {time_str}. Work: {details}",
        )
    if action == BREAK_START:
        return f"You started a break at {time_str}.", f"{name} is on break ({time_str})."
    return f"You ended your break at {time_str}.", f"{name} resumed work ({time_str})."


class AttendanceService:
    """Clock-in / break / clock-out transitions for one employee's daily session.

    Every write locks the employee row and then the open session row, so two
    requests for the same employee run one after the other.
    """

    def __init__(self, dispatcher: NotificationDispatcher, settings: Settings):
        self.dispatcher = dispatcher
        self.timezone = settings.timezone
        self.offset_hours = settings.business_day_offset_hours

    def _now(self, now: Optional[datetime]) -> datetime:
        return now or now_in(self.timezone)

    async def _lock_employee(self, db: AsyncSession, employee_id: int) -> Employee:
        employee = await crud.lock_employee(db, employee_id)
        if employee is None:
            raise NotFound("Employee not found")
        return employee

    async def _open_session(self, db: AsyncSession, employee_id: int, business_date) -> Optional[AttendanceLog]:
        result = await db.execute(
            select(AttendanceLog)
            .where(
                AttendanceLog.employee_id == employee_id,
                AttendanceLog.log_date == business_date,
                AttendanceLog.clock_out.is_(None),
            )
            .order_by(AttendanceLog.id.desc())
            .limit(1)
            .with_for_update()
        )
        return result.scalars().first()

    async def _close_stale_sessions(self, db: AsyncSession, employee_id: int, business_date) -> int:
        """Complete sessions left open on earlier business days with a fixed 12h span"""
        result = await db.execute(
            select(AttendanceLog)
            .where(
                AttendanceLog.employee_id == employee_id,
                AttendanceLog.clock_out.is_(None),
                AttendanceLog.log_date < business_date,
            )
            .with_for_update()
        )
        stale = result.scalars().all()
        for log in stale:
            log.clock_out = log.clock_in + timedelta(hours=AUTO_CLOSE_HOURS)
            log.status = COMPLETED
            log.task = AUTO_CLOSE_TASK
            log.break_start = None
        if stale:
            logger.info("Auto-closed %d stale session(s) for employee %s", len(stale), employee_id)
        return len(stale)

    async def _notify_all_parties(
        self, db: AsyncSession, employee: Employee, action: str, now: datetime, details: str = ""
    ):
        """Notify the employee, their manager and every HR/admin user"""
        self_msg, others_msg = _messages(action, employee.name, now.strftime("%I:%M %p"), details)

        recipients = []
        if employee.user_id:
            recipients.append(employee.user_id)
        manager_user = await crud.manager_user_id(db, employee)
        if manager_user:
            recipients.append(manager_user)
        recipients.extend(await crud.hr_admin_user_ids(db))

        for user_id in dict.fromkeys(recipients):
            message = self_msg if user_id == employee.user_id else others_msg
            await self.dispatcher.notify(db, user_id, action, message, now=now)

    async def clock_in(
        self,
        db: AsyncSession,
        employee_id: int,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        project: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceLog:
        now = self._now(now)
        business_date = business_date_for(now, self.offset_hours)

        employee = await self._lock_employee(db, employee_id)
        await self._close_stale_sessions(db, employee_id, business_date)

        if await self._open_session(db, employee_id, business_date):
            raise StateConflict("Already clocked in today")

        log = AttendanceLog(
            employee_id=employee_id,
            log_date=business_date,
            clock_in=now,
            status=WORKING,
            total_break_minutes=0,
            latitude=latitude,
            longitude=longitude,
            project=project or None,
            alert_level=0,
            created_at=now,
        )
        db.add(log)
        await db.flush()

        await self._notify_all_parties(db, employee, CLOCK_IN, now)
        await db.commit()
        logger.info("Employee %s clocked in (log %s)", employee_id, log.id)
        return log

    async def take_break(self, db: AsyncSession, employee_id: int, now: Optional[datetime] = None) -> AttendanceLog:
        now = self._now(now)
        business_date = business_date_for(now, self.offset_hours)

        employee = await self._lock_employee(db, employee_id)
        log = await self._open_session(db, employee_id, business_date)
        if log is None:
            raise StateConflict("No active session found.")
        if log.status == ON_BREAK:
            raise StateConflict("You are already on break.")

        log.status = ON_BREAK
        log.break_start = now

        await self._notify_all_parties(db, employee, BREAK_START, now)
        await db.commit()
        return log

    async def end_break(self, db: AsyncSession, employee_id: int, now: Optional[datetime] = None) -> AttendanceLog:
        now = self._now(now)
        business_date = business_date_for(now, self.offset_hours)

        employee = await self._lock_employee(db, employee_id)
        log = await self._open_session(db, employee_id, business_date)
        if log is None or log.status != ON_BREAK:
            raise StateConflict("You are not on break.")

        if log.break_start is not None:
            log.total_break_minutes = (log.total_break_minutes or 0) + elapsed_minutes(log.break_start, now)
        log.break_start = None
        log.status = WORKING

        await self._notify_all_parties(db, employee, BREAK_END, now)
        await db.commit()
        return log

    async def clock_out(
        self,
        db: AsyncSession,
        employee_id: int,
        project: Optional[str],
        task: Optional[str],
        now: Optional[datetime] = None,
    ) -> AttendanceLog:
        project = (project or "").strip()
        task = (task or "").strip()
        if not project or not task:
            raise ValidationError("Mandatory: Please enter BOTH Project Name and Task Summary.")

        now = self._now(now)
        business_date = business_date_for(now, self.offset_hours)

        employee = await self._lock_employee(db, employee_id)
        log = await self._open_session(db, employee_id, business_date)
        if log is None:
            raise StateConflict("No active session.")

        # Clocking out straight from a break closes the running break first
        total_break = log.total_break_minutes or 0
        if log.status == ON_BREAK and log.break_start is not None:
            total_break += elapsed_minutes(log.break_start, now)

        net_minutes = net_worked_minutes(log.clock_in, now, total_break)

        log.clock_out = now
        log.status = COMPLETED
        log.break_start = None
        log.total_work_minutes = net_minutes
        log.total_break_minutes = total_break
        log.project = project
        log.task = task

        db.add(
            Timesheet(
                employee_id=employee_id,
                work_date=business_date,
                project=project,
                task=task,
                hours=hours_from_minutes(net_minutes),
                status="SUBMITTED",
                submitted_at=now,
            )
        )
        await db.flush()

        await self._notify_all_parties(db, employee, CLOCK_OUT, now, format_duration(net_minutes))
        await db.commit()
        logger.info("Employee %s clocked out after %d minutes", employee_id, net_minutes)
        return log

    async def today_status(self, db: AsyncSession, employee_id: int, now: Optional[datetime] = None) -> TodayStatus:
        """Latest session of the current business day; elapsed time is left to the client"""
        business_date = business_date_for(self._now(now), self.offset_hours)
        result = await db.execute(
            select(AttendanceLog)
            .where(AttendanceLog.employee_id == employee_id, AttendanceLog.log_date == business_date)
            .order_by(AttendanceLog.id.desc())
            .limit(1)
        )
        log = result.scalars().first()
        if log is None:
            return TodayStatus(status=NOT_STARTED, clock_in=None, total_break_seconds=0)

        break_seconds = (log.total_break_minutes or 0) * 60
        worked_seconds = (log.total_work_minutes or 0) * 60 if log.status == COMPLETED else 0
        return TodayStatus(
            status=COMPLETED if log.clock_out else log.status,
            clock_in=log.clock_in,
            break_start=log.break_start,
            total_break_seconds=break_seconds,
            worked_seconds=worked_seconds,
            break_seconds=break_seconds,
        )

    async def history(self, db: AsyncSession, employee_id: int, limit: int = HISTORY_LIMIT) -> List[AttendanceHistoryRow]:
        result = await db.execute(
            select(AttendanceLog)
            .where(AttendanceLog.employee_id == employee_id)
            .order_by(AttendanceLog.log_date.desc(), AttendanceLog.id.desc())
            .limit(limit)
        )
        return [
            AttendanceHistoryRow(
                log_date=log.log_date,
                clock_in=log.clock_in,
                clock_out=log.clock_out,
                total_work_minutes=log.total_work_minutes,
                total_break_minutes=log.total_break_minutes or 0,
                status=history_status(log.clock_out, log.total_work_minutes),
            )
            for log in result.scalars().all()
        ]
