import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from config import get_settings
from exceptions import AuthorizationError, NotFound, ValidationError
from model import AttendanceLog, Employee, Holiday, Leave, Timesheet
from schemas import CalendarDay, RejectedTimesheetUpdate, TimesheetRow, TokenData
from services.notifications import NotificationDispatcher
from workday import classify_day, month_bounds, month_days, now_in, parse_month

logger = logging.getLogger(__name__)

SUBMITTED = "SUBMITTED"
APPROVED = "APPROVED"
REJECTED = "REJECTED"


def _require_approver(user: TokenData):
    if user.role not in crud.APPROVER_ROLES:
        raise AuthorizationError("Access denied")


def _direct_reports(manager_employee_id: Optional[int]):
    return select(Employee.id).where(Employee.manager_id == manager_employee_id)


class TimesheetService:
    def __init__(self, dispatcher: NotificationDispatcher, timezone: Optional[str] = None):
        self.dispatcher = dispatcher
        self.timezone = timezone or get_settings().timezone

    def _now(self) -> datetime:
        return now_in(self.timezone)

    async def calendar(self, db: AsyncSession, employee_id: int, month: str) -> List[CalendarDay]:
        """One row per day of the month with attendance, timesheet, leave and holiday data folded in"""
        year, mon = parse_month(month)
        first, last = month_bounds(year, mon)

        logs = (
            await db.execute(
                select(AttendanceLog)
                .where(
                    AttendanceLog.employee_id == employee_id,
                    AttendanceLog.log_date.between(first, last),
                )
                .order_by(AttendanceLog.id)
            )
        ).scalars().all()
        first_in: Dict[date, datetime] = {}
        last_out: Dict[date, Optional[datetime]] = {}
        for log in logs:
            if log.log_date not in first_in or log.clock_in < first_in[log.log_date]:
                first_in[log.log_date] = log.clock_in
            last_out[log.log_date] = log.clock_out

        # Later entries for the same day win
        entries = (
            await db.execute(
                select(Timesheet)
                .where(Timesheet.employee_id == employee_id, Timesheet.work_date.between(first, last))
                .order_by(Timesheet.id)
            )
        ).scalars().all()
        by_day: Dict[date, Timesheet] = {t.work_date: t for t in entries}

        leaves = (
            await db.execute(
                select(Leave).where(
                    Leave.employee_id == employee_id,
                    Leave.status == APPROVED,
                    Leave.from_date <= last,
                    Leave.to_date >= first,
                )
            )
        ).scalars().all()

        holidays = set(
            (
                await db.execute(select(Holiday.holiday_date).where(Holiday.holiday_date.between(first, last)))
            ).scalars().all()
        )

        rows = []
        for day in month_days(year, mon):
            entry = by_day.get(day)
            on_leave = any(lv.from_date <= day <= lv.to_date for lv in leaves)
            rows.append(
                CalendarDay(
                    work_date=day,
                    day=day.strftime("%A"),
                    start_time=first_in.get(day),
                    end_time=last_out.get(day),
                    project=entry.project if entry else None,
                    task=entry.task if entry else None,
                    hours=entry.hours if entry else None,
                    status=entry.status if entry else "",
                    type=classify_day(day, on_leave, entry is not None, day in holidays),
                )
            )
        return rows

    def _visible_query(self, user: TokenData, status: str):
        query = (
            select(Timesheet, Employee.name)
            .join(Employee, Employee.id == Timesheet.employee_id)
            .where(Timesheet.status == status)
            .execution_options(populate_existing=True)
        )
        if user.role not in crud.HR_ROLES:
            query = query.where(Employee.manager_id == user.employee_id)
        return query

    @staticmethod
    def _to_row(ts: Timesheet, employee_name: str) -> TimesheetRow:
        return TimesheetRow(
            id=ts.id,
            employee_id=ts.employee_id,
            employee_name=employee_name,
            work_date=ts.work_date,
            project=ts.project,
            task=ts.task,
            hours=ts.hours,
            status=ts.status,
            rejection_reason=ts.rejection_reason,
        )

    async def approval_list(self, db: AsyncSession, user: TokenData, month: str) -> List[TimesheetRow]:
        """Submitted entries of a month; managers only see their direct reports"""
        _require_approver(user)
        first, last = month_bounds(*parse_month(month))
        query = self._visible_query(user, SUBMITTED).where(Timesheet.work_date.between(first, last))
        result = await db.execute(query.order_by(Timesheet.work_date, Timesheet.id))
        return [self._to_row(ts, name) for ts, name in result.all()]

    async def rejected_list(self, db: AsyncSession, user: TokenData, month: Optional[str] = None) -> List[TimesheetRow]:
        _require_approver(user)
        query = self._visible_query(user, REJECTED)
        if month:
            first, last = month_bounds(*parse_month(month))
            query = query.where(Timesheet.work_date.between(first, last))
        result = await db.execute(query.order_by(Timesheet.work_date.desc(), Timesheet.id.desc()))
        return [self._to_row(ts, name) for ts, name in result.all()]

    async def pending_count(self, db: AsyncSession, user: TokenData) -> int:
        _require_approver(user)
        query = (
            select(func.count(Timesheet.id))
            .join(Employee, Employee.id == Timesheet.employee_id)
            .where(Timesheet.status == SUBMITTED)
        )
        if user.role not in crud.HR_ROLES:
            query = query.where(Employee.manager_id == user.employee_id)
        return (await db.execute(query)).scalar_one()

    async def update_status(
        self,
        db: AsyncSession,
        user: TokenData,
        timesheet_id: int,
        status: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ):
        """Approve or reject a submitted entry; anything not SUBMITTED is left untouched"""
        _require_approver(user)
        if status not in (APPROVED, REJECTED):
            raise ValidationError("Invalid status")
        now = now or self._now()

        stmt = (
            update(Timesheet)
            .where(Timesheet.id == timesheet_id, Timesheet.status == SUBMITTED)
            .values(
                status=status,
                approved_by=user.id,
                approved_at=now,
                rejection_reason=reason if status == REJECTED else None,
            )
            .execution_options(synchronize_session=False)
        )
        if user.role not in crud.HR_ROLES:
            stmt = stmt.where(Timesheet.employee_id.in_(_direct_reports(user.employee_id)))

        result = await db.execute(stmt)
        if not result.rowcount:
            raise NotFound("Timesheet not found or already processed")

        row = (
            await db.execute(
                select(Timesheet.work_date, Employee.user_id)
                .join(Employee, Employee.id == Timesheet.employee_id)
                .where(Timesheet.id == timesheet_id)
            )
        ).first()
        if row and row.user_id:
            await self.dispatcher.notify(
                db,
                row.user_id,
                "TIMESHEET",
                f"Your timesheet for {row.work_date.isoformat()} was {status.lower()}.",
                now=now,
            )
        await db.commit()
        logger.info("Timesheet %s set to %s by user %s", timesheet_id, status, user.id)

    async def edit_rejected(
        self, db: AsyncSession, user: TokenData, timesheet_id: int, data: RejectedTimesheetUpdate
    ) -> TimesheetRow:
        """Correct a rejected entry and move it back into the workflow"""
        _require_approver(user)
        query = self._visible_query(user, REJECTED).where(Timesheet.id == timesheet_id).with_for_update()
        found = (await db.execute(query)).first()
        if found is None:
            raise NotFound("Rejected timesheet not found")
        ts, name = found

        ts.project = data.project.strip()
        ts.task = data.task.strip()
        ts.hours = round(data.hours, 2)
        ts.status = data.status
        if data.status != REJECTED:
            ts.rejection_reason = None
        if data.status == APPROVED:
            ts.approved_by = user.id
            ts.approved_at = self._now()
        await db.commit()
        return self._to_row(ts, name)

    async def team_export_rows(self, db: AsyncSession, user: TokenData, month: str) -> List[TimesheetRow]:
        _require_approver(user)
        first, last = month_bounds(*parse_month(month))
        query = self._visible_query(user, APPROVED).where(Timesheet.work_date.between(first, last))
        result = await db.execute(query.order_by(Employee.name, Timesheet.work_date))
        return [self._to_row(ts, name) for ts, name in result.all()]
