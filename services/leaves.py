import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import delete, extract, select
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from config import get_settings
from exceptions import AuthorizationError, NotFound, StateConflict, ValidationError
from model import Employee, Leave, LeaveType
from schemas import LeaveApply, LeaveBalanceRow, LeaveHistoryRow, TeamLeaveRow, TokenData
from services.notifications import NotificationDispatcher
from workday import contains_sunday, inclusive_days, now_in

logger = logging.getLogger(__name__)

PENDING = "PENDING"
APPROVED = "APPROVED"
REJECTED = "REJECTED"

ACTIONS = {"approved": APPROVED, "approve": APPROVED, "rejected": REJECTED, "reject": REJECTED}


def _validate_range(data: LeaveApply):
    if data.to_date < data.from_date:
        raise ValidationError("Invalid date range")
    if contains_sunday(data.from_date, data.to_date):
        raise ValidationError("Leaves cannot include Sunday.")


class LeaveService:
    def __init__(self, dispatcher: NotificationDispatcher, timezone: Optional[str] = None):
        self.dispatcher = dispatcher
        self.timezone = timezone or get_settings().timezone

    def _now(self) -> datetime:
        return now_in(self.timezone)

    async def _employee(self, db: AsyncSession, employee_id: int) -> Employee:
        employee = await crud.get_employee(db, employee_id)
        if employee is None:
            raise NotFound("Employee not found")
        return employee

    async def _used_days(self, db: AsyncSession, employee_id: int, year: int, leave_type: Optional[str] = None):
        """Approved leave days per type for leaves starting in the given year"""
        leaves = (
            await db.execute(
                select(Leave).where(
                    Leave.employee_id == employee_id,
                    Leave.status == APPROVED,
                    extract("year", Leave.from_date) == year,
                )
            )
        ).scalars().all()
        used = {}
        for lv in leaves:
            if leave_type and lv.leave_type != leave_type:
                continue
            used[lv.leave_type] = used.get(lv.leave_type, 0) + inclusive_days(lv.from_date, lv.to_date)
        return used

    async def types(self, db: AsyncSession) -> List[LeaveType]:
        return list((await db.execute(select(LeaveType).order_by(LeaveType.code))).scalars().all())

    async def balance(self, db: AsyncSession, employee_id: int, today: Optional[date] = None) -> List[LeaveBalanceRow]:
        today = today or self._now().date()
        used = await self._used_days(db, employee_id, today.year)
        rows = []
        for lt in await self.types(db):
            total = lt.annual_quota or 0
            taken = used.get(lt.code, 0)
            rows.append(
                LeaveBalanceRow(code=lt.code, name=lt.name, total=total, used=taken, balance=max(total - taken, 0))
            )
        return rows

    async def apply(self, db: AsyncSession, employee_id: int, data: LeaveApply, today: Optional[date] = None) -> Leave:
        _validate_range(data)
        today = today or self._now().date()
        employee = await self._employee(db, employee_id)

        leave_type = await db.get(LeaveType, data.leave_type)
        if leave_type is None:
            raise ValidationError("Invalid leave type")

        used = (await self._used_days(db, employee_id, today.year, data.leave_type)).get(data.leave_type, 0)
        requested = inclusive_days(data.from_date, data.to_date)
        quota = leave_type.annual_quota or 0
        if used + requested > quota:
            raise ValidationError(f"Leave balance exceeded. Remaining: {max(quota - used, 0)}")

        overlap = (
            await db.execute(
                select(Leave.id)
                .where(
                    Leave.employee_id == employee_id,
                    Leave.status != REJECTED,
                    Leave.from_date <= data.to_date,
                    Leave.to_date >= data.from_date,
                )
                .limit(1)
            )
        ).first()
        if overlap:
            raise ValidationError("Leave dates overlap")

        leave = Leave(
            employee_id=employee_id,
            from_date=data.from_date,
            to_date=data.to_date,
            leave_type=data.leave_type,
            reason=data.reason or "",
            status=PENDING,
            created_at=self._now(),
        )
        db.add(leave)
        await db.commit()
        logger.info("Employee %s applied for leave %s", employee_id, leave.id)

        # Notifications go out after the leave itself is stored
        span = f"{data.from_date.isoformat()} to {data.to_date.isoformat()}"
        if employee.user_id:
            await self.dispatcher.notify(
                db, employee.user_id, "LEAVE_APPLIED", f"Your leave request from {span} has been submitted."
            )
        others = []
        manager_user = await crud.manager_user_id(db, employee)
        if manager_user:
            others.append(manager_user)
        others.extend(await crud.hr_admin_user_ids(db))
        await self.dispatcher.notify_many(
            db,
            [uid for uid in others if uid != employee.user_id],
            "LEAVE_REQUEST",
            f"{employee.name} applied for leave from {span}.",
        )
        await db.commit()
        return leave

    async def history(self, db: AsyncSession, employee_id: int) -> List[LeaveHistoryRow]:
        result = await db.execute(
            select(Leave, LeaveType.name)
            .outerjoin(LeaveType, LeaveType.code == Leave.leave_type)
            .where(Leave.employee_id == employee_id)
            .order_by(Leave.created_at.desc(), Leave.id.desc())
        )
        return [
            LeaveHistoryRow(
                id=lv.id,
                type_code=lv.leave_type,
                type=type_name or lv.leave_type,
                from_date=lv.from_date,
                to_date=lv.to_date,
                days=inclusive_days(lv.from_date, lv.to_date),
                status=lv.status,
                reason=lv.reason,
            )
            for lv, type_name in result.all()
        ]

    async def edit(self, db: AsyncSession, user: TokenData, leave_id: int, data: LeaveApply) -> Leave:
        """Owners edit their own pending leaves; HR and admin may edit any"""
        _validate_range(data)
        if await db.get(LeaveType, data.leave_type) is None:
            raise ValidationError("Invalid leave type")
        query = select(Leave).where(Leave.id == leave_id)
        if user.role not in crud.HR_ROLES:
            query = query.where(Leave.employee_id == user.employee_id, Leave.status == PENDING)
        leave = (await db.execute(query.with_for_update())).scalars().first()
        if leave is None:
            raise ValidationError("Not allowed to edit this leave")

        leave.from_date = data.from_date
        leave.to_date = data.to_date
        leave.leave_type = data.leave_type
        leave.reason = data.reason or ""
        await db.commit()
        return leave

    async def cancel(self, db: AsyncSession, employee_id: int, leave_id: int) -> bool:
        result = await db.execute(
            delete(Leave)
            .where(Leave.id == leave_id, Leave.employee_id == employee_id, Leave.status == PENDING)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount > 0

    async def act(
        self, db: AsyncSession, user: TokenData, leave_id: int, action: str, now: Optional[datetime] = None
    ) -> Leave:
        """Approve or reject a pending leave; managers may only act on their direct reports"""
        final_status = ACTIONS.get((action or "").strip().lower())
        if final_status is None:
            raise ValidationError("Invalid action")
        if user.role not in crud.APPROVER_ROLES:
            raise AuthorizationError("Not authorized")

        found = (
            await db.execute(
                select(Leave, Employee)
                .join(Employee, Employee.id == Leave.employee_id)
                .where(Leave.id == leave_id, Leave.status == PENDING)
                .with_for_update()
            )
        ).first()
        if found is None:
            raise StateConflict("Leave not found or already processed")
        leave, employee = found

        if user.role == "manager" and (not employee.manager_id or employee.manager_id != user.employee_id):
            raise AuthorizationError("Not your employee")

        leave.status = final_status
        leave.approved_by = user.id
        leave.approved_role = user.role
        leave.approved_at = now or self._now()
        await db.commit()
        logger.info("Leave %s %s by user %s", leave_id, final_status, user.id)

        if employee.user_id:
            await self.dispatcher.notify(
                db, employee.user_id, "LEAVE_UPDATE", f"Your leave request has been {final_status.lower()}."
            )
            await db.commit()
        return leave

    async def _listing(self, db: AsyncSession, manager_id: Optional[int] = None) -> List[TeamLeaveRow]:
        query = select(Leave, Employee.name).join(Employee, Employee.id == Leave.employee_id)
        if manager_id is not None:
            query = query.where(Employee.manager_id == manager_id)
        result = await db.execute(query.order_by(Leave.created_at.desc(), Leave.id.desc()))
        return [
            TeamLeaveRow(
                id=lv.id,
                employee_name=name,
                leave_type=lv.leave_type,
                from_date=lv.from_date,
                to_date=lv.to_date,
                days=inclusive_days(lv.from_date, lv.to_date),
                status=lv.status,
            )
            for lv, name in result.all()
        ]

    async def team_history(self, db: AsyncSession, user: TokenData) -> List[TeamLeaveRow]:
        if user.role != "manager":
            raise AuthorizationError("Not authorized")
        return await self._listing(db, manager_id=user.employee_id)

    async def all_history(self, db: AsyncSession, user: TokenData) -> List[TeamLeaveRow]:
        if user.role not in crud.HR_ROLES:
            raise AuthorizationError("Not authorized")
        return await self._listing(db)
