import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import crud
from config import Settings
from model import AttendanceLog, Employee
from services.notifications import NotificationDispatcher
from workday import now_in

logger = logging.getLogger(__name__)

OVERTIME_ALERT = "OVERTIME_ALERT"


async def run_overtime_sweep(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    now: datetime,
    threshold_hours: int = 12,
) -> int:
    """Alert on sessions open longer than the threshold; each session is flagged once.

    Returns the number of sessions flagged in this run.
    """
    cutoff = now - timedelta(hours=threshold_hours)
    result = await db.execute(
        select(AttendanceLog, Employee)
        .join(Employee, Employee.id == AttendanceLog.employee_id)
        .where(
            AttendanceLog.clock_out.is_(None),
            AttendanceLog.clock_in < cutoff,
            AttendanceLog.alert_level == 0,
        )
        .with_for_update(of=AttendanceLog)
    )
    rows = result.all()
    if not rows:
        return 0

    hr_admins = await crud.hr_admin_user_ids(db)
    for log, employee in rows:
        since = log.clock_in.strftime("%I:%M %p")
        if employee.user_id:
            await dispatcher.notify(
                db,
                employee.user_id,
                OVERTIME_ALERT,
                f"You have been clocked in for over {threshold_hours} hours (since {since}). "
                "Please clock out if you are done for the day.",
                now=now,
            )
        others = []
        manager_user = await crud.manager_user_id(db, employee)
        if manager_user:
            others.append(manager_user)
        others.extend(hr_admins)
        await dispatcher.notify_many(
            db,
            [uid for uid in others if uid != employee.user_id],
            OVERTIME_ALERT,
            f"{employee.name} has been clocked in for over {threshold_hours} hours (since {since}).",
            now=now,
        )
        log.alert_level = 1

    await db.commit()
    logger.info("Overtime sweep flagged %d open session(s)", len(rows))
    return len(rows)


async def overtime_sweep_loop(
    session_factory: async_sessionmaker,
    dispatcher: NotificationDispatcher,
    settings: Settings,
    interval_seconds: Optional[int] = None,
):
    """Run the sweep forever; a failed run is logged and retried on the next tick"""
    interval = interval_seconds or settings.overtime_sweep_interval_seconds
    while True:
        try:
            async with session_factory() as db:
                await run_overtime_sweep(
                    db, dispatcher, now_in(settings.timezone), settings.overtime_threshold_hours
                )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Overtime sweep failed")
        await asyncio.sleep(interval)
