from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_current_employee_id, get_current_user
from schemas import (
    AttendanceHistoryRow,
    AttendanceStatusResponse,
    ClockInRequest,
    ClockInResponse,
    ClockOutRequest,
    TodayStatus,
)
from services import attendance_service

router = APIRouter(
    prefix="/attendance",
    tags=["attendance"],
    dependencies=[Depends(get_current_user)]
)


@router.post("/clock-in", response_model=ClockInResponse)
async def clock_in(
    data: Optional[ClockInRequest] = None,
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    data = data or ClockInRequest()
    log = await attendance_service.clock_in(
        db, employee_id, latitude=data.latitude, longitude=data.longitude, project=data.project
    )
    return ClockInResponse(status=log.status, clock_in=log.clock_in, message="Clocked in successfully")


@router.post("/take-break", response_model=AttendanceStatusResponse)
async def take_break(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    log = await attendance_service.take_break(db, employee_id)
    return AttendanceStatusResponse(status=log.status, message="Break started")


@router.post("/end-break", response_model=AttendanceStatusResponse)
async def end_break(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    log = await attendance_service.end_break(db, employee_id)
    return AttendanceStatusResponse(status=log.status, message="Break ended")


@router.post("/clock-out", response_model=AttendanceStatusResponse)
async def clock_out(
    data: ClockOutRequest,
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    log = await attendance_service.clock_out(db, employee_id, data.project, data.task)
    return AttendanceStatusResponse(status=log.status, message="Clocked out. Timesheet submitted.")


@router.get("/today", response_model=TodayStatus)
async def today_status(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await attendance_service.today_status(db, employee_id)


@router.get("/history/me", response_model=List[AttendanceHistoryRow])
async def my_history(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await attendance_service.history(db, employee_id)
