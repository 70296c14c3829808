from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from database import get_db
from dependencies import get_current_employee_id, get_current_user, require_roles
from schemas import (
    CountResponse,
    DashboardHome,
    DashboardLeaveRow,
    TeamAttendanceRow,
    TokenData,
    WorkedToday,
)
from services import dashboard_service

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(get_current_user)]
)

approver = require_roles(*crud.APPROVER_ROLES)


@router.get("/home", response_model=DashboardHome)
async def home(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.home(db)


@router.get("/attendance-today", response_model=WorkedToday)
async def attendance_today(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await dashboard_service.worked_today(db, employee_id)


# Counters for the approver cards

@router.get("/team-attendance", response_model=CountResponse)
async def team_attendance_count(current_user: TokenData = Depends(approver), db: AsyncSession = Depends(get_db)):
    return CountResponse(count=await dashboard_service.team_attendance_count(db, current_user))


@router.get("/pending-leaves", response_model=CountResponse)
async def pending_leaves_count(current_user: TokenData = Depends(approver), db: AsyncSession = Depends(get_db)):
    return CountResponse(count=await dashboard_service.pending_leaves_count(db, current_user))


@router.get("/pending-timesheets", response_model=CountResponse)
async def pending_timesheets_count(current_user: TokenData = Depends(approver), db: AsyncSession = Depends(get_db)):
    return CountResponse(count=await dashboard_service.pending_timesheets_count(db, current_user))


@router.get("/team-on-leave", response_model=CountResponse)
async def team_on_leave_count(current_user: TokenData = Depends(approver), db: AsyncSession = Depends(get_db)):
    return CountResponse(count=await dashboard_service.on_leave_count(db, current_user))


# Detail lists behind the cards

@router.get("/pending-leaves-list", response_model=List[DashboardLeaveRow])
async def pending_leaves_list(current_user: TokenData = Depends(approver), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.pending_leaves(db, current_user)


@router.get("/team-on-leave-list", response_model=List[DashboardLeaveRow])
async def team_on_leave_list(current_user: TokenData = Depends(approver), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.on_leave(db, current_user)


@router.get("/team-attendance-list", response_model=List[TeamAttendanceRow])
async def team_attendance_list(current_user: TokenData = Depends(approver), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.team_attendance(db, current_user)
