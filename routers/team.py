from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_current_employee_id, get_current_user
from schemas import HierarchyNode, ManagerSummary, TeamNode, TeamStatusRow, TokenData
from services import dashboard_service

router = APIRouter(
    prefix="/team",
    tags=["team"],
    dependencies=[Depends(get_current_user)]
)


@router.get("/my", response_model=List[TeamNode])
async def my_team(current_user: TokenData = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.team(db, current_user)


@router.get("/path/{employee_id}", response_model=List[HierarchyNode])
async def hierarchy_path(employee_id: int, db: AsyncSession = Depends(get_db)):
    return await dashboard_service.hierarchy_path(db, employee_id)


@router.get("/attendance/today", response_model=List[TeamStatusRow])
async def team_attendance_today(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await dashboard_service.team_status_today(db, employee_id)


@router.get("/summary", response_model=ManagerSummary)
async def manager_summary(current_user: TokenData = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Counters for a manager's direct reports"""
    return await dashboard_service.manager_summary(db, current_user)
