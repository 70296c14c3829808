from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_current_employee_id, get_current_user
from exceptions import ValidationError
from schemas import (
    LeaveActionRequest,
    LeaveApply,
    LeaveBalanceRow,
    LeaveHistoryRow,
    LeaveTypeOut,
    MessageResponse,
    TeamLeaveRow,
    TokenData,
)
from services import leave_service

router = APIRouter(
    prefix="/leaves",
    tags=["leaves"],
    dependencies=[Depends(get_current_user)]
)


@router.get("/types", response_model=List[LeaveTypeOut])
async def leave_types(db: AsyncSession = Depends(get_db)):
    return await leave_service.types(db)


@router.get("/balance", response_model=List[LeaveBalanceRow])
async def leave_balance(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await leave_service.balance(db, employee_id)


@router.post("/apply", response_model=MessageResponse)
async def apply_leave(
    data: LeaveApply,
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    await leave_service.apply(db, employee_id, data)
    return MessageResponse(message="Leave applied successfully")


@router.get("/history", response_model=List[LeaveHistoryRow])
async def leave_history(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await leave_service.history(db, employee_id)


@router.get("/team-history", response_model=List[TeamLeaveRow])
async def team_history(
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    return await leave_service.team_history(db, current_user)


@router.get("/all-history", response_model=List[TeamLeaveRow])
async def all_history(
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    return await leave_service.all_history(db, current_user)


@router.put("/{leave_id}/action", response_model=MessageResponse)
async def leave_action(
    leave_id: int,
    data: LeaveActionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    leave = await leave_service.act(db, current_user, leave_id, data.action)
    return MessageResponse(message=f"Leave {leave.status.lower()}")


@router.put("/{leave_id}", response_model=MessageResponse)
async def edit_leave(
    leave_id: int,
    data: LeaveApply,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    await leave_service.edit(db, current_user, leave_id, data)
    return MessageResponse(message="Leave updated")


@router.delete("/{leave_id}", response_model=MessageResponse)
async def cancel_leave(
    leave_id: int,
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    if not await leave_service.cancel(db, employee_id, leave_id):
        raise ValidationError("Only pending leaves can be cancelled")
    return MessageResponse(message="Leave cancelled")
