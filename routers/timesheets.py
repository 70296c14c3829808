from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from database import get_db
from dependencies import get_current_employee_id, get_current_user, require_roles
from schemas import (
    CalendarDay,
    CountResponse,
    MessageResponse,
    RejectedTimesheetUpdate,
    TimesheetRow,
    TimesheetStatusUpdate,
    TokenData,
)
from services import timesheet_service
from services.timesheet_excel import XLSX_MEDIA_TYPE, build_calendar_workbook, build_team_workbook
from workday import parse_month

router = APIRouter(
    prefix="/timesheets",
    tags=["timesheets"],
    dependencies=[Depends(get_current_user)]
)

approver = require_roles(*crud.APPROVER_ROLES)


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/my/calendar", response_model=List[CalendarDay])
async def my_calendar(
    month: Optional[str] = None,
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await timesheet_service.calendar(db, employee_id, month)


@router.get("/my/calendar/excel")
async def my_calendar_excel(
    month: Optional[str] = None,
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await timesheet_service.calendar(db, employee_id, month)
    employee = await crud.get_employee(db, employee_id)
    return _xlsx(build_calendar_workbook(employee, month, rows), f"Timesheet_{month}.xlsx")


@router.get("/approval", response_model=List[TimesheetRow])
async def approval_list(
    month: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(approver),
):
    return await timesheet_service.approval_list(db, current_user, month)


@router.get("/rejected", response_model=List[TimesheetRow])
async def rejected_list(
    month: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(approver),
):
    return await timesheet_service.rejected_list(db, current_user, month)


@router.get("/pending/count", response_model=CountResponse)
async def pending_count(
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(approver),
):
    return CountResponse(count=await timesheet_service.pending_count(db, current_user))


@router.get("/export/team/excel")
async def export_team_excel(
    month: str = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(approver),
):
    parse_month(month)
    rows = await timesheet_service.team_export_rows(db, current_user, month)
    return _xlsx(build_team_workbook(rows), f"Team_Timesheets_{month}.xlsx")


@router.put("/{timesheet_id}/status", response_model=MessageResponse)
async def update_status(
    timesheet_id: int,
    data: TimesheetStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(approver),
):
    await timesheet_service.update_status(db, current_user, timesheet_id, data.status, data.reason)
    return MessageResponse(message=f"Timesheet {data.status.lower()}")


@router.put("/{timesheet_id}", response_model=TimesheetRow)
async def edit_rejected(
    timesheet_id: int,
    data: RejectedTimesheetUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(approver),
):
    return await timesheet_service.edit_rejected(db, current_user, timesheet_id, data)
