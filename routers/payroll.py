from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from database import get_db
from dependencies import get_current_employee_id, get_current_user, require_roles
from exceptions import NotFound, ValidationError
from schemas import Payslip, PayrollUploadResult, TokenData
from services import payroll

router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
    dependencies=[Depends(get_current_user)]
)


@router.post("/upload", response_model=PayrollUploadResult)
async def upload_payroll(
    payroll_file: UploadFile = File(None, alias="payrollFile"),
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(require_roles(*crud.HR_ROLES)),
):
    if payroll_file is None:
        raise ValidationError("Payroll file missing")
    rows = payroll.parse_upload(payroll_file.filename, await payroll_file.read())
    return await payroll.upload(db, rows)


@router.get("/my/months", response_model=List[str])
async def my_payslip_months(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await payroll.months(db, employee_id)


@router.get("/my/{month}", response_model=Payslip)
async def my_payslip(
    month: str,
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    slip = await payroll.payslip(db, employee_id, month)
    if slip is None:
        raise NotFound("Payslip not found")
    return slip
