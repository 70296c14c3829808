"""Payroll bulk upload and employee payslips."""
import csv
import io
import logging
from typing import Any, Dict, List, Optional

from openpyxl import load_workbook
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import ValidationError
from model import Employee, Payroll
from schemas import Payslip, PayrollUploadResult

logger = logging.getLogger(__name__)

AMOUNT_FIELDS = (
    "basic",
    "hra",
    "da",
    "lta",
    "special_allowance",
    "other_allowance",
    "pf",
    "esi",
    "tds",
    "other_deductions",
    "gross_pay",
    "net_pay",
)
EARNING_FIELDS = ("basic", "hra", "da", "lta", "special_allowance", "other_allowance")
DEDUCTION_FIELDS = ("pf", "esi", "tds", "other_deductions")


def _number(value, default=0.0) -> float:
    if value in (None, ""):
        return default
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return default


def parse_upload(filename: str, content: bytes) -> List[Dict[str, Any]]:
    """Rows of a CSV or XLSX payroll sheet as dicts keyed by trimmed header"""
    ext = (filename or "").rsplit(".", 1)[-1].lower()
    try:
        if ext == "csv":
            reader = csv.DictReader(io.StringIO(content.decode("utf-8-sig")))
            rows = list(reader)
        elif ext == "xlsx":
            wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
            values = list(wb.worksheets[0].iter_rows(values_only=True))
            wb.close()
            if not values:
                return []
            headers = [str(h).strip() if h is not None else "" for h in values[0]]
            rows = [dict(zip(headers, row)) for row in values[1:] if any(v not in (None, "") for v in row)]
        else:
            raise ValidationError("Only .csv and .xlsx files are supported")
    except ValidationError:
        raise
    except Exception:
        logger.exception("Payroll file parse error (%s)", filename)
        raise ValidationError("File parse error")

    return [{str(k).strip(): v for k, v in row.items() if k is not None} for row in rows]


async def upload(db: AsyncSession, rows: List[Dict[str, Any]]) -> PayrollUploadResult:
    """Insert one payroll row per (employee, month); existing rows are reported, never overwritten"""
    errors = []
    uploaded = 0
    for index, row in enumerate(rows, start=1):
        emp_code = str(row.get("emp_code") or "").strip()
        month = str(row.get("month") or "").strip()
        if not emp_code or not month:
            errors.append(f"Row {index}: Missing emp_code or month")
            continue

        employee_id = (
            await db.execute(
                select(Employee.id).where(Employee.emp_code == emp_code, Employee.active.is_(True))
            )
        ).scalar_one_or_none()
        if employee_id is None:
            errors.append(f"Row {index}: Employee {emp_code} not found or inactive")
            continue

        exists = (
            await db.execute(
                select(Payroll.id).where(Payroll.employee_id == employee_id, Payroll.month == month).limit(1)
            )
        ).first()
        if exists:
            errors.append(f"Row {index}: Payroll already exists")
            continue

        values = {field: _number(row.get(field)) for field in AMOUNT_FIELDS}
        db.add(
            Payroll(
                employee_id=employee_id,
                month=month,
                working_days=int(_number(row.get("working_days"))),
                paid_days=_number(row.get("paid_days")),
                **values,
            )
        )
        await db.flush()
        uploaded += 1

    await db.commit()
    logger.info("Payroll upload: %d row(s) stored, %d error(s)", uploaded, len(errors))
    return PayrollUploadResult(uploaded=uploaded, errors=errors)


async def months(db: AsyncSession, employee_id: int) -> List[str]:
    result = await db.execute(
        select(Payroll.month).where(Payroll.employee_id == employee_id).distinct().order_by(Payroll.month.desc())
    )
    return list(result.scalars().all())


async def payslip(db: AsyncSession, employee_id: int, month: str) -> Optional[Payslip]:
    row = (
        await db.execute(
            select(Payroll).where(Payroll.employee_id == employee_id, Payroll.month == month).limit(1)
        )
    ).scalars().first()
    if row is None:
        return None

    slip = Payslip.model_validate(row)
    earnings = sum(getattr(slip, f) for f in EARNING_FIELDS)
    deductions = sum(getattr(slip, f) for f in DEDUCTION_FIELDS)
    slip.total_deductions = round(deductions, 2)
    if not slip.gross_pay:
        slip.gross_pay = round(earnings, 2)
    if not slip.net_pay:
        slip.net_pay = round(earnings - deductions, 2)
    return slip
