from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import extract, select
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from config import get_settings
from database import get_db
from dependencies import get_current_user, require_roles
from exceptions import NotFound, ValidationError
from model import Holiday as DBHoliday
from schemas import Holiday, HolidayCreate, MessageResponse, TokenData
from workday import now_in

router = APIRouter(
    prefix="/holidays",
    tags=["holidays"],
    dependencies=[Depends(get_current_user)]
)

UPCOMING_LIMIT = 5


def _today():
    return now_in(get_settings().timezone).date()


@router.get("", response_model=List[Holiday])
async def list_holidays(year: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    query = select(DBHoliday).order_by(DBHoliday.holiday_date)
    query = query.where(extract("year", DBHoliday.holiday_date) == (year or _today().year))
    return (await db.execute(query)).scalars().all()


@router.get("/upcoming", response_model=List[Holiday])
async def upcoming_holidays(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(DBHoliday)
        .where(DBHoliday.is_public.is_(True), DBHoliday.holiday_date >= _today())
        .order_by(DBHoliday.holiday_date)
        .limit(UPCOMING_LIMIT)
    )
    return result.scalars().all()


@router.post("", response_model=Holiday, status_code=status.HTTP_201_CREATED)
async def create_holiday(
    holiday: HolidayCreate,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(require_roles(*crud.HR_ROLES)),
):
    existing = await db.execute(select(DBHoliday.id).where(DBHoliday.holiday_date == holiday.holiday_date))
    if existing.first():
        raise ValidationError("A holiday already exists on this date")

    db_holiday = DBHoliday(**holiday.model_dump())
    db.add(db_holiday)
    await db.commit()
    return db_holiday


@router.delete("/{holiday_id}", response_model=MessageResponse)
async def delete_holiday(
    holiday_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(require_roles(*crud.HR_ROLES)),
):
    db_holiday = await db.get(DBHoliday, holiday_id)
    if db_holiday is None:
        raise NotFound("Holiday not found")
    await db.delete(db_holiday)
    await db.commit()
    return MessageResponse(message="Holiday deleted")
