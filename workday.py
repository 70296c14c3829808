"""Calendar and working-time rules shared by attendance, timesheets and leaves.

Kept free of any storage access so the policies can be exercised directly.
"""
import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from exceptions import ValidationError

# Day type tags used by the timesheet calendar and its Excel export
LEAVE = "LE"
PRESENT = "P"
HOLIDAY = "HOL"
WEEKLY_OFF = "WO"

FULL_DAY_MINUTES = 480
HALF_DAY_MINUTES = 240


def now_in(tz_name: str) -> datetime:
    """Current wall-clock time in tz_name, returned naive (storage keeps local timestamps)"""
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None, microsecond=0)


def business_date_for(now: datetime, offset_hours: int = 4) -> date:
    """The working day a timestamp belongs to; shifts past midnight stay on the previous day"""
    return (now - timedelta(hours=offset_hours)).date()


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two timestamps, never negative"""
    return max(0, int((end - start).total_seconds() // 60))


def net_worked_minutes(clock_in: datetime, clock_out: datetime, break_minutes: int) -> int:
    return max(0, elapsed_minutes(clock_in, clock_out) - (break_minutes or 0))


def hours_from_minutes(minutes: int) -> float:
    return round(minutes / 60, 2)


def format_duration(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


def history_status(clock_out: Optional[datetime], total_work_minutes: Optional[int]) -> str:
    """Display label for a past attendance row"""
    if clock_out is None:
        return "Working"
    worked = total_work_minutes or 0
    if worked >= FULL_DAY_MINUTES:
        return "Full Day"
    if worked < HALF_DAY_MINUTES:
        return "Half Day"
    return "Present"


def parse_month(month: Optional[str]) -> Tuple[int, int]:
    """Parse a YYYY-MM string into (year, month)"""
    if not month:
        raise ValidationError("Month missing")
    try:
        parsed = datetime.strptime(month.strip(), "%Y-%m")
    except ValueError:
        raise ValidationError("Month must be in YYYY-MM format")
    return parsed.year, parsed.month


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def month_days(year: int, month: int) -> List[date]:
    first, last = month_bounds(year, month)
    return [first + timedelta(days=offset) for offset in range((last - first).days + 1)]


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def classify_day(day: date, on_leave: bool, has_timesheet: bool, is_holiday: bool) -> str:
    """Type tag for a calendar day: leave > timesheet entry > holiday > weekend > blank"""
    if on_leave:
        return LEAVE
    if has_timesheet:
        return PRESENT
    if is_holiday:
        return HOLIDAY
    if is_weekend(day):
        return WEEKLY_OFF
    return ""


def inclusive_days(from_date: date, to_date: date) -> int:
    return (to_date - from_date).days + 1


def contains_sunday(from_date: date, to_date: date) -> bool:
    current = from_date
    while current <= to_date:
        if current.weekday() == 6:
            return True
        current += timedelta(days=1)
    return False
