from datetime import date, datetime

import pytest

from exceptions import ValidationError
from workday import (
    HOLIDAY,
    LEAVE,
    PRESENT,
    WEEKLY_OFF,
    business_date_for,
    classify_day,
    contains_sunday,
    elapsed_minutes,
    format_duration,
    history_status,
    hours_from_minutes,
    inclusive_days,
    month_days,
    net_worked_minutes,
    parse_month,
)

SATURDAY = date(2025, 3, 8)
MONDAY = date(2025, 3, 10)


def test_business_date_rolls_back_before_four_am():
    assert business_date_for(datetime(2025, 3, 11, 3, 59)) == date(2025, 3, 10)
    assert business_date_for(datetime(2025, 3, 11, 4, 0)) == date(2025, 3, 11)


def test_business_date_custom_offset():
    assert business_date_for(datetime(2025, 3, 11, 5, 0), offset_hours=6) == date(2025, 3, 10)


def test_net_worked_minutes_subtracts_breaks():
    clock_in = datetime(2025, 3, 10, 9, 0)
    clock_out = datetime(2025, 3, 10, 18, 0)
    assert net_worked_minutes(clock_in, clock_out, 30) == 510


def test_net_worked_minutes_never_negative():
    clock_in = datetime(2025, 3, 10, 9, 0)
    assert net_worked_minutes(clock_in, datetime(2025, 3, 10, 9, 10), 30) == 0
    assert elapsed_minutes(clock_in, datetime(2025, 3, 10, 8, 0)) == 0


def test_elapsed_minutes_truncates_seconds():
    assert elapsed_minutes(datetime(2025, 3, 10, 9, 0, 0), datetime(2025, 3, 10, 9, 1, 59)) == 1


def test_hours_and_duration_formatting():
    assert hours_from_minutes(510) == 8.5
    assert hours_from_minutes(100) == 1.67
    assert format_duration(510) == "8h 30m"
    assert format_duration(5) == "0h 5m"


@pytest.mark.parametrize(
    "clock_out, minutes, expected",
    [
        (None, None, "Working"),
        (datetime(2025, 3, 10, 18, 0), 480, "Full Day"),
        (datetime(2025, 3, 10, 18, 0), 239, "Half Day"),
        (datetime(2025, 3, 10, 18, 0), 300, "Present"),
    ],
)
def test_history_status(clock_out, minutes, expected):
    assert history_status(clock_out, minutes) == expected


def test_parse_month():
    assert parse_month("2025-02") == (2025, 2)
    with pytest.raises(ValidationError, match="Month missing"):
        parse_month(None)
    with pytest.raises(ValidationError, match="YYYY-MM"):
        parse_month("2025/02")
    with pytest.raises(ValidationError):
        parse_month("2025-13")


def test_month_days_covers_whole_month():
    days = month_days(2024, 2)
    assert len(days) == 29
    assert days[0] == date(2024, 2, 1)
    assert days[-1] == date(2024, 2, 29)


def test_classify_day_precedence():
    # Leave beats everything
    assert classify_day(SATURDAY, True, True, True) == LEAVE
    assert classify_day(MONDAY, False, True, True) == PRESENT
    # A Saturday holiday is a holiday, not a weekly off
    assert classify_day(SATURDAY, False, False, True) == HOLIDAY
    assert classify_day(SATURDAY, False, False, False) == WEEKLY_OFF
    assert classify_day(MONDAY, False, False, False) == ""


def test_leave_day_helpers():
    assert inclusive_days(date(2025, 3, 10), date(2025, 3, 10)) == 1
    assert inclusive_days(date(2025, 3, 10), date(2025, 3, 14)) == 5
    assert contains_sunday(date(2025, 3, 8), date(2025, 3, 10))
    assert not contains_sunday(date(2025, 3, 10), date(2025, 3, 15))
