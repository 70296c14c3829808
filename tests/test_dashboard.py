from datetime import date, datetime

import pytest

from conftest import RecordingConnection, login, token_for
from exceptions import AuthorizationError, NotFound
from model import AttendanceLog, Holiday, Leave, Timesheet
from services.dashboard import DashboardService
from services.notifications import ConnectionRegistry

DAY = date(2025, 3, 10)
NOW = datetime(2025, 3, 10, 11, 0)


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def service(settings, registry):
    return DashboardService(settings, registry)


def clocked_in(employee, hour=9, status="WORKING", breaks=0):
    return AttendanceLog(
        employee_id=employee.id,
        log_date=DAY,
        clock_in=datetime(2025, 3, 10, hour),
        status=status,
        total_break_minutes=breaks,
        alert_level=0,
    )


@pytest.fixture
async def busy_day(db, staff):
    db.add_all(
        [
            clocked_in(staff.employee, breaks=30),
            clocked_in(staff.outsider),
            clocked_in(staff.manager, hour=8),
            Leave(employee_id=staff.employee.id, from_date=date(2025, 3, 20), to_date=date(2025, 3, 21),
                  leave_type="CL", reason="Trip", status="PENDING"),
            Leave(employee_id=staff.outsider.id, from_date=date(2025, 3, 24), to_date=date(2025, 3, 24),
                  leave_type="SL", status="PENDING"),
            Leave(employee_id=staff.peer.id, from_date=date(2025, 3, 10), to_date=date(2025, 3, 11),
                  leave_type="CL", status="APPROVED"),
            Timesheet(employee_id=staff.employee.id, work_date=date(2025, 3, 7), project="Apollo",
                      task="API", hours=8, status="SUBMITTED"),
            Timesheet(employee_id=staff.outsider.id, work_date=date(2025, 3, 7), project="Zeus",
                      task="Ops", hours=8, status="APPROVED"),
        ]
    )
    await db.commit()
    return staff


async def test_home_lists_next_public_holidays(db, staff, service):
    db.add_all(
        [
            Holiday(name="Founders Day", holiday_date=date(2025, 3, 10), is_public=True),
            Holiday(name="Spring", holiday_date=date(2025, 3, 14), is_public=True),
            Holiday(name="Offsite", holiday_date=date(2025, 3, 15), is_public=False),
            Holiday(name="April", holiday_date=date(2025, 4, 1), is_public=True),
            Holiday(name="May Day", holiday_date=date(2025, 5, 1), is_public=True),
            Holiday(name="June", holiday_date=date(2025, 6, 2), is_public=True),
            Holiday(name="Past", holiday_date=date(2025, 1, 1), is_public=True),
        ]
    )
    await db.commit()

    home = await service.home(db, today=DAY)
    assert home.holiday.name == "Founders Day"
    assert [h.name for h in home.upcoming_holidays] == ["Spring", "April", "May Day"]


async def test_worked_today_subtracts_breaks(db, busy_day, service):
    worked = await service.worked_today(db, busy_day.employee.id, now=NOW)
    assert worked.worked_seconds == 2 * 3600 - 1800
    assert worked.break_seconds == 1800

    empty = await service.worked_today(db, busy_day.peer.id, now=NOW)
    assert empty.worked_seconds == 0


async def test_counters_are_scoped_by_role(db, busy_day, service):
    hr = token_for(busy_day.hr, "hr")
    manager = token_for(busy_day.manager, "manager")

    assert await service.team_attendance_count(db, hr, now=NOW) == 3
    assert await service.team_attendance_count(db, manager, now=NOW) == 1
    assert await service.pending_leaves_count(db, hr) == 2
    assert await service.pending_leaves_count(db, manager) == 1
    assert await service.pending_timesheets_count(db, hr) == 1
    assert await service.on_leave_count(db, manager, today=DAY) == 1
    assert await service.on_leave_count(db, token_for(busy_day.other_manager, "manager"), today=DAY) == 0

    with pytest.raises(AuthorizationError):
        await service.pending_leaves_count(db, token_for(busy_day.employee, "employee"))


async def test_detail_lists(db, busy_day, service):
    manager = token_for(busy_day.manager, "manager")

    pending = await service.pending_leaves(db, manager)
    assert [(row.name, row.total_days, row.status) for row in pending] == [("Riley Dev", 2, "Pending")]

    away = await service.on_leave(db, manager, today=DAY)
    assert [row.name for row in away] == ["Sam Dev"]

    present = await service.team_attendance(db, token_for(busy_day.admin, "admin"), now=NOW)
    assert [(row.name, row.in_time) for row in present] == [
        ("Morgan Manager", "08:00"),
        ("Riley Dev", "09:00"),
        ("Taylor Ops", "09:00"),
    ]


async def test_manager_summary(db, busy_day, service):
    summary = await service.manager_summary(db, token_for(busy_day.manager, "manager"), now=NOW)
    assert summary.total == 2
    assert summary.present == 1
    assert summary.on_leave == 1
    assert summary.pending_leaves == 1
    assert summary.pending_timesheets == 1

    with pytest.raises(AuthorizationError, match="Manager only"):
        await service.manager_summary(db, token_for(busy_day.hr, "hr"), now=NOW)


async def test_team_tree_and_presence(db, staff, service, registry):
    registry.register(staff.peer.user_id, RecordingConnection())

    everyone = await service.team(db, token_for(staff.manager, "manager"))
    assert len(everyone) == 7
    online = {node.name for node in everyone if node.online}
    assert online == {"Sam Dev"}

    mine = await service.team(db, token_for(staff.employee, "employee"))
    assert [node.name for node in mine] == ["Riley Dev"]


async def test_hierarchy_path_walks_up(db, staff, service):
    path = await service.hierarchy_path(db, staff.employee.id)
    assert [(node.name, node.level) for node in path] == [("Riley Dev", 0), ("Morgan Manager", 1)]

    with pytest.raises(NotFound):
        await service.hierarchy_path(db, 9999)


async def test_team_status_today_marks_absentees(db, busy_day, service):
    rows = await service.team_status_today(db, busy_day.manager.id, now=NOW)
    assert {row.name: row.status for row in rows} == {
        "Morgan Manager": "WORKING",
        "Riley Dev": "WORKING",
        "Sam Dev": "Absent",
    }


async def test_dashboard_endpoints(client, busy_day):
    headers = await login(client, busy_day.manager)
    for path in ("/api/dashboard/pending-leaves", "/api/dashboard/pending-timesheets"):
        response = await client.get(path, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"count": 1}

    response = await client.get("/api/dashboard/home", headers=headers)
    assert response.status_code == 200

    response = await client.get("/api/team/summary", headers=headers)
    assert response.json()["total"] == 2

    employee_headers = await login(client, busy_day.employee)
    response = await client.get("/api/dashboard/pending-leaves-list", headers=employee_headers)
    assert response.status_code == 403
    response = await client.get("/api/team/my", headers=employee_headers)
    assert [node["name"] for node in response.json()] == ["Riley Dev"]
