from datetime import date

import model
from conftest import PASSWORD, login, password_hash
from services.timesheet_excel import XLSX_MEDIA_TYPE


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_login_returns_token_and_user(client, staff):
    response = await client.post("/api/auth/login", json={"email": staff.employee.email, "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["user"]["role"] == "employee"
    assert body["user"]["employee_id"] == staff.employee.id


async def test_login_failures(client, db, staff):
    response = await client.post("/api/auth/login", json={"email": staff.employee.email, "password": "nope"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"

    response = await client.post("/api/auth/login", json={"email": staff.employee.email})
    assert response.status_code == 400

    user = await db.get(model.User, staff.peer.user_id)
    user.active = False
    await db.commit()
    response = await client.post("/api/auth/login", json={"email": staff.peer.email, "password": PASSWORD})
    assert response.status_code == 403


async def test_login_without_employee_record_is_server_error(client, db, staff):
    db.add(model.User(name="Ghost", email="ghost@acme.com", password_hash=password_hash(), role="employee"))
    await db.commit()
    response = await client.post("/api/auth/login", json={"email": "ghost@acme.com", "password": PASSWORD})
    assert response.status_code == 500
    assert response.json() == {"message": "Server Error"}


async def test_requests_need_a_bearer_token(client, staff):
    response = await client.get("/api/attendance/today")
    assert response.status_code == 401
    assert response.json()["message"] == "Authorization header missing"

    response = await client.get("/api/attendance/today", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


async def test_logout_all_revokes_issued_tokens(client, staff):
    headers = await login(client, staff.employee)
    assert (await client.get("/api/notifications/count", headers=headers)).status_code == 200

    response = await client.post("/api/auth/logout-all", headers=headers)
    assert response.json()["force_logout"] is True
    assert (await client.get("/api/notifications/count", headers=headers)).status_code == 401


async def test_change_password(client, staff):
    headers = await login(client, staff.employee)

    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": "wrong", "new_password": "Another@456"},
        headers=headers,
    )
    assert response.status_code == 401

    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": PASSWORD},
        headers=headers,
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "Another@456"},
        headers=headers,
    )
    assert response.status_code == 200
    assert (await client.get("/api/attendance/today", headers=headers)).status_code == 401

    response = await client.post("/api/auth/login", json={"email": staff.employee.email, "password": "Another@456"})
    assert response.status_code == 200


async def test_attendance_flow(client, staff):
    headers = await login(client, staff.employee)

    response = await client.get("/api/attendance/today", headers=headers)
    assert response.json()["status"] == "NOT_STARTED"

    response = await client.post("/api/attendance/clock-in", json={"latitude": 12.97, "longitude": 77.59}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "WORKING"

    response = await client.post("/api/attendance/clock-in", headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Already clocked in today"

    response = await client.post("/api/attendance/take-break", headers=headers)
    assert response.json()["status"] == "ON_BREAK"
    response = await client.post("/api/attendance/end-break", headers=headers)
    assert response.json()["status"] == "WORKING"

    response = await client.post("/api/attendance/clock-out", json={"project": "", "task": ""}, headers=headers)
    assert response.status_code == 400

    response = await client.post(
        "/api/attendance/clock-out", json={"project": "Apollo", "task": "Standup"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"

    history = (await client.get("/api/attendance/history/me", headers=headers)).json()
    assert len(history) == 1
    assert history[0]["status"] == "Half Day"

    manager_headers = await login(client, staff.manager)
    count = (await client.get("/api/timesheets/pending/count", headers=manager_headers)).json()
    assert count == {"count": 1}


async def test_timesheet_approval_over_http(client, db, staff):
    ts = model.Timesheet(
        employee_id=staff.employee.id, work_date=date(2025, 3, 10), project="Apollo", task="API", hours=8, status="SUBMITTED"
    )
    db.add(ts)
    await db.commit()

    manager_headers = await login(client, staff.manager)
    rows = (await client.get("/api/timesheets/approval?month=2025-03", headers=manager_headers)).json()
    assert [r["id"] for r in rows] == [ts.id]

    response = await client.put(f"/api/timesheets/{ts.id}/status", json={"status": "APPROVED"}, headers=manager_headers)
    assert response.status_code == 200

    response = await client.put(f"/api/timesheets/{ts.id}/status", json={"status": "APPROVED"}, headers=manager_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Timesheet not found or already processed"

    employee_headers = await login(client, staff.employee)
    response = await client.get("/api/timesheets/approval?month=2025-03", headers=employee_headers)
    assert response.status_code == 403

    notes = (await client.get("/api/notifications", headers=employee_headers)).json()
    assert [n["type"] for n in notes] == ["TIMESHEET"]

    response = await client.put("/api/notifications/mark-all-read", headers=employee_headers)
    assert response.status_code == 200
    assert (await client.get("/api/notifications/count", headers=employee_headers)).json() == {"count": 0}


async def test_calendar_endpoints(client, staff):
    headers = await login(client, staff.employee)

    response = await client.get("/api/timesheets/my/calendar?month=2025-02", headers=headers)
    assert response.status_code == 200
    assert len(response.json()) == 28

    response = await client.get("/api/timesheets/my/calendar", headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Month missing"

    response = await client.get("/api/timesheets/my/calendar/excel?month=2025-02", headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    assert "Timesheet_2025-02.xlsx" in response.headers["content-disposition"]


async def test_leave_endpoints(client, staff):
    headers = await login(client, staff.employee)

    types = (await client.get("/api/leaves/types", headers=headers)).json()
    assert {t["code"] for t in types} == {"CL", "SL", "EL"}

    response = await client.post(
        "/api/leaves/apply",
        json={"from_date": "2030-03-08", "to_date": "2030-03-11", "leave_type": "CL"},
        headers=headers,
    )
    assert response.status_code == 400
    assert "Sunday" in response.json()["message"]

    response = await client.post(
        "/api/leaves/apply",
        json={"from_date": "2030-03-11", "to_date": "2030-03-12", "leave_type": "CL", "reason": "Trip"},
        headers=headers,
    )
    assert response.status_code == 200
    leave_id = (await client.get("/api/leaves/history", headers=headers)).json()[0]["id"]

    other_headers = await login(client, staff.other_manager)
    response = await client.put(f"/api/leaves/{leave_id}/action", json={"action": "approved"}, headers=other_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Not your employee"

    manager_headers = await login(client, staff.manager)
    response = await client.put(f"/api/leaves/{leave_id}/action", json={"action": "approved"}, headers=manager_headers)
    assert response.status_code == 200

    response = await client.put(f"/api/leaves/{leave_id}/action", json={"action": "rejected"}, headers=manager_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Leave not found or already processed"

    response = await client.delete(f"/api/leaves/{leave_id}", headers=headers)
    assert response.status_code == 400


async def test_employee_management(client, staff):
    hr_headers = await login(client, staff.hr)
    payload = {
        "name": "Jordan New",
        "email": "jordan.new@acme.com",
        "password": PASSWORD,
        "role": "employee",
        "manager_id": staff.manager.id,
        "emp_code": "E100",
    }
    response = await client.post("/api/employees", json=payload, headers=hr_headers)
    assert response.status_code == 201
    created = response.json()
    assert created["manager_name"] == "Morgan Manager"
    assert created["role"] == "employee"

    response = await client.post("/api/employees", json=payload, headers=hr_headers)
    assert response.status_code == 400

    new_headers = await login(client, "jordan.new@acme.com")
    me = (await client.get("/api/employees/me", headers=new_headers)).json()
    assert me["emp_code"] == "E100"

    context = (await client.get("/api/employees/me/team-context", headers=new_headers)).json()
    assert context["manager"]["name"] == "Morgan Manager"
    assert {p["name"] for p in context["peers"]} == {"Riley Dev", "Sam Dev"}

    assert (await client.get("/api/employees", headers=new_headers)).status_code == 403
    response = await client.get(f"/api/employees/{staff.peer.id}", headers=new_headers)
    assert response.status_code == 403
    response = await client.get(f"/api/employees/{staff.outsider.id}/team-context", headers=new_headers)
    assert response.status_code == 403
    response = await client.get(f"/api/employees/{created['id']}/team-context", headers=new_headers)
    assert response.status_code == 200
    response = await client.get(f"/api/employees/{staff.outsider.id}/team-context", headers=hr_headers)
    assert response.json()["manager"]["name"] == "Quinn Manager"

    response = await client.delete(f"/api/employees/{created['id']}", headers=hr_headers)
    assert response.status_code == 200
    assert (await client.get("/api/employees/me", headers=new_headers)).status_code == 401


async def test_org_chart(client, staff):
    headers = await login(client, staff.employee)
    nodes = (await client.get("/api/org", headers=headers)).json()
    assert len(nodes) == 7
    riley = next(n for n in nodes if n["name"] == "Riley Dev")
    assert riley["manager_name"] == "Morgan Manager"
    assert riley["role"] == "employee"


async def test_holidays(client, staff):
    hr_headers = await login(client, staff.hr)
    response = await client.post(
        "/api/holidays", json={"name": "Founders Day", "holiday_date": "2030-01-15"}, headers=hr_headers
    )
    assert response.status_code == 201

    response = await client.post(
        "/api/holidays", json={"name": "Again", "holiday_date": "2030-01-15"}, headers=hr_headers
    )
    assert response.status_code == 400

    headers = await login(client, staff.employee)
    listed = (await client.get("/api/holidays?year=2030", headers=headers)).json()
    assert [h["name"] for h in listed] == ["Founders Day"]
    upcoming = (await client.get("/api/holidays/upcoming", headers=headers)).json()
    assert upcoming[0]["holiday_date"] == "2030-01-15"

    response = await client.post("/api/holidays", json={"name": "X", "holiday_date": "2030-02-01"}, headers=headers)
    assert response.status_code == 403


async def test_payroll_upload_and_payslip(client, staff):
    hr_headers = await login(client, staff.hr)
    csv_body = (
        "emp_code,month,working_days,paid_days,basic,hra,pf\n"
        "E001,2025-02,20,20,30000,12000,1800\n"
        "E999,2025-02,20,20,1,1,0\n"
        ",2025-02,20,20,1,1,0\n"
    )
    files = {"payrollFile": ("payroll.csv", csv_body.encode(), "text/csv")}
    response = await client.post("/api/payroll/upload", files=files, headers=hr_headers)
    assert response.status_code == 200
    result = response.json()
    assert result["uploaded"] == 1
    assert result["errors"] == [
        "Row 2: Employee E999 not found or inactive",
        "Row 3: Missing emp_code or month",
    ]

    response = await client.post("/api/payroll/upload", files=files, headers=hr_headers)
    assert response.json()["uploaded"] == 0
    assert "Row 1: Payroll already exists" in response.json()["errors"]

    headers = await login(client, staff.employee)
    assert (await client.get("/api/payroll/my/months", headers=headers)).json() == ["2025-02"]
    slip = (await client.get("/api/payroll/my/2025-02", headers=headers)).json()
    assert slip["net_pay"] == 40200
    assert slip["total_deductions"] == 1800
    assert (await client.get("/api/payroll/my/2025-01", headers=headers)).status_code == 404

    response = await client.post("/api/payroll/upload", files=files, headers=headers)
    assert response.status_code == 403
