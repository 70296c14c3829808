import os

os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENABLE_OVERTIME_SWEEP"] = "false"

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import model
from auth import auth_service
from config import get_settings
from database import Base, build_session_factory, get_db
from schemas import TokenData
from services.notifications import NotificationDispatcher

PASSWORD = "Secret@123"
_password_hash = None


def password_hash() -> str:
    # bcrypt is slow; hash once per test run
    global _password_hash
    if _password_hash is None:
        _password_hash = auth_service.get_password_hash(PASSWORD)
    return _password_hash


class RecordingConnection:
    """Stands in for a websocket: records every payload sent to it"""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def dispatcher():
    return NotificationDispatcher()


async def add_employee(db, name, role="employee", manager=None, emp_code=None):
    email = f"{name.lower().replace(' ', '.')}@acme.com"
    user = model.User(
        name=name,
        email=email,
        password_hash=password_hash(),
        role=role,
        active=True,
        token_version=0,
    )
    db.add(user)
    await db.flush()
    employee = model.Employee(
        user_id=user.id,
        emp_code=emp_code,
        name=name,
        email=email,
        department="Engineering",
        designation=role.title(),
        manager_id=manager.id if manager else None,
        active=True,
    )
    db.add(employee)
    await db.flush()
    return employee


@pytest.fixture
async def staff(db):
    admin = await add_employee(db, "Ada Admin", "admin")
    hr = await add_employee(db, "Harper HR", "hr")
    manager = await add_employee(db, "Morgan Manager", "manager")
    other_manager = await add_employee(db, "Quinn Manager", "manager")
    employee = await add_employee(db, "Riley Dev", "employee", manager=manager, emp_code="E001")
    peer = await add_employee(db, "Sam Dev", "employee", manager=manager, emp_code="E002")
    outsider = await add_employee(db, "Taylor Ops", "employee", manager=other_manager, emp_code="E003")
    for code, (name, quota) in get_settings().default_leave_types.items():
        db.add(model.LeaveType(code=code, name=name, annual_quota=quota))
    await db.commit()
    return SimpleNamespace(
        admin=admin,
        hr=hr,
        manager=manager,
        other_manager=other_manager,
        employee=employee,
        peer=peer,
        outsider=outsider,
    )


def token_for(employee, role) -> TokenData:
    return TokenData(id=employee.user_id, email=employee.email, role=role, employee_id=employee.id)


@pytest.fixture
async def client(session_factory):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def login(client, who) -> dict:
    email = getattr(who, "email", who)
    response = await client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
