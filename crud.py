from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import model
import schemas

HR_ROLES = ("hr", "admin")
APPROVER_ROLES = ("manager", "hr", "admin")


# User lookups
async def get_user_by_email(db: AsyncSession, email: str) -> Optional[model.User]:
    result = await db.execute(select(model.User).where(model.User.email == email))
    return result.scalars().first()


async def hr_admin_user_ids(db: AsyncSession) -> List[int]:
    result = await db.execute(select(model.User.id).where(model.User.role.in_(HR_ROLES)))
    return list(result.scalars().all())


# Employee lookups
async def get_employee(db: AsyncSession, employee_id: int) -> Optional[model.Employee]:
    return await db.get(model.Employee, employee_id)


async def get_employee_by_user(db: AsyncSession, user_id: int) -> Optional[model.Employee]:
    result = await db.execute(select(model.Employee).where(model.Employee.user_id == user_id))
    return result.scalars().first()


async def lock_employee(db: AsyncSession, employee_id: int) -> Optional[model.Employee]:
    """Fetch the employee row under a row lock; serializes writes for one employee"""
    result = await db.execute(
        select(model.Employee).where(model.Employee.id == employee_id).with_for_update()
    )
    return result.scalars().first()


async def manager_user_id(db: AsyncSession, employee: model.Employee) -> Optional[int]:
    if not employee.manager_id:
        return None
    result = await db.execute(
        select(model.Employee.user_id).where(model.Employee.id == employee.manager_id)
    )
    return result.scalar_one_or_none()


async def create_employee(db: AsyncSession, data: schemas.EmployeeCreate, password_hash: str) -> model.Employee:
    db_user = model.User(
        name=data.name,
        email=data.email,
        password_hash=password_hash,
        role=data.role,
        active=True,
        token_version=0,
    )
    db.add(db_user)
    await db.flush()

    db_employee = model.Employee(
        user_id=db_user.id,
        emp_code=data.emp_code,
        name=data.name,
        email=data.email,
        phone=data.phone,
        department=data.department,
        designation=data.designation,
        client_name=data.client_name,
        work_location=data.work_location,
        manager_id=data.manager_id,
        active=True,
    )
    db.add(db_employee)
    await db.flush()
    return db_employee


async def seed_leave_types(db: AsyncSession, defaults: Dict[str, List]) -> int:
    """Insert the default leave types when none exist yet"""
    existing = await db.execute(select(model.LeaveType.code).limit(1))
    if existing.first():
        return 0
    for code, (name, quota) in defaults.items():
        db.add(model.LeaveType(code=code, name=name, annual_quota=quota))
    await db.commit()
    return len(defaults)
