import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

import crud
from auth import auth_service
from database import get_db
from dependencies import get_current_employee_id, get_current_user, require_roles
from exceptions import AuthorizationError, NotFound, ValidationError
from model import Employee as DBEmployee, User
from schemas import Employee, EmployeeCreate, EmployeeUpdate, MessageResponse, TeamContext, TeamMember, TokenData

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/employees",
    tags=["employees"],
    dependencies=[Depends(get_current_user)]
)

Manager = aliased(DBEmployee)


def _employee_query():
    return (
        select(DBEmployee, User.role, Manager.name)
        .outerjoin(User, User.id == DBEmployee.user_id)
        .outerjoin(Manager, Manager.id == DBEmployee.manager_id)
    )


def _to_schema(emp: DBEmployee, role, manager_name) -> Employee:
    return Employee(
        id=emp.id,
        user_id=emp.user_id,
        name=emp.name,
        email=emp.email,
        phone=emp.phone,
        emp_code=emp.emp_code,
        department=emp.department,
        designation=emp.designation,
        client_name=emp.client_name,
        work_location=emp.work_location,
        manager_id=emp.manager_id,
        manager_name=manager_name,
        role=role,
        active=emp.active,
        bench_since=emp.bench_since,
    )


async def _fetch(db: AsyncSession, employee_id: int) -> Employee:
    row = (await db.execute(_employee_query().where(DBEmployee.id == employee_id))).first()
    if row is None:
        raise NotFound("Employee not found")
    return _to_schema(*row)


async def _team_context(db: AsyncSession, employee_id: int) -> TeamContext:
    employee = await crud.get_employee(db, employee_id)
    if employee is None:
        raise NotFound("Employee not found")
    if not employee.manager_id:
        return TeamContext(manager=None, peers=[])

    manager = await crud.get_employee(db, employee.manager_id)
    peers = (
        await db.execute(
            select(DBEmployee)
            .where(
                DBEmployee.manager_id == employee.manager_id,
                DBEmployee.id != employee_id,
                DBEmployee.active.is_(True),
            )
            .order_by(DBEmployee.name)
        )
    ).scalars().all()
    return TeamContext(
        manager=TeamMember.model_validate(manager) if manager else None,
        peers=[TeamMember.model_validate(p) for p in peers],
    )


@router.get("", response_model=List[Employee])
async def list_employees(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(require_roles("manager", "hr", "admin")),
):
    result = await db.execute(_employee_query().order_by(DBEmployee.name).offset(skip).limit(limit))
    return [_to_schema(*row) for row in result.all()]


@router.post("", response_model=Employee, status_code=status.HTTP_201_CREATED)
async def create_employee(
    employee: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(require_roles("hr", "admin")),
):
    # Check if email already exists
    if await crud.get_user_by_email(db, employee.email):
        raise ValidationError("Email already exists")

    try:
        db_employee = await crud.create_employee(db, employee, auth_service.get_password_hash(employee.password))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Employee code or email already exists")
    logger.info("Employee %s created by user %s", db_employee.id, current_user.id)
    return await _fetch(db, db_employee.id)


@router.get("/me", response_model=Employee)
async def get_me(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await _fetch(db, employee_id)


@router.get("/me/team-context", response_model=TeamContext)
async def my_team_context(
    employee_id: int = Depends(get_current_employee_id),
    db: AsyncSession = Depends(get_db),
):
    return await _team_context(db, employee_id)


@router.get("/{employee_id}", response_model=Employee)
async def get_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    # Employees can only view their own profile
    if current_user.role not in crud.APPROVER_ROLES and current_user.employee_id != employee_id:
        raise AuthorizationError("You can only view your own profile")
    return await _fetch(db, employee_id)


@router.get("/{employee_id}/team-context", response_model=TeamContext)
async def team_context(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    if current_user.role not in crud.APPROVER_ROLES and current_user.employee_id != employee_id:
        raise AuthorizationError("You can only view your own team")
    return await _team_context(db, employee_id)


@router.put("/{employee_id}", response_model=Employee)
async def update_employee(
    employee_id: int,
    employee: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(require_roles("hr", "admin")),
):
    db_employee = await crud.get_employee(db, employee_id)
    if db_employee is None:
        raise NotFound("Employee not found")

    update_data = employee.model_dump(exclude_unset=True)
    role = update_data.pop("role", None)
    if "manager_id" in update_data and update_data["manager_id"] == employee_id:
        raise ValidationError("An employee cannot report to themselves")
    for key, value in update_data.items():
        setattr(db_employee, key, value)

    # Keep the login account in step with the employee record
    if db_employee.user_id:
        user = await db.get(User, db_employee.user_id)
        if user is not None:
            if "name" in update_data:
                user.name = db_employee.name
            if "active" in update_data:
                user.active = db_employee.active
            if role:
                user.role = role

    await db.commit()
    return await _fetch(db, employee_id)


@router.delete("/{employee_id}", response_model=MessageResponse)
async def deactivate_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(require_roles("hr", "admin")),
):
    db_employee = await crud.get_employee(db, employee_id)
    if db_employee is None:
        raise NotFound("Employee not found")

    # Soft delete (deactivate) instead of permanent delete
    db_employee.active = False
    if db_employee.user_id:
        user = await db.get(User, db_employee.user_id)
        if user is not None:
            user.active = False
            user.token_version = (user.token_version or 0) + 1
    await db.commit()
    return MessageResponse(message="Employee deactivated")


@router.delete("/{employee_id}/permanent", response_model=MessageResponse)
async def delete_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(require_roles("admin")),
):
    db_employee = await crud.get_employee(db, employee_id)
    if db_employee is None:
        raise NotFound("Employee not found")
    user_id = db_employee.user_id

    await db.execute(
        update(DBEmployee)
        .where(DBEmployee.manager_id == employee_id)
        .values(manager_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(delete(DBEmployee).where(DBEmployee.id == employee_id))
    if user_id:
        await db.execute(delete(User).where(User.id == user_id))
    await db.commit()
    logger.info("Employee %s deleted by user %s", employee_id, current_user.id)
    return MessageResponse(message="Employee and account deleted")
