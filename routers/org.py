from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from database import get_db
from dependencies import get_current_user
from model import Employee, User
from schemas import OrgNode

router = APIRouter(
    prefix="/org",
    tags=["org"],
    dependencies=[Depends(get_current_user)]
)


@router.get("", response_model=List[OrgNode])
async def org_chart(db: AsyncSession = Depends(get_db)):
    manager = aliased(Employee)
    result = await db.execute(
        select(Employee.id, Employee.name, User.role, Employee.manager_id, manager.name.label("manager_name"))
        .join(User, User.id == Employee.user_id)
        .outerjoin(manager, manager.id == Employee.manager_id)
        .order_by(manager.name, Employee.name)
    )
    return [OrgNode(**row._mapping) for row in result.all()]
