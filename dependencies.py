from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from auth import auth_service
from config import get_settings
from database import get_db
from exceptions import AuthenticationError, AuthorizationError
from schemas import TokenData

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().rate_limit_enabled)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> TokenData:
    """Dependency to get current user from a verified bearer token"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authorization header missing")
    return await auth_service.verify(db, credentials.credentials)


async def get_current_employee_id(user: TokenData = Depends(get_current_user)) -> int:
    if not user.employee_id:
        raise AuthenticationError("Invalid Employee ID")
    return user.employee_id


def require_roles(*roles: str):
    """Dependency to require one of the given roles"""
    async def role_checker(user: TokenData = Depends(get_current_user)) -> TokenData:
        if user.role not in roles:
            raise AuthorizationError("Access denied")
        return user
    return role_checker
