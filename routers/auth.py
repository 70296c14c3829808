from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth import auth_service
from config import get_settings
from database import get_db
from dependencies import get_current_user, limiter
from schemas import ChangePasswordRequest, LoginRequest, LoginResponse, MessageResponse, TokenData

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
@limiter.limit(get_settings().login_rate_limit)
async def login_endpoint(
    login_data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.login(db, login_data)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    await auth_service.change_password(db, current_user.id, data.current_password, data.new_password)
    return MessageResponse(message="Password updated successfully. Please login again.", force_logout=True)


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    await auth_service.logout_all(db, current_user.id)
    return MessageResponse(message="Logged out from all devices", force_logout=True)


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: TokenData = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    return MessageResponse(message="Logged out")
