import logging
import re
from datetime import datetime, timedelta
from typing import Optional, Tuple

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

import crud
from config import Settings, get_settings
from exceptions import (
    AccountInactive,
    AuthenticationError,
    InvalidCredentials,
    PasswordReused,
    SessionExpired,
    ValidationError,
)
from model import PasswordHistory, User
from schemas import LoginRequest, LoginResponse, TokenData, UserOut

logger = logging.getLogger(__name__)

PASSWORD_HISTORY_LIMIT = 5
STRONG_PASSWORD = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&]).{8,}$")

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthService:
    def __init__(self, settings: Settings):
        self.secret_key = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.access_token_expiry = timedelta(minutes=settings.access_token_expire_minutes)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        return pwd_context.hash(password)

    def create_access_token(self, user: User, employee_id: Optional[int]) -> str:
        """Sign a bearer token bound to the user's current session version"""
        exp = datetime.utcnow() + self.access_token_expiry
        payload = TokenData(
            id=user.id,
            email=user.email,
            role=user.role.lower(),
            employee_id=employee_id,
            token_version=user.token_version or 0,
        ).model_dump()
        payload.update({"sub": str(user.id), "exp": int(exp.timestamp())})
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> TokenData:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise SessionExpired("Session expired. Please login again.")
        except JWTError:
            raise AuthenticationError("Invalid or expired token")

        # Validate required claims
        if not all(claim in payload for claim in ("id", "email", "role")):
            raise AuthenticationError("Invalid or expired token")
        return TokenData(**{k: v for k, v in payload.items() if k in TokenData.model_fields})

    async def verify(self, db: AsyncSession, token: str) -> TokenData:
        """Decode the token and check it against the stored session version"""
        token_data = self.decode_token(token)

        user = await db.get(User, token_data.id)
        if user is None:
            raise AuthenticationError("Invalid session")
        if (user.token_version or 0) != token_data.token_version:
            raise SessionExpired("Session expired. Please login again.")

        user.last_seen = datetime.utcnow()
        return token_data

    async def authenticate_user(self, db: AsyncSession, email: str, password: str) -> Tuple[User, int]:
        user = await crud.get_user_by_email(db, email)
        if user is None:
            raise InvalidCredentials("Invalid credentials")
        if not user.active:
            raise AccountInactive("Account inactive")
        if not self.verify_password(password, user.password_hash):
            raise InvalidCredentials("Invalid credentials")

        employee = await crud.get_employee_by_user(db, user.id)
        if employee is None:
            # A user without an employee row cannot clock in or see timesheets
            raise RuntimeError(f"Employee record missing for user {user.id}")
        return user, employee.id

    async def login(self, db: AsyncSession, login_data: LoginRequest) -> LoginResponse:
        user, employee_id = await self.authenticate_user(db, login_data.email, login_data.password)
        token = self.create_access_token(user, employee_id)
        logger.info("User %s logged in", user.id)
        return LoginResponse(
            token=token,
            user=UserOut(
                id=user.id,
                name=user.name,
                email=user.email,
                role=user.role.lower(),
                employee_id=employee_id,
            ),
        )

    async def change_password(self, db: AsyncSession, user_id: int, current_password: str, new_password: str):
        user = await db.get(User, user_id)
        if user is None:
            raise ValidationError("User not found")
        if not self.verify_password(current_password, user.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        await self.update_password(db, user, new_password)

    async def update_password(self, db: AsyncSession, user: User, new_password: str):
        """Store a new password, rejecting recent ones, and invalidate every issued token"""
        if not STRONG_PASSWORD.match(new_password):
            raise ValidationError(
                "Password must be 8+ chars with uppercase, lowercase, number & special character"
            )

        result = await db.execute(
            select(PasswordHistory)
            .where(PasswordHistory.user_id == user.id)
            .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
            .limit(PASSWORD_HISTORY_LIMIT)
        )
        recent = result.scalars().all()
        candidates = [user.password_hash] + [h.password_hash for h in recent]
        if any(self.verify_password(new_password, hashed) for hashed in candidates):
            raise PasswordReused(f"You cannot reuse your last {PASSWORD_HISTORY_LIMIT} passwords")

        new_hash = self.get_password_hash(new_password)
        user.password_hash = new_hash
        user.token_version = (user.token_version or 0) + 1
        db.add(PasswordHistory(user_id=user.id, password_hash=new_hash, created_at=datetime.utcnow()))
        await db.flush()

        # Trim history to the most recent entries
        keep = select(PasswordHistory.id).where(PasswordHistory.user_id == user.id).order_by(
            PasswordHistory.created_at.desc(), PasswordHistory.id.desc()
        ).limit(PASSWORD_HISTORY_LIMIT)
        kept_ids = (await db.execute(keep)).scalars().all()
        await db.execute(
            delete(PasswordHistory).where(
                PasswordHistory.user_id == user.id, PasswordHistory.id.not_in(kept_ids)
            )
        )
        await db.commit()
        logger.info("Password updated for user %s", user.id)

    async def logout_all(self, db: AsyncSession, user_id: int):
        """Bump the session version so every issued token stops verifying"""
        user = await db.get(User, user_id)
        if user is None:
            raise ValidationError("User not found")
        user.token_version = (user.token_version or 0) + 1
        await db.commit()


# Create singleton instance
auth_service = AuthService(get_settings())
