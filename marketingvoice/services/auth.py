# marketingvoice/services/auth.py
import logging
from datetime import timedelta
from typing import Optional
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt
from sqlalchemy.sql import select

from ..core.config import Settings
from ..db.models import UserModel
from ..db.session import AsyncSession
from ..schemas.auth import AuthUser, UserType
from ..utils.errors import BadRequestError, UnauthorizedError
from ..utils.time import utcnow

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_access_token(user: AuthUser, settings: Settings) -> str:
    expire = utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": user.id, "email": user.email, "type": user.type.value, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> AuthUser:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected access token: {str(e)}")
        raise UnauthorizedError("Invalid token")

    if not payload.get("sub"):
        raise UnauthorizedError("Invalid token")
    return AuthUser(id=payload["sub"], email=payload.get("email", ""), type=payload.get("type", UserType.REGULAR))


def to_auth_user(user: UserModel) -> AuthUser:
    return AuthUser(id=user.id, email=user.email, type=user.type)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[AuthUser]:
        result = await self.db.execute(select(UserModel).filter(UserModel.id == user_id))
        user = result.scalar_one_or_none()
        return to_auth_user(user) if user else None

    async def create_guest_user(self) -> AuthUser:
        user = UserModel(email=f"guest-{uuid4().hex}", password=None, type=UserType.GUEST.value)
        self.db.add(user)
        await self.db.commit()
        logger.info(f"Created guest user {user.id}")
        return to_auth_user(user)

    async def create_user(self, email: str, password: str) -> AuthUser:
        result = await self.db.execute(select(UserModel).filter(UserModel.email == email))
        if result.scalar_one_or_none():
            raise BadRequestError("Email already registered")

        user = UserModel(email=email, password=hash_password(password), type=UserType.REGULAR.value)
        self.db.add(user)
        await self.db.commit()
        logger.info(f"Registered user {user.id}")
        return to_auth_user(user)

    async def authenticate(self, email: str, password: str) -> AuthUser:
        result = await self.db.execute(select(UserModel).filter(UserModel.email == email))
        user = result.scalar_one_or_none()
        if not user or not verify_password(password, user.password):
            raise UnauthorizedError("Invalid credentials")
        return to_auth_user(user)
