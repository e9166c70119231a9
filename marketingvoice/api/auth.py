# marketingvoice/api/auth.py
from fastapi import APIRouter, Depends

from ..core.config import Settings
from ..dependencies import get_current_user, get_settings, get_user_service
from ..schemas.auth import AuthUser, Credentials, Token
from ..services.auth import UserService, create_access_token

router = APIRouter(prefix="/auth")


def _token(user: AuthUser, settings: Settings) -> Token:
    return Token(access_token=create_access_token(user, settings), user=user)


@router.post("/guest")
async def create_guest(
        users: UserService = Depends(get_user_service),
        settings: Settings = Depends(get_settings)
) -> Token:
    return _token(await users.create_guest_user(), settings)


@router.post("/register", status_code=201)
async def register(
        credentials: Credentials,
        users: UserService = Depends(get_user_service),
        settings: Settings = Depends(get_settings)
) -> Token:
    return _token(await users.create_user(credentials.email, credentials.password), settings)


@router.post("/login")
async def login(
        credentials: Credentials,
        users: UserService = Depends(get_user_service),
        settings: Settings = Depends(get_settings)
) -> Token:
    return _token(await users.authenticate(credentials.email, credentials.password), settings)


@router.get("/me")
async def me(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    return user
