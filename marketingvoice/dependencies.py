# marketingvoice/dependencies.py
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .core.config import Settings, settings as default_settings
from .schemas.auth import AuthUser
from .services.auth import UserService, decode_access_token
from .services.chat import ChatService
from .services.documents import DocumentService
from .services.images import ImageService
from .services.llm.factory import ModelRegistry
from .services.orchestrator import ChatOrchestrator
from .services.speech import SpeechService
from .utils.errors import UnauthorizedError

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{default_settings.API_V1_PREFIX}/auth/login", auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.session_factory() as db:
        yield db


async def get_chat_service(db: AsyncSession = Depends(get_db)) -> ChatService:
    return ChatService(db)


async def get_document_service(db: AsyncSession = Depends(get_db)) -> DocumentService:
    return DocumentService(db)


async def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


async def get_image_service(request: Request, db: AsyncSession = Depends(get_db)) -> ImageService:
    return ImageService(db, request.app.state.image_provider)


def get_speech_service(request: Request) -> SpeechService:
    return request.app.state.speech_service


def get_registry(request: Request) -> ModelRegistry:
    return request.app.state.registry


def get_orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.orchestrator


async def get_optional_user(
        token: Optional[str] = Depends(oauth2_scheme),
        settings: Settings = Depends(get_settings)
) -> Optional[AuthUser]:
    """The caller, or None when no valid bearer token was sent."""
    if not token:
        return None
    try:
        return decode_access_token(token, settings)
    except UnauthorizedError:
        return None


async def get_current_user(user: Optional[AuthUser] = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise UnauthorizedError()
    return user
