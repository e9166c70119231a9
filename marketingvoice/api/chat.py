# marketingvoice/api/chat.py
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import StreamingResponse

from ..dependencies import get_chat_service, get_current_user, get_optional_user, get_orchestrator
from ..schemas.auth import AuthUser
from ..schemas.chat import Chat, ChatWithMessages, PostRequestBody, VisibilityUpdate
from ..services.chat import ChatService
from ..services.orchestrator import ChatOrchestrator, request_hints_from_headers
from ..utils.errors import BadRequestError, ForbiddenError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)

router = APIRouter()

DATA_STREAM_HEADERS = {"x-vercel-ai-data-stream": "v1"}


async def _logged(chunks: AsyncIterator[str], label: str) -> AsyncIterator[str]:
    try:
        async for chunk in chunks:
            yield chunk
    except Exception as e:
        logger.error(f"Stream {label} ended with an error: {str(e)}")
        raise


def data_stream_response(chunks: AsyncIterator[str], label: str) -> StreamingResponse:
    return StreamingResponse(
        _logged(chunks, label),
        media_type="text/plain; charset=utf-8",
        headers=DATA_STREAM_HEADERS
    )


@router.post("/chat")
async def post_chat(
        request: Request,
        body: PostRequestBody,
        user: Optional[AuthUser] = Depends(get_optional_user),
        chats: ChatService = Depends(get_chat_service),
        orchestrator: ChatOrchestrator = Depends(get_orchestrator)
) -> StreamingResponse:
    if user is None:
        raise UnauthorizedError()

    stream = await orchestrator.handle_user_message(
        chats, user, body, request_hints_from_headers(request.headers)
    )
    return data_stream_response(stream.chunks, stream.stream_id)


@router.get("/chat")
async def resume_chat(
        chat_id: Optional[str] = Query(None, alias="chatId"),
        user: Optional[AuthUser] = Depends(get_optional_user),
        chats: ChatService = Depends(get_chat_service),
        orchestrator: ChatOrchestrator = Depends(get_orchestrator)
):
    if orchestrator.stream_context is None:
        return Response(status_code=204)
    if not chat_id:
        raise BadRequestError("id is required")
    if user is None:
        raise UnauthorizedError()

    chunks = await orchestrator.resume(chats, chat_id, user)
    return data_stream_response(chunks, f"resume:{chat_id}")


@router.delete("/chat")
async def delete_chat(
        chat_id: Optional[str] = Query(None, alias="id"),
        user: Optional[AuthUser] = Depends(get_optional_user),
        chats: ChatService = Depends(get_chat_service)
) -> Chat:
    if not chat_id:
        raise NotFoundError("Not Found")
    if user is None:
        raise UnauthorizedError()

    chat = await chats.get_chat(chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    if chat.user_id != user.id:
        raise ForbiddenError()

    return await chats.delete_chat(chat_id)


@router.get("/chats")
async def get_chats(
        user: AuthUser = Depends(get_current_user),
        chats: ChatService = Depends(get_chat_service)
) -> list[Chat]:
    return await chats.get_chats_by_user_id(user.id)


@router.get("/chats/{chat_id}")
async def get_chat(
        chat_id: str,
        user: AuthUser = Depends(get_current_user),
        chats: ChatService = Depends(get_chat_service)
) -> ChatWithMessages:
    chat = await chats.get_chat(chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    if chat.visibility == "private" and chat.user_id != user.id:
        raise ForbiddenError()

    messages = await chats.get_messages_by_chat_id(chat_id)
    return ChatWithMessages(**chat.model_dump(), messages=messages)


@router.patch("/chats/{chat_id}/visibility")
async def update_chat_visibility(
        chat_id: str,
        update: VisibilityUpdate,
        user: AuthUser = Depends(get_current_user),
        chats: ChatService = Depends(get_chat_service)
) -> Chat:
    chat = await chats.get_chat(chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    if chat.user_id != user.id:
        raise ForbiddenError()

    await chats.update_visibility(chat_id, update.visibility)
    return chat.model_copy(update={"visibility": update.visibility})
