# marketingvoice/services/orchestrator.py
import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Mapping, Optional
from uuid import uuid4

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..schemas.auth import AuthUser
from ..schemas.chat import Message, PostRequestBody, RequestHints, TextPart
from ..utils.errors import ForbiddenError, NotFoundError, UpstreamError
from ..utils.time import utcnow
from .background import TaskSupervisor
from .chat import ChatService
from .data_stream import GENERIC_ERROR_MESSAGE, DataStream, empty_stream
from .entitlements import MESSAGE_WINDOW_HOURS, ensure_model_available, ensure_within_quota
from .llm.base import to_model_messages
from .llm.factory import REASONING_MODEL, TITLE_MODEL, ModelRegistry
from .llm.stream_text import StreamText, assemble_response, generate_text, trailing_message_id
from .prompts import TITLE_PROMPT, system_prompt
from .resumable import ResumableStreamContext
from .tools import ToolContext, build_tools

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
MAX_TITLE_LENGTH = 80
SAVE_FAILED_MESSAGE = "Failed to save chat message"


@dataclass
class ChatStream:
    stream_id: str
    chunks: AsyncIterator[str]
    task: asyncio.Task


def request_hints_from_headers(headers: Mapping[str, str]) -> RequestHints:
    return RequestHints(
        latitude=headers.get("x-vercel-ip-latitude"),
        longitude=headers.get("x-vercel-ip-longitude"),
        city=headers.get("x-vercel-ip-city"),
        country=headers.get("x-vercel-ip-country")
    )


def _clean_title(title: str) -> str:
    title = title.strip().replace('"', "").replace(":", "").strip()
    return title[:MAX_TITLE_LENGTH]


class ChatOrchestrator:
    """Runs one request/response cycle of the chat.

    Everything up to registering the stream id happens inside the request;
    generation and the final save run as a supervised background task so a
    client disconnect does not lose the reply.
    """

    def __init__(
            self,
            session_factory: Callable[[], AsyncSession],
            registry: ModelRegistry,
            supervisor: TaskSupervisor,
            settings: Settings,
            stream_context: Optional[ResumableStreamContext] = None,
            http_client: Optional[httpx.AsyncClient] = None
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.supervisor = supervisor
        self.settings = settings
        self.stream_context = stream_context
        self.http_client = http_client

    async def generate_title(self, content: str) -> str:
        try:
            title = await generate_text(
                self.registry.language_model(TITLE_MODEL),
                system=TITLE_PROMPT,
                prompt=content
            )
        except Exception as e:
            logger.warning(f"Title generation failed, using default: {str(e)}")
            return DEFAULT_TITLE
        return _clean_title(title) or DEFAULT_TITLE

    async def handle_user_message(
            self,
            chats: ChatService,
            user: AuthUser,
            body: PostRequestBody,
            hints: Optional[RequestHints] = None
    ) -> ChatStream:
        message_count = await chats.get_message_count_by_user_id(user.id, MESSAGE_WINDOW_HOURS)
        ensure_within_quota(user.type, message_count)
        ensure_model_available(user.type, body.selected_chat_model)

        chat = await chats.get_chat(body.id)
        if chat is None:
            title = await self.generate_title(body.message.content)
            await chats.save_chat(body.id, user.id, title, body.selected_visibility_type)
        elif chat.user_id != user.id:
            raise ForbiddenError()

        user_message = Message(
            id=str(uuid4()),
            chat_id=body.id,
            role="user",
            parts=[TextPart(text=body.message.content)],
            attachments=body.message.experimental_attachments,
            created_at=utcnow()
        )
        await chats.save_messages([user_message])

        history = await chats.get_messages_by_chat_id(body.id)
        if all(message.id != user_message.id for message in history):
            history.append(user_message)

        stream_id = await chats.create_stream_id(body.id, str(uuid4()))
        data_stream = DataStream()
        task = self.supervisor.spawn(
            self._generate(
                user=user,
                chat_id=body.id,
                model_id=body.selected_chat_model,
                system=system_prompt(body.selected_chat_model, hints),
                history=history,
                data_stream=data_stream
            ),
            f"chat-generation:{stream_id}"
        )

        if self.stream_context is None:
            return ChatStream(stream_id=stream_id, chunks=aiter(data_stream), task=task)

        chunks = await self.stream_context.resumable_stream(stream_id, lambda: data_stream)
        return ChatStream(stream_id=stream_id, chunks=chunks or empty_stream(), task=task)

    async def _generate(
            self,
            user: AuthUser,
            chat_id: str,
            model_id: str,
            system: str,
            history: list[Message],
            data_stream: DataStream
    ) -> None:
        try:
            tools = None
            if model_id != REASONING_MODEL:
                tools = build_tools(ToolContext(
                    user=user,
                    data_stream=data_stream,
                    session_factory=self.session_factory,
                    registry=self.registry,
                    settings=self.settings,
                    http_client=self.http_client
                ))

            stream = StreamText(
                self.registry.language_model(model_id),
                system=system,
                messages=to_model_messages(history),
                tools=tools,
                max_steps=self.settings.MAX_STEPS,
                smooth_delay_ms=self.settings.SMOOTH_STREAM_DELAY_MS
            )
            async for event in stream.full_stream():
                data_stream.write_event(event)
        except Exception as e:
            logger.error(f"Error in stream execution for chat {chat_id}: {str(e)}")
            data_stream.write_error(GENERIC_ERROR_MESSAGE)
            error = UpstreamError(details=str(e))
            data_stream.close(error)
            raise error from e

        await self._save_response(chat_id, stream, data_stream)
        data_stream.close()

    async def _save_response(self, chat_id: str, stream: StreamText, data_stream: DataStream) -> None:
        try:
            assistant_id = trailing_message_id(stream.response_messages)
            if not assistant_id:
                raise ValueError("No assistant message found!")

            parts, attachments = assemble_response(stream.response_messages)
            async with self.session_factory() as db:
                await ChatService(db).save_messages([Message(
                    id=assistant_id,
                    chat_id=chat_id,
                    role="assistant",
                    parts=parts,
                    attachments=attachments,
                    created_at=utcnow()
                )])
        except Exception as e:
            logger.error(f"Failed to save chat {chat_id}: {str(e)}")
            data_stream.write_data({"type": "error", "error": SAVE_FAILED_MESSAGE})

    async def resume(self, chats: ChatService, chat_id: str, user: AuthUser) -> AsyncIterator[str]:
        """Attach to the most recent generation of a chat.

        A finished generation resumes as an empty stream.
        """
        chat = await chats.get_chat(chat_id)
        if chat is None:
            raise NotFoundError("Not found")
        if chat.visibility == "private" and chat.user_id != user.id:
            raise ForbiddenError()

        stream_ids = await chats.get_stream_ids_by_chat_id(chat_id)
        if not stream_ids:
            raise NotFoundError("No streams found")

        stream = None
        if self.stream_context is not None:
            stream = await self.stream_context.resumable_stream(stream_ids[-1], empty_stream)
        return stream or empty_stream()
