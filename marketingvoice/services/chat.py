# marketingvoice/services/chat.py
import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import delete, func, update
from sqlalchemy.sql import select

from ..db.models import ChatModel, MessageModel, StreamModel
from ..db.session import AsyncSession
from ..schemas.chat import Chat, Message, VisibilityType
from ..utils.time import hours_ago

logger = logging.getLogger(__name__)


def to_chat(chat: ChatModel) -> Chat:
    return Chat(
        id=chat.id,
        user_id=chat.user_id,
        title=chat.title,
        visibility=chat.visibility,
        created_at=chat.created_at
    )


def to_message(message: MessageModel) -> Message:
    return Message.model_validate({
        "id": message.id,
        "chat_id": message.chat_id,
        "role": message.role,
        "parts": message.parts or [],
        "attachments": message.attachments or [],
        "created_at": message.created_at
    })


class ChatService:
    """Chats, messages and stream records of the chat feature."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        result = await self.db.execute(select(ChatModel).filter(ChatModel.id == chat_id))
        chat = result.scalar_one_or_none()
        return to_chat(chat) if chat else None

    async def save_chat(self, chat_id: str, user_id: str, title: str, visibility: VisibilityType) -> Chat:
        chat = ChatModel(id=chat_id, user_id=user_id, title=title, visibility=visibility)
        self.db.add(chat)
        await self.db.commit()
        logger.info(f"Created chat {chat_id} for user {user_id}")
        return to_chat(chat)

    async def delete_chat(self, chat_id: str) -> Optional[Chat]:
        result = await self.db.execute(select(ChatModel).filter(ChatModel.id == chat_id))
        chat = result.scalar_one_or_none()
        if not chat:
            return None

        deleted = to_chat(chat)
        await self.db.execute(delete(MessageModel).where(MessageModel.chat_id == chat_id))
        await self.db.execute(delete(StreamModel).where(StreamModel.chat_id == chat_id))
        await self.db.delete(chat)
        await self.db.commit()
        logger.info(f"Deleted chat {chat_id}")
        return deleted

    async def get_chats_by_user_id(self, user_id: str) -> list[Chat]:
        result = await self.db.execute(
            select(ChatModel)
            .filter(ChatModel.user_id == user_id)
            .order_by(ChatModel.created_at.desc())
        )
        return [to_chat(chat) for chat in result.scalars().all()]

    async def update_visibility(self, chat_id: str, visibility: VisibilityType) -> None:
        await self.db.execute(
            update(ChatModel)
            .where(ChatModel.id == chat_id)
            .values(visibility=visibility)
        )
        await self.db.commit()

    async def get_messages_by_chat_id(self, chat_id: str) -> list[Message]:
        result = await self.db.execute(
            select(MessageModel)
            .filter(MessageModel.chat_id == chat_id)
            .order_by(MessageModel.created_at.asc())
        )
        return [to_message(message) for message in result.scalars().all()]

    async def save_messages(self, messages: list[Message]) -> None:
        for message in messages:
            values = message.model_dump(by_alias=True, mode="json")
            row = MessageModel(
                id=message.id,
                chat_id=message.chat_id,
                role=message.role,
                parts=values["parts"],
                attachments=values["attachments"]
            )
            if message.created_at is not None:
                row.created_at = message.created_at
            self.db.add(row)
        await self.db.commit()

    async def get_message_count_by_user_id(self, user_id: str, difference_in_hours: int) -> int:
        """User messages sent in chats owned by ``user_id`` within the window."""
        result = await self.db.execute(
            select(func.count(MessageModel.id))
            .join(ChatModel, MessageModel.chat_id == ChatModel.id)
            .where(
                ChatModel.user_id == user_id,
                MessageModel.role == "user",
                MessageModel.created_at >= hours_ago(difference_in_hours)
            )
        )
        return result.scalar_one()

    async def create_stream_id(self, chat_id: str, stream_id: Optional[str] = None) -> str:
        stream = StreamModel(id=stream_id or str(uuid4()), chat_id=chat_id)
        self.db.add(stream)
        await self.db.commit()
        return stream.id

    async def get_stream_ids_by_chat_id(self, chat_id: str) -> list[str]:
        """Stream ids of a chat, oldest first."""
        result = await self.db.execute(
            select(StreamModel.id)
            .filter(StreamModel.chat_id == chat_id)
            .order_by(StreamModel.created_at.asc())
        )
        return list(result.scalars().all())
