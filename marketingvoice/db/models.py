# marketingvoice/db/models.py
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, JSON, String, Text

from .session import Base
from ..utils.time import utcnow


def _uuid() -> str:
    return str(uuid4())


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_uuid)
    email = Column(String(64), nullable=False, unique=True)
    password = Column(String(64))
    type = Column(String, nullable=False, default="regular")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ChatModel(Base):
    __tablename__ = "chats"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    visibility = Column(String, nullable=False, default="private")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MessageModel(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=_uuid)
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)
    parts = Column(JSON, nullable=False, default=list)
    attachments = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class StreamModel(Base):
    __tablename__ = "streams"

    id = Column(String, primary_key=True, default=_uuid)
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class DocumentModel(Base):
    __tablename__ = "documents"

    # Every save is a new version of the same document id
    id = Column(String, primary_key=True, default=_uuid)
    created_at = Column(DateTime(timezone=True), primary_key=True, default=utcnow)
    title = Column(Text, nullable=False)
    content = Column(Text)
    kind = Column(String, nullable=False, default="text")
    user_id = Column(String, ForeignKey("users.id"), nullable=False)


class SuggestionModel(Base):
    __tablename__ = "suggestions"

    id = Column(String, primary_key=True, default=_uuid)
    document_id = Column(String, nullable=False, index=True)
    document_created_at = Column(DateTime(timezone=True), nullable=False)
    original_text = Column(Text, nullable=False)
    suggested_text = Column(Text, nullable=False)
    description = Column(Text)
    is_resolved = Column(Boolean, nullable=False, default=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class GeneratedImageModel(Base):
    __tablename__ = "generated_images"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    prompt = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
