# marketingvoice/schemas/chat.py
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field

from .base import CamelModel

Role = Literal["user", "assistant", "system"]
VisibilityType = Literal["private", "public"]
ChatModelId = Literal["chat-model", "chat-model-reasoning"]


class Attachment(CamelModel):
    url: str
    name: Optional[str] = None
    content_type: Optional[str] = None


class TextPart(CamelModel):
    type: Literal["text"] = "text"
    text: str


class ReasoningPart(CamelModel):
    type: Literal["reasoning"] = "reasoning"
    reasoning: str


class ToolInvocation(CamelModel):
    state: Literal["call", "result"]
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class ToolInvocationPart(CamelModel):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_invocation: ToolInvocation


class StepStartPart(CamelModel):
    type: Literal["step-start"] = "step-start"


class FilePart(CamelModel):
    type: Literal["file"] = "file"
    url: str
    media_type: Optional[str] = None


ContentPart = Annotated[
    Union[TextPart, ReasoningPart, ToolInvocationPart, StepStartPart, FilePart],
    Field(discriminator="type")
]


class Message(CamelModel):
    id: str
    chat_id: str
    role: Role
    parts: list[ContentPart]
    attachments: list[Attachment] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))


class Chat(CamelModel):
    id: str
    user_id: str
    title: str
    visibility: VisibilityType
    created_at: datetime


class ChatWithMessages(Chat):
    messages: list[Message]


class ClientMessage(CamelModel):
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    role: Literal["user"] = "user"
    content: str = Field(min_length=1, max_length=2000)
    parts: Optional[list[ContentPart]] = None
    experimental_attachments: list[Attachment] = Field(default_factory=list)


class PostRequestBody(CamelModel):
    id: str = Field(min_length=1)
    message: ClientMessage
    selected_chat_model: ChatModelId
    selected_visibility_type: VisibilityType


class VisibilityUpdate(CamelModel):
    visibility: VisibilityType


class RequestHints(CamelModel):
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
