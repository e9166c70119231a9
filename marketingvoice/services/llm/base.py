# marketingvoice/services/llm/base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from ...schemas.chat import (
    FilePart,
    Message,
    ReasoningPart,
    StepStartPart,
    TextPart,
    ToolInvocationPart,
)
from ...schemas.model import ModelSpec


class LLMError(Exception):
    """Base exception for LLM-related errors."""
    pass


class ConnectionError(LLMError):
    """Raised when connection to LLM service fails."""
    pass


class GenerationError(LLMError):
    """Raised when LLM fails to generate response."""
    pass


# Stream events -------------------------------------------------------------

@dataclass
class TextDelta:
    text: str


@dataclass
class ReasoningDelta:
    text: str


@dataclass
class ToolCall:
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]


@dataclass
class ToolResult:
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]
    result: Any


@dataclass
class StepStart:
    message_id: str


@dataclass
class StepFinish:
    finish_reason: str = "stop"
    usage: Optional[dict[str, int]] = None
    is_continued: bool = False


@dataclass
class Finish:
    finish_reason: str = "stop"
    usage: Optional[dict[str, int]] = None


ProviderEvent = Union[TextDelta, ReasoningDelta, ToolCall, StepFinish]
StreamEvent = Union[TextDelta, ReasoningDelta, ToolCall, ToolResult, StepStart, StepFinish, Finish]


# Requests ------------------------------------------------------------------

@dataclass
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class ModelMessage:
    """Provider neutral message.

    ``tool`` messages carry one tool result each; ``assistant`` messages may
    carry tool calls next to their text.
    """
    role: str
    content: str = ""
    images: list[str] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    result: Any = None


@dataclass
class ModelRequest:
    system: Optional[str]
    messages: list[ModelMessage]
    tools: Optional[list[ToolDefinition]] = None


def _is_image(media_type: Optional[str]) -> bool:
    return bool(media_type) and media_type.startswith("image/")


def to_model_messages(messages: list[Message]) -> list[ModelMessage]:
    """Convert stored messages into provider neutral model messages.

    Assistant messages are split into steps at ``step-start`` parts; each
    step becomes one assistant message followed by one tool message per
    completed tool invocation.
    """
    result: list[ModelMessage] = []
    for message in messages:
        if message.role in ("user", "system"):
            text = "".join(p.text for p in message.parts if isinstance(p, TextPart))
            images = [p.url for p in message.parts if isinstance(p, FilePart) and _is_image(p.media_type)]
            images += [a.url for a in message.attachments if _is_image(a.content_type)]
            result.append(ModelMessage(role=message.role, content=text, images=images))
            continue

        steps: list[list] = [[]]
        for part in message.parts:
            if isinstance(part, StepStartPart):
                if steps[-1]:
                    steps.append([])
            elif not isinstance(part, ReasoningPart):
                steps[-1].append(part)

        for step in steps:
            if not step:
                continue
            text = "".join(p.text for p in step if isinstance(p, TextPart))
            invocations = [p.tool_invocation for p in step if isinstance(p, ToolInvocationPart)]
            # Calls without a result cannot be replayed to a provider
            invocations = [i for i in invocations if i.state == "result"]
            result.append(ModelMessage(
                role="assistant",
                content=text,
                tool_calls=[ToolCall(i.tool_call_id, i.tool_name, i.args) for i in invocations]
            ))
            for invocation in invocations:
                result.append(ModelMessage(
                    role="tool",
                    tool_call_id=invocation.tool_call_id,
                    tool_name=invocation.tool_name,
                    result=invocation.result
                ))
    return result


class BaseLLMProvider(ABC):
    """Base interface for all hosted language model providers."""

    @abstractmethod
    def stream(self, spec: ModelSpec, request: ModelRequest) -> AsyncGenerator[ProviderEvent, None]:
        """Stream a single model step.

        Yields text and reasoning deltas as they arrive, then every tool call
        the model requested, then exactly one ``StepFinish``.
        """
        pass

    async def aclose(self) -> None:
        pass


@dataclass
class Tool:
    """A capability the model may call.

    Arguments are validated against ``parameters`` before ``execute`` runs.
    """
    name: str
    description: str
    parameters: type[BaseModel]
    execute: Callable[[Any], Awaitable[Any]]

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters.model_json_schema()
        )

    async def run(self, args: dict[str, Any]) -> Any:
        return await self.execute(self.parameters.model_validate(args))
