# marketingvoice/services/llm/stream_text.py
import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional
from uuid import uuid4

from ...schemas.chat import (
    Attachment,
    ContentPart,
    FilePart,
    ReasoningPart,
    StepStartPart,
    TextPart,
    ToolInvocation,
    ToolInvocationPart,
)
from .base import (
    Finish,
    ModelMessage,
    ModelRequest,
    ReasoningDelta,
    StepFinish,
    StepStart,
    StreamEvent,
    TextDelta,
    Tool,
    ToolCall,
    ToolResult,
)
from .factory import LanguageModel

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\S+\s+")


def _pending_tag_length(buffer: str, tag: str) -> int:
    """Length of the longest suffix of ``buffer`` that could start ``tag``."""
    for length in range(min(len(tag) - 1, len(buffer)), 0, -1):
        if buffer.endswith(tag[:length]):
            return length
    return 0


async def extract_reasoning(events: AsyncIterator, tag: str = "think") -> AsyncIterator:
    """Split ``<think>...</think>`` sections out of the text into reasoning deltas."""
    open_tag, close_tag = f"<{tag}>", f"</{tag}>"
    in_reasoning = False
    buffer = ""

    def delta(text: str):
        return ReasoningDelta(text) if in_reasoning else TextDelta(text)

    async for event in events:
        if not isinstance(event, TextDelta):
            if buffer:
                yield delta(buffer)
                buffer = ""
            yield event
            continue

        buffer += event.text
        while True:
            marker = close_tag if in_reasoning else open_tag
            index = buffer.find(marker)
            if index == -1:
                break
            if index:
                yield delta(buffer[:index])
            buffer = buffer[index + len(marker):]
            in_reasoning = not in_reasoning

        pending = _pending_tag_length(buffer, close_tag if in_reasoning else open_tag)
        ready = buffer[:len(buffer) - pending]
        if ready:
            yield delta(ready)
            buffer = buffer[len(ready):]

    if buffer:
        yield delta(buffer)


async def smooth_words(events: AsyncIterator, delay_ms: int = 10) -> AsyncIterator:
    """Re-chunk text deltas so that every chunk ends on a word boundary."""
    buffer = ""
    async for event in events:
        if not isinstance(event, TextDelta):
            if buffer:
                yield TextDelta(buffer)
                buffer = ""
            yield event
            continue

        buffer += event.text
        match = WORD_PATTERN.search(buffer)
        while match:
            yield TextDelta(buffer[:match.end()])
            buffer = buffer[match.end():]
            if delay_ms:
                await asyncio.sleep(delay_ms / 1000)
            match = WORD_PATTERN.search(buffer)

    if buffer:
        yield TextDelta(buffer)


@dataclass
class ResponseMessage:
    id: str
    role: str
    parts: list[ContentPart] = field(default_factory=list)


def _append_delta(parts: list, part_type, attribute: str, text: str) -> None:
    if parts and isinstance(parts[-1], part_type):
        setattr(parts[-1], attribute, getattr(parts[-1], attribute) + text)
    else:
        parts.append(part_type(**{attribute: text}))


def trailing_message_id(messages: list[ResponseMessage]) -> Optional[str]:
    """Id of the last assistant message of a (possibly multi step) response."""
    assistant = [message for message in messages if message.role == "assistant"]
    return assistant[-1].id if assistant else None


def assemble_response(messages: list[ResponseMessage]) -> tuple[list[ContentPart], list[Attachment]]:
    """Merge the steps of one response into the parts of a single assistant message."""
    parts: list[ContentPart] = []
    for message in messages:
        parts.extend(message.parts)
    attachments = [
        Attachment(url=part.url, content_type=part.media_type)
        for part in parts if isinstance(part, FilePart)
    ]
    return parts, attachments


class StreamText:
    """Multi step text generation with tool calling.

    Each step streams one model call. When the model asks for tools, they are
    executed and their results are fed back for another step, up to
    ``max_steps`` calls in total.
    """

    def __init__(
            self,
            model: LanguageModel,
            *,
            system: Optional[str],
            messages: list[ModelMessage],
            tools: Optional[dict[str, Tool]] = None,
            max_steps: int = 1,
            smooth_delay_ms: Optional[int] = None,
            generate_id: Callable[[], str] = lambda: str(uuid4())
    ):
        self.model = model
        self.system = system
        self.messages = messages
        self.tools = tools
        self.max_steps = max_steps
        self.smooth_delay_ms = smooth_delay_ms
        self.generate_id = generate_id

        self.response_messages: list[ResponseMessage] = []
        self.text = ""
        self.finish_reason: Optional[str] = None
        self.usage = {"promptTokens": 0, "completionTokens": 0}

    async def _execute(self, call: ToolCall) -> Any:
        tool = self.tools.get(call.tool_name) if self.tools else None
        if tool is None:
            logger.warning(f"Model requested unknown tool {call.tool_name}")
            return {"error": f"Unknown tool: {call.tool_name}"}
        try:
            return await tool.run(call.args)
        except Exception as e:
            logger.error(f"Tool {call.tool_name} failed: {str(e)}")
            return {"error": str(e)}

    async def full_stream(self) -> AsyncIterator[StreamEvent]:
        history = list(self.messages)
        definitions = [tool.definition() for tool in self.tools.values()] if self.tools else None

        for step in range(self.max_steps):
            message_id = self.generate_id()
            yield StepStart(message_id)

            events = self.model.provider.stream(
                self.model.spec,
                ModelRequest(system=self.system, messages=history, tools=definitions)
            )
            if self.model.is_reasoning:
                events = extract_reasoning(events)
            if self.smooth_delay_ms is not None:
                events = smooth_words(events, self.smooth_delay_ms)

            parts: list[ContentPart] = []
            step_text = ""
            calls: list[ToolCall] = []
            step_finish = StepFinish()
            async for event in events:
                if isinstance(event, TextDelta):
                    step_text += event.text
                    self.text += event.text
                    _append_delta(parts, TextPart, "text", event.text)
                    yield event
                elif isinstance(event, ReasoningDelta):
                    _append_delta(parts, ReasoningPart, "reasoning", event.text)
                    yield event
                elif isinstance(event, ToolCall):
                    if not self.tools:
                        logger.warning(f"Ignoring call to {event.tool_name}, no tools were offered")
                        continue
                    calls.append(event)
                    yield event
                elif isinstance(event, StepFinish):
                    step_finish = event

            results: list[ToolResult] = []
            for call in calls:
                result = ToolResult(call.tool_call_id, call.tool_name, call.args, await self._execute(call))
                results.append(result)
                yield result

            parts.extend(ToolInvocationPart(tool_invocation=ToolInvocation(
                state="result",
                tool_call_id=r.tool_call_id,
                tool_name=r.tool_name,
                args=r.args,
                result=r.result
            )) for r in results)
            if parts:
                self.response_messages.append(
                    ResponseMessage(id=message_id, role="assistant", parts=[StepStartPart(), *parts])
                )

            if step_finish.usage:
                for key in self.usage:
                    self.usage[key] += step_finish.usage.get(key) or 0
            step_finish.is_continued = bool(calls) and step + 1 < self.max_steps
            self.finish_reason = step_finish.finish_reason
            yield step_finish

            if not step_finish.is_continued:
                break

            history.append(ModelMessage(role="assistant", content=step_text, tool_calls=calls))
            history.extend(ModelMessage(
                role="tool",
                tool_call_id=r.tool_call_id,
                tool_name=r.tool_name,
                result=r.result
            ) for r in results)

        yield Finish(finish_reason=self.finish_reason or "stop", usage=dict(self.usage))


async def generate_text(
        model: LanguageModel,
        *,
        system: Optional[str] = None,
        prompt: Optional[str] = None,
        messages: Optional[list[ModelMessage]] = None
) -> str:
    """Run a single tool-free step and return the full text."""
    stream = StreamText(
        model,
        system=system,
        messages=messages or [ModelMessage(role="user", content=prompt or "")]
    )
    async for _ in stream.full_stream():
        pass
    return stream.text
