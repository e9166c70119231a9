# marketingvoice/services/data_stream.py
"""Line based data stream protocol spoken to the chat front end.

Every event is one line ``<code>:<json>\\n``:

====  ======================================================
0     text delta
g     reasoning delta
2     array of custom data parts
3     error message
9     tool call
a     tool result
f     step start
e     step finish
d     message finish
====  ======================================================
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

from .llm.base import (
    Finish,
    ReasoningDelta,
    StepFinish,
    StepStart,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolResult,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request"

_END = object()


def format_part(code: str, value: Any) -> str:
    return f"{code}:{json.dumps(value, ensure_ascii=False, separators=(',', ':'), default=str)}\n"


def format_event(event: StreamEvent) -> Optional[str]:
    if isinstance(event, TextDelta):
        return format_part("0", event.text)
    if isinstance(event, ReasoningDelta):
        return format_part("g", event.text)
    if isinstance(event, ToolCall):
        return format_part("9", {
            "toolCallId": event.tool_call_id,
            "toolName": event.tool_name,
            "args": event.args
        })
    if isinstance(event, ToolResult):
        return format_part("a", {"toolCallId": event.tool_call_id, "result": event.result})
    if isinstance(event, StepStart):
        return format_part("f", {"messageId": event.message_id})
    if isinstance(event, StepFinish):
        return format_part("e", {
            "finishReason": event.finish_reason,
            "usage": event.usage,
            "isContinued": event.is_continued
        })
    if isinstance(event, Finish):
        return format_part("d", {"finishReason": event.finish_reason, "usage": event.usage})
    return None


def parse_line(line: str) -> tuple[str, Any]:
    code, _, payload = line.rstrip("\n").partition(":")
    return code, json.loads(payload)


class DataStream:
    """Single consumer stream of protocol lines.

    Writers never block, so a producer keeps running when nobody reads.
    ``close(error)`` ends the stream; the reader then raises ``error``.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._error: Optional[BaseException] = None
        self.closed = False

    def _put(self, line: str) -> None:
        if self.closed:
            logger.warning("Dropping write to a closed data stream")
            return
        self._queue.put_nowait(line)

    def write_event(self, event: StreamEvent) -> None:
        line = format_event(event)
        if line is not None:
            self._put(line)

    def write_text(self, text: str) -> None:
        self._put(format_part("0", text))

    def write_data(self, *values: Any) -> None:
        self._put(format_part("2", list(values)))

    def write_error(self, message: str) -> None:
        self._put(format_part("3", message))

    def close(self, error: Optional[BaseException] = None) -> None:
        if self.closed:
            return
        self._error = error
        self.closed = True
        self._queue.put_nowait(_END)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                if self._error is not None:
                    raise self._error
                return
            yield item


async def empty_stream() -> AsyncIterator[str]:
    return
    yield
