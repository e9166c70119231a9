# marketingvoice/services/llm/claude.py
import json
import logging
from typing import AsyncGenerator, Optional

from anthropic import AsyncAnthropic

from ...core.config import settings
from ...schemas.model import ModelSpec
from .base import (
    BaseLLMProvider,
    GenerationError,
    ModelRequest,
    ProviderEvent,
    StepFinish,
    TextDelta,
    ToolCall,
)

logger = logging.getLogger(__name__)

FINISH_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool-calls",
}


class ClaudeProvider(BaseLLMProvider):
    """Streaming messages with tool use on Anthropic's Claude API"""

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncAnthropic] = None):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self._client = client

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    @staticmethod
    def format_messages(request: ModelRequest) -> list[dict]:
        """Claude wants alternating turns; tool results travel in user turns."""
        messages: list[dict] = []

        def append(role: str, blocks: list[dict]):
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"].extend(blocks)
            else:
                messages.append({"role": role, "content": blocks})

        for message in request.messages:
            if message.role == "tool":
                append("user", [{
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": json.dumps(message.result)
                }])
            elif message.role == "assistant":
                blocks = [{"type": "text", "text": message.content}] if message.content else []
                blocks += [{
                    "type": "tool_use",
                    "id": call.tool_call_id,
                    "name": call.tool_name,
                    "input": call.args
                } for call in message.tool_calls]
                if blocks:
                    append("assistant", blocks)
            elif message.role == "user":
                blocks = [{"type": "text", "text": message.content}]
                blocks += [{"type": "image", "source": {"type": "url", "url": url}} for url in message.images]
                append("user", blocks)
        return messages

    async def stream(self, spec: ModelSpec, request: ModelRequest) -> AsyncGenerator[ProviderEvent, None]:
        # System messages inside the history are folded into the system prompt
        system = "\n\n".join(
            [request.system or ""] + [m.content for m in request.messages if m.role == "system"]
        ).strip()

        kwargs = {
            "model": spec.model,
            "messages": self.format_messages(request),
            "max_tokens": spec.max_tokens,
        }
        if system:
            kwargs["system"] = system
        if spec.temperature is not None:
            kwargs["temperature"] = min(spec.temperature, 1.0)
        if request.tools:
            kwargs["tools"] = [{
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters
            } for tool in request.tools]

        logger.debug(f"Sending {len(kwargs['messages'])} messages to Claude model {spec.model}")

        try:
            async with self.client.messages.stream(**kwargs) as message_stream:
                async for text in message_stream.text_stream:
                    if text:
                        yield TextDelta(text)
                final = await message_stream.get_final_message()
        except Exception as e:
            raise GenerationError(f"Stream generation failed: {str(e)}") from e

        for block in final.content:
            if block.type == "tool_use":
                yield ToolCall(tool_call_id=block.id, tool_name=block.name, args=dict(block.input or {}))

        yield StepFinish(
            finish_reason=FINISH_REASONS.get(final.stop_reason, "other"),
            usage={
                "promptTokens": final.usage.input_tokens,
                "completionTokens": final.usage.output_tokens
            }
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
