# marketingvoice/services/llm/chatgpt.py
import json
import logging
from typing import AsyncGenerator, Optional

from openai import AsyncOpenAI

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
    "stop": "stop",
    "length": "length",
    "tool_calls": "tool-calls",
    "function_call": "tool-calls",
    "content_filter": "content-filter",
}


class ChatGPTProvider(BaseLLMProvider):
    """Streaming chat completions with function calling on the OpenAI API"""

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        self.api_key = api_key or settings.OPENAI_API_KEY
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    @staticmethod
    def format_messages(request: ModelRequest) -> list[dict]:
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})

        for message in request.messages:
            if message.role == "tool":
                messages.append({
                    "role": "tool",
                    "tool_call_id": message.tool_call_id,
                    "content": json.dumps(message.result)
                })
            elif message.role == "assistant":
                entry = {"role": "assistant", "content": message.content or None}
                if message.tool_calls:
                    entry["tool_calls"] = [{
                        "id": call.tool_call_id,
                        "type": "function",
                        "function": {"name": call.tool_name, "arguments": json.dumps(call.args)}
                    } for call in message.tool_calls]
                messages.append(entry)
            elif message.images:
                content = [{"type": "text", "text": message.content}]
                content += [{"type": "image_url", "image_url": {"url": url}} for url in message.images]
                messages.append({"role": message.role, "content": content})
            else:
                messages.append({"role": message.role, "content": message.content})
        return messages

    @staticmethod
    def _format_tools(request: ModelRequest) -> list[dict]:
        return [{
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters
            }
        } for tool in request.tools]

    async def stream(self, spec: ModelSpec, request: ModelRequest) -> AsyncGenerator[ProviderEvent, None]:
        kwargs = {
            "model": spec.model,
            "messages": self.format_messages(request),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if spec.temperature is not None:
            kwargs["temperature"] = spec.temperature
        if request.tools:
            kwargs["tools"] = self._format_tools(request)

        logger.debug(f"Sending {len(kwargs['messages'])} messages to OpenAI model {spec.model}")

        calls: dict[int, dict] = {}
        finish_reason = "stop"
        usage = None
        try:
            response = await self.client.chat.completions.create(**kwargs)
            async for chunk in response:
                if chunk.usage:
                    usage = {
                        "promptTokens": chunk.usage.prompt_tokens,
                        "completionTokens": chunk.usage.completion_tokens
                    }
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta and delta.content:
                    yield TextDelta(delta.content)
                for tool_call in (delta.tool_calls or []) if delta else []:
                    entry = calls.setdefault(tool_call.index, {"id": None, "name": "", "arguments": ""})
                    if tool_call.id:
                        entry["id"] = tool_call.id
                    if tool_call.function:
                        entry["name"] += tool_call.function.name or ""
                        entry["arguments"] += tool_call.function.arguments or ""
                if choice.finish_reason:
                    finish_reason = FINISH_REASONS.get(choice.finish_reason, "other")
        except Exception as e:
            raise GenerationError(f"Stream generation failed: {str(e)}") from e

        for index in sorted(calls):
            entry = calls[index]
            try:
                args = json.loads(entry["arguments"] or "{}")
            except json.JSONDecodeError as e:
                raise GenerationError(f"Invalid arguments for tool {entry['name']}: {str(e)}") from e
            yield ToolCall(tool_call_id=entry["id"], tool_name=entry["name"], args=args)

        yield StepFinish(finish_reason=finish_reason, usage=usage)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
