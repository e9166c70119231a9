# marketingvoice/services/llm/ollama.py
import json
import logging
from typing import AsyncGenerator, Optional
from uuid import uuid4

import httpx

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


class OllamaProvider(BaseLLMProvider):
    def __init__(
            self,
            base_url: Optional[str] = None,
            timeout: Optional[float] = None,
            client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url or settings.OLLAMA_HOST
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
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
                    "content": json.dumps(message.result),
                    "tool_name": message.tool_name
                })
            elif message.role == "assistant":
                entry = {"role": "assistant", "content": message.content}
                if message.tool_calls:
                    entry["tool_calls"] = [{
                        "function": {"name": call.tool_name, "arguments": call.args}
                    } for call in message.tool_calls]
                messages.append(entry)
            else:
                messages.append({"role": message.role, "content": message.content})
        return messages

    async def stream(self, spec: ModelSpec, request: ModelRequest) -> AsyncGenerator[ProviderEvent, None]:
        payload = {
            "model": spec.model,
            "messages": self.format_messages(request),
            "stream": True,
            "options": {
                "num_ctx": 8192
            }
        }
        if spec.temperature is not None:
            payload["options"]["temperature"] = spec.temperature
        if request.tools:
            payload["tools"] = [{
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters
                }
            } for tool in request.tools]

        logger.debug(f"Sending formatted messages to Ollama: {payload['messages']}")

        calls: list[ToolCall] = []
        finish_reason = "stop"
        usage = None
        try:
            async with self.client.stream("POST", "/api/chat", json=payload) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    logger.error(f"Ollama error: {response.status_code} - {body!r}")
                    raise GenerationError(f"Ollama error: {response.status_code}")

                async for line in response.aiter_lines():
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError as e:
                        logger.error(f"Failed to decode Ollama response: {line} - {str(e)}")
                        continue

                    if "error" in data:
                        raise GenerationError(f"Ollama error: {data['error']}")

                    message = data.get("message") or {}
                    if message.get("content"):
                        yield TextDelta(message["content"])
                    for call in message.get("tool_calls") or []:
                        function = call.get("function", {})
                        calls.append(ToolCall(
                            tool_call_id=call.get("id") or str(uuid4()),
                            tool_name=function.get("name", ""),
                            args=function.get("arguments") or {}
                        ))

                    if data.get("done"):
                        finish_reason = "length" if data.get("done_reason") == "length" else "stop"
                        usage = {
                            "promptTokens": data.get("prompt_eval_count", 0),
                            "completionTokens": data.get("eval_count", 0)
                        }
        except GenerationError:
            raise
        except Exception as e:
            logger.error(f"Error communicating with Ollama: {str(e)}")
            raise GenerationError(f"Stream generation failed: {str(e)}") from e

        for call in calls:
            yield call

        yield StepFinish(finish_reason="tool-calls" if calls else finish_reason, usage=usage)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
