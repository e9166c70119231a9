# marketingvoice/services/tools.py
"""Tools offered to the chat model.

Document tools stream their progress into the chat's data stream as data
parts (``kind``, ``id``, ``title``, ``clear``, ``*-delta``, ``suggestion``,
``finish``) so the client can render the artifact while it is written.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from uuid import uuid4

import httpx
from langchain_core.output_parsers import PydanticOutputParser
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import Settings
from ..schemas.auth import AuthUser
from ..schemas.base import CamelModel
from ..schemas.document import DocumentKind, Suggestion, SuggestionDrafts
from .data_stream import DataStream
from .documents import DocumentService
from .llm.base import ModelMessage, TextDelta, Tool
from .llm.factory import ARTIFACT_MODEL, ModelRegistry
from .llm.stream_text import StreamText, generate_text
from .prompts import DOCUMENT_PROMPTS, SUGGESTIONS_PROMPT, update_document_prompt
from ..utils.time import utcnow

logger = logging.getLogger(__name__)

TOOL_NAMES = ("getWeather", "createDocument", "updateDocument", "requestSuggestions")


@dataclass
class ToolContext:
    user: AuthUser
    data_stream: DataStream
    session_factory: Callable[[], AsyncSession]
    registry: ModelRegistry
    settings: Settings
    http_client: Optional[httpx.AsyncClient] = None


class WeatherParameters(CamelModel):
    latitude: float
    longitude: float


class CreateDocumentParameters(CamelModel):
    title: str
    kind: DocumentKind = Field(description="The kind of document: text, code or sheet")


class UpdateDocumentParameters(CamelModel):
    id: str = Field(description="The ID of the document to update")
    description: str = Field(description="The description of changes that need to be made")


class RequestSuggestionsParameters(CamelModel):
    document_id: str = Field(description="The ID of the document to request edits")


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=4),
    reraise=True
)
async def fetch_weather(client: httpx.AsyncClient, url: str, latitude: float, longitude: float) -> dict[str, Any]:
    response = await client.get(url, params={
        "latitude": latitude,
        "longitude": longitude,
        "current": "temperature_2m",
        "hourly": "temperature_2m",
        "daily": "sunrise,sunset",
        "timezone": "auto"
    })
    response.raise_for_status()
    return response.json()


async def _stream_document(
        context: ToolContext,
        kind: str,
        system: str,
        prompt: str
) -> str:
    """Generate document content, writing deltas to the data stream as they arrive."""
    stream = StreamText(
        context.registry.language_model(ARTIFACT_MODEL),
        system=system,
        messages=[ModelMessage(role="user", content=prompt)]
    )
    content = ""
    async for event in stream.full_stream():
        if not isinstance(event, TextDelta):
            continue
        content += event.text
        if kind == "text":
            context.data_stream.write_data({"type": "text-delta", "content": event.text})
        else:
            # Code and sheets are re-rendered whole on every delta
            context.data_stream.write_data({"type": f"{kind}-delta", "content": content})
    return content


def get_weather(context: ToolContext) -> Tool:
    async def execute(params: WeatherParameters) -> dict[str, Any]:
        if context.http_client is not None:
            return await fetch_weather(
                context.http_client, context.settings.WEATHER_API_URL, params.latitude, params.longitude
            )
        async with httpx.AsyncClient(timeout=10.0) as client:
            return await fetch_weather(client, context.settings.WEATHER_API_URL, params.latitude, params.longitude)

    return Tool(
        name="getWeather",
        description="Get the current weather at a location",
        parameters=WeatherParameters,
        execute=execute
    )


def create_document(context: ToolContext) -> Tool:
    async def execute(params: CreateDocumentParameters) -> dict[str, Any]:
        document_id = str(uuid4())
        stream = context.data_stream
        stream.write_data({"type": "kind", "content": params.kind})
        stream.write_data({"type": "id", "content": document_id})
        stream.write_data({"type": "title", "content": params.title})
        stream.write_data({"type": "clear", "content": ""})

        content = await _stream_document(context, params.kind, DOCUMENT_PROMPTS[params.kind], params.title)

        async with context.session_factory() as db:
            await DocumentService(db).save_document(
                document_id, params.title, params.kind, content, context.user.id
            )

        stream.write_data({"type": "finish", "content": ""})
        return {
            "id": document_id,
            "title": params.title,
            "kind": params.kind,
            "content": "A document was created and is now visible to the user."
        }

    return Tool(
        name="createDocument",
        description=(
            "Create a document for a writing or content creation activities. This tool will call other "
            "functions that will generate the contents of the document based on the title and kind."
        ),
        parameters=CreateDocumentParameters,
        execute=execute
    )


def update_document(context: ToolContext) -> Tool:
    async def execute(params: UpdateDocumentParameters) -> dict[str, Any]:
        async with context.session_factory() as db:
            document = await DocumentService(db).get_document_by_id(params.id)
        if document is None:
            return {"error": "Document not found"}

        context.data_stream.write_data({"type": "clear", "content": document.title})
        content = await _stream_document(
            context,
            document.kind,
            update_document_prompt(document.content, document.kind),
            params.description
        )

        async with context.session_factory() as db:
            await DocumentService(db).save_document(
                document.id, document.title, document.kind, content, context.user.id
            )

        context.data_stream.write_data({"type": "finish", "content": ""})
        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind,
            "content": "The document has been updated successfully."
        }

    return Tool(
        name="updateDocument",
        description="Update a document with the given description.",
        parameters=UpdateDocumentParameters,
        execute=execute
    )


def request_suggestions(context: ToolContext) -> Tool:
    parser = PydanticOutputParser(pydantic_object=SuggestionDrafts)

    async def execute(params: RequestSuggestionsParameters) -> dict[str, Any]:
        async with context.session_factory() as db:
            document = await DocumentService(db).get_document_by_id(params.document_id)
        if document is None or not document.content:
            return {"error": "Document not found"}

        text = await generate_text(
            context.registry.language_model(ARTIFACT_MODEL),
            prompt=SUGGESTIONS_PROMPT.format(content=document.content)
        )
        drafts = parser.parse(text)

        suggestions = []
        for draft in drafts.suggestions[:5]:
            suggestion = Suggestion(
                id=str(uuid4()),
                document_id=document.id,
                document_created_at=document.created_at,
                original_text=draft.original_sentence,
                suggested_text=draft.suggested_sentence,
                description=draft.description,
                is_resolved=False,
                user_id=context.user.id,
                created_at=utcnow()
            )
            context.data_stream.write_data({
                "type": "suggestion",
                "content": suggestion.model_dump(by_alias=True, mode="json")
            })
            suggestions.append(suggestion)

        async with context.session_factory() as db:
            await DocumentService(db).save_suggestions(suggestions)

        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind,
            "message": "Suggestions have been added to the document"
        }

    return Tool(
        name="requestSuggestions",
        description="Request suggestions for a document",
        parameters=RequestSuggestionsParameters,
        execute=execute
    )


def build_tools(context: ToolContext) -> dict[str, Tool]:
    tools = [get_weather(context), create_document(context), update_document(context), request_suggestions(context)]
    return {tool.name: tool for tool in tools}
