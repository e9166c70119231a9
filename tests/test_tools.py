import json

import httpx
import pytest

from marketingvoice.schemas.auth import AuthUser, UserType
from marketingvoice.services.data_stream import DataStream, parse_line
from marketingvoice.services.documents import DocumentService
from marketingvoice.services.llm.base import TextDelta
from marketingvoice.services.tools import TOOL_NAMES, ToolContext, build_tools

WEATHER = {
    "latitude": 37.56,
    "longitude": 126.97,
    "current": {"time": "2025-06-01T12:00", "temperature_2m": 22.4},
    "daily": {"sunrise": ["2025-06-01T05:11"], "sunset": ["2025-06-01T19:50"]},
}


@pytest.fixture
async def user(make_user):
    user, _ = await make_user()
    return user


@pytest.fixture
def weather_requests():
    return []


@pytest.fixture
async def http_client(weather_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        weather_requests.append(request)
        return httpx.Response(200, json=WEATHER)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest.fixture
def data_stream():
    return DataStream()


@pytest.fixture
def tools(user, data_stream, session_factory, registry, settings, http_client):
    return build_tools(ToolContext(
        user=user,
        data_stream=data_stream,
        session_factory=session_factory,
        registry=registry,
        settings=settings,
        http_client=http_client
    ))


async def _data_parts(data_stream: DataStream):
    data_stream.close()
    parts = []
    async for line in data_stream:
        code, value = parse_line(line)
        if code == "2":
            parts.extend(value)
    return parts


async def _save(session_factory, user, content, kind="text", document_id="doc-1"):
    async with session_factory() as session:
        return await DocumentService(session).save_document(document_id, "Draft", kind, content, user.id)


def test_all_tools_are_built(tools):
    assert tuple(tools) == TOOL_NAMES
    schema = tools["requestSuggestions"].definition().parameters
    assert "documentId" in schema["properties"]


async def test_get_weather_queries_forecast(tools, weather_requests, settings):
    result = await tools["getWeather"].run({"latitude": 37.56, "longitude": 126.97})

    assert result == WEATHER
    params = weather_requests[0].url.params
    assert str(weather_requests[0].url).startswith(settings.WEATHER_API_URL)
    assert params["current"] == "temperature_2m"
    assert params["daily"] == "sunrise,sunset"
    assert params["timezone"] == "auto"


async def test_create_document_streams_and_saves(tools, provider, data_stream, session_factory, user):
    provider.steps = [[TextDelta("Spring "), TextDelta("launch")]]

    result = await tools["createDocument"].run({"title": "Campaign", "kind": "text"})

    parts = await _data_parts(data_stream)
    assert [part["type"] for part in parts] == ["kind", "id", "title", "clear", "text-delta", "text-delta", "finish"]
    assert parts[1]["content"] == result["id"]
    assert result["content"] == "A document was created and is now visible to the user."

    async with session_factory() as session:
        document = await DocumentService(session).get_document_by_id(result["id"])
    assert document.content == "Spring launch"
    assert document.user_id == user.id


async def test_code_documents_stream_whole_content(tools, provider, data_stream):
    provider.steps = [[TextDelta("print("), TextDelta("'hi')")]]

    await tools["createDocument"].run({"title": "Greeter", "kind": "code"})

    deltas = [part["content"] for part in await _data_parts(data_stream) if part["type"] == "code-delta"]
    assert deltas == ["print(", "print('hi')"]


async def test_update_document_saves_new_version(tools, provider, data_stream, session_factory, user):
    await _save(session_factory, user, "Old copy")
    provider.steps = [[TextDelta("New copy")]]

    result = await tools["updateDocument"].run({"id": "doc-1", "description": "Make it punchier"})

    assert result["content"] == "The document has been updated successfully."
    assert "Old copy" in provider.requests[0].system
    assert provider.requests[0].messages[0].content == "Make it punchier"
    parts = await _data_parts(data_stream)
    assert parts[0] == {"type": "clear", "content": "Draft"}

    async with session_factory() as session:
        versions = await DocumentService(session).get_documents_by_id("doc-1")
    assert [version.content for version in versions] == ["Old copy", "New copy"]


async def test_update_missing_document(tools):
    result = await tools["updateDocument"].run({"id": "nope", "description": "anything"})

    assert result == {"error": "Document not found"}


async def test_request_suggestions_parses_and_saves(tools, provider, data_stream, session_factory, user):
    await _save(session_factory, user, "Our shoes is great. Buy now.")
    provider.steps = [[TextDelta(json.dumps({"suggestions": [{
        "original_sentence": "Our shoes is great.",
        "suggested_sentence": "Our shoes are great.",
        "description": "Subject verb agreement",
    }]}))]]

    result = await tools["requestSuggestions"].run({"documentId": "doc-1"})

    assert result["message"] == "Suggestions have been added to the document"
    parts = await _data_parts(data_stream)
    assert parts[0]["type"] == "suggestion"
    assert parts[0]["content"]["suggestedText"] == "Our shoes are great."

    async with session_factory() as session:
        saved = await DocumentService(session).get_suggestions_by_document_id("doc-1")
    assert [suggestion.original_text for suggestion in saved] == ["Our shoes is great."]
    assert saved[0].user_id == user.id


async def test_request_suggestions_for_missing_document(tools):
    assert await tools["requestSuggestions"].run({"documentId": "nope"}) == {"error": "Document not found"}


async def test_document_and_suggestion_endpoints(client, make_user, session_factory):
    owner, owner_headers = await make_user()
    _, other_headers = await make_user()
    await _save(session_factory, owner, "v1")
    await _save(session_factory, owner, "v2")

    versions = await client.get("/api/v1/document", params={"id": "doc-1"}, headers=owner_headers)
    forbidden = await client.get("/api/v1/document", params={"id": "doc-1"}, headers=other_headers)
    missing = await client.get("/api/v1/document", params={"id": "nope"}, headers=owner_headers)
    suggestions = await client.get("/api/v1/suggestions", params={"documentId": "doc-1"}, headers=owner_headers)

    assert [version["content"] for version in versions.json()] == ["v1", "v2"]
    assert forbidden.status_code == 403
    assert missing.status_code == 404
    assert suggestions.json() == []


def test_tool_context_defaults(data_stream, session_factory, registry, settings):
    context = ToolContext(
        user=AuthUser(id="u1", email="guest-1", type=UserType.GUEST),
        data_stream=data_stream,
        session_factory=session_factory,
        registry=registry,
        settings=settings
    )

    assert context.http_client is None
