import pytest

from marketingvoice.schemas.chat import PostRequestBody, RequestHints
from marketingvoice.services.chat import ChatService
from marketingvoice.services.data_stream import parse_line
from marketingvoice.services.llm.base import GenerationError, TextDelta
from marketingvoice.services.orchestrator import DEFAULT_TITLE, request_hints_from_headers
from marketingvoice.services.resumable import StreamAborted
from marketingvoice.utils.errors import UpstreamError


def _body(chat_id="c1", content="Hello"):
    return PostRequestBody.model_validate({
        "id": chat_id,
        "message": {"content": content},
        "selectedChatModel": "chat-model",
        "selectedVisibilityType": "private",
    })


async def _messages(session_factory, chat_id):
    async with session_factory() as session:
        return await ChatService(session).get_messages_by_chat_id(chat_id)


async def test_reply_is_saved_even_when_nobody_reads(orchestrator, make_user, session_factory, supervisor):
    user, _ = await make_user()

    async with session_factory() as session:
        stream = await orchestrator.handle_user_message(ChatService(session), user, _body())
    await supervisor.drain()

    assert stream.task.done()
    assert stream.task.exception() is None
    messages = await _messages(session_factory, "c1")
    assert [message.role for message in messages] == ["user", "assistant"]
    assert messages[-1].text == "Hello world!"


async def test_provider_failure_is_reported_in_band_and_fails_the_stream(
        orchestrator, make_user, provider, session_factory, supervisor
):
    user, _ = await make_user()
    provider.error = GenerationError("connection reset")

    async with session_factory() as session:
        stream = await orchestrator.handle_user_message(ChatService(session), user, _body())

    received = []
    with pytest.raises(StreamAborted):
        async for chunk in stream.chunks:
            received.append(parse_line(chunk))
    await supervisor.drain()

    assert ("3", "An error occurred while processing your request") in received
    assert isinstance(stream.task.exception(), UpstreamError)
    messages = await _messages(session_factory, "c1")
    assert [message.role for message in messages] == ["user"]


async def test_provider_failure_without_resumable_streams(
        orchestrator, make_user, provider, session_factory, supervisor
):
    orchestrator.stream_context = None
    user, _ = await make_user()
    provider.error = GenerationError("timeout")

    async with session_factory() as session:
        stream = await orchestrator.handle_user_message(ChatService(session), user, _body())

    received = []
    with pytest.raises(UpstreamError):
        async for chunk in stream.chunks:
            received.append(parse_line(chunk))
    await supervisor.drain()

    assert received[-1] == ("3", "An error occurred while processing your request")


async def test_user_message_is_saved_before_generation(orchestrator, make_user, session_factory, supervisor):
    user, _ = await make_user()

    async with session_factory() as session:
        await orchestrator.handle_user_message(ChatService(session), user, _body(content="Persist me"))

    messages = await _messages(session_factory, "c1")
    assert messages[0].text == "Persist me"
    await supervisor.drain()


async def test_blank_title_falls_back_to_default(orchestrator, provider, make_user, session_factory, supervisor):
    user, _ = await make_user()
    provider.title = "   "

    async with session_factory() as session:
        await orchestrator.handle_user_message(ChatService(session), user, _body())
    await supervisor.drain()

    async with session_factory() as session:
        chat = await ChatService(session).get_chat("c1")
    assert chat.title == DEFAULT_TITLE


async def test_generated_title_is_cleaned(orchestrator, provider):
    provider.title = '"Launch: a ' + "very long title " * 10 + '"'

    title = await orchestrator.generate_title("Tell me about the launch")

    assert '"' not in title
    assert ":" not in title
    assert len(title) <= 80


async def test_user_message_is_stored_from_content(orchestrator, make_user, session_factory, supervisor):
    user, _ = await make_user()
    body = PostRequestBody.model_validate({
        "id": "c1",
        "message": {
            "id": "client-id",
            "content": "Look at this",
            "parts": [{"type": "text", "text": "Something else entirely"}],
            "experimentalAttachments": [{"url": "https://files.example/a.png", "contentType": "image/png"}],
        },
        "selectedChatModel": "chat-model",
        "selectedVisibilityType": "private",
    })

    async with session_factory() as session:
        await orchestrator.handle_user_message(ChatService(session), user, body)
    await supervisor.drain()

    user_message = (await _messages(session_factory, "c1"))[0]
    assert user_message.id != "client-id"
    assert [part.model_dump() for part in user_message.parts] == [{"type": "text", "text": "Look at this"}]
    assert user_message.attachments[0].url == "https://files.example/a.png"
    assert orchestrator.registry.language_model("chat-model").provider.requests[0].messages[0].images == [
        "https://files.example/a.png"
    ]


def test_request_hints_from_headers():
    hints = request_hints_from_headers({
        "x-vercel-ip-latitude": "37.56",
        "x-vercel-ip-longitude": "126.97",
        "x-vercel-ip-city": "Seoul",
    })

    assert hints == RequestHints(latitude="37.56", longitude="126.97", city="Seoul", country=None)


async def test_smoothing_is_applied_to_chat_output(orchestrator, provider, make_user, session_factory, supervisor):
    user, _ = await make_user()
    provider.steps = [[TextDelta("one two"), TextDelta(" three")]]

    async with session_factory() as session:
        stream = await orchestrator.handle_user_message(ChatService(session), user, _body())
    chunks = [parse_line(chunk) async for chunk in stream.chunks]
    await supervisor.drain()

    assert [value for code, value in chunks if code == "0"] == ["one ", "two ", "three"]


async def test_setup_failure_still_ends_the_stream(
        orchestrator, make_user, session_factory, supervisor, monkeypatch
):
    user, _ = await make_user()
    async with session_factory() as session:
        await ChatService(session).save_chat("c1", user.id, "Existing", "private")

    def unknown_model(model_id):
        raise ValueError(f"Unknown model id: {model_id}")

    monkeypatch.setattr(orchestrator.registry, "language_model", unknown_model)

    async with session_factory() as session:
        stream = await orchestrator.handle_user_message(ChatService(session), user, _body())

    received = []
    with pytest.raises(StreamAborted):
        async for chunk in stream.chunks:
            received.append(parse_line(chunk))
    await supervisor.drain()

    assert received == [("3", "An error occurred while processing your request")]
    assert isinstance(stream.task.exception(), UpstreamError)
