from typing import Optional
from uuid import uuid4

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketingvoice.core.config import Settings
from marketingvoice.db import models  # noqa: F401
from marketingvoice.db.session import Base
from marketingvoice.main import create_app
from marketingvoice.schemas.auth import AuthUser, UserType
from marketingvoice.schemas.model import Provider
from marketingvoice.services.auth import UserService, create_access_token
from marketingvoice.services.background import TaskSupervisor
from marketingvoice.services.images import BaseImageProvider
from marketingvoice.services.llm.base import BaseLLMProvider, ModelRequest, StepFinish, TextDelta, ToolCall
from marketingvoice.services.llm.factory import ModelRegistry
from marketingvoice.services.orchestrator import ChatOrchestrator
from marketingvoice.services.prompts import TITLE_PROMPT
from marketingvoice.services.resumable import MemoryStreamStore, ResumableStreamContext
from marketingvoice.services.speech import SpeechService

API = "/api/v1"


class ScriptedProvider(BaseLLMProvider):
    """Plays back one scripted list of events per model step.

    Title requests are answered separately so they never consume a step.
    """

    def __init__(self, steps=None, default=None, title: str = "Greeting"):
        self.steps = list(steps or [])
        self.default = default or [TextDelta("Hello "), TextDelta("world!")]
        self.title = title
        self.requests: list[ModelRequest] = []
        self.title_requests: list[ModelRequest] = []
        self.error: Optional[Exception] = None

    async def stream(self, spec, request: ModelRequest):
        if request.system == TITLE_PROMPT:
            self.title_requests.append(request)
            yield TextDelta(self.title)
            yield StepFinish()
            return

        self.requests.append(request)
        if self.error is not None:
            raise self.error

        events = self.steps.pop(0) if self.steps else self.default
        for event in events:
            yield event
        reason = "tool-calls" if any(isinstance(event, ToolCall) for event in events) else "stop"
        yield StepFinish(finish_reason=reason, usage={"promptTokens": 3, "completionTokens": 2})


class FakeImageProvider(BaseImageProvider):
    source = "fake-image-model"

    def __init__(self, response=None):
        self.response = response or {"images": [{"url": "https://images.example/1.jpg"}]}
        self.prompts: list[str] = []

    async def generate(self, prompt: str):
        self.prompts.append(prompt)
        return self.response


class FakeSpeechService(SpeechService):
    def __init__(self, settings: Settings, text: str = "A new running shoe for city runners"):
        super().__init__(settings)
        self.text = text
        self.received: list[bytes] = []

    async def transcribe(self, filename, content, content_type=None) -> str:
        self.received.append(content)
        return self.text


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        RESUMABLE_STREAM_BACKEND="memory",
        SECRET_KEY="test-secret",
        SMOOTH_STREAM_DELAY_MS=0,
        CHAT_MODEL="chatgpt:test-chat",
        REASONING_MODEL="ollama:test-reasoning",
        TITLE_MODEL="chatgpt:test-title",
        ARTIFACT_MODEL="chatgpt:test-artifact",
        COPY_MODEL="chatgpt:test-copy",
    )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def registry(settings, provider) -> ModelRegistry:
    return ModelRegistry(settings, providers={p: provider for p in Provider})


@pytest.fixture
async def supervisor():
    supervisor = TaskSupervisor()
    yield supervisor
    await supervisor.shutdown(timeout=5)


@pytest.fixture
def stream_context(supervisor) -> ResumableStreamContext:
    return ResumableStreamContext(MemoryStreamStore(), supervisor.spawn)


@pytest.fixture
def orchestrator(session_factory, registry, supervisor, settings, stream_context) -> ChatOrchestrator:
    return ChatOrchestrator(
        session_factory=session_factory,
        registry=registry,
        supervisor=supervisor,
        settings=settings,
        stream_context=stream_context
    )


@pytest.fixture
def image_provider() -> FakeImageProvider:
    return FakeImageProvider()


@pytest.fixture
def app(settings, session_factory, supervisor, registry, orchestrator, image_provider):
    app = create_app()
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.supervisor = supervisor
    app.state.registry = registry
    app.state.orchestrator = orchestrator
    app.state.image_provider = image_provider
    app.state.speech_service = FakeSpeechService(settings)
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_user(session_factory, settings):
    async def make(user_type: UserType = UserType.GUEST) -> tuple[AuthUser, dict[str, str]]:
        async with session_factory() as session:
            users = UserService(session)
            if user_type == UserType.GUEST:
                user = await users.create_guest_user()
            else:
                user = await users.create_user(f"user-{uuid4().hex[:12]}@example.com", "secret-password")
        token = create_access_token(user, settings)
        return user, {"Authorization": f"Bearer {token}"}

    return make
