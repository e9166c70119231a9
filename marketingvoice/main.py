# marketingvoice/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import auth, chat, document, marketing
from .core.config import settings
from .core.handlers import register_exception_handlers
from .db.session import async_session, engine
from .services.background import TaskSupervisor
from .services.images import create_image_provider
from .services.llm.factory import ModelRegistry
from .services.orchestrator import ChatOrchestrator
from .services.resumable import StreamContextUnavailable, create_stream_context
from .services.speech import SpeechService

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Setup services
    supervisor = TaskSupervisor()
    registry = ModelRegistry(settings)
    try:
        stream_context = create_stream_context(settings, supervisor.spawn)
    except StreamContextUnavailable as e:
        logger.info(f" > Resumable streams are disabled: {str(e)}")
        stream_context = None

    # Add to app state
    app.state.settings = settings
    app.state.session_factory = async_session
    app.state.supervisor = supervisor
    app.state.registry = registry
    app.state.image_provider = create_image_provider(settings)
    app.state.speech_service = SpeechService(settings)
    app.state.orchestrator = ChatOrchestrator(
        session_factory=async_session,
        registry=registry,
        supervisor=supervisor,
        settings=settings,
        stream_context=stream_context
    )

    # Setup database
    from .db.init_db import init_db
    await init_db()

    yield

    # Let running generations finish and save before tearing down
    await supervisor.shutdown()
    if stream_context is not None:
        await stream_context.aclose()
    await registry.aclose()
    await app.state.image_provider.aclose()
    await app.state.speech_service.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Include routers
    app.include_router(auth.router, prefix=settings.API_V1_PREFIX, tags=["auth"])
    app.include_router(chat.router, prefix=settings.API_V1_PREFIX, tags=["chat"])
    app.include_router(document.router, prefix=settings.API_V1_PREFIX, tags=["documents"])
    app.include_router(marketing.router, prefix=settings.API_V1_PREFIX, tags=["marketing"])

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
