# marketingvoice/services/speech.py
import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from ..core.config import Settings
from ..utils.errors import TranscriptionError

logger = logging.getLogger(__name__)


class SpeechService:
    """Turns recorded product descriptions into text."""

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.OPENAI_API_KEY)
        return self._client

    async def transcribe(self, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        try:
            transcription = await self.client.audio.transcriptions.create(
                model=self.settings.TRANSCRIPTION_MODEL,
                file=(filename or "audio.webm", content, content_type or "application/octet-stream")
            )
        except OpenAIError as e:
            logger.error(f"Transcription failed: {str(e)}")
            raise TranscriptionError(details=str(e))
        return transcription.text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
