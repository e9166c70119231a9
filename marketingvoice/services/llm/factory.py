# marketingvoice/services/llm/factory.py
import logging
from dataclasses import dataclass
from typing import Optional

from ...core.config import Settings
from ...schemas.model import ModelSpec, Provider
from .base import BaseLLMProvider
from .chatgpt import ChatGPTProvider
from .claude import ClaudeProvider
from .ollama import OllamaProvider

logger = logging.getLogger(__name__)

CHAT_MODEL = "chat-model"
REASONING_MODEL = "chat-model-reasoning"
TITLE_MODEL = "title-model"
ARTIFACT_MODEL = "artifact-model"
COPY_MODEL = "copy-model"


@dataclass
class LanguageModel:
    model_id: str
    spec: ModelSpec
    provider: BaseLLMProvider

    @property
    def is_reasoning(self) -> bool:
        return self.model_id == REASONING_MODEL


def create_provider(provider: Provider, settings: Settings) -> BaseLLMProvider:
    """Create the client adapter for one provider"""
    if provider == Provider.OLLAMA:
        return OllamaProvider(base_url=settings.OLLAMA_HOST)
    elif provider == Provider.CLAUDE:
        return ClaudeProvider(settings.ANTHROPIC_API_KEY)
    elif provider == Provider.CHATGPT:
        return ChatGPTProvider(settings.OPENAI_API_KEY)
    else:
        raise ValueError(f"Unsupported provider: {provider}")


class ModelRegistry:
    """Maps the logical model ids used by the app onto configured providers."""

    def __init__(self, settings: Settings, providers: Optional[dict[Provider, BaseLLMProvider]] = None):
        self.settings = settings
        self._providers: dict[Provider, BaseLLMProvider] = dict(providers or {})
        self._specs = {
            CHAT_MODEL: ModelSpec.parse(settings.CHAT_MODEL),
            REASONING_MODEL: ModelSpec.parse(settings.REASONING_MODEL),
            TITLE_MODEL: ModelSpec.parse(settings.TITLE_MODEL),
            ARTIFACT_MODEL: ModelSpec.parse(settings.ARTIFACT_MODEL),
            COPY_MODEL: ModelSpec.parse(settings.COPY_MODEL),
        }

    def get_provider(self, provider: Provider) -> BaseLLMProvider:
        if provider not in self._providers:
            self._providers[provider] = create_provider(provider, self.settings)
        return self._providers[provider]

    def language_model(self, model_id: str) -> LanguageModel:
        try:
            spec = self._specs[model_id]
        except KeyError:
            raise ValueError(f"Unknown model id: {model_id}")
        return LanguageModel(model_id=model_id, spec=spec, provider=self.get_provider(spec.provider))

    async def aclose(self) -> None:
        for provider in self._providers.values():
            try:
                await provider.aclose()
            except Exception as e:
                logger.warning(f"Failed to close provider client: {str(e)}")
