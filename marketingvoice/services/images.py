# marketingvoice/services/images.py
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from openai import AsyncOpenAI, BadRequestError as OpenAIBadRequestError, OpenAIError
from sqlalchemy.sql import select
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import Settings
from ..db.models import GeneratedImageModel
from ..db.session import AsyncSession
from ..schemas.marketing import GeneratedImage, ImageMetadata, ImageResponse
from ..utils.errors import ImageGenerationError, NotFoundError

logger = logging.getLogger(__name__)

PROMPT_SUFFIX = " - Create this exact scene with high quality, detailed rendering, professional photography style."
FAILED_MESSAGE = "Image generation failed"
NO_URL_MESSAGE = "No valid image URL found in the response"

BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/=]+$")


def enhance_prompt(prompt: str) -> str:
    return f"{prompt}{PROMPT_SUFFIX}"


def _as_url(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("url")
    if not isinstance(value, str) or not value:
        return None
    # Some models answer with raw base64 instead of a hosted file
    if len(value) > 100 and BASE64_PATTERN.match(value):
        return f"data:image/jpeg;base64,{value}"
    return value


def extract_image_url(result: Any) -> Optional[str]:
    """Find the first image URL in the response shapes image providers use."""
    if not isinstance(result, dict):
        return None

    images = result.get("images")
    if isinstance(images, list) and images:
        url = _as_url(images[0])
        if url:
            return url

    for key in ("image", "result", "output", "data"):
        value = result.get(key)
        if isinstance(value, dict) and "images" in value:
            url = extract_image_url(value)
        elif isinstance(value, list) and value:
            url = _as_url(value[0])
        else:
            url = _as_url(value)
        if url:
            return url
    return None


def _raise_for_error_payload(result: Any) -> None:
    if not isinstance(result, dict):
        raise ImageGenerationError(FAILED_MESSAGE, details="Invalid API response: Not an object")
    if result.get("error") or result.get("detail") or result.get("status") == "error":
        message = result.get("error") or result.get("detail") or result.get("message") or "API error occurred"
        raise ImageGenerationError(FAILED_MESSAGE, details=message)


class BaseImageProvider(ABC):
    source: str

    @abstractmethod
    async def generate(self, prompt: str) -> dict[str, Any]:
        """Return the provider's raw response for ``prompt``."""
        pass

    async def aclose(self) -> None:
        pass


class FalImageProvider(BaseImageProvider):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.source = settings.FAL_MODEL
        self.client = client or httpx.AsyncClient(base_url=settings.FAL_BASE_URL, timeout=120.0)

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True
    )
    async def _post(self, prompt: str) -> httpx.Response:
        return await self.client.post(
            f"/{self.settings.FAL_MODEL}",
            json={"prompt": prompt, "image_size": "square_hd"},
            headers={"Authorization": f"Key {self.settings.FAL_KEY}"}
        )

    async def generate(self, prompt: str) -> dict[str, Any]:
        try:
            response = await self._post(prompt)
        except httpx.HTTPError as e:
            logger.error(f"Image provider request failed: {str(e)}")
            raise ImageGenerationError(FAILED_MESSAGE, details=str(e))

        if response.status_code == 422:
            details = response.json().get("detail")
            logger.error(f"Image provider rejected the prompt: {details}")
            raise ImageGenerationError(FAILED_MESSAGE, details=details, status_code=422)
        if response.is_error:
            logger.error(f"Image provider returned {response.status_code}: {response.text}")
            raise ImageGenerationError(FAILED_MESSAGE, details=response.text)
        return response.json()

    async def aclose(self) -> None:
        await self.client.aclose()


class OpenAIImageProvider(BaseImageProvider):
    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self.source = settings.OPENAI_IMAGE_MODEL
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.OPENAI_API_KEY)
        return self._client

    async def generate(self, prompt: str) -> dict[str, Any]:
        try:
            response = await self.client.images.generate(
                model=self.settings.OPENAI_IMAGE_MODEL,
                prompt=prompt,
                size=self.settings.IMAGE_SIZE,
                n=1
            )
        except OpenAIBadRequestError as e:
            raise ImageGenerationError(FAILED_MESSAGE, details=str(e), status_code=422)
        except OpenAIError as e:
            logger.error(f"OpenAI image generation failed: {str(e)}")
            raise ImageGenerationError(FAILED_MESSAGE, details=str(e))

        return {"images": [{"url": image.url or image.b64_json} for image in response.data]}

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


def create_image_provider(settings: Settings) -> BaseImageProvider:
    if settings.IMAGE_PROVIDER == "openai":
        return OpenAIImageProvider(settings)
    elif settings.IMAGE_PROVIDER == "fal":
        return FalImageProvider(settings)
    else:
        raise ValueError(f"Unsupported image provider: {settings.IMAGE_PROVIDER}")


def to_generated_image(image: GeneratedImageModel) -> GeneratedImage:
    return GeneratedImage(id=image.id, image_url=image.image_url, prompt=image.prompt, created_at=image.created_at)


class ImageService:
    def __init__(self, db: AsyncSession, provider: BaseImageProvider):
        self.db = db
        self.provider = provider

    async def generate_image(self, prompt: str, user_id: str) -> ImageResponse:
        enhanced = enhance_prompt(prompt)
        logger.info(f"Generating image with {self.provider.source}")

        result = await self.provider.generate(enhanced)
        _raise_for_error_payload(result)

        image_url = extract_image_url(result)
        if not image_url:
            logger.error(f"{NO_URL_MESSAGE}: {result}")
            raise ImageGenerationError(NO_URL_MESSAGE)

        self.db.add(GeneratedImageModel(user_id=user_id, image_url=image_url, prompt=prompt))
        await self.db.commit()

        return ImageResponse(image_url=image_url, metadata=ImageMetadata(source=self.provider.source))

    async def get_images(self, user_id: str) -> list[GeneratedImage]:
        result = await self.db.execute(
            select(GeneratedImageModel)
            .filter(GeneratedImageModel.user_id == user_id)
            .order_by(GeneratedImageModel.created_at.desc())
        )
        return [to_generated_image(image) for image in result.scalars().all()]

    async def delete_image(self, image_id: str, user_id: str) -> None:
        result = await self.db.execute(
            select(GeneratedImageModel).filter(
                GeneratedImageModel.id == image_id,
                GeneratedImageModel.user_id == user_id
            )
        )
        image = result.scalar_one_or_none()
        if not image:
            raise NotFoundError("Image not found")
        await self.db.delete(image)
        await self.db.commit()
