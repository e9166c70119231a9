# marketingvoice/schemas/marketing.py
from datetime import datetime
from typing import Optional

from .base import CamelModel


class MarketingPromptRequest(CamelModel):
    description: Optional[str] = None
    template: str = "instagram"


class MarketingPromptResponse(CamelModel):
    prompt: str
    headline: str
    description: str


class MarketingGenerateRequest(CamelModel):
    input: str
    template: str = "instagram"


class MarketingGenerateResponse(CamelModel):
    text: str
    image: str


class ImageRequest(CamelModel):
    prompt: Optional[str] = None


class ImageMetadata(CamelModel):
    content_type: str = "image/jpeg"
    source: str


class ImageResponse(CamelModel):
    image_url: str
    metadata: ImageMetadata


class GeneratedImage(CamelModel):
    id: str
    image_url: str
    prompt: str
    created_at: datetime


class TranscriptionResponse(CamelModel):
    text: str
