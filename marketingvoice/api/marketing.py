# marketingvoice/api/marketing.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile

from ..dependencies import get_current_user, get_image_service, get_registry, get_speech_service
from ..schemas.auth import AuthUser
from ..schemas.marketing import (
    GeneratedImage,
    ImageRequest,
    ImageResponse,
    MarketingGenerateRequest,
    MarketingGenerateResponse,
    MarketingPromptRequest,
    MarketingPromptResponse,
    TranscriptionResponse,
)
from ..services.images import ImageService
from ..services.llm.factory import ModelRegistry
from ..services.marketing import build_marketing_prompt, generate_marketing_assets
from ..services.speech import SpeechService
from ..utils.errors import BadRequestError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/marketing-prompt")
async def create_marketing_prompt(request: MarketingPromptRequest) -> MarketingPromptResponse:
    return build_marketing_prompt(request.description, request.template)


@router.post("/marketing/generate")
async def generate_marketing(
        request: MarketingGenerateRequest,
        user: AuthUser = Depends(get_current_user),
        registry: ModelRegistry = Depends(get_registry),
        images: ImageService = Depends(get_image_service)
) -> MarketingGenerateResponse:
    return await generate_marketing_assets(request.input, request.template, registry, images, user.id)


@router.post("/generate-image")
async def generate_image(
        request: ImageRequest,
        user: AuthUser = Depends(get_current_user),
        images: ImageService = Depends(get_image_service)
) -> ImageResponse:
    if not request.prompt:
        raise BadRequestError("A prompt is required")
    return await images.generate_image(request.prompt, user.id)


@router.get("/images")
async def list_images(
        user: AuthUser = Depends(get_current_user),
        images: ImageService = Depends(get_image_service)
) -> list[GeneratedImage]:
    return await images.get_images(user.id)


@router.delete("/images/{image_id}", status_code=204)
async def delete_image(
        image_id: str,
        user: AuthUser = Depends(get_current_user),
        images: ImageService = Depends(get_image_service)
) -> Response:
    await images.delete_image(image_id, user.id)
    return Response(status_code=204)


@router.post("/speech-to-text")
async def speech_to_text(
        audio: Optional[UploadFile] = File(None),
        user: AuthUser = Depends(get_current_user),
        speech: SpeechService = Depends(get_speech_service)
) -> TranscriptionResponse:
    if audio is None:
        raise BadRequestError("No audio file provided")

    content = await audio.read()
    logger.info(f"Transcribing {len(content)} bytes of audio for user {user.id}")
    text = await speech.transcribe(audio.filename, content, audio.content_type)
    return TranscriptionResponse(text=text)
