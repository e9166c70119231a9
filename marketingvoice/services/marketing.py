# marketingvoice/services/marketing.py
import logging
import random
from typing import Final, Optional

from ..schemas.marketing import MarketingGenerateResponse, MarketingPromptResponse
from ..utils.errors import BadRequestError, UpstreamError
from .images import ImageService
from .llm.factory import COPY_MODEL, ModelRegistry
from .llm.stream_text import generate_text
from .prompts import MARKETING_COPY_PROMPT

logger = logging.getLogger(__name__)

TEMPLATE_PROMPTS: Final = {
    "instagram": "Create a professional Instagram post image with: ",
    "facebook": "Design a Facebook ad banner that shows: ",
    "banner": "Create a web banner advertisement featuring: ",
}

TEMPLATE_STYLES: Final = {
    "instagram": (
        "professional photography, high quality, HD, square format, trending on social media, vibrant colors, "
        "perfect lighting, modern aesthetic, Instagram-worthy, lifestyle photography"
    ),
    "facebook": (
        "professional marketing material, engaging layout, clear branding, call to action, modern design, "
        "high contrast, attention-grabbing, social media optimized"
    ),
    "banner": (
        "clean design, web banner layout, digital ad, professional marketing style, modern typography, "
        "balanced composition, eye-catching visuals"
    ),
}

BRAND_STYLES: Final = {
    "adidas": (
        "sporty, dynamic, urban, street style, athletic, modern, bold, energetic, Adidas three stripes logo, "
        "sportswear, athletic performance, no text overlays, clean design, product focus"
    ),
    "nike": (
        "athletic, dynamic, premium, innovative, bold, energetic, urban, Nike swoosh logo, sportswear, "
        "athletic performance, no text overlays, clean design, product focus"
    ),
    "puma": (
        "sporty, casual, street style, modern, vibrant, urban, Puma logo, sportswear, athletic performance, "
        "no text overlays, clean design, product focus"
    ),
    "starbucks": (
        "premium coffee shop, warm atmosphere, green and white branding, modern cafe interior, barista, "
        "coffee art, cozy seating, professional coffee equipment, Starbucks siren logo, coffee cups, pastries, "
        "coffee beans, no text overlays, clean design, product focus"
    ),
    "aquapick": (
        "A square Instagram-style ad featuring the Aquapick water flosser as the main subject. The background "
        "is a vibrant gradient of clean blue tones with subtle water droplet textures. The sleek white water "
        "flosser device is positioned elegantly in the center, spraying a fine mist of water. Include the "
        "Aquapick logo prominently placed in the composition. The design is modern, minimal, and clean without "
        "any text overlays. Focus on dental care, oral hygiene, water flosser product, clean blue gradient "
        "background, water droplets, healthcare product, fresh, hygienic, professional product photography, "
        "minimalist design, no text, text-free"
    ),
    "default": (
        "professional, modern, clean, high-quality, premium, elegant, no text overlays, clean design, "
        "product focus"
    ),
}

HEADLINE_KEYWORDS: Final = {
    "instagram": ["지금 바로", "새로운", "특별한", "한정판", "독점", "트렌디한", "스타일리시한"],
    "facebook": ["혁신적인", "최고의", "당신을 위한", "특별한", "프리미엄", "독점적인"],
    "banner": ["지금 바로", "특별한 기회", "한정 시간", "독점 혜택", "프리미엄"],
}

BRAND_PHRASES: Final = {
    "adidas": "스포츠의 혁신",
    "nike": "Just Do It",
    "puma": "Forever Faster",
    "starbucks": "스타벅스 커피",
    "aquapick": "상쾌한 구강 관리",
    "default": "새로운 경험",
}

MAX_DESCRIPTION_LENGTH = 60


def brand_of(description: str) -> str:
    return description.lower().split(" ")[0]


def generate_headline(description: str, template: str, brand: str, rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    keyword = rng.choice(HEADLINE_KEYWORDS.get(template, HEADLINE_KEYWORDS["instagram"]))
    phrase = BRAND_PHRASES.get(brand, BRAND_PHRASES["default"])
    lead = " ".join(description.split(" ")[:3])

    if template == "instagram":
        return f"{keyword} {phrase} - {lead}"
    elif template == "facebook":
        return f"{lead} - {keyword} {phrase}"
    elif template == "banner":
        return f"{keyword} {phrase} 만나보세요!"
    return f"{keyword} {phrase}"


def build_marketing_prompt(
        description: Optional[str],
        template: str = "instagram",
        rng: Optional[random.Random] = None
) -> MarketingPromptResponse:
    """Image prompt, headline and short description for one ad template."""
    if not description:
        raise BadRequestError("A description is required")
    if template not in TEMPLATE_PROMPTS:
        raise BadRequestError("Invalid template", details={"template": template})

    brand = brand_of(description)
    style = f"{TEMPLATE_STYLES[template]}, {BRAND_STYLES.get(brand, BRAND_STYLES['default'])}"
    prompt = f"{TEMPLATE_PROMPTS[template]}{description}. {style}"
    logger.debug(f"Generated marketing prompt: {prompt}")

    headline = generate_headline(description, template, brand, rng)
    if len(description) > MAX_DESCRIPTION_LENGTH:
        description = f"{description[:MAX_DESCRIPTION_LENGTH]}..."

    return MarketingPromptResponse(prompt=prompt, headline=headline, description=description)


async def generate_marketing_assets(
        input_text: str,
        template: str,
        registry: ModelRegistry,
        images: ImageService,
        user_id: str
) -> MarketingGenerateResponse:
    """Marketing copy from the copy model plus a matching image."""
    try:
        copy = await generate_text(
            registry.language_model(COPY_MODEL),
            system=MARKETING_COPY_PROMPT.format(template=template),
            prompt=input_text
        )
    except Exception as e:
        logger.error(f"Error generating marketing copy: {str(e)}")
        raise UpstreamError("Failed to generate marketing assets", details=str(e))

    image = await images.generate_image(
        f"Create a professional marketing image for {template} based on: {input_text}",
        user_id
    )
    return MarketingGenerateResponse(text=copy, image=image.image_url)
