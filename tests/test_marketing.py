import random
from types import SimpleNamespace

import httpx
import pytest

from conftest import API
from marketingvoice.core.config import Settings
from marketingvoice.services.images import (
    PROMPT_SUFFIX,
    FalImageProvider,
    OpenAIImageProvider,
    create_image_provider,
    extract_image_url,
)
from marketingvoice.services.llm.base import TextDelta
from marketingvoice.services.marketing import BRAND_PHRASES, BRAND_STYLES, TEMPLATE_STYLES, build_marketing_prompt
from marketingvoice.utils.errors import BadRequestError, ImageGenerationError


def test_marketing_prompt_uses_brand_and_template_styles():
    description = "Nike Air Max running shoes for city runners"

    result = build_marketing_prompt(description, "instagram", rng=random.Random(7))

    assert result.prompt.startswith("Create a professional Instagram post image with: Nike Air Max")
    assert TEMPLATE_STYLES["instagram"] in result.prompt
    assert BRAND_STYLES["nike"] in result.prompt
    assert BRAND_PHRASES["nike"] in result.headline
    assert result.headline.endswith(" - Nike Air Max")
    assert result.description == description


def test_unknown_brand_falls_back_to_default_style():
    result = build_marketing_prompt("Handmade ceramic mugs", "banner", rng=random.Random(1))

    assert BRAND_STYLES["default"] in result.prompt
    assert result.headline.endswith(f"{BRAND_PHRASES['default']} 만나보세요!")


def test_long_description_is_shortened():
    description = "Starbucks " + "seasonal pumpkin latte with oat milk and cinnamon " * 3

    result = build_marketing_prompt(description, "facebook", rng=random.Random(3))

    assert result.description == f"{description[:60]}..."
    assert result.headline.startswith("Starbucks seasonal pumpkin - ")
    assert description in result.prompt


@pytest.mark.parametrize("description, template", [(None, "instagram"), ("", "banner"), ("Shoes", "tiktok")])
def test_marketing_prompt_rejects_bad_input(description, template):
    with pytest.raises(BadRequestError):
        build_marketing_prompt(description, template)


async def test_marketing_prompt_endpoint(client):
    response = await client.post(f"{API}/marketing-prompt", json={"description": "Puma suede sneakers"})
    rejected = await client.post(f"{API}/marketing-prompt", json={"description": "Puma", "template": "poster"})

    assert response.status_code == 200
    assert set(response.json()) == {"prompt", "headline", "description"}
    assert BRAND_STYLES["puma"] in response.json()["prompt"]
    assert rejected.status_code == 400


async def test_generate_image_saves_and_lists(client, make_user, image_provider):
    _, headers = await make_user()

    response = await client.post(f"{API}/generate-image", json={"prompt": "A red sneaker"}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {
        "imageUrl": "https://images.example/1.jpg",
        "metadata": {"contentType": "image/jpeg", "source": "fake-image-model"},
    }
    assert image_provider.prompts == [f"A red sneaker{PROMPT_SUFFIX}"]

    images = (await client.get(f"{API}/images", headers=headers)).json()
    assert [image["prompt"] for image in images] == ["A red sneaker"]

    deleted = await client.delete(f"{API}/images/{images[0]['id']}", headers=headers)
    missing = await client.delete(f"{API}/images/{images[0]['id']}", headers=headers)
    assert deleted.status_code == 204
    assert missing.status_code == 404
    assert (await client.get(f"{API}/images", headers=headers)).json() == []


async def test_images_are_private_to_their_owner(client, make_user):
    _, owner_headers = await make_user()
    _, other_headers = await make_user()
    await client.post(f"{API}/generate-image", json={"prompt": "A blue mug"}, headers=owner_headers)
    image_id = (await client.get(f"{API}/images", headers=owner_headers)).json()[0]["id"]

    assert (await client.get(f"{API}/images", headers=other_headers)).json() == []
    assert (await client.delete(f"{API}/images/{image_id}", headers=other_headers)).status_code == 404


async def test_generate_image_requires_prompt_and_session(client, make_user):
    _, headers = await make_user()

    missing_prompt = await client.post(f"{API}/generate-image", json={}, headers=headers)
    anonymous = await client.post(f"{API}/generate-image", json={"prompt": "A red sneaker"})

    assert missing_prompt.status_code == 400
    assert anonymous.status_code == 401


async def test_response_without_image_url_fails(client, make_user, image_provider):
    _, headers = await make_user()
    image_provider.response = {"status": "ok", "seed": 42}

    response = await client.post(f"{API}/generate-image", json={"prompt": "A red sneaker"}, headers=headers)

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "IMAGE_001"
    assert (await client.get(f"{API}/images", headers=headers)).json() == []


async def test_error_payload_fails(client, make_user, image_provider):
    _, headers = await make_user()
    image_provider.response = {"error": "quota exhausted"}

    response = await client.post(f"{API}/generate-image", json={"prompt": "A red sneaker"}, headers=headers)

    assert response.status_code == 500
    assert response.json()["error"]["details"] == "quota exhausted"


@pytest.mark.parametrize("result, expected", [
    ({"images": [{"url": "https://a/1.png"}]}, "https://a/1.png"),
    ({"images": ["https://a/2.png"]}, "https://a/2.png"),
    ({"image": {"url": "https://a/3.png"}}, "https://a/3.png"),
    ({"output": ["https://a/4.png"]}, "https://a/4.png"),
    ({"result": "https://a/5.png"}, "https://a/5.png"),
    ({"data": {"images": [{"url": "https://a/6.png"}]}}, "https://a/6.png"),
    ({"seed": 1}, None),
    ("not a dict", None),
])
def test_extract_image_url(result, expected):
    assert extract_image_url(result) == expected


def test_base64_images_become_data_urls():
    encoded = "A" * 120

    assert extract_image_url({"images": [encoded]}) == f"data:image/jpeg;base64,{encoded}"


async def test_marketing_generate_returns_copy_and_image(client, make_user, provider, image_provider):
    _, headers = await make_user()
    provider.steps = [[TextDelta("Run the city in style.")]]

    response = await client.post(
        f"{API}/marketing/generate",
        json={"input": "Lightweight running shoes", "template": "facebook"},
        headers=headers
    )

    assert response.status_code == 200
    assert response.json() == {"text": "Run the city in style.", "image": "https://images.example/1.jpg"}
    assert provider.requests[0].messages[0].content == "Lightweight running shoes"
    assert "facebook" in provider.requests[0].system
    assert image_provider.prompts[0].startswith(
        "Create a professional marketing image for facebook based on: Lightweight running shoes"
    )


async def test_marketing_generate_copy_failure(client, make_user, provider, image_provider):
    _, headers = await make_user()
    provider.error = RuntimeError("provider down")

    response = await client.post(f"{API}/marketing/generate", json={"input": "Shoes"}, headers=headers)

    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Failed to generate marketing assets"
    assert image_provider.prompts == []


async def test_speech_to_text(client, make_user, app):
    _, headers = await make_user()

    response = await client.post(
        f"{API}/speech-to-text",
        files={"audio": ("pitch.webm", b"fake-audio", "audio/webm")},
        headers=headers
    )
    missing = await client.post(f"{API}/speech-to-text", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"text": "A new running shoe for city runners"}
    assert app.state.speech_service.received == [b"fake-audio"]
    assert missing.status_code == 400


@pytest.fixture
def fal_settings() -> Settings:
    return Settings(FAL_KEY="fal-secret", FAL_MODEL="fal-ai/fast-sdxl")


async def test_fal_provider_posts_prompt(fal_settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"images": [{"url": "https://fal.media/1.jpg"}]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=fal_settings.FAL_BASE_URL)
    image_provider = FalImageProvider(fal_settings, client=client)

    result = await image_provider.generate("A red sneaker")
    await image_provider.aclose()

    assert extract_image_url(result) == "https://fal.media/1.jpg"
    assert seen[0].url.path == "/fal-ai/fast-sdxl"
    assert seen[0].headers["Authorization"] == "Key fal-secret"


async def test_fal_provider_passes_through_rejections(fal_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"detail": "Prompt violates the content policy"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=fal_settings.FAL_BASE_URL)
    image_provider = FalImageProvider(fal_settings, client=client)

    with pytest.raises(ImageGenerationError) as exc_info:
        await image_provider.generate("Something forbidden")
    await image_provider.aclose()

    assert exc_info.value.status_code == 422
    assert exc_info.value.error_details == "Prompt violates the content policy"


async def test_fal_provider_server_error(fal_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="overloaded")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=fal_settings.FAL_BASE_URL)
    image_provider = FalImageProvider(fal_settings, client=client)

    with pytest.raises(ImageGenerationError) as exc_info:
        await image_provider.generate("A red sneaker")
    await image_provider.aclose()

    assert exc_info.value.status_code == 500


def test_unsupported_image_provider():
    with pytest.raises(ValueError):
        create_image_provider(Settings(IMAGE_PROVIDER="midjourney"))


async def test_openai_provider_starts_without_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    image_provider = create_image_provider(Settings(IMAGE_PROVIDER="openai", OPENAI_API_KEY=None))

    assert isinstance(image_provider, OpenAIImageProvider)
    with pytest.raises(ImageGenerationError) as exc_info:
        await image_provider.generate("A red sneaker")
    await image_provider.aclose()

    assert exc_info.value.status_code == 500


async def test_openai_provider_returns_image_urls():
    requests = []

    async def generate(**kwargs):
        requests.append(kwargs)
        return SimpleNamespace(data=[SimpleNamespace(url="https://oai.example/1.png", b64_json=None)])

    client = SimpleNamespace(images=SimpleNamespace(generate=generate))
    image_provider = OpenAIImageProvider(Settings(OPENAI_IMAGE_MODEL="dall-e-3"), client=client)

    result = await image_provider.generate("A red sneaker")

    assert extract_image_url(result) == "https://oai.example/1.png"
    assert requests[0]["model"] == "dall-e-3"
    assert requests[0]["prompt"] == "A red sneaker"
