import pytest

from neongen.core.errors import (
    GenerationError,
    NotFoundError,
    NotReadyError,
    ProviderInsufficientCredits,
    ProviderRateLimited,
    ValidationError,
)
from neongen.schemas.generate import GenerateRequest, ImageSize
from neongen.schemas.training import TrainingStatus
from neongen.services.generation import LoraGenerationService

from conftest import completed_job, make_job

PRIMARY_URL = "https://cdn.fal.test/files/primary.safetensors"
REFERENCE_URL = "https://cdn.fal.test/files/reference.safetensors"


@pytest.fixture
def generator(store, fal_client, config):
    store.set(completed_job("primary", artifact_url=PRIMARY_URL))
    store.set(completed_job("reference", artifact_url=REFERENCE_URL))
    store.set(make_job("training", status=TrainingStatus.TRAINING))
    return LoraGenerationService(store, fal_client, config=config)


async def test_plain_prompt_without_styles(generator, fake_fal):
    result = await generator.generate(GenerateRequest(prompt="a lighthouse at dusk"))

    sent = fake_fal.generation_requests[0]
    assert sent["prompt"] == "a lighthouse at dusk"
    assert "loras" not in sent
    assert sent["model_name"] == "fal-ai/flux/dev"
    assert sent["image_size"] == "square_hd"
    assert sent["num_images"] == 1
    assert sent["num_inference_steps"] == 28
    assert sent["guidance_scale"] == 3.5
    assert sent["enable_safety_checker"] is True
    assert result.resolved_prompt == "a lighthouse at dusk"
    assert result.seed == 42


async def test_single_style_weight(generator, fake_fal):
    result = await generator.generate(GenerateRequest(prompt="a cat", primary_style_id="primary"))

    sent = fake_fal.generation_requests[0]
    assert sent["loras"] == [{"path": PRIMARY_URL, "scale": 0.9}]
    assert sent["prompt"] == "ohwx, a cat"
    assert result.resolved_prompt == sent["prompt"]


async def test_blended_style_weights(generator, fake_fal):
    await generator.generate(GenerateRequest(
        prompt="a cat",
        primary_style_id="primary",
        reference_style_id="reference",
    ))

    assert fake_fal.generation_requests[0]["loras"] == [
        {"path": PRIMARY_URL, "scale": 0.75},
        {"path": REFERENCE_URL, "scale": 0.6},
    ]


async def test_reference_style_alone_uses_blend_weight(generator, fake_fal):
    await generator.generate(GenerateRequest(prompt="a cat", reference_style_id="reference"))

    assert fake_fal.generation_requests[0]["loras"] == [{"path": REFERENCE_URL, "scale": 0.6}]


async def test_negative_prompt_is_folded_into_prompt(generator, fake_fal):
    result = await generator.generate(GenerateRequest(
        prompt="a cat",
        primary_style_id="primary",
        negative_prompt="blurry, text",
    ))

    assert result.resolved_prompt == "ohwx, a cat. Avoid: blurry, text"
    assert fake_fal.generation_requests[0]["prompt"] == result.resolved_prompt


async def test_unfinished_style_is_not_ready(generator, fake_fal):
    with pytest.raises(NotReadyError) as exc_info:
        await generator.generate(GenerateRequest(prompt="a cat", primary_style_id="training"))

    assert exc_info.value.status_code == 409
    assert fake_fal.calls == []


async def test_unknown_style_is_not_found(generator, fake_fal):
    with pytest.raises(NotFoundError, match="Reference style 'ghost' not found"):
        await generator.generate(GenerateRequest(
            prompt="a cat",
            primary_style_id="primary",
            reference_style_id="ghost",
        ))

    assert fake_fal.calls == []


async def test_empty_prompt_is_rejected(generator, fake_fal):
    with pytest.raises(ValidationError):
        await generator.generate(GenerateRequest(prompt="   "))
    assert fake_fal.calls == []


async def test_request_options_are_forwarded(generator, fake_fal):
    await generator.generate(GenerateRequest(
        prompt="a cat",
        image_size=ImageSize.LANDSCAPE_16_9,
        num_images=9,
    ))

    sent = fake_fal.generation_requests[0]
    assert sent["image_size"] == "landscape_16_9"
    assert sent["num_images"] == 4


async def test_image_defaults_fill_missing_fields(generator, fake_fal):
    fake_fal.generation_payload = {"images": [{"url": "https://cdn.fal.test/out/1.png"}]}

    result = await generator.generate(GenerateRequest(prompt="a cat"))

    image = result.images[0]
    assert (image.width, image.height, image.content_type) == (1024, 1024, "image/png")
    assert result.seed == 0


async def test_provider_images_are_passed_through(generator):
    result = await generator.generate(GenerateRequest(prompt="a cat"))

    image = result.images[0]
    assert image.url == "https://cdn.fal.test/out/0.png"
    assert (image.width, image.height, image.content_type) == (1024, 768, "image/jpeg")


@pytest.mark.parametrize("status_code, error_cls, message", [
    (402, ProviderInsufficientCredits, "Insufficient fal.ai credits."),
    (429, ProviderRateLimited, "Rate limit exceeded. Retry in 60 seconds."),
    (500, GenerationError, "fal.ai generation error: model crashed"),
])
async def test_provider_errors_are_translated(generator, fake_fal, status_code, error_cls, message):
    fake_fal.fail("run", status_code, "model crashed")

    with pytest.raises(error_cls) as exc_info:
        await generator.generate(GenerateRequest(prompt="a cat"))

    assert exc_info.value.message == message


async def test_unexpected_output_shape(generator, fake_fal):
    fake_fal.generation_payload = {"images": [{"width": 10}]}

    with pytest.raises(GenerationError, match="unexpected response shape"):
        await generator.generate(GenerateRequest(prompt="a cat"))


def test_num_images_is_clamped():
    assert GenerateRequest(prompt="x", num_images=0).num_images == 1
    assert GenerateRequest(prompt="x", num_images=None).num_images == 1
    assert GenerateRequest(prompt="x", numImages=3).num_images == 3
