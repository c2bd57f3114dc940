"""
LoRA Image Generation Service
Generates images with FLUX.1-dev (fal-ai/flux-lora) and optional trained style weights.

Workflow:
1. Resolve the primary / reference style ids to completed LoRA weights
2. Weight them: single style 0.9, blended styles 0.75 + 0.6
3. Prefix the prompt with the trigger word when any style is applied
4. Call the provider synchronously and normalize its image list
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError as SchemaValidationError, field_validator

from neongen.core.config import Settings, settings as default_settings
from neongen.core.errors import (
    GenerationError,
    NotFoundError,
    NotReadyError,
    ValidationError,
    translate_generation_error,
)
from neongen.schemas.generate import GenerateRequest, GenerateResponse, GeneratedImage, LoraWeight
from neongen.schemas.training import TrainingStatus
from neongen.services.fal_client import FalClient
from neongen.services.job_store import JobStore

logger = logging.getLogger(__name__)

SINGLE_STYLE_SCALE = 0.9
PRIMARY_BLEND_SCALE = 0.75
REFERENCE_BLEND_SCALE = 0.6


class ProviderImage(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    content_type: Optional[str] = None


class GenerationOutput(BaseModel):
    images: List[ProviderImage] = []
    seed: Optional[int] = None

    @field_validator("images", mode="before")
    @classmethod
    def null_images(cls, v):
        return [] if v is None else v


class LoraGenerationService:
    """Generation Resolver."""

    def __init__(self, store: JobStore, fal_client: FalClient, config: Optional[Settings] = None):
        self.store = store
        self.fal_client = fal_client
        self.config = config or default_settings

    def resolve_style(self, style_id: str, role: str) -> str:
        """
        Return the weights URL of a completed style.

        Raises:
            NotFoundError: unknown style id
            NotReadyError: training not completed yet
        """
        job = self.store.get(style_id)
        if job is None:
            raise NotFoundError(f"{role} style '{style_id}' not found")
        if job.status != TrainingStatus.COMPLETED or not job.artifact_url:
            raise NotReadyError(f"{role} style '{style_id}' training is not completed")
        return job.artifact_url

    def resolve_loras(self, request: GenerateRequest) -> List[LoraWeight]:
        loras: List[LoraWeight] = []
        if request.primary_style_id:
            path = self.resolve_style(request.primary_style_id, "Primary")
            scale = PRIMARY_BLEND_SCALE if request.reference_style_id else SINGLE_STYLE_SCALE
            loras.append(LoraWeight(path=path, scale=scale))

        if request.reference_style_id:
            path = self.resolve_style(request.reference_style_id, "Reference")
            loras.append(LoraWeight(path=path, scale=REFERENCE_BLEND_SCALE))
        return loras

    def compose_prompt(self, prompt: str, negative_prompt: Optional[str], uses_styles: bool) -> str:
        """Final prompt text; the provider has no negative prompt field."""
        composed = f"{self.config.TRIGGER_WORD}, {prompt}" if uses_styles else prompt
        if negative_prompt:
            composed = f"{composed}. Avoid: {negative_prompt.strip()}"
        return composed

    def build_payload(self, request: GenerateRequest, prompt: str, loras: List[LoraWeight]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model_name": self.config.GENERATION_BASE_MODEL,
            "prompt": prompt,
            "image_size": request.image_size.value,
            "num_images": request.num_images,
            "num_inference_steps": self.config.GENERATION_INFERENCE_STEPS,
            "guidance_scale": self.config.GENERATION_GUIDANCE_SCALE,
            "enable_safety_checker": self.config.GENERATION_SAFETY_CHECKER,
        }
        if loras:
            payload["loras"] = [lora.model_dump() for lora in loras]
        return payload

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        """
        Generate images for a request.

        Style lookups happen before any provider call, so an unknown or
        unfinished style never costs a generation.
        """
        prompt = request.prompt.strip() if request.prompt else ""
        if not prompt:
            raise ValidationError("prompt is required")

        loras = self.resolve_loras(request)
        resolved_prompt = self.compose_prompt(prompt, request.negative_prompt, uses_styles=bool(loras))
        payload = self.build_payload(request, resolved_prompt, loras)

        logger.info(
            f"[Generation] {self.config.GENERATION_MODEL}: {request.num_images} image(s), "
            f"{request.image_size.value}, {len(loras)} LoRA(s)"
        )
        try:
            raw = await self.fal_client.run(self.config.GENERATION_MODEL, payload)
            output = GenerationOutput.model_validate(raw)
        except SchemaValidationError as e:
            raise GenerationError(f"fal.ai generation error: unexpected response shape ({e})") from e
        except Exception as e:
            error = translate_generation_error(e)
            logger.error(f"[Generation] Failed: {error.message}")
            if error is e:
                raise
            raise error from e

        images = [
            GeneratedImage(
                url=image.url,
                width=image.width or 1024,
                height=image.height or 1024,
                content_type=image.content_type or "image/png",
            )
            for image in output.images
        ]
        return GenerateResponse(images=images, resolved_prompt=resolved_prompt, seed=output.seed or 0)
