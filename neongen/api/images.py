"""
Images API Routes
Handles LoRA-powered image generation via fal.ai FLUX.1-dev.
"""

import logging

from fastapi import APIRouter, Depends

from neongen.api.deps import get_generation_service
from neongen.schemas.common import ApiResponse
from neongen.schemas.generate import GenerateRequest, GenerateResponse
from neongen.services.generation import LoraGenerationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/generate",
    response_model=ApiResponse[GenerateResponse],
    response_model_exclude_none=True,
)
async def generate_images(
    request: GenerateRequest,
    generator: LoraGenerationService = Depends(get_generation_service),
):
    """
    Generate images with optional trained styles.

    Request Body:
    {
        "prompt": "a lighthouse at dusk",
        "primaryStyleId": "<job id>",
        "referenceStyleId": "<job id>",
        "imageSize": "square_hd",
        "negativePrompt": "text, watermark",
        "numImages": 2
    }
    """
    result = await generator.generate(request)
    logger.info(f"[Images API] Generated {len(result.images)} image(s), seed={result.seed}")
    return ApiResponse[GenerateResponse](data=result)
