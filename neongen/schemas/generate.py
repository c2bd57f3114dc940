"""
Generate Schemas
Pydantic models for generation API requests and responses.
"""

from enum import Enum
from typing import Optional, List
from pydantic import Field, field_validator

from neongen.schemas.training import CamelModel

MIN_IMAGES_PER_REQUEST = 1
MAX_IMAGES_PER_REQUEST = 4


class ImageSize(str, Enum):
    """fal.ai image size presets."""
    SQUARE_HD = "square_hd"
    SQUARE = "square"
    PORTRAIT_4_3 = "portrait_4_3"
    PORTRAIT_16_9 = "portrait_16_9"
    LANDSCAPE_4_3 = "landscape_4_3"
    LANDSCAPE_16_9 = "landscape_16_9"


class GenerateRequest(CamelModel):
    """Schema for generation request."""
    prompt: str
    primary_style_id: Optional[str] = None
    reference_style_id: Optional[str] = None  # secondary style for blending
    image_size: ImageSize = ImageSize.SQUARE_HD
    negative_prompt: Optional[str] = None
    num_images: int = 1

    @field_validator("prompt", mode="before")
    @classmethod
    def strip_prompt(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("primary_style_id", "reference_style_id", "negative_prompt", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("num_images", mode="before")
    @classmethod
    def clamp_num_images(cls, v):
        """Out of range counts are clamped, not rejected."""
        if v is None:
            return MIN_IMAGES_PER_REQUEST
        try:
            count = int(v)
        except (TypeError, ValueError):
            return MIN_IMAGES_PER_REQUEST
        return max(MIN_IMAGES_PER_REQUEST, min(MAX_IMAGES_PER_REQUEST, count))


class LoraWeight(CamelModel):
    """A trained artifact applied during generation."""
    path: str
    scale: float


class GeneratedImage(CamelModel):
    url: str
    width: int = 1024
    height: int = 1024
    content_type: str = "image/png"


class GenerateResponse(CamelModel):
    """Schema for generation response."""
    images: List[GeneratedImage] = Field(default_factory=list)
    resolved_prompt: str
    seed: int = 0
