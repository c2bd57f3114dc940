# Pydantic schemas package
from neongen.schemas.common import ApiResponse
from neongen.schemas.training import (
    StyleType, TrainingStatus, TrainingJob, TrainingStatusSnapshot,
    StyleResponse, TrainingSubmitResponse, StyleDeleteResponse
)
from neongen.schemas.generate import (
    ImageSize, GenerateRequest, GenerateResponse, GeneratedImage, LoraWeight
)

__all__ = [
    "ApiResponse",
    # Training schemas
    "StyleType", "TrainingStatus", "TrainingJob", "TrainingStatusSnapshot",
    "StyleResponse", "TrainingSubmitResponse", "StyleDeleteResponse",
    # Generation schemas
    "ImageSize", "GenerateRequest", "GenerateResponse", "GeneratedImage", "LoraWeight",
]
