"""
Application Configuration
Loads settings from environment variables.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "NeonGen Studio API"
    LOG_LEVEL: str = "INFO"

    # fal.ai provider
    FAL_KEY: str = ""
    FAL_QUEUE_URL: str = "https://queue.fal.run"
    FAL_RUN_URL: str = "https://fal.run"
    FAL_STORAGE_URL: str = "https://rest.alpha.fal.ai"
    FAL_HTTP_TIMEOUT: float = 120.0  # Seconds, applied to every provider call

    # LoRA training (fal-ai/flux-2-trainer)
    TRAINING_MODEL: str = "fal-ai/flux-2-trainer"
    TRAINING_STEPS: int = 1000
    TRAINING_LEARNING_RATE: float = 0.00005
    TRAINING_OUTPUT_FORMAT: str = "fal"
    # Same token for every trained style; combining two LoRAs can bleed concepts
    TRIGGER_WORD: str = "ohwx"

    # Image generation (fal-ai/flux-lora)
    GENERATION_MODEL: str = "fal-ai/flux-lora"
    GENERATION_BASE_MODEL: str = "fal-ai/flux/dev"
    GENERATION_INFERENCE_STEPS: int = 28
    GENERATION_GUIDANCE_SCALE: float = 3.5
    GENERATION_SAFETY_CHECKER: bool = True

    # Upload limits for training images
    MIN_TRAINING_IMAGES: int = 20
    MAX_TRAINING_IMAGES: int = 100
    MAX_IMAGE_SIZE_MB: int = 10
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp"]

    # Job record store: memory (single process), database, redis
    JOB_STORE_BACKEND: str = "memory"

    # Database - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./neongen.db"

    # Redis
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_KEY_PREFIX: str = "neongen"

    # Archive storage: fal (fal.ai storage), gcs, s3
    STORAGE_BACKEND: str = "fal"

    # Google Cloud Storage
    GCS_BUCKET_ARCHIVES: str = "neongen-training-archives"
    GCP_PROJECT_ID: str = ""

    # Storage - S3 settings
    S3_BUCKET: str = ""
    S3_ENDPOINT: str = ""
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: str = ""
    S3_REGION: str = "us-east-1"

    # Lifetime of signed archive URLs handed to the trainer
    ARCHIVE_URL_TTL_SECONDS: int = 6 * 3600

    # Client polling cadence
    POLL_INTERVAL_SECONDS: float = 5.0
    POLL_ERROR_BACKOFF_SECONDS: float = 15.0
    POLL_MAX_WAIT_SECONDS: float = 3 * 3600

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator('FAL_KEY', 'S3_ACCESS_KEY', 'S3_SECRET_KEY', mode='before')
    @classmethod
    def strip_api_keys(cls, v):
        """Strip whitespace and newlines from API keys loaded from secrets."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator('JOB_STORE_BACKEND', 'STORAGE_BACKEND', mode='before')
    @classmethod
    def normalize_backend(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def max_image_bytes(self) -> int:
        return self.MAX_IMAGE_SIZE_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
