"""
LoRA Training Submission Service
Submits style training jobs to fal.ai (fal-ai/flux-2-trainer).

Pipeline:
┌──────────────┐    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐
│  Job record  │ ─▶ │  ZIP archive │ ─▶ │  Upload to   │ ─▶ │  Queue job   │
│  (uploading) │    │  (10%)       │    │  storage 25% │    │  (training)  │
└──────────────┘    └──────────────┘    └──────────────┘    └──────────────┘

Returns as soon as the provider accepts the job; training continues remotely
and is observed through the status poller.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from neongen.core.config import Settings, settings as default_settings
from neongen.core.errors import ValidationError, translate_training_error
from neongen.schemas.training import StyleType, TrainingJob, TrainingStatus
from neongen.services.archive import TrainingImage, build_training_archive
from neongen.services.fal_client import FalClient
from neongen.services.job_store import JobStore
from neongen.services.storage import StorageService

logger = logging.getLogger(__name__)

ARCHIVE_FILENAME = "training_images.zip"

# Progress checkpoints reported while submitting
PROGRESS_ARCHIVED = 10
PROGRESS_UPLOADED = 25
PROGRESS_SUBMITTED = 30


def build_default_caption(style_type, trigger_word: str) -> str:
    """
    Caption template sent to the trainer for every image.

    The trigger word is embedded so the model ties it to the trained subject.
    """
    value = style_type.value if isinstance(style_type, StyleType) else style_type
    if value == StyleType.PERSON.value:
        return f"a photo of {trigger_word} person"
    if value == StyleType.CHARACTER.value:
        return f"a photo of {trigger_word} character"
    if value == StyleType.ART_STYLE.value:
        return f"in the style of {trigger_word}"
    return f"a photo of {trigger_word}"


class LoraTrainingService:
    """
    Job Submitter.

    Creates the job record, packages and uploads the images, and queues the
    remote training run. Progress and logs are persisted after every step.
    """

    def __init__(
        self,
        store: JobStore,
        fal_client: FalClient,
        storage: StorageService,
        config: Optional[Settings] = None,
    ):
        self.store = store
        self.fal_client = fal_client
        self.storage = storage
        self.config = config or default_settings

    def training_payload(self, archive_url: str, style_type: StyleType) -> Dict[str, Any]:
        """Input for the trainer; hyperparameters are fixed per deployment."""
        return {
            "image_data_url": archive_url,
            "steps": self.config.TRAINING_STEPS,
            "learning_rate": self.config.TRAINING_LEARNING_RATE,
            "default_caption": build_default_caption(style_type, self.config.TRIGGER_WORD),
            "output_lora_format": self.config.TRAINING_OUTPUT_FORMAT,
        }

    def _save(self, job: TrainingJob, progress: int, message: str):
        job.progress = max(job.progress, progress)
        job.logs.append(message)
        self.store.set(job)

    async def submit_training_job(
        self,
        job_id: str,
        style_name: str,
        style_type: StyleType,
        images: Sequence[TrainingImage],
        thumbnail: Optional[str] = None,
    ) -> TrainingJob:
        """
        Submit a new LoRA training job.

        Args:
            job_id: Caller-generated unique id
            style_name: Display label (already validated and trimmed)
            style_type: Selects the caption template
            images: Training images, already validated for count, type and size
            thumbnail: Optional preview of the first image

        Returns:
            The stored TrainingJob in `training` state with its remote request id

        Raises:
            ValidationError: if the job id is already in use
            StudioError: translated failure; the job record is left in `failed` state
        """
        if self.store.exists(job_id):
            raise ValidationError(f"Job id '{job_id}' already exists")

        style_type = StyleType(style_type)
        job = TrainingJob(
            id=job_id,
            style_name=style_name,
            style_type=style_type,
            trigger_word=self.config.TRIGGER_WORD,
            status=TrainingStatus.UPLOADING,
            progress=0,
            image_count=len(images),
            thumbnail=thumbnail,
        )
        self.store.set(job)
        tag = f"[Training {job_id}]"

        try:
            # Step 1: Compress images to ZIP
            logger.info(f"{tag} Step 1: Compressing {len(images)} images...")
            archive = build_training_archive(images)
            self._save(job, PROGRESS_ARCHIVED, "Packaging images into archive...")

            # Step 2: Upload ZIP to storage
            logger.info(f"{tag} Step 2: Uploading archive ({len(archive) / 1024 / 1024:.1f} MB)...")
            archive_url = await self.storage.upload_archive(archive, ARCHIVE_FILENAME, folder=job_id)
            self._save(job, PROGRESS_UPLOADED, "Uploading archive to training servers...")

            # Step 3: Submit training job to the queue
            payload = self.training_payload(archive_url, style_type)
            logger.info(
                f"{tag} Step 3: Submitting to {self.config.TRAINING_MODEL} "
                f"(caption: \"{payload['default_caption']}\")"
            )
            request_id = await self.fal_client.submit(self.config.TRAINING_MODEL, payload)

            job.status = TrainingStatus.TRAINING
            job.remote_request_id = request_id
            job.logs.append("Submitting training job...")
            self._save(job, PROGRESS_SUBMITTED, "Training job accepted - waiting for resources...")
            logger.info(f"{tag} Submitted, remote request_id: {request_id}")
            return job

        except Exception as e:
            error = translate_training_error(e)
            logger.error(f"{tag} FAILED: {error.message}")
            job.status = TrainingStatus.FAILED
            job.error_message = error.message
            job.progress = 0
            job.logs.append(f"Training submission failed: {error.message}")
            self.store.set(job)
            if error is e:
                raise
            raise error from e


__all__ = [
    "LoraTrainingService",
    "build_default_caption",
]
