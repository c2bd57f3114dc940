"""
Styles API Routes
Handles LoRA training job submission, status polling, listing, and deletion.
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from neongen.api.deps import get_config, get_job_store, get_status_poller, get_training_service
from neongen.core.config import Settings
from neongen.core.errors import NotFoundError
from neongen.schemas.common import ApiResponse
from neongen.schemas.training import (
    StyleDeleteResponse,
    StyleResponse,
    TrainingStatusSnapshot,
    TrainingSubmitResponse,
)
from neongen.services.archive import TrainingImage
from neongen.services.job_store import JobStore
from neongen.services.lora_trainer import LoraTrainingService
from neongen.services.training_poller import TrainingStatusPoller
from neongen.services.validation import (
    build_thumbnail,
    validate_style_name,
    validate_style_type,
    validate_training_images,
    validate_upload_limits,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_uploads(files: List[UploadFile], limit: int) -> List[TrainingImage]:
    """Read each part, at most one byte past `limit` so oversized parts still fail validation."""
    images = []
    for upload in files:
        images.append(
            TrainingImage(
                data=await upload.read(limit + 1),
                filename=upload.filename or "",
                content_type=upload.content_type or "",
            )
        )
    return images


@router.post(
    "/train",
    response_model=ApiResponse[TrainingSubmitResponse],
    status_code=status.HTTP_202_ACCEPTED,
    response_model_exclude_none=True,
)
async def train_style(
    styleName: Optional[str] = Form(None),
    styleType: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    trainer: LoraTrainingService = Depends(get_training_service),
    config: Settings = Depends(get_config),
):
    """
    Start a new LoRA training job.

    Accepts multipart/form-data with `images` (20-100 files), `styleName` and
    `styleType` (person, art_style, character). Responds once the provider has
    accepted the job; training continues remotely.
    """
    style_name = validate_style_name(styleName)
    style_type = validate_style_type(styleType)
    uploads = images or []
    validate_upload_limits(uploads, config)
    training_images = await _read_uploads(uploads, config.max_image_bytes)
    validate_training_images(training_images, config)

    job_id = str(uuid.uuid4())
    logger.info(f"[Styles API] Train request {job_id}: \"{style_name}\" ({style_type.value}), {len(training_images)} images")

    job = await trainer.submit_training_job(
        job_id=job_id,
        style_name=style_name,
        style_type=style_type,
        images=training_images,
        thumbnail=build_thumbnail(training_images[0]),
    )

    return ApiResponse[TrainingSubmitResponse](
        data=TrainingSubmitResponse(
            job_id=job.id,
            trigger_word=job.trigger_word,
            status=job.status,
            poll_interval_seconds=config.POLL_INTERVAL_SECONDS,
            poll_error_backoff_seconds=config.POLL_ERROR_BACKOFF_SECONDS,
        )
    )


@router.get(
    "/train/{job_id}/status",
    response_model=ApiResponse[TrainingStatusSnapshot],
    response_model_exclude_none=True,
)
async def get_training_status(
    job_id: str,
    poller: TrainingStatusPoller = Depends(get_status_poller),
):
    """Poll the training status: status, progress, recent logs, LoRA URL on completion."""
    snapshot = await poller.poll(job_id)
    return ApiResponse[TrainingStatusSnapshot](data=snapshot)


@router.get("", response_model=ApiResponse[List[StyleResponse]], response_model_exclude_none=True)
async def list_styles(store: JobStore = Depends(get_job_store)):
    """List all styles, newest first."""
    styles = [StyleResponse.model_validate(job) for job in store.list()]
    return ApiResponse[List[StyleResponse]](data=styles)


@router.get("/{style_id}", response_model=ApiResponse[StyleResponse], response_model_exclude_none=True)
async def get_style(style_id: str, store: JobStore = Depends(get_job_store)):
    """Get one stored style without contacting the provider."""
    job = store.get(style_id)
    if job is None:
        raise NotFoundError("Style not found")
    return ApiResponse[StyleResponse](data=StyleResponse.model_validate(job))


@router.delete(
    "/{style_id}",
    response_model=ApiResponse[StyleDeleteResponse],
    response_model_exclude_none=True,
)
async def delete_style(style_id: str, store: JobStore = Depends(get_job_store)):
    """
    Delete a style record.

    The trained LoRA weights stay on the provider's storage; deleting the
    record only removes it from this service.
    """
    if not store.delete(style_id):
        raise NotFoundError("Style not found")
    logger.info(f"[Styles API] Deleted style {style_id} (remote LoRA weights are not removed)")
    return ApiResponse[StyleDeleteResponse](data=StyleDeleteResponse(deleted=True))
