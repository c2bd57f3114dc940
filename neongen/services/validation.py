"""
Training Upload Validation
Checks a training submission before any job record is created.
"""

import base64
from typing import Optional, Sequence

from neongen.core.config import Settings, settings as default_settings
from neongen.core.errors import ValidationError
from neongen.schemas.training import StyleType
from neongen.services.archive import TrainingImage

VALID_STYLE_TYPES = [style_type.value for style_type in StyleType]


def validate_style_name(style_name: Optional[str]) -> str:
    """Return the trimmed style name or raise ValidationError."""
    if not isinstance(style_name, str) or not style_name.strip():
        raise ValidationError("styleName is required")
    return style_name.strip()


def validate_style_type(style_type) -> StyleType:
    try:
        return StyleType(style_type)
    except ValueError:
        raise ValidationError(f"styleType must be one of: {', '.join(VALID_STYLE_TYPES)}")


def _too_many_images(count: int, config: Settings) -> ValidationError:
    return ValidationError(f"Maximum {config.MAX_TRAINING_IMAGES} images allowed. Received: {count}")


def _too_large(filename: str, config: Settings) -> ValidationError:
    return ValidationError(f"File {filename} exceeds the {config.MAX_IMAGE_SIZE_MB}MB limit")


def validate_upload_limits(uploads: Sequence, config: Optional[Settings] = None):
    """
    Count and declared size checks on multipart parts, before any part is read.

    Parts without a known size are checked again after reading.
    """
    config = config or default_settings
    if len(uploads) > config.MAX_TRAINING_IMAGES:
        raise _too_many_images(len(uploads), config)
    for upload in uploads:
        size = getattr(upload, "size", None)
        if size is not None and size > config.max_image_bytes:
            raise _too_large(upload.filename, config)


def validate_training_images(images: Sequence[TrainingImage], config: Optional[Settings] = None):
    """
    Enforce image count, type and size limits.

    Raises:
        ValidationError: on the first violated limit
    """
    config = config or default_settings
    count = len(images)

    if count < config.MIN_TRAINING_IMAGES:
        raise ValidationError(
            f"At least {config.MIN_TRAINING_IMAGES} images are required. Received: {count}"
        )
    if count > config.MAX_TRAINING_IMAGES:
        raise _too_many_images(count, config)

    for image in images:
        if image.content_type not in config.ALLOWED_IMAGE_TYPES:
            raise ValidationError(
                f"Invalid file type: {image.content_type} ({image.filename}). "
                f"Only JPEG, PNG, and WEBP are allowed."
            )
        if len(image.data) > config.max_image_bytes:
            raise _too_large(image.filename, config)
        if not image.data:
            raise ValidationError(f"File {image.filename} is empty")


def build_thumbnail(image: TrainingImage) -> str:
    """Data URI preview of a training image."""
    encoded = base64.b64encode(image.data).decode("ascii")
    return f"data:{image.content_type};base64,{encoded}"
