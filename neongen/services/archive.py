"""
Training Archive Builder
Packs uploaded training images into the ZIP archive expected by the trainer.
"""

import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import PurePath
from typing import Sequence

from neongen.core.errors import ArchiveError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"
COMPRESSION_LEVEL = 6


@dataclass(frozen=True)
class TrainingImage:
    """One uploaded training image held in memory."""
    data: bytes
    filename: str
    content_type: str = "image/jpeg"


def archive_entry_name(index: int, filename: str) -> str:
    """
    Name of the archive entry for the image at position `index`.

    Names depend only on position, so duplicate upload names never collide.
    """
    suffix = PurePath(filename or "").suffix.lstrip(".")
    return f"image_{index}.{suffix or DEFAULT_EXTENSION}"


def build_training_archive(images: Sequence[TrainingImage]) -> bytes:
    """
    Compress training images into a single ZIP buffer, in input order.

    Args:
        images: Ordered training images

    Returns:
        ZIP archive bytes

    Raises:
        ArchiveError: if any entry cannot be written or the archive cannot be finalized
    """
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(
            buffer,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=COMPRESSION_LEVEL,
        ) as archive:
            for index, image in enumerate(images):
                archive.writestr(archive_entry_name(index, image.filename), image.data)
    except (zipfile.BadZipFile, ValueError, TypeError, OSError) as e:
        logger.error(f"[Archive] Failed to build training archive: {e}")
        raise ArchiveError(f"Failed to package training images: {e}") from e

    data = buffer.getvalue()
    logger.info(f"[Archive] Packed {len(images)} images ({len(data) / 1024 / 1024:.1f} MB)")
    return data
