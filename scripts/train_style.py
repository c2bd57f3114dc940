#!/usr/bin/env python3
"""
Style Training CLI
Submits a folder of images as a LoRA style and watches it until training ends.

Usage:
    python scripts/train_style.py ./photos --name "Ada" --type person
    python scripts/train_style.py ./paintings --name "Ink" --type art_style --interval 10
    python scripts/train_style.py --watch <job_id>      # needs a database or redis job store
"""

import argparse
import asyncio
import logging
import mimetypes
import sys
import uuid
from pathlib import Path
from typing import List

from neongen.core.config import settings
from neongen.core.errors import StudioError
from neongen.schemas.training import StyleType, TrainingStatus, TrainingStatusSnapshot
from neongen.services.archive import TrainingImage
from neongen.services.fal_client import FalClient
from neongen.services.job_store import create_job_store
from neongen.services.lora_trainer import LoraTrainingService
from neongen.services.storage import StorageService
from neongen.services.training_poller import TrainingStatusPoller
from neongen.services.training_watcher import watch_training
from neongen.services.validation import (
    build_thumbnail,
    validate_style_name,
    validate_style_type,
    validate_training_images,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger("neongen.cli")

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp"}


def load_images(directory: Path) -> List[TrainingImage]:
    """Training images in a directory, sorted by file name."""
    images = []
    for path in sorted(directory.iterdir()):
        if path.suffix.lower() not in IMAGE_SUFFIXES or not path.is_file():
            continue
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        images.append(TrainingImage(data=path.read_bytes(), filename=path.name, content_type=content_type))
    return images


def print_snapshot(snapshot: TrainingStatusSnapshot):
    line = f"[{snapshot.status.value:>9}] {snapshot.progress:3d}%"
    if snapshot.logs:
        line += f" | {snapshot.logs[-1]}"
    if snapshot.error_message:
        line += f" | error: {snapshot.error_message}"
    print(line, flush=True)


async def run(args) -> int:
    store = create_job_store(settings)
    fal_client = FalClient(config=settings)
    storage = StorageService(fal_client=fal_client, config=settings)
    poller = TrainingStatusPoller(store, fal_client, config=settings)

    try:
        job_id = args.watch
        if not job_id:
            style_name = validate_style_name(args.name)
            style_type = validate_style_type(args.type)
            images = load_images(Path(args.directory))
            validate_training_images(images, settings)

            trainer = LoraTrainingService(store, fal_client, storage, config=settings)
            job = await trainer.submit_training_job(
                job_id=str(uuid.uuid4()),
                style_name=style_name,
                style_type=style_type,
                images=images,
                thumbnail=build_thumbnail(images[0]),
            )
            job_id = job.id
            print(f"Submitted job {job_id} (trigger word: {job.trigger_word})", flush=True)

        final = await watch_training(
            poller,
            job_id,
            interval=args.interval,
            error_backoff=args.error_backoff,
            max_wait=args.max_wait,
            on_update=print_snapshot,
            config=settings,
        )
    except StudioError as e:
        logger.error(e.message)
        return 1
    finally:
        await fal_client.aclose()
        store.close()

    if final.status == TrainingStatus.COMPLETED:
        print(f"LoRA weights: {final.artifact_url}")
        print(f"Use the trigger word '{final.trigger_word}' in prompts.")
        return 0
    print(f"Training failed: {final.error_message}")
    return 1


def main():
    parser = argparse.ArgumentParser(description="Train a LoRA style on fal.ai")
    parser.add_argument("directory", nargs="?", help="Folder of JPEG/PNG/WEBP training images")
    parser.add_argument("--name", help="Style display name")
    parser.add_argument(
        "--type",
        default=StyleType.PERSON.value,
        choices=[style_type.value for style_type in StyleType],
        help="What the images show",
    )
    parser.add_argument("--watch", metavar="JOB_ID", help="Only watch an existing job")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between polls")
    parser.add_argument("--error-backoff", type=float, default=None, help="Seconds to wait after a poll error")
    parser.add_argument("--max-wait", type=float, default=None, help="Give up after this many seconds")

    args = parser.parse_args()
    if not args.watch and not args.directory:
        parser.error("directory is required unless --watch is given")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
