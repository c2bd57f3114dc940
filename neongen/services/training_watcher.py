"""
Training Watcher
Client-side polling loop: polls a job until it reaches a terminal state.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from neongen.core.config import Settings, settings as default_settings
from neongen.core.errors import TrainingTimeoutError
from neongen.schemas.training import TrainingStatusSnapshot
from neongen.services.training_poller import TrainingStatusPoller

logger = logging.getLogger(__name__)


async def watch_training(
    poller: TrainingStatusPoller,
    job_id: str,
    interval: Optional[float] = None,
    error_backoff: Optional[float] = None,
    max_wait: Optional[float] = None,
    on_update: Optional[Callable[[TrainingStatusSnapshot], None]] = None,
    config: Optional[Settings] = None,
) -> TrainingStatusSnapshot:
    """
    Poll `job_id` until it completes or fails.

    Args:
        poller: Status poller to query
        job_id: Training job to watch
        interval: Seconds between polls (POLL_INTERVAL_SECONDS)
        error_backoff: Seconds to wait after a transient error (POLL_ERROR_BACKOFF_SECONDS)
        max_wait: Give up after this many seconds (POLL_MAX_WAIT_SECONDS)
        on_update: Called with every snapshot

    Returns:
        The terminal snapshot

    Raises:
        TrainingTimeoutError: when max_wait elapses first. The remote job keeps running.
    """
    config = config or default_settings
    interval = config.POLL_INTERVAL_SECONDS if interval is None else interval
    error_backoff = config.POLL_ERROR_BACKOFF_SECONDS if error_backoff is None else error_backoff
    max_wait = config.POLL_MAX_WAIT_SECONDS if max_wait is None else max_wait

    deadline = time.monotonic() + max_wait
    while True:
        snapshot = await poller.poll(job_id)
        if on_update:
            on_update(snapshot)

        if snapshot.status.is_terminal:
            return snapshot

        delay = error_backoff if snapshot.error_message else interval
        if snapshot.error_message:
            logger.warning(f"[Watcher] {job_id}: {snapshot.error_message}; retrying in {delay:.0f}s")

        if time.monotonic() + delay > deadline:
            raise TrainingTimeoutError(
                f"Training {job_id} did not finish within {max_wait:.0f}s "
                f"(last status: {snapshot.status.value}, {snapshot.progress}%)"
            )
        await asyncio.sleep(delay)
