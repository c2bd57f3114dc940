"""
Training Status Poller
Reconciles stored training jobs with the fal.ai queue, one poll at a time.

Polling is caller driven; there is no background scheduler. Each poll:
1. Returns cached snapshots for unknown, terminal or not-yet-queued jobs
2. Reads the remote queue status with logs
3. Merges new log lines and maps the remote state to a local status
4. Resolves the artifact URLs once training completes

Remote states:
    IN_QUEUE     -> pending   (progress >= 5)
    IN_PROGRESS  -> training  (progress estimated from log volume, capped at 90)
    COMPLETED    -> completed (progress 100, artifact URL resolved)
    FAILED/ERROR -> failed    (progress 0)
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ValidationError as SchemaValidationError

from neongen.core.config import Settings, settings as default_settings
from neongen.core.errors import RemotePollError, translate_training_error
from neongen.schemas.training import TrainingJob, TrainingStatus, TrainingStatusSnapshot
from neongen.services.fal_client import FalClient
from neongen.services.job_store import JobStore

logger = logging.getLogger(__name__)

REMOTE_QUEUED = "IN_QUEUE"
REMOTE_COMPLETED = "COMPLETED"
REMOTE_FAILED_STATES = ("FAILED", "ERROR", "CANCELLED")

QUEUED_MIN_PROGRESS = 5
TRAINING_BASE_PROGRESS = 10
PROGRESS_PER_LOG_LINE = 2
TRAINING_MAX_PROGRESS = 90

COMPLETED_LOG_LINE = "Training complete! LoRA weights ready."
FAILED_LOG_LINE = "Training failed."
REMOTE_FAILURE_MESSAGE = "Training failed on the remote provider"
MISSING_JOB_MESSAGE = "Style record not found"


class RemoteFile(BaseModel):
    url: str


class TrainingOutput(BaseModel):
    """Result payload of a completed trainer job."""
    diffusers_lora_file: RemoteFile
    config_file: Optional[RemoteFile] = None


def estimate_training_progress(log_count: int) -> int:
    """Rough progress for a running job, driven by how much it has logged."""
    return min(TRAINING_BASE_PROGRESS + PROGRESS_PER_LOG_LINE * log_count, TRAINING_MAX_PROGRESS)


def merge_remote_logs(job: TrainingJob, remote_lines: List[str]) -> int:
    """
    Append only the remote log lines not merged yet.

    The queue returns the job's full log history on every status call, so
    `remote_log_cursor` counts the lines already copied. A shorter history
    than the cursor means the provider restarted its log; it is taken whole.

    Returns:
        Number of appended lines
    """
    cursor = job.remote_log_cursor
    if len(remote_lines) < cursor:
        cursor = 0
    new_lines = remote_lines[cursor:]
    job.logs.extend(new_lines)
    job.remote_log_cursor = cursor + len(new_lines)
    return len(new_lines)


class TrainingStatusPoller:
    """Status Poller for LoRA training jobs."""

    def __init__(self, store: JobStore, fal_client: FalClient, config: Optional[Settings] = None):
        self.store = store
        self.fal_client = fal_client
        self.config = config or default_settings

    async def poll(self, job_id: str) -> TrainingStatusSnapshot:
        """
        Poll a training job and return its status snapshot.

        Never raises for provider problems: the last stored snapshot is
        returned with `error_message` set, and the stored record is left as is.
        """
        job = self.store.get(job_id)
        if job is None:
            return TrainingStatusSnapshot(
                status=TrainingStatus.FAILED,
                progress=0,
                logs=[],
                error_message=MISSING_JOB_MESSAGE,
            )

        # Terminal states are cached forever
        if job.is_terminal:
            return job.to_snapshot()

        # Still uploading or failed before reaching the queue
        if not job.remote_request_id:
            return job.to_snapshot()

        try:
            updated = await self._reconcile(job.model_copy(deep=True))
        except Exception as e:
            error = translate_training_error(e, fallback=RemotePollError, context="Training status check failed")
            logger.warning(f"[Poller] {job_id}: remote status check failed: {error.message}")
            snapshot = job.to_snapshot()
            snapshot.error_message = error.message
            return snapshot

        # A concurrent poll may have finished the job while this one was waiting
        current = self.store.get(job_id)
        if current is not None and current.is_terminal:
            logger.debug(f"[Poller] {job_id}: already {current.status.value}, discarding stale update")
            return current.to_snapshot()

        self.store.set(updated)
        return updated.to_snapshot()

    async def _reconcile(self, job: TrainingJob) -> TrainingJob:
        """Apply the remote queue state to a working copy of the job."""
        model = self.config.TRAINING_MODEL
        remote = await self.fal_client.status(model, job.remote_request_id, logs=True)
        added = merge_remote_logs(job, remote.log_messages)
        remote_state = remote.status.upper()
        logger.debug(f"[Poller] {job.id}: remote={remote_state}, +{added} log lines")

        if remote_state == REMOTE_COMPLETED:
            output = self._parse_output(await self.fal_client.result(model, job.remote_request_id))
            job.status = TrainingStatus.COMPLETED
            job.progress = 100
            job.artifact_url = output.diffusers_lora_file.url
            job.config_url = output.config_file.url if output.config_file else None
            job.error_message = None
            job.logs.append(COMPLETED_LOG_LINE)
            logger.info(f"[Poller] {job.id}: training completed, weights at {job.artifact_url}")

        elif remote_state in REMOTE_FAILED_STATES:
            job.status = TrainingStatus.FAILED
            job.progress = 0
            job.error_message = REMOTE_FAILURE_MESSAGE
            job.logs.append(FAILED_LOG_LINE)
            logger.warning(f"[Poller] {job.id}: training failed remotely ({remote_state})")

        elif remote_state == REMOTE_QUEUED:
            job.status = TrainingStatus.PENDING
            job.progress = max(job.progress, QUEUED_MIN_PROGRESS)

        else:
            job.status = TrainingStatus.TRAINING
            job.progress = max(job.progress, estimate_training_progress(len(job.logs)))

        return job

    @staticmethod
    def _parse_output(payload: dict) -> TrainingOutput:
        try:
            output = TrainingOutput.model_validate(payload)
        except SchemaValidationError as e:
            raise RemotePollError(f"Unexpected training result payload: {e}") from e
        if not output.diffusers_lora_file.url:
            raise RemotePollError("Training result did not include a LoRA weights URL")
        return output


__all__ = [
    "TrainingStatusPoller",
    "estimate_training_progress",
    "merge_remote_logs",
]
