"""
Training Schemas
Pydantic models for LoRA style training records, status snapshots and API responses.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

# Number of log lines handed to pollers
SNAPSHOT_LOG_LINES = 5


class StyleType(str, Enum):
    """What the trained style represents. Selects the training caption."""
    PERSON = "person"
    ART_STYLE = "art_style"
    CHARACTER = "character"


class TrainingStatus(str, Enum):
    """Training job lifecycle. COMPLETED and FAILED are absorbing."""
    PENDING = "pending"
    UPLOADING = "uploading"
    TRAINING = "training"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TrainingStatus.COMPLETED, TrainingStatus.FAILED)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class TrainingStatusSnapshot(CamelModel):
    """What a status poll returns."""
    status: TrainingStatus
    progress: int = 0
    logs: List[str] = []
    artifact_url: Optional[str] = None
    lora_url: Optional[str] = None  # same as artifact_url, read by older clients
    trigger_word: Optional[str] = None
    error_message: Optional[str] = None


class TrainingJob(CamelModel):
    """
    Authoritative record of one training request.

    Created by the submitter, afterwards mutated only by the status poller.
    """
    id: str
    style_name: str
    style_type: StyleType
    trigger_word: str
    status: TrainingStatus = TrainingStatus.PENDING
    progress: int = Field(0, ge=0, le=100)
    remote_request_id: Optional[str] = None
    artifact_url: Optional[str] = None
    config_url: Optional[str] = None
    thumbnail: Optional[str] = None
    image_count: int = 0
    logs: List[str] = Field(default_factory=list)
    remote_log_cursor: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def recent_logs(self, count: int = SNAPSHOT_LOG_LINES) -> List[str]:
        return list(self.logs[-count:]) if count > 0 else []

    def to_snapshot(self) -> TrainingStatusSnapshot:
        """
        Build the poll snapshot for the stored state.

        Terminal snapshots are a pure function of the record, so repeated
        polls of a finished job return identical payloads.
        """
        if self.status == TrainingStatus.COMPLETED:
            return TrainingStatusSnapshot(
                status=self.status,
                progress=self.progress,
                logs=self.recent_logs(),
                artifact_url=self.artifact_url,
                lora_url=self.artifact_url,
                trigger_word=self.trigger_word,
            )
        if self.status == TrainingStatus.FAILED:
            return TrainingStatusSnapshot(
                status=self.status,
                progress=self.progress,
                logs=self.recent_logs(),
                error_message=self.error_message,
            )
        return TrainingStatusSnapshot(
            status=self.status,
            progress=self.progress,
            logs=self.recent_logs(),
        )


# --- Response Schemas ---

class StyleResponse(CamelModel):
    """Stored style as shown in lists and lookups."""
    id: str
    style_name: str
    style_type: StyleType
    trigger_word: str
    status: TrainingStatus
    progress: int
    remote_request_id: Optional[str] = None
    artifact_url: Optional[str] = None
    config_url: Optional[str] = None
    thumbnail: Optional[str] = None
    image_count: int
    logs: List[str] = []
    created_at: datetime
    error_message: Optional[str] = None


class TrainingSubmitResponse(CamelModel):
    """Returned once the training request has been accepted by the remote queue."""
    job_id: str
    trigger_word: str
    status: TrainingStatus
    poll_interval_seconds: float
    poll_error_backoff_seconds: float


class StyleDeleteResponse(CamelModel):
    deleted: bool = True


# Export all
__all__ = [
    "SNAPSHOT_LOG_LINES",
    "StyleType",
    "TrainingStatus",
    "CamelModel",
    "TrainingStatusSnapshot",
    "TrainingJob",
    "StyleResponse",
    "TrainingSubmitResponse",
    "StyleDeleteResponse",
]
