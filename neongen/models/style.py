"""
Style Model
Database model for LoRA style training jobs.

One row per submitted training request. The row id is the job id handed to
clients; the trained weights live on the provider's storage and are never
deleted from here.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, JSON

from neongen.core.database import Base


class StyleRecord(Base):
    """Training job record for a user-defined style."""

    __tablename__ = "styles"

    id = Column(String, primary_key=True)  # uuid4

    # Immutable request data
    style_name = Column(String, nullable=False)
    style_type = Column(String, nullable=False)  # person, art_style, character
    trigger_word = Column(String, nullable=False)
    thumbnail = Column(Text, nullable=True)  # data URI of the first image
    image_count = Column(Integer, default=0)

    # Lifecycle
    status = Column(String, default="pending", index=True)
    progress = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)

    # Remote queue
    remote_request_id = Column(String, nullable=True)
    remote_log_cursor = Column(Integer, default=0)  # remote log lines already merged
    logs = Column(JSON, default=list)

    # Result
    artifact_url = Column(String, nullable=True)  # LoRA weights
    config_url = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StyleRecord {self.id} {self.style_name!r} ({self.status})>"
