"""
Job Record Store
Addressable collection of training job records keyed by job id.

Backends:
- InMemoryJobStore: single process, used in tests and local dev
- DatabaseJobStore: SQLAlchemy table, production default
- RedisJobStore: shared store for deployments with several API processes

All backends hand out copies. A record read from the store is detached; changes
only become visible to other callers after `set`.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from neongen.core.config import Settings
from neongen.core.redis import RedisManager
from neongen.models.style import StyleRecord
from neongen.schemas.training import TrainingJob

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "database", "redis")


class JobStore(ABC):
    """Interface shared by the submitter, the poller and the API routes."""

    backend: str = "abstract"

    @abstractmethod
    def get(self, job_id: str) -> Optional[TrainingJob]:
        """Point lookup; None when the id is unknown."""

    @abstractmethod
    def set(self, job: TrainingJob) -> None:
        """Insert or replace the record with `job.id`."""

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        """Remove a record. Returns False when it did not exist."""

    @abstractmethod
    def list(self) -> List[TrainingJob]:
        """All records, newest first."""

    def exists(self, job_id: str) -> bool:
        return self.get(job_id) is not None

    def health(self) -> str:
        return "ok"

    def close(self):
        pass


def _newest_first(jobs: List[TrainingJob]) -> List[TrainingJob]:
    return sorted(jobs, key=lambda job: job.created_at, reverse=True)


def _touch(job: TrainingJob) -> TrainingJob:
    stored = job.model_copy(deep=True)
    stored.updated_at = datetime.utcnow()
    return stored


class InMemoryJobStore(JobStore):
    """Dict-backed store. Safe for one process with one writer per job id."""

    backend = "memory"

    def __init__(self):
        self._jobs: Dict[str, TrainingJob] = {}

    def get(self, job_id: str) -> Optional[TrainingJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def set(self, job: TrainingJob) -> None:
        self._jobs[job.id] = _touch(job)

    def delete(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None

    def list(self) -> List[TrainingJob]:
        return _newest_first([job.model_copy(deep=True) for job in self._jobs.values()])

    def __len__(self) -> int:
        return len(self._jobs)


class DatabaseJobStore(JobStore):
    """Store backed by the `styles` table."""

    backend = "database"

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    def _to_job(row: StyleRecord) -> TrainingJob:
        return TrainingJob.model_validate(row)

    @staticmethod
    def _apply(row: StyleRecord, job: TrainingJob):
        row.style_name = job.style_name
        row.style_type = job.style_type.value
        row.trigger_word = job.trigger_word
        row.thumbnail = job.thumbnail
        row.image_count = job.image_count
        row.status = job.status.value
        row.progress = job.progress
        row.error_message = job.error_message
        row.remote_request_id = job.remote_request_id
        row.remote_log_cursor = job.remote_log_cursor
        row.logs = list(job.logs)
        row.artifact_url = job.artifact_url
        row.config_url = job.config_url
        row.created_at = job.created_at
        row.updated_at = datetime.utcnow()

    def get(self, job_id: str) -> Optional[TrainingJob]:
        db = self.session_factory()
        try:
            row = db.get(StyleRecord, job_id)
            return self._to_job(row) if row else None
        finally:
            db.close()

    def set(self, job: TrainingJob) -> None:
        db = self.session_factory()
        try:
            row = db.get(StyleRecord, job.id)
            if row is None:
                row = StyleRecord(id=job.id)
                db.add(row)
            self._apply(row, job)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, job_id: str) -> bool:
        db = self.session_factory()
        try:
            row = db.get(StyleRecord, job_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list(self) -> List[TrainingJob]:
        db = self.session_factory()
        try:
            rows = db.query(StyleRecord).order_by(StyleRecord.created_at.desc()).all()
            return [self._to_job(row) for row in rows]
        finally:
            db.close()

    def health(self) -> str:
        from sqlalchemy import text
        db = self.session_factory()
        try:
            db.execute(text("SELECT 1"))
            return "ok"
        finally:
            db.close()


class RedisJobStore(JobStore):
    """
    Store backed by Redis.

    Records are JSON strings under `{prefix}:style:{id}`; a sorted set scored
    by creation time keeps list order.
    """

    backend = "redis"

    def __init__(self, manager: RedisManager, prefix: str = "neongen"):
        self.manager = manager
        self.prefix = prefix

    @property
    def redis(self):
        return self.manager.get_connection()

    def _key(self, job_id: str) -> str:
        return f"{self.prefix}:style:{job_id}"

    @property
    def _index_key(self) -> str:
        return f"{self.prefix}:styles"

    def get(self, job_id: str) -> Optional[TrainingJob]:
        raw = self.redis.get(self._key(job_id))
        return TrainingJob.model_validate_json(raw) if raw else None

    def set(self, job: TrainingJob) -> None:
        stored = _touch(job)
        pipe = self.redis.pipeline()
        pipe.set(self._key(job.id), stored.model_dump_json())
        pipe.zadd(self._index_key, {job.id: stored.created_at.timestamp()})
        pipe.execute()

    def delete(self, job_id: str) -> bool:
        pipe = self.redis.pipeline()
        pipe.delete(self._key(job_id))
        pipe.zrem(self._index_key, job_id)
        deleted, _ = pipe.execute()
        return bool(deleted)

    def list(self) -> List[TrainingJob]:
        ids = self.redis.zrevrange(self._index_key, 0, -1)
        if not ids:
            return []
        raws = self.redis.mget([self._key(job_id) for job_id in ids])
        return [TrainingJob.model_validate_json(raw) for raw in raws if raw]

    def health(self) -> str:
        status = self.manager.health_check()
        return "ok" if status.get("connected") else f"error: {status.get('error', 'not connected')}"

    def close(self):
        self.manager.close()


def create_job_store(config: Settings) -> JobStore:
    """
    Build the store selected by JOB_STORE_BACKEND.

    Called once per process from the application lifespan.
    """
    backend = config.JOB_STORE_BACKEND
    if backend == "memory":
        logger.info("[JobStore] Using in-memory job store")
        return InMemoryJobStore()

    if backend == "database":
        from neongen.core.database import create_db_engine, create_session_factory, init_db
        engine = create_db_engine(config.DATABASE_URL)
        init_db(engine)
        logger.info("[JobStore] Using database job store")
        return DatabaseJobStore(create_session_factory(engine))

    if backend == "redis":
        manager = RedisManager(config.REDIS_URL)
        logger.info(f"[JobStore] Using Redis job store at {RedisManager.mask_url(config.REDIS_URL)}")
        return RedisJobStore(manager, prefix=config.REDIS_KEY_PREFIX)

    raise ValueError(f"Unknown JOB_STORE_BACKEND '{backend}', expected one of {STORE_BACKENDS}")


__all__ = [
    "JobStore",
    "InMemoryJobStore",
    "DatabaseJobStore",
    "RedisJobStore",
    "create_job_store",
]
