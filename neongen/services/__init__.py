# Services package - business logic and external integrations
from neongen.services.fal_client import FalClient
from neongen.services.storage import StorageService
from neongen.services.job_store import JobStore, InMemoryJobStore, DatabaseJobStore, RedisJobStore, create_job_store
from neongen.services.lora_trainer import LoraTrainingService
from neongen.services.training_poller import TrainingStatusPoller
from neongen.services.generation import LoraGenerationService

__all__ = [
    "FalClient",
    "StorageService",
    "JobStore",
    "InMemoryJobStore",
    "DatabaseJobStore",
    "RedisJobStore",
    "create_job_store",
    "LoraTrainingService",
    "TrainingStatusPoller",
    "LoraGenerationService",
]
