"""
API Dependencies
Common dependencies for FastAPI routes.

The store, provider client and storage are built once in the application
lifespan and kept on `app.state`; routes receive them through these functions.
"""

from fastapi import Depends, Request

from neongen.core.config import Settings
from neongen.services.fal_client import FalClient
from neongen.services.generation import LoraGenerationService
from neongen.services.job_store import JobStore
from neongen.services.lora_trainer import LoraTrainingService
from neongen.services.storage import StorageService
from neongen.services.training_poller import TrainingStatusPoller


def get_config(request: Request) -> Settings:
    return request.app.state.config


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


def get_fal_client(request: Request) -> FalClient:
    return request.app.state.fal_client


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def get_training_service(
    store: JobStore = Depends(get_job_store),
    fal_client: FalClient = Depends(get_fal_client),
    storage: StorageService = Depends(get_storage),
    config: Settings = Depends(get_config),
) -> LoraTrainingService:
    return LoraTrainingService(store, fal_client, storage, config=config)


def get_status_poller(
    store: JobStore = Depends(get_job_store),
    fal_client: FalClient = Depends(get_fal_client),
    config: Settings = Depends(get_config),
) -> TrainingStatusPoller:
    return TrainingStatusPoller(store, fal_client, config=config)


def get_generation_service(
    store: JobStore = Depends(get_job_store),
    fal_client: FalClient = Depends(get_fal_client),
    config: Settings = Depends(get_config),
) -> LoraGenerationService:
    return LoraGenerationService(store, fal_client, config=config)
