"""
Shared fixtures.

fal.ai is replaced by FakeFal, an httpx.MockTransport handler that answers
the storage, queue and run endpoints the way the provider does.
"""

import json
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import httpx
import pytest

from neongen.core.config import Settings
from neongen.schemas.training import StyleType, TrainingJob, TrainingStatus
from neongen.services.archive import TrainingImage
from neongen.services.fal_client import FalClient
from neongen.services.job_store import InMemoryJobStore
from neongen.services.storage import StorageService

UPLOAD_HOST = "upload.fal.test"
ARCHIVE_URL = "https://cdn.fal.test/files/training_images.zip"
WEIGHTS_URL = "https://cdn.fal.test/files/pytorch_lora_weights.safetensors"
CONFIG_URL = "https://cdn.fal.test/files/config.json"


class FakeFal:
    """Scriptable stand-in for the fal.ai REST API."""

    def __init__(self):
        self.calls: List[str] = []
        self.uploads: Dict[str, bytes] = {}
        self.submitted: List[dict] = []
        self.generation_requests: List[dict] = []
        self.request_id = "req-123"
        self.status_payloads: List[dict] = [{"status": "IN_QUEUE", "logs": []}]
        self.result_payload: dict = {
            "diffusers_lora_file": {"url": WEIGHTS_URL, "file_name": "pytorch_lora_weights.safetensors"},
            "config_file": {"url": CONFIG_URL},
        }
        self.generation_payload: dict = {
            "images": [{"url": "https://cdn.fal.test/out/0.png", "width": 1024, "height": 768, "content_type": "image/jpeg"}],
            "seed": 42,
        }
        self.errors: Dict[str, httpx.Response] = {}
        self.exceptions: Dict[str, Exception] = {}
        self.one_shot: Dict[str, Exception] = {}

    def fail(self, call: str, status_code: int, detail: str = "provider error"):
        self.errors[call] = httpx.Response(status_code, json={"detail": detail})

    def raise_on(self, call: str, exc: Exception):
        self.exceptions[call] = exc

    def raise_once(self, call: str, exc: Exception):
        self.one_shot[call] = exc

    def remote_calls(self, kind: Optional[str] = None) -> List[str]:
        return [c for c in self.calls if kind is None or c == kind]

    def _classify(self, request: httpx.Request) -> str:
        host = request.url.host
        path = request.url.path
        if host == "rest.alpha.fal.ai":
            return "initiate"
        if host == UPLOAD_HOST:
            return "put"
        if host == "fal.run":
            return "run"
        if request.method == "POST":
            return "submit"
        if path.endswith("/status"):
            return "status"
        return "result"

    def handler(self, request: httpx.Request) -> httpx.Response:
        call = self._classify(request)
        self.calls.append(call)

        if call in self.one_shot:
            raise self.one_shot.pop(call)
        if call in self.exceptions:
            raise self.exceptions[call]
        if call in self.errors:
            return self.errors[call]

        if call == "initiate":
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "upload_url": f"https://{UPLOAD_HOST}/put/{body['file_name']}",
                "file_url": ARCHIVE_URL,
            })
        if call == "put":
            self.uploads[ARCHIVE_URL] = request.content
            return httpx.Response(200)
        if call == "submit":
            self.submitted.append(json.loads(request.content))
            return httpx.Response(200, json={"request_id": self.request_id, "status": "IN_QUEUE"})
        if call == "status":
            payload = self.status_payloads[0]
            if len(self.status_payloads) > 1:
                self.status_payloads.pop(0)
            return httpx.Response(200, json=payload)
        if call == "result":
            return httpx.Response(200, json=self.result_payload)
        self.generation_requests.append(json.loads(request.content))
        return httpx.Response(200, json=self.generation_payload)


@pytest.fixture
def config() -> Settings:
    return Settings(
        FAL_KEY="test-key",
        JOB_STORE_BACKEND="memory",
        STORAGE_BACKEND="fal",
        FAL_QUEUE_URL="https://queue.fal.run",
        FAL_RUN_URL="https://fal.run",
        FAL_STORAGE_URL="https://rest.alpha.fal.ai",
        TRIGGER_WORD="ohwx",
        MIN_TRAINING_IMAGES=20,
        MAX_TRAINING_IMAGES=100,
        POLL_INTERVAL_SECONDS=5.0,
        POLL_ERROR_BACKOFF_SECONDS=15.0,
    )


@pytest.fixture
def fake_fal() -> FakeFal:
    return FakeFal()


@pytest.fixture
def fal_client(fake_fal, config) -> FalClient:
    return FalClient(config=config, transport=httpx.MockTransport(fake_fal.handler))


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def storage(fal_client, config) -> StorageService:
    return StorageService(fal_client=fal_client, backend="fal", config=config)


def make_images(count: int, content_type: str = "image/png", suffix: str = "png") -> List[TrainingImage]:
    return [
        TrainingImage(
            data=b"\x89PNG\r\n\x1a\n" + f"image-{index}".encode(),
            filename=f"photo_{index}.{suffix}",
            content_type=content_type,
        )
        for index in range(count)
    ]


@pytest.fixture
def images() -> List[TrainingImage]:
    return make_images(25)


def make_job(
    job_id: str = "job-1",
    status: TrainingStatus = TrainingStatus.TRAINING,
    progress: int = 30,
    remote_request_id: Optional[str] = "req-123",
    logs: Optional[List[str]] = None,
    created_at: Optional[datetime] = None,
    **fields,
) -> TrainingJob:
    return TrainingJob(
        id=job_id,
        style_name=fields.pop("style_name", "Neon Ink"),
        style_type=fields.pop("style_type", StyleType.ART_STYLE),
        trigger_word=fields.pop("trigger_word", "ohwx"),
        status=status,
        progress=progress,
        remote_request_id=remote_request_id,
        image_count=fields.pop("image_count", 25),
        logs=list(logs or []),
        created_at=created_at or datetime(2026, 1, 1, 12, 0, 0),
        **fields,
    )


def completed_job(job_id: str, artifact_url: str = WEIGHTS_URL, created_at: Optional[datetime] = None) -> TrainingJob:
    return make_job(
        job_id,
        status=TrainingStatus.COMPLETED,
        progress=100,
        artifact_url=artifact_url,
        config_url=CONFIG_URL,
        logs=["Training complete! LoRA weights ready."],
        created_at=created_at or datetime(2026, 1, 1) + timedelta(minutes=1),
    )
