"""
fal.ai REST Client
Async wrapper over the fal.ai queue, synchronous run and storage endpoints.

Docs:
- Queue: https://docs.fal.ai/model-endpoints/queue
- Trainer: https://fal.ai/models/fal-ai/flux-2-trainer
- Generation: https://fal.ai/models/fal-ai/flux-lora
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError as SchemaValidationError, field_validator

from neongen.core.config import Settings, settings as default_settings
from neongen.core.errors import FalAPIError, RemotePollError, RemoteSubmissionError, UploadError

logger = logging.getLogger(__name__)


# --- Provider payload shapes ---

class QueueSubmitResult(BaseModel):
    request_id: str


class QueueLogEntry(BaseModel):
    message: str
    level: Optional[str] = None
    timestamp: Optional[str] = None


class QueueStatus(BaseModel):
    """Queue status. `status` is IN_QUEUE, IN_PROGRESS or COMPLETED."""
    status: str
    logs: List[QueueLogEntry] = []
    queue_position: Optional[int] = None

    @field_validator("logs", mode="before")
    @classmethod
    def null_logs(cls, v):
        return [] if v is None else v

    @property
    def log_messages(self) -> List[str]:
        return [entry.message for entry in self.logs]


class StorageUploadTarget(BaseModel):
    upload_url: str
    file_url: str


class FalClient:
    """
    Service for fal.ai HTTP calls.

    One instance per process; holds a pooled httpx client. Every non-2xx
    response is raised as FalAPIError so callers can translate status codes.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or default_settings
        self.api_key = api_key if api_key is not None else self.config.FAL_KEY
        self.queue_url = self.config.FAL_QUEUE_URL.rstrip("/")
        self.run_url = self.config.FAL_RUN_URL.rstrip("/")
        self.storage_url = self.config.FAL_STORAGE_URL.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        if not self.api_key:
            logger.warning("[FalClient] FAL_KEY is not configured; provider calls will be rejected")

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.FAL_HTTP_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Key {self.api_key}"}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        response = await self.client.request(method, url, headers=headers, **kwargs)
        if response.is_error:
            raise FalAPIError(response.status_code, self._error_detail(response))
        return response

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Best-effort readable message from an error response."""
        try:
            body = response.json()
        except ValueError:
            return response.text[:500] or response.reason_phrase
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("error") or body.get("message")
            if detail:
                return str(detail)
        return str(body)[:500]

    @staticmethod
    def _json(response: httpx.Response, error_cls) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise error_cls(f"fal.ai returned a non-JSON response: {e}") from e

    # --- Queue ---

    async def submit(self, model: str, payload: Dict[str, Any]) -> str:
        """
        Submit a job to the fal.ai queue.

        Returns:
            Provider request id used for status and result calls
        """
        response = await self._request("POST", f"{self.queue_url}/{model}", json=payload)
        body = self._json(response, RemoteSubmissionError)
        try:
            return QueueSubmitResult.model_validate(body).request_id
        except SchemaValidationError as e:
            raise RemoteSubmissionError(f"Unexpected queue submit response: {e}") from e

    async def status(self, model: str, request_id: str, logs: bool = True) -> QueueStatus:
        """Get queue status, optionally with the job's log lines."""
        response = await self._request(
            "GET",
            f"{self.queue_url}/{model}/requests/{request_id}/status",
            params={"logs": 1 if logs else 0},
        )
        body = self._json(response, RemotePollError)
        try:
            return QueueStatus.model_validate(body)
        except SchemaValidationError as e:
            raise RemotePollError(f"Unexpected queue status response: {e}") from e

    async def result(self, model: str, request_id: str) -> Dict[str, Any]:
        """Fetch the output of a completed queue job."""
        response = await self._request("GET", f"{self.queue_url}/{model}/requests/{request_id}")
        body = self._json(response, RemotePollError)
        if not isinstance(body, dict):
            raise RemotePollError("Unexpected queue result response: expected an object")
        return body

    # --- Synchronous run ---

    async def run(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Call a model endpoint and wait for its output."""
        response = await self._request("POST", f"{self.run_url}/{model}", json=payload)
        try:
            body = response.json()
        except ValueError as e:
            raise FalAPIError(response.status_code, f"non-JSON response: {e}") from e
        if not isinstance(body, dict):
            raise FalAPIError(response.status_code, "expected a JSON object")
        return body

    # --- Storage ---

    async def upload(self, data: bytes, filename: str, content_type: str) -> str:
        """
        Upload bytes to fal.ai storage.

        Returns:
            Public file URL readable by fal.ai models
        """
        response = await self._request(
            "POST",
            f"{self.storage_url}/storage/upload/initiate",
            params={"storage_type": "fal-cdn-v3"},
            json={"content_type": content_type, "file_name": filename},
        )
        body = self._json(response, UploadError)
        try:
            target = StorageUploadTarget.model_validate(body)
        except SchemaValidationError as e:
            raise UploadError(f"Unexpected storage initiate response: {e}") from e

        put = await self.client.put(
            target.upload_url,
            content=data,
            headers={"Content-Type": content_type},
        )
        if put.is_error:
            raise FalAPIError(put.status_code, self._error_detail(put))
        return target.file_url

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


__all__ = [
    "FalClient",
    "QueueStatus",
    "QueueLogEntry",
    "QueueSubmitResult",
]
