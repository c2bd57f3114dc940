"""
Storage Service
Uploads training archives where the remote trainer can fetch them.
Supports fal.ai storage, Google Cloud Storage and S3.
"""

import asyncio
import logging
import uuid
from datetime import timedelta
from typing import Optional

from neongen.core.config import Settings, settings as default_settings
from neongen.core.errors import UploadError, describe_training_error
from neongen.services.fal_client import FalClient

logger = logging.getLogger(__name__)

ARCHIVE_CONTENT_TYPE = "application/zip"
STORAGE_BACKENDS = ("fal", "gcs", "s3")


class StorageService:
    """Service for archive storage operations."""

    def __init__(
        self,
        fal_client: Optional[FalClient] = None,
        backend: Optional[str] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.backend = (backend or self.config.STORAGE_BACKEND).lower()
        self.fal_client = fal_client

        if self.backend not in STORAGE_BACKENDS:
            raise ValueError(f"Unknown STORAGE_BACKEND '{self.backend}', expected one of {STORAGE_BACKENDS}")

        if self.backend == "fal":
            if self.fal_client is None:
                self.fal_client = FalClient(config=self.config)
            logger.info("[Storage] Using fal.ai storage")

        elif self.backend == "gcs":
            # Google Cloud Storage
            from google.cloud import storage
            self.gcs_client = storage.Client(project=self.config.GCP_PROJECT_ID or None)
            self.bucket_archives = self.gcs_client.bucket(self.config.GCS_BUCKET_ARCHIVES)
            logger.info(f"[Storage] Using Google Cloud Storage: {self.config.GCS_BUCKET_ARCHIVES}")

        else:
            import boto3
            from botocore.config import Config
            self.s3 = boto3.client(
                "s3",
                endpoint_url=self.config.S3_ENDPOINT or None,
                aws_access_key_id=self.config.S3_ACCESS_KEY or None,
                aws_secret_access_key=self.config.S3_SECRET_KEY or None,
                region_name=self.config.S3_REGION,
                config=Config(signature_version="s3v4")
            )
            self.bucket = self.config.S3_BUCKET
            logger.info(f"[Storage] Using S3: {self.bucket}")

    async def upload_archive(
        self,
        data: bytes,
        filename: str,
        folder: Optional[str] = None,
        content_type: str = ARCHIVE_CONTENT_TYPE,
    ) -> str:
        """
        Upload an opaque archive and return a URL the trainer can download.

        Args:
            data: Archive bytes
            filename: Logical file name, kept as the object's base name
            folder: Optional grouping key (job id) for bucket backends

        Raises:
            UploadError: on network failure or provider rejection
        """
        try:
            if self.backend == "fal":
                url = await self.fal_client.upload(data, filename, content_type)
            elif self.backend == "gcs":
                url = await asyncio.to_thread(
                    self._upload_gcs, data, self._object_path(filename, folder), content_type
                )
            else:
                url = await asyncio.to_thread(
                    self._upload_s3, data, self._object_path(filename, folder), content_type
                )
        except UploadError:
            raise
        except Exception as e:
            logger.error(f"[Storage] Upload of {filename} failed: {e}")
            message = describe_training_error(e) or f"Archive upload failed: {e}"
            raise UploadError(message) from e

        logger.info(f"[Storage] Uploaded {filename} ({len(data)} bytes) via {self.backend}")
        return url

    @staticmethod
    def _object_path(filename: str, folder: Optional[str]) -> str:
        return f"training/{folder or uuid.uuid4().hex}/{filename}"

    def _upload_gcs(self, data: bytes, path: str, content_type: str) -> str:
        """Upload to Google Cloud Storage and sign a download URL."""
        blob = self.bucket_archives.blob(path)
        blob.upload_from_string(data, content_type=content_type)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=self.config.ARCHIVE_URL_TTL_SECONDS),
            method="GET",
        )

    def _upload_s3(self, data: bytes, path: str, content_type: str) -> str:
        """Upload to S3 and presign a download URL."""
        self.s3.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type
        )
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=self.config.ARCHIVE_URL_TTL_SECONDS,
        )

    def health(self) -> str:
        """Cheap configuration check used by /health."""
        if self.backend == "fal":
            return "ok" if self.fal_client.configured else "error: FAL_KEY not configured"
        if self.backend == "gcs":
            return "ok" if self.bucket_archives.exists() else "error: bucket not found"
        self.s3.head_bucket(Bucket=self.bucket)
        return "ok"
