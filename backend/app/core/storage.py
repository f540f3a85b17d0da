"""Object storage supporting multiple backends.

Supports: local filesystem, S3, MinIO, and other S3-compatible storage.
Uploads never raise; failures are reported through ``StorageResult`` so the
caller decides how a failed put affects its own flow.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class StorageResult:
    """Result of a storage operation."""
    success: bool
    key: str
    file_size: int = 0
    etag: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class StorageConfig:
    """Storage configuration."""
    backend: str  # local, s3, minio
    bucket: str = ""
    region: str = ""
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: Optional[str] = None
    use_ssl: bool = True
    local_path: str = "./storage"


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def upload_bytes(
        self,
        content: bytes,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Store ``content`` under ``key``."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if an object exists in storage."""


class LocalStorage(StorageBackend):
    """Local filesystem storage backend.

    Content types are not persisted; the filesystem layout mirrors the keys.
    """

    def __init__(self, config: StorageConfig):
        self.base_path = Path(config.local_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        return self.base_path / key

    def upload_bytes(
        self,
        content: bytes,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        try:
            dest_path = self._get_full_path(key)
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            dest_path.write_bytes(content)

            return StorageResult(
                success=True,
                key=key,
                file_size=len(content),
            )
        except OSError as e:
            return StorageResult(
                success=False,
                key=key,
                error_message=str(e),
            )

    def exists(self, key: str) -> bool:
        return self._get_full_path(key).is_file()


class S3Storage(StorageBackend):
    """S3/MinIO compatible storage backend."""

    def __init__(self, config: StorageConfig):
        self.config = config
        self._client = None

    def _get_client(self):
        """Get or create S3 client."""
        if self._client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": self.config.region or "us-east-1",
                "aws_access_key_id": self.config.access_key or None,
                "aws_secret_access_key": self.config.secret_key or None,
            }

            # For MinIO or other S3-compatible storage
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
                client_kwargs["config"] = BotoConfig(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                )
                if not self.config.use_ssl:
                    client_kwargs["use_ssl"] = False

            self._client = boto3.client(**client_kwargs)

        return self._client

    def upload_bytes(
        self,
        content: bytes,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        try:
            response = self._get_client().put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
            etag = response.get("ETag", "").strip('"')

            return StorageResult(
                success=True,
                key=key,
                file_size=len(content),
                etag=etag,
            )
        except (BotoCoreError, ClientError) as e:
            return StorageResult(
                success=False,
                key=key,
                error_message=str(e),
            )

    def exists(self, key: str) -> bool:
        """Check if an object exists in S3/MinIO.

        Without ListBucket permission S3 answers a missing key with 403, so
        any failed HEAD counts as absent.
        """
        try:
            self._get_client().head_object(Bucket=self.config.bucket, Key=key)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code not in ("404", "NoSuchKey", "NotFound"):
                logger.warning(
                    "HEAD object failed, treating as missing",
                    extra={"key": key, "error": str(e)},
                )
            return False
        except BotoCoreError as e:
            logger.warning(
                "HEAD object failed, treating as missing",
                extra={"key": key, "error": str(e)},
            )
            return False


class Storage:
    """Universal storage interface.

    Automatically selects the appropriate backend based on configuration.
    """

    _instance: Optional["Storage"] = None

    def __init__(self, config: Optional[StorageConfig] = None):
        """Initialize storage with configuration.

        Args:
            config: Storage configuration (uses settings if not provided)
        """
        if config is None:
            config = StorageConfig(
                backend=settings.STORAGE_BACKEND,
                bucket=settings.STORAGE_BUCKET,
                region=settings.STORAGE_REGION,
                access_key=settings.STORAGE_ACCESS_KEY,
                secret_key=settings.STORAGE_SECRET_KEY,
                endpoint_url=settings.STORAGE_ENDPOINT_URL,
                use_ssl=settings.STORAGE_USE_SSL,
                local_path=settings.LOCAL_STORAGE_PATH,
            )

        self.config = config
        self._backend = self._create_backend(config)

    def _create_backend(self, config: StorageConfig) -> StorageBackend:
        backend_type = config.backend.lower()

        if backend_type == "local":
            return LocalStorage(config)
        elif backend_type in ("s3", "minio", "aws"):
            return S3Storage(config)
        else:
            raise ValueError(f"Unsupported storage backend: {backend_type}")

    @classmethod
    def get_instance(cls) -> "Storage":
        """Get singleton storage instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def upload_bytes(
        self,
        content: bytes,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Upload raw bytes to storage."""
        result = self._backend.upload_bytes(content, key, content_type)
        if not result.success:
            logger.warning(
                "Storage upload failed",
                extra={"key": key, "error": result.error_message},
            )
        return result

    def exists(self, key: str) -> bool:
        """Check if an object exists in storage."""
        return self._backend.exists(key)


def get_storage() -> Storage:
    """Get the default storage instance."""
    return Storage.get_instance()
