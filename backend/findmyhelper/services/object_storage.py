"""
FindMyHelper Backend — Image Upload & Object Storage
======================================================

What:  Validates uploaded images and stores them on local disk or in S3,
       returning the public URL the clients should use.
How:   ImageUploadService checks extension, content type and size, builds
       a unique object key, then hands the bytes to an ObjectStorage:
           LocalObjectStorage   aiofiles under STORAGE_ROOT, served by
                                GET /api/files/{path}
           S3ObjectStorage      boto3 put_object in a worker thread
Who:   routes/uploads.py (profile pictures and ID verification images).

Object keys:
    {folder}/{uuid4}_{safe_original_name}
    folder is "profile" or "id". The original name is reduced to
    [A-Za-z0-9._-] so it can never contain a path separator.
"""

import asyncio
import logging
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from findmyhelper.config import Settings, settings as default_settings
from findmyhelper.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

UPLOAD_FOLDERS = {"profile", "id"}


# ══════════════════════════════════════════════════════════════════════════
# Backends
# ══════════════════════════════════════════════════════════════════════════

class ObjectStorage(ABC):
    @abstractmethod
    async def put(self, key: str, content: bytes, content_type: str) -> str:
        """
        Store `content` under `key`.

        Returns:
            Public URL of the stored object.

        Raises:
            FileStorageError: the write failed.
        """


class LocalObjectStorage(ObjectStorage):
    """Writes objects below `root`; URLs point at the /api/files route."""

    def __init__(self, root: str, public_base_url: str = "/api/files"):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, key: str) -> Path:
        """
        Absolute path for `key`, refusing anything outside the storage root.

        Raises:
            ValidationError: the key escapes the root (../ or absolute path).
            NotFoundError: no such file.
        """
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root):
            raise ValidationError("Invalid file path", field="path")
        if not path.is_file():
            raise NotFoundError(resource="file", resource_id=key)
        return path

    async def put(self, key: str, content: bytes, content_type: str) -> str:
        path = self.root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            ) from e

        logger.info("File stored: %s (%d bytes)", key, len(content))
        return f"{self.public_base_url}/{key}"


class S3ObjectStorage(ObjectStorage):
    """
    Public-read objects in an S3 bucket.

    Credentials come from boto3's default chain (environment, shared
    config, instance role). `client` can be injected for tests.
    """

    def __init__(
        self,
        bucket: str,
        base_url: str,
        region: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self.client = client or boto3.client("s3", region_name=region)

    async def put(self, key: str, content: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload failed for %s: %s", key, str(e))
            raise FileStorageError(
                message="Failed to upload file",
                context={"bucket": self.bucket, "key": key, "error": str(e)},
            ) from e

        logger.info("Uploaded %s to s3://%s (%d bytes)", key, self.bucket, len(content))
        return f"{self.base_url}/{key}"


# ══════════════════════════════════════════════════════════════════════════
# Upload Service
# ══════════════════════════════════════════════════════════════════════════

class ImageUploadService:
    def __init__(self, backend: ObjectStorage, max_file_size: int):
        self.backend = backend
        self.max_file_size = max_file_size

    @staticmethod
    def safe_name(filename: str) -> str:
        name = Path(filename).name
        name = re.sub(r"[^A-Za-z0-9._-]", "_", name).lstrip(".")
        return name or "upload"

    def validate(self, filename: str, content_type: Optional[str], size: int) -> str:
        """
        Check an upload before storing it.

        Returns:
            Normalized (lowercase) extension.

        Raises:
            ValidationError: empty file, unsupported type, or too large.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or 'unknown'}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext},
            )
        if not (content_type or "").startswith("image/"):
            raise ValidationError(
                "Only image files are allowed",
                field="image",
                context={"content_type": content_type},
            )
        if size == 0:
            raise ValidationError("No file uploaded", field="image")
        if size > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(
                f"File size ({size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "actual_size": size},
            )
        return ext

    async def save(
        self,
        folder: str,
        filename: str,
        content: bytes,
        content_type: Optional[str],
    ) -> str:
        if folder not in UPLOAD_FOLDERS:
            raise ValueError(f"Unknown upload folder: {folder}")
        self.validate(filename, content_type, len(content))
        key = f"{folder}/{uuid.uuid4()}_{self.safe_name(filename)}"
        return await self.backend.put(key, content, content_type or "application/octet-stream")


def build_object_storage(config: Optional[Settings] = None) -> ObjectStorage:
    config = config or default_settings
    if config.object_storage_backend == "s3":
        return S3ObjectStorage(
            bucket=config.s3_bucket,
            base_url=config.s3_base_url,
            region=config.s3_region,
        )
    return LocalObjectStorage(config.storage_root)


def build_upload_service(config: Optional[Settings] = None) -> ImageUploadService:
    config = config or default_settings
    return ImageUploadService(build_object_storage(config), config.max_file_size)
