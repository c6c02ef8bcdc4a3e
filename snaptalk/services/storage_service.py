"""S3-compatible object storage helpers for post media."""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Literal

from boto3.exceptions import Boto3Error
from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from ..config import MissingSecretError, get_settings, is_placeholder, require_secret

logger = logging.getLogger(__name__)

MediaType = Literal["image", "video"]


@dataclass(frozen=True)
class StorageConfig:
    """Runtime configuration extracted from settings and secrets."""

    key: str
    secret: str
    region: str | None
    bucket: str
    endpoint: str | None
    public_base_url: str


@dataclass(frozen=True)
class StoredMedia:
    """Metadata returned after uploading a file."""

    url: str
    key: str
    media_type: MediaType
    content_type: str

    def as_record(self) -> dict[str, str]:
        return {"url": self.url, "key": self.key, "media_type": self.media_type}


class StorageConfigurationError(RuntimeError):
    """Raised when required object storage settings are missing or invalid."""


class MediaUploadError(RuntimeError):
    """Raised when an upload to object storage fails."""


class MediaDeletionError(RuntimeError):
    """Raised when deleting an object from storage fails."""


@lru_cache(maxsize=1)
def load_storage_config() -> StorageConfig:
    """Read and validate object storage configuration."""

    settings = get_settings()
    bucket = (settings.media_s3_bucket or "").strip()
    if is_placeholder(bucket):
        raise StorageConfigurationError("MEDIA_S3_BUCKET must be set to the target bucket name")

    try:
        key = require_secret("MEDIA_S3_KEY")
        secret = require_secret("MEDIA_S3_SECRET")
    except MissingSecretError as exc:
        raise StorageConfigurationError(str(exc)) from exc

    endpoint = (settings.media_s3_endpoint or "").strip().rstrip("/") or None
    region = (settings.media_s3_region or "").strip() or None

    public_base_url = (settings.media_public_base_url or "").strip().rstrip("/")
    if not public_base_url:
        if endpoint:
            public_base_url = f"{endpoint}/{bucket}"
        elif region:
            public_base_url = f"https://{bucket}.s3.{region}.amazonaws.com"
        else:
            raise StorageConfigurationError("MEDIA_PUBLIC_BASE_URL is required when no endpoint or region is set")

    return StorageConfig(
        key=key,
        secret=secret,
        region=region,
        bucket=bucket,
        endpoint=endpoint,
        public_base_url=public_base_url,
    )


@lru_cache(maxsize=1)
def get_storage_client() -> BaseClient:
    """Create a singleton boto3 client for storage interactions."""

    config = load_storage_config()
    session = Session()
    return session.client(
        "s3",
        region_name=config.region,
        endpoint_url=config.endpoint,
        aws_access_key_id=config.key,
        aws_secret_access_key=config.secret,
    )


def media_type_for(content_type: str | None) -> MediaType | None:
    """Classify an upload as image or video; anything else is rejected."""

    value = (content_type or "").lower()
    if value.startswith("image/"):
        return "image"
    if value.startswith("video/"):
        return "video"
    return None


def _sanitize_segments(parts: Iterable[str]) -> list[str]:
    sanitized: list[str] = []
    for part in parts:
        if part in {"", ".", ".."}:
            continue
        cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", part.strip())
        cleaned = re.sub(r"-+", "-", cleaned).strip("-._")
        if cleaned:
            sanitized.append(cleaned)
    return sanitized


def object_key(filename: str | None, folder: str) -> str:
    """Generate a unique object key inside ``folder`` keeping a safe extension."""

    extension = Path(filename or "").suffix.lower()
    if extension and not re.fullmatch(r"\.[A-Za-z0-9]{1,10}", extension):
        extension = ""

    safe_folder = "/".join(_sanitize_segments((folder or "uploads").replace("\\", "/").split("/"))) or "uploads"
    return f"{safe_folder}/{uuid.uuid4().hex}{extension}"


def build_public_url(key: str) -> str:
    config = load_storage_config()
    return f"{config.public_base_url}/{key.lstrip('/')}"


async def upload_media(file: UploadFile, *, folder: str, client: BaseClient | None = None) -> StoredMedia:
    """Upload an ``UploadFile`` and return its public metadata."""

    config = load_storage_config()
    s3_client = client or get_storage_client()
    content_type = (file.content_type or "application/octet-stream").strip()
    media_type = media_type_for(content_type)
    if media_type is None:
        raise MediaUploadError("Please upload only images or videos")

    key = object_key(file.filename, folder)
    file_obj = file.file

    def _upload() -> None:
        try:
            file_obj.seek(0)
            s3_client.upload_fileobj(
                file_obj,
                config.bucket,
                key,
                ExtraArgs={"ACL": "public-read", "ContentType": content_type},
            )
        except (ClientError, BotoCoreError, Boto3Error) as exc:
            logger.exception("Upload of %s to object storage failed", key)
            raise MediaUploadError("Error uploading media files") from exc
        except Exception as exc:
            logger.exception("Unexpected error uploading %s", key)
            raise MediaUploadError("Error uploading media files") from exc

    await run_in_threadpool(_upload)
    return StoredMedia(url=build_public_url(key), key=key, media_type=media_type, content_type=content_type)


def delete_media(key: str, *, client: BaseClient | None = None) -> None:
    """Remove an object from storage."""

    if not key:
        return

    config = load_storage_config()
    s3_client = client or get_storage_client()
    try:
        s3_client.delete_object(Bucket=config.bucket, Key=key.lstrip("/"))
    except (ClientError, BotoCoreError, Boto3Error) as exc:
        logger.exception("Failed to delete stored object %s", key)
        raise MediaDeletionError("Unable to delete media from storage") from exc


def release_media(keys: Iterable[str]) -> int:
    """Best-effort deletion of several objects; returns how many were removed."""

    removed = 0
    for key in keys:
        try:
            delete_media(key)
        except (MediaDeletionError, StorageConfigurationError):
            logger.warning("Leaving orphaned media object %s", key)
            continue
        removed += 1
    return removed


__all__ = [
    "StorageConfig",
    "StoredMedia",
    "StorageConfigurationError",
    "MediaUploadError",
    "MediaDeletionError",
    "load_storage_config",
    "get_storage_client",
    "media_type_for",
    "object_key",
    "build_public_url",
    "upload_media",
    "delete_media",
    "release_media",
]
