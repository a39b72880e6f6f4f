"""Media storage — report images in MinIO, only keys/URLs are kept in the database."""

import io
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError

from fieldops.core.config import settings
from fieldops.core.exceptions import StorageError

logger = logging.getLogger("fieldops.storage")


@dataclass
class MediaFile:
    """An uploaded file already read into memory."""

    filename: str
    content_type: str
    data: bytes


class MediaStorage:
    """Stores report media objects in a MinIO bucket."""

    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        self.client = client or Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        self.bucket = bucket or settings.MINIO_BUCKET

    def ensure_bucket(self) -> None:
        """Create the bucket if it doesn't exist."""
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)

    def object_url(self, key: str) -> str:
        scheme = "https" if settings.MINIO_SECURE else "http"
        return f"{scheme}://{settings.MINIO_ENDPOINT}/{self.bucket}/{key}"

    def upload(self, media: MediaFile, prefix: str) -> Tuple[str, str]:
        """Upload one file and return (object_key, url)."""
        ext = os.path.splitext(media.filename or "")[1].lower()
        key = f"{prefix}/{uuid.uuid4().hex}{ext}"
        try:
            self.ensure_bucket()
            self.client.put_object(
                self.bucket,
                key,
                io.BytesIO(media.data),
                length=len(media.data),
                content_type=media.content_type or "application/octet-stream",
            )
        except (S3Error, HTTPError) as e:
            raise StorageError(f"Failed to store {media.filename}: {e}") from e
        return key, self.object_url(key)

    def remove(self, key: str) -> None:
        try:
            self.client.remove_object(self.bucket, key)
        except (S3Error, HTTPError) as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e

    def remove_many(self, keys: Iterable[str]) -> None:
        """Best-effort cleanup after the database rows are already gone."""
        for key in keys:
            try:
                self.remove(key)
            except StorageError as e:
                logger.warning("Orphaned media object left behind: %s", e)


_media_storage: Optional[MediaStorage] = None


def get_media_storage() -> MediaStorage:
    global _media_storage
    if _media_storage is None:
        _media_storage = MediaStorage()
    return _media_storage


def set_media_storage(storage: Optional[MediaStorage]) -> None:
    """Swap the process-wide storage (tests, alternative backends)."""
    global _media_storage
    _media_storage = storage
