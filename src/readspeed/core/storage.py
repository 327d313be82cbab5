"""Local object storage for user uploads (book covers, avatars).

Objects live at <storage_dir>/<bucket>/<user_id>/<file_name> and are served
under /storage/<bucket>/<user_id>/<file_name>.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from pathlib import Path

import structlog

from readspeed.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

BOOK_COVERS_BUCKET = "book-covers"
AVATARS_BUCKET = "avatars"
BUCKETS = (BOOK_COVERS_BUCKET, AVATARS_BUCKET)

MAX_FILE_SIZE = 5 * 1024 * 1024
ALLOWED_TYPES = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
}


class StorageError(Exception):
    """Raised when an upload is rejected or cannot be stored."""


@dataclass
class StoredObject:
    """A stored file."""

    bucket: str
    path: str
    size: int
    content_type: str

    @property
    def public_url(self) -> str:
        return f"/storage/{self.bucket}/{self.path}"


def storage_root() -> Path:
    return Path(load_app_config().paths.storage_dir)


def validate_image(file_name: str, content_type: str, size: int) -> str:
    """Check type, extension and size of an image upload.

    Returns:
        The lower-cased extension

    Raises:
        StorageError: Describing the first problem found
    """
    if size > MAX_FILE_SIZE:
        raise StorageError("File size must be less than 5MB")
    if size == 0:
        raise StorageError("File is empty")
    if content_type not in ALLOWED_TYPES:
        raise StorageError("Only JPEG, PNG, GIF, and WebP images are allowed")
    extension = Path(file_name).suffix.lower()
    if extension not in ALLOWED_TYPES[content_type]:
        raise StorageError("File extension does not match file type")
    return extension


def unique_file_name(extension: str) -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{extension}"


def save_upload(
    bucket: str, user_id: str, file_name: str, content_type: str, data: bytes
) -> StoredObject:
    """Validate and write an image under the user's folder.

    Raises:
        StorageError: On validation failure or an unknown bucket
    """
    if bucket not in BUCKETS:
        raise StorageError(f"Unknown bucket '{bucket}'")
    extension = validate_image(file_name, content_type, len(data))

    relative = f"{user_id}/{unique_file_name(extension)}"
    target = storage_root() / bucket / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)

    logger.info("storage.uploaded", bucket=bucket, path=relative, size=len(data))
    return StoredObject(bucket=bucket, path=relative, size=len(data), content_type=content_type)


def remove_object(bucket: str, path: str) -> bool:
    target = storage_root() / bucket / path
    if not target.exists():
        return False
    target.unlink()
    logger.info("storage.removed", bucket=bucket, path=path)
    return True


def resolve_object(bucket: str, path: str) -> Path | None:
    """Filesystem path of a stored object, refusing paths outside the bucket."""
    if bucket not in BUCKETS:
        return None
    root = (storage_root() / bucket).resolve()
    target = (root / path).resolve()
    if root not in target.parents or not target.is_file():
        return None
    return target
