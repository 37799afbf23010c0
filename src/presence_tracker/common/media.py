"""Attachment storage for check-in photos.

Storage is an external concern: the ledger only needs ``validate`` (input
errors, raised before anything is written) and ``save``/``delete`` (which may
fail with MediaStorageError and are treated as best effort by callers).
"""

from __future__ import annotations

import logging
import os
import secrets
from typing import Optional, Protocol

from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..core.constants import DEFAULT_MAX_PHOTO_BYTES
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_PHOTO_EXTS = {".jpg", ".jpeg", ".png"}
ALLOWED_PHOTO_FORMATS = {"JPEG", "PNG"}


class MediaStorageError(Exception):
    """Raised when an attachment cannot be written to or removed from storage."""


class MediaStorage(Protocol):
    def validate(self, upload: FileStorage) -> None:
        raise NotImplementedError

    def save(self, upload: FileStorage, *, subdir: str = "") -> str:
        """Store the upload and return its path relative to the storage root."""

        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError


def _size_of(upload: FileStorage) -> int:
    stream = upload.stream
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


class LocalMediaStorage(MediaStorage):
    def __init__(self, root: str, *, max_bytes: int = DEFAULT_MAX_PHOTO_BYTES):
        self._root = root
        self._max_bytes = int(max_bytes)

    def validate(self, upload: FileStorage) -> None:
        filename = secure_filename(upload.filename or "")
        _, ext = os.path.splitext(filename.lower())
        if ext not in ALLOWED_PHOTO_EXTS:
            raise ValidationError("Validation failed", {"photo": ["The photo must be a file of type: jpeg, png."]})

        if _size_of(upload) > self._max_bytes:
            limit_kb = self._max_bytes // 1024
            raise ValidationError("Validation failed", {"photo": [f"May not be greater than {limit_kb} kilobytes."]})

        try:
            with Image.open(upload.stream) as img:
                fmt = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise ValidationError("Validation failed", {"photo": ["The photo must be an image."]}) from exc
        finally:
            upload.stream.seek(0)

        if fmt not in ALLOWED_PHOTO_FORMATS:
            raise ValidationError("Validation failed", {"photo": ["The photo must be a file of type: jpeg, png."]})

    def save(self, upload: FileStorage, *, subdir: str = "") -> str:
        _, ext = os.path.splitext(secure_filename(upload.filename or "").lower())
        stored = f"{secrets.token_hex(8)}{ext}"
        relative = os.path.join(subdir, stored) if subdir else stored
        folder = os.path.join(self._root, subdir) if subdir else self._root
        try:
            os.makedirs(folder, exist_ok=True)
            upload.save(os.path.join(folder, stored))
        except OSError as exc:
            raise MediaStorageError(f"Could not store {relative}") from exc
        return relative

    def delete(self, path: str) -> None:
        full = os.path.join(self._root, path)
        try:
            os.remove(full)
        except FileNotFoundError:
            logger.info("Attachment already gone: %s", path)
        except OSError as exc:
            raise MediaStorageError(f"Could not delete {path}") from exc


def photo_path(data: Optional[dict]) -> Optional[str]:
    return (data or {}).get("photo_path")
