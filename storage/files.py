"""
storage/files.py -- Local-disk file storage for uploaded photos and setting files.

Stored files get a random uuid4 name (keeping a sanitized extension) under a
folder inside the storage root; the returned relative path is what gets
persisted on the owning record. Paths are resolved against the root and any
path that escapes it is rejected.

delete_file() raises on failure. Services that replace or remove a file treat
deletion as best-effort cleanup: they catch OSError, log it, and carry on.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path

from core.errors import ValidationError

logger = logging.getLogger("campaignhub.storage")

_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,10}$")
_FOLDER_RE = re.compile(r"^[a-z0-9_-]+(/[a-z0-9_-]+)*$")


@dataclass(frozen=True)
class UploadedFile:
    """File content received from a multipart request, already read into memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def validate_upload(upload: UploadedFile, max_bytes: int, allowed_types: list[str] | None = None) -> None:
    """Raise ValidationError if the upload is empty, too large, or of a disallowed type."""
    if upload.size == 0:
        raise ValidationError("files.empty")
    if upload.size > max_bytes:
        raise ValidationError("files.too_large", max_bytes=max_bytes)
    if allowed_types is not None and upload.content_type not in allowed_types:
        raise ValidationError("files.unsupported_type", content_type=upload.content_type)


class LocalFileStorage:
    """Stores files under a root directory on the local filesystem.

    Usage:
        storage = LocalFileStorage("/var/lib/campaignhub/uploads")
        path = storage.save(b"...", "avatar.png", folder="admins")
        storage.delete_file(path)
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, relative_path: str) -> Path:
        target = (self.root / relative_path).resolve()
        if not target.is_relative_to(self.root) or target == self.root:
            raise ValueError(f"Path escapes storage root: {relative_path!r}")
        return target

    def save(self, data: bytes, filename: str, folder: str) -> str:
        """Write data under folder and return the stored path relative to the root."""
        if not _FOLDER_RE.match(folder):
            raise ValueError(f"Invalid storage folder: {folder!r}")
        extension = Path(filename or "").suffix.lower()
        if not _EXTENSION_RE.match(extension):
            extension = ""
        relative = f"{folder}/{uuid.uuid4().hex}{extension}"
        target = self._resolve(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored file %s (%d bytes)", relative, len(data))
        return relative

    def delete_file(self, relative_path: str) -> None:
        """Remove a stored file. Raises FileNotFoundError / OSError on failure."""
        self._resolve(relative_path).unlink()
        logger.info("Deleted file %s", relative_path)

    def exists(self, relative_path: str) -> bool:
        try:
            return self._resolve(relative_path).is_file()
        except ValueError:
            return False
