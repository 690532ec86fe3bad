"""
Local attachment storage.

Paths handed around the workflow are relative to the storage root, e.g.
"3f2c.../evidence.pdf".
"""

import mimetypes
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from indicator_workflow.config import get_settings
from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)

# Prefixes legacy admin forms put in front of stored paths
STORAGE_PREFIXES = (
    "storage/app/public/indicator_submissions/",
    "storage/app/indicator_submissions/",
    "indicator_submissions/",
    "public/indicator_submissions/",
)


def clean_storage_path(path: str) -> str:
    """Strip the first matching storage prefix (and leading slashes)."""
    path = path.strip().lstrip("/")
    for prefix in STORAGE_PREFIXES:
        if path.startswith(prefix):
            return path[len(prefix):]
    return path


@dataclass(frozen=True)
class StoredFile:
    path: str
    mime_type: Optional[str]
    size: int


class LocalAttachmentStorage:
    """Attachment files on the local filesystem under one root directory."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or get_settings().attachment_root)

    def _full_path(self, path: str) -> Path:
        full = (self.root / path).resolve()
        if not full.is_relative_to(self.root.resolve()):
            raise ValueError(f"Attachment path escapes storage root: {path}")
        return full

    def exists(self, path: str) -> bool:
        try:
            return self._full_path(path).is_file()
        except ValueError:
            return False

    def describe(self, path: str) -> StoredFile:
        full = self._full_path(path)
        mime_type, _ = mimetypes.guess_type(full.name)
        return StoredFile(path=path, mime_type=mime_type, size=full.stat().st_size)

    def store(self, filename: str, content: bytes, mime_type: Optional[str] = None) -> StoredFile:
        """Write a new upload into its own directory and describe it."""
        relative = f"{uuid.uuid4()}/{Path(filename).name}"
        full = self._full_path(relative)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(content)
        stored = self.describe(relative)
        logger.debug("Attachment stored", extra={"path": relative, "size": stored.size})
        if mime_type:
            return StoredFile(path=relative, mime_type=mime_type, size=stored.size)
        return stored

    def copy(self, path: str) -> StoredFile:
        """Copy an existing file to a fresh location; the original stays put."""
        source = self._full_path(path)
        relative = f"{uuid.uuid4()}/{source.name}"
        target = self._full_path(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        return self.describe(relative)

    def delete(self, path: str) -> None:
        """Remove a stored file and its upload directory when left empty."""
        full = self._full_path(path)
        full.unlink(missing_ok=True)
        parent = full.parent
        if parent != self.root.resolve() and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
        logger.debug("Attachment deleted", extra={"path": path})
