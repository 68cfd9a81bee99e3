"""
Local File Storage Service

Disk-backed blob storage for uploaded templates, generated documents and
loop images. Each bucket is a directory under UPLOAD_ROOT; files are
addressed by a flat handle (their file name inside the bucket).
"""

import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from flask import current_app
from werkzeug.utils import safe_join, secure_filename

logger = logging.getLogger(__name__)

# Bucket names
TEMPLATES_BUCKET = 'templates'
GENERATED_BUCKET = 'generated'
LOOP_IMAGES_BUCKET = 'loops'


@dataclass
class StoredFile:
    """Metadata for one file in a bucket."""
    name: str
    size: int
    created_at: datetime
    modified_at: datetime


def generate_storage_name(original_filename: str) -> str:
    """
    Generate a unique file name that keeps the original extension.

    Example:
        "Listing.PDF" -> "3f2a...c9.pdf"
    """
    ext = ''
    safe_name = secure_filename(original_filename or '')
    if '.' in safe_name:
        ext = '.' + safe_name.rsplit('.', 1)[1].lower()
    return f"{uuid.uuid4().hex}{ext}"


class LocalBlobStore:
    """put/get/exists/delete over one directory."""

    def __init__(self, root):
        self.root = Path(root)

    def _ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path(self, handle: str) -> Optional[Path]:
        """
        Resolve a handle to an absolute path inside the bucket.

        Returns None for handles that would escape the bucket
        (e.g. "../config.py" or absolute paths).
        """
        if not handle or '/' in handle or '\\' in handle:
            return None
        joined = safe_join(str(self.root), handle)
        return Path(joined) if joined else None

    def put(self, data: bytes, original_filename: str = '') -> str:
        """Store bytes under a fresh unique name and return the handle."""
        return self.put_as(generate_storage_name(original_filename), data)

    def put_as(self, handle: str, data: bytes) -> str:
        """Store bytes under an explicit handle, replacing any existing file."""
        target = self.path(handle)
        if target is None:
            raise ValueError(f"Invalid storage handle: {handle!r}")
        self._ensure_root()
        target.write_bytes(data)
        logger.debug(f"Stored {len(data)} bytes at {target}")
        return handle

    def copy_from(self, source: Path, handle: str) -> str:
        """Copy an existing file into this bucket verbatim."""
        target = self.path(handle)
        if target is None:
            raise ValueError(f"Invalid storage handle: {handle!r}")
        self._ensure_root()
        shutil.copyfile(source, target)
        return handle

    def get(self, handle: str) -> bytes:
        target = self.path(handle)
        if target is None or not target.is_file():
            raise FileNotFoundError(handle)
        return target.read_bytes()

    def exists(self, handle: str) -> bool:
        target = self.path(handle)
        return bool(target and target.is_file())

    def delete(self, handle: str) -> bool:
        """
        Delete a file, best-effort.

        Returns:
            True if the file was removed, False if it was missing or
            could not be removed (the failure is logged, never raised).
        """
        target = self.path(handle)
        if target is None:
            logger.warning(f"Refusing to delete invalid handle {handle!r} in {self.root}")
            return False
        try:
            target.unlink()
            return True
        except FileNotFoundError:
            logger.info(f"File already gone: {target}")
            return False
        except OSError as e:
            logger.error(f"Failed to delete {target}: {e}")
            return False

    def entries(self) -> List[StoredFile]:
        """List every file in the bucket with its size and timestamps."""
        if not self.root.is_dir():
            return []
        files = []
        for entry in os.scandir(self.root):
            if not entry.is_file():
                continue
            stat = entry.stat()
            files.append(StoredFile(
                name=entry.name,
                size=stat.st_size,
                created_at=datetime.fromtimestamp(stat.st_ctime),
                modified_at=datetime.fromtimestamp(stat.st_mtime),
            ))
        return files


def get_bucket(bucket: str) -> LocalBlobStore:
    """Get the store for a bucket under the app's UPLOAD_ROOT."""
    return LocalBlobStore(Path(current_app.config['UPLOAD_ROOT']) / bucket)
