"""Opaque blob storage for achievement evidence files."""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Protocol

from app.config import settings
from app.core.exceptions import FileSystemError, ResourceNotFoundError
import logging

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Minimal put/get/delete contract consumed by the attachment service."""

    def put(self, data: bytes, metadata: Optional[Dict[str, Any]] = None) -> str: ...

    def get(self, handle: str) -> BinaryIO: ...

    def delete(self, handle: str) -> None: ...

    def path_of(self, handle: str) -> Path: ...


class LocalBlobStore:
    """Blobs as files under one directory, named by a random handle."""

    def __init__(self, root: str):
        self.root = Path(root)

    def _path(self, handle: str) -> Path:
        # Handles are uuid4 hex strings; anything else never maps to a file
        try:
            uuid.UUID(hex=handle)
        except (ValueError, TypeError):
            raise ResourceNotFoundError("File")
        return self.root / handle

    def put(self, data: bytes, metadata: Optional[Dict[str, Any]] = None) -> str:
        handle = uuid.uuid4().hex
        path = self.root / handle
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            if metadata:
                path.with_suffix(".json").write_text(
                    json.dumps(metadata, ensure_ascii=False, default=str), encoding="utf-8"
                )
        except OSError as exc:
            logger.error(f"Failed to store blob {handle}: {exc}")
            raise FileSystemError("Failed to store file")
        return handle

    def path_of(self, handle: str) -> Path:
        """Location of an existing blob on disk"""
        path = self._path(handle)
        if not path.is_file():
            raise ResourceNotFoundError("File")
        return path

    def get(self, handle: str) -> BinaryIO:
        path = self.path_of(handle)
        try:
            return path.open("rb")
        except OSError as exc:
            logger.error(f"Failed to open blob {handle}: {exc}")
            raise FileSystemError("Failed to read file")

    def delete(self, handle: str) -> None:
        path = self._path(handle)
        try:
            path.unlink(missing_ok=True)
            path.with_suffix(".json").unlink(missing_ok=True)
        except OSError as exc:
            logger.error(f"Failed to delete blob {handle}: {exc}")
            raise FileSystemError("Failed to delete file")


blob_store = LocalBlobStore(settings.get_upload_dir())
