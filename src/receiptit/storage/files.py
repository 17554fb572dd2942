"""
receiptit.storage.files
~~~~~~~~~~~~~~~~~~~~~~~
Filesystem object store for local profiles.

Files live under ``<profile>/files/<user_id>/...`` and are addressed by
``file://`` URLs.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from .base import StoredObject
from .profile import resolve_profile
from ..exceptions import ObjectStorageError

logger = logging.getLogger(__name__)


class LocalObjectStore:
    """Object storage implementing ``ObjectStore`` on the local disk."""

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root else resolve_profile().files_dir

    def _resolve(self, path: str) -> Path:
        parts = PurePosixPath(path).parts
        if not parts or any(p in ("..", "/") for p in parts):
            raise ObjectStorageError(f"Invalid object path: {path!r}")
        return self.root.joinpath(*parts)

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> StoredObject:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise ObjectStorageError(f"Cannot store {path}", cause=exc) from exc
        logger.debug("Stored %d bytes (%s) at %s", len(data), content_type, target)
        return StoredObject(path=path, public_url=target.resolve().as_uri())

    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.is_file():
            return False
        try:
            target.unlink()
        except OSError as exc:
            raise ObjectStorageError(f"Cannot delete {path}", cause=exc) from exc
        return True
