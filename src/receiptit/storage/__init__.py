"""
receiptit.storage
~~~~~~~~~~~~~~~~~
Pluggable collaborators for receipt records and uploaded files.

Default backend: SQLite at ``~/.receiptit/default/receiptit.db``. When a
hosted backend is configured (``RECEIPTIT_BACKEND_URL`` and
``RECEIPTIT_BACKEND_KEY``) the HTTP adapters are used instead.

Usage::

    from receiptit.storage import get_repository

    with get_repository() as repo:
        for record in repo.list("local"):
            print(record["id"])
"""

from __future__ import annotations

from pathlib import Path

from ..config import Config, cfg
from .base import (
    ChangeEvent, IdentityProvider, ObjectStore, ReceiptRepository, StoredObject, user_path,
)
from .files import LocalObjectStore
from .profile import layout_from_db_path, resolve_profile
from .remote import RemoteBackend, RemoteIdentity, RemoteObjectStore, RemoteRepository
from .sqlite import SQLiteRepository


def get_repository(db_path: Path | str | None = None, config: Config | None = None):
    """
    Return the configured repository.

    An explicit ``db_path`` (argument or ``RECEIPTIT_DB_PATH``) always
    selects SQLite.
    """
    config = config or cfg
    db_path = db_path or config.db_path
    if db_path is None and config.has_backend:
        return RemoteRepository(RemoteBackend(config.get_backend_config()))
    if db_path is None:
        db_path = resolve_profile(config.profile).db_path
    return SQLiteRepository(db_path=db_path)


def get_object_store(root: Path | str | None = None, config: Config | None = None):
    """Return the configured object store (local files unless a backend is set)."""
    config = config or cfg
    if root is None and config.db_path:
        root = layout_from_db_path(Path(config.db_path)).files_dir
    if root is None and config.has_backend:
        return RemoteObjectStore(RemoteBackend(config.get_backend_config()))
    if root is None:
        root = resolve_profile(config.profile).files_dir
    return LocalObjectStore(root=root)


__all__ = [
    "ChangeEvent",
    "IdentityProvider",
    "LocalObjectStore",
    "ObjectStore",
    "ReceiptRepository",
    "RemoteBackend",
    "RemoteIdentity",
    "RemoteObjectStore",
    "RemoteRepository",
    "SQLiteRepository",
    "StoredObject",
    "get_object_store",
    "get_repository",
    "user_path",
]
