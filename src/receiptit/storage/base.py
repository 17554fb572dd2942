"""
receiptit.storage.base
~~~~~~~~~~~~~~~~~~~~~~
Collaborator interfaces: receipt persistence, object storage and identity.

Records cross this boundary as raw dicts — normalisation happens on the
client side (``receiptit.normalizer``), never in the backend adapters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

RawRecord = Dict[str, Any]

CHANGE_EVENTS = ("INSERT", "UPDATE", "DELETE", "*")


@dataclass(frozen=True)
class ChangeEvent:
    """
    A change to one user's receipts.

    ``event`` is ``"INSERT"``, ``"UPDATE"``, ``"DELETE"`` or ``"*"`` when
    the feed only knows that *something* changed.
    """

    event:     str
    user_id:   str
    record_id: Optional[str] = None


ChangeCallback = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class StoredObject:
    """Location of an uploaded file."""

    path:       str
    public_url: str

    def to_dict(self) -> dict:
        return {"path": self.path, "public_url": self.public_url}


def user_path(user_id: str, name: str) -> str:
    """Namespace an object path under its owner: ``<user_id>/<name>``."""
    return f"{user_id.strip('/')}/{name.lstrip('/')}"


@runtime_checkable
class ReceiptRepository(Protocol):
    """Persistence of raw receipt records, scoped per user."""

    def list(self, user_id: str) -> List[RawRecord]:
        """All records of ``user_id``, most recently dated first."""
        ...

    def get(self, user_id: str, record_id: str) -> RawRecord | None:
        ...

    def insert(self, user_id: str, record: RawRecord) -> str:
        """Store a record and return its id (generated when absent)."""
        ...

    def update(self, user_id: str, record_id: str, fields: RawRecord) -> bool:
        """Merge ``fields`` into a record. Returns False if it does not exist."""
        ...

    def delete(self, user_id: str, record_id: str) -> bool:
        """Remove a record. Returns True if deleted."""
        ...

    def subscribe(self, user_id: str, callback: ChangeCallback) -> Unsubscribe:
        """
        Call ``callback`` on every insert/update/delete for ``user_id``.

        Returns a function that cancels the subscription.
        """
        ...

    def close(self) -> None:
        """Release connections."""
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """Binary file storage for receipt images."""

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> StoredObject:
        ...

    def delete(self, path: str) -> bool:
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Authentication service yielding the user id the other collaborators scope by."""

    def current_session(self) -> Any:
        """The active ``receiptit.identity.Session`` or ``None``."""
        ...

    def sign_in(self, email: str, password: str) -> Any:
        ...

    def sign_up(self, email: str, password: str, alias: str, full_name: str) -> Any:
        ...

    def sign_out(self) -> None:
        ...
