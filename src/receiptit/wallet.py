"""
receiptit.wallet
~~~~~~~~~~~~~~~~
View controller for one user's receipt collection.

Pipeline:
  1. Fetch raw records from the repository
  2. Normalise into canonical ``Receipt`` values
  3. Hold the last good collection (a failed refresh keeps it)
  4. Overlay pending deletes/edits until the repository confirms them

Change notifications trigger a full refetch. Notifications may arrive on a
poller thread, so the collection is swapped under a lock; a refresh that
completes after ``close()`` is discarded.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Set, Union

from .config import Config, cfg
from .exceptions import CollaboratorError, ReceiptNotFoundError
from .filtering import ReceiptQuery, available_categories, filter_receipts, folder_counts
from .insights import ActivityStats, SpendingInsights, activity_stats, generate_insights
from .models import FOLDERS, PROCESSING, ActionResult, Receipt, RefreshResult
from .normalizer import normalize_date, normalize_record, normalize_records, tag_style
from .status import return_badge, warranty_badge
from .storage.base import ChangeEvent, ObjectStore, ReceiptRepository, Unsubscribe, user_path

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Now = Union[date, datetime]

# Fields a user may edit from the detail view
EDITABLE_FIELDS = ("merchant", "category", "folder", "warranty_date", "return_date")
_DATE_FIELDS = ("warranty_date", "return_date")

_CLOSED = "Wallet is closed"


def to_view(receipt: Receipt, now: Now) -> dict:
    """Receipt dict enriched with its tag style and the badges for ``now``."""
    return {
        **receipt.to_dict(),
        "tag_style":     tag_style(receipt.category).to_dict(),
        "warranty":      warranty_badge(receipt, now).to_dict(),
        "return_window": return_badge(receipt, now).to_dict(),
        "is_processing": receipt.is_processing,
    }


def validate_edit(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check and canonicalise a user edit.

    Raises ``ValueError`` for non-editable fields, unknown folders and
    unparsable dates. ``None`` clears a date or folder.
    """
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValueError(f"Field(s) cannot be edited: {', '.join(unknown)}")

    clean: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in _DATE_FIELDS:
            if value is None:
                clean[key] = None
                continue
            iso = normalize_date(value)
            if iso is None:
                raise ValueError(f"{key} must be an ISO date, got {value!r}")
            clean[key] = iso
        elif key == "folder":
            if value is not None and str(value).lower() not in FOLDERS:
                raise ValueError(f"folder must be one of {', '.join(FOLDERS)} or empty")
            clean[key] = str(value).lower() if value is not None else None
        else:
            text = str(value).strip() if value is not None else ""
            if not text:
                raise ValueError(f"{key} cannot be empty")
            clean[key] = text
    return clean


class ReceiptWallet:
    """
    Client-side state for one user's receipts.

    Args:
        repository:   Persistence collaborator.
        user_id:      Owner scope (default: ``config.user_id``).
        object_store: Optional file collaborator, required for ``upload()``.
        config:       Optional Config instance (default: module ``cfg``).
    """

    def __init__(
        self,
        repository: ReceiptRepository,
        user_id: Optional[str] = None,
        *,
        object_store: Optional[ObjectStore] = None,
        config: Optional[Config] = None,
    ) -> None:
        self.config = config or cfg
        self.repository = repository
        self.object_store = object_store
        self.user_id = user_id or self.config.user_id

        self._lock = threading.Lock()
        self._receipts: List[Receipt] = []
        self._pending_deletes: Set[str] = set()
        self._pending_edits: Dict[str, Receipt] = {}
        self._unsubscribe: Optional[Unsubscribe] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> "ReceiptWallet":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def start(self) -> RefreshResult:
        """Subscribe to the change feed and load the collection."""
        if self._unsubscribe is None and not self._closed:
            self._unsubscribe = self.repository.subscribe(self.user_id, self._on_change)
        return self.refresh()

    def close(self) -> None:
        """Stop listening; refreshes still in flight are discarded."""
        with self._lock:
            self._closed = True
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_change(self, event: ChangeEvent) -> None:
        logger.debug("Change %s on %s — refreshing", event.event, event.record_id or "*")
        self.refresh()

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def _merged(self) -> List[Receipt]:
        return [
            self._pending_edits.get(r.id, r)
            for r in self._receipts
            if r.id not in self._pending_deletes
        ]

    @property
    def receipts(self) -> List[Receipt]:
        """Current view: the last good collection with pending edits applied."""
        with self._lock:
            return self._merged()

    def get(self, receipt_id: str) -> Optional[Receipt]:
        for receipt in self.receipts:
            if receipt.id == receipt_id:
                return receipt
        return None

    def require(self, receipt_id: str) -> Receipt:
        receipt = self.get(receipt_id)
        if receipt is None:
            raise ReceiptNotFoundError(f"Receipt {receipt_id} not found", receipt_id=receipt_id)
        return receipt

    def refresh(self) -> RefreshResult:
        """
        Refetch and replace the collection wholesale.

        On failure the previous collection stays in place and the result
        carries the error message.
        """
        if self._closed:
            return RefreshResult(success=False, count=0, error_message=_CLOSED)
        try:
            raw = self.repository.list(self.user_id)
        except CollaboratorError as exc:
            logger.warning("Refreshing receipts for %s failed: %s", self.user_id, exc)
            with self._lock:
                count = len(self._receipts)
            return RefreshResult(success=False, count=count, error_message=str(exc))

        receipts = normalize_records(raw)
        with self._lock:
            if self._closed:
                logger.debug("Discarding refresh that completed after close")
                return RefreshResult(success=False, count=0, error_message=_CLOSED)
            self._receipts = receipts
        logger.debug("Loaded %d receipts for %s", len(receipts), self.user_id)
        return RefreshResult(success=True, count=len(receipts))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def delete(self, receipt_id: str) -> ActionResult:
        """Hide the receipt immediately; restore it if the repository refuses."""
        with self._lock:
            if self._closed:
                return ActionResult(False, receipt_id, error_message=_CLOSED)
            if not any(r.id == receipt_id for r in self._merged()):
                return ActionResult(False, receipt_id, error_message=f"Receipt {receipt_id} not found")
            self._pending_deletes.add(receipt_id)

        try:
            removed = self.repository.delete(self.user_id, receipt_id)
        except CollaboratorError as exc:
            logger.warning("Deleting receipt %s failed: %s", receipt_id, exc)
            with self._lock:
                self._pending_deletes.discard(receipt_id)
            return ActionResult(False, receipt_id, error_message=str(exc))

        with self._lock:
            self._pending_deletes.discard(receipt_id)
            self._receipts = [r for r in self._receipts if r.id != receipt_id]
        if not removed:
            return ActionResult(False, receipt_id, error_message=f"Receipt {receipt_id} no longer exists")
        logger.info("Deleted receipt %s", receipt_id)
        return ActionResult(True, receipt_id)

    def update(self, receipt_id: str, fields: Dict[str, Any]) -> ActionResult:
        """
        Apply a user edit optimistically.

        Only ``EDITABLE_FIELDS`` may change, and receipts still being
        processed cannot be edited.
        """
        try:
            clean = validate_edit(fields)
        except ValueError as exc:
            return ActionResult(False, receipt_id, error_message=str(exc))
        if "warranty_date" in clean and clean["warranty_date"] is None:
            # A cleared expiry must not be re-derived from warranty_months
            clean["warranty_months"] = None

        with self._lock:
            if self._closed:
                return ActionResult(False, receipt_id, error_message=_CLOSED)
            current = next((r for r in self._merged() if r.id == receipt_id), None)
            if current is None:
                return ActionResult(False, receipt_id, error_message=f"Receipt {receipt_id} not found")
            if current.is_processing:
                return ActionResult(False, receipt_id, error_message="Receipt is still processing")
            edited = normalize_record({**current.to_dict(), **clean})
            self._pending_edits[receipt_id] = edited

        try:
            updated = self.repository.update(self.user_id, receipt_id, clean)
        except CollaboratorError as exc:
            logger.warning("Updating receipt %s failed: %s", receipt_id, exc)
            with self._lock:
                self._pending_edits.pop(receipt_id, None)
            return ActionResult(False, receipt_id, error_message=str(exc))

        with self._lock:
            self._pending_edits.pop(receipt_id, None)
            if updated:
                self._receipts = [edited if r.id == receipt_id else r for r in self._receipts]
        if not updated:
            return ActionResult(False, receipt_id, error_message=f"Receipt {receipt_id} no longer exists")
        return ActionResult(True, receipt_id, receipt=edited)

    def upload(
        self,
        filename: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        now: Optional[Now] = None,
    ) -> ActionResult:
        """
        Store a receipt image and create a ``processing`` record for it.

        The record is dated ``now`` (default: today) and is finalised later
        by whatever extracts the receipt fields; until then it shows no
        badges.
        """
        if self.object_store is None:
            return ActionResult(False, error_message="No object store configured")
        if not data:
            return ActionResult(False, error_message="Uploaded file is empty")
        if len(data) > self.config.upload_max_bytes:
            return ActionResult(
                False,
                error_message=f"File exceeds the {self.config.upload_max_bytes} byte upload limit",
            )

        suffix = PurePosixPath(filename).suffix.lower()
        path = user_path(self.user_id, f"{uuid.uuid4().hex}{suffix}")
        try:
            stored = self.object_store.upload(path, data, content_type)
        except CollaboratorError as exc:
            logger.warning("Uploading %s failed: %s", filename, exc)
            return ActionResult(False, error_message=str(exc))

        record = {
            "status":    PROCESSING,
            "image_url": stored.public_url,
            "date":      normalize_date(now or date.today()),
        }
        try:
            record_id = self.repository.insert(self.user_id, record)
        except CollaboratorError as exc:
            logger.warning("Creating record for %s failed: %s", filename, exc)
            try:
                self.object_store.delete(path)
            except CollaboratorError:
                logger.warning("Could not remove orphaned upload %s", path, exc_info=True)
            return ActionResult(False, error_message=str(exc))

        self.refresh()
        receipt = self.get(record_id) or normalize_record({**record, "id": record_id})
        logger.info("Uploaded %s as receipt %s", filename, record_id)
        return ActionResult(True, record_id, receipt=receipt)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def view(self, query: Optional[ReceiptQuery] = None, now: Optional[Now] = None) -> List[Receipt]:
        receipts = self.receipts
        if query is None or query.is_neutral:
            return receipts
        return filter_receipts(receipts, query, now or datetime.now())

    def insights(self, now: Optional[Now] = None, budget_limit: Optional[float] = None) -> SpendingInsights:
        return generate_insights(
            self.receipts,
            now or datetime.now(),
            self.config.budget_limit if budget_limit is None else budget_limit,
            months=self.config.trend_months,
            spam_multiplier=self.config.spam_multiplier,
        )

    def stats(self, now: Optional[Now] = None) -> ActivityStats:
        return activity_stats(self.receipts, now or datetime.now(), self.config.spam_multiplier)

    def categories(self) -> List[str]:
        return available_categories(self.receipts)

    def folder_counts(self, now: Optional[Now] = None) -> Dict[str, int]:
        return folder_counts(self.receipts, now or datetime.now())


__all__ = ["EDITABLE_FIELDS", "ReceiptWallet", "to_view", "validate_edit"]
