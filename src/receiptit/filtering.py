"""
receiptit.filtering
~~~~~~~~~~~~~~~~~~~
Search and filter predicates over normalised receipts.

Filtering never mutates the source collection and preserves its order.
It is a single linear pass, cheap enough to re-run on every keystroke
for a personal receipt collection.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .models import FOLDERS, Receipt
from .status import has_active_warranty

Now = Union[date, datetime]

ALL_CATEGORIES = "All"
ALL_FOLDERS = "all"


@dataclass(frozen=True)
class ReceiptQuery:
    """
    A wallet view query.

    ``category`` of ``None`` or ``"All"`` and ``folder`` of ``"all"`` match
    everything; ``text`` is matched case-insensitively against the merchant
    and the reference number.
    """

    text:          str = ""
    category:      Optional[str] = None
    folder:        str = ALL_FOLDERS
    warranty_only: bool = False

    @property
    def is_neutral(self) -> bool:
        return (
            not self.text
            and self.category in (None, ALL_CATEGORIES)
            and self.folder == ALL_FOLDERS
            and not self.warranty_only
        )


def filter_receipts(
    receipts: Sequence[Receipt],
    query: ReceiptQuery,
    now: Now,
) -> List[Receipt]:
    """Receipts matching every predicate of ``query``, in input order."""
    needle = query.text.lower()
    any_category = query.category in (None, ALL_CATEGORIES)
    any_folder = query.folder == ALL_FOLDERS

    matches: List[Receipt] = []
    for r in receipts:
        if needle and needle not in r.merchant.lower() and needle not in r.reference_number.lower():
            continue
        if not any_category and r.category != query.category:
            continue
        if not any_folder and r.folder != query.folder:
            continue
        if query.warranty_only and not has_active_warranty(r, now):
            continue
        matches.append(r)
    return matches


def available_categories(receipts: Iterable[Receipt]) -> List[str]:
    """``"All"`` followed by each distinct category in first-seen order."""
    seen: Dict[str, None] = {}
    for r in receipts:
        seen.setdefault(r.category, None)
    return [ALL_CATEGORIES, *seen]


def folder_counts(receipts: Sequence[Receipt], now: Now) -> Dict[str, int]:
    """Counts for the folder chips: all, work, personal and active warranties."""
    counts = {ALL_FOLDERS: len(receipts), **{f: 0 for f in FOLDERS}, "warranty": 0}
    for r in receipts:
        if r.folder in FOLDERS:
            counts[r.folder] += 1
        if has_active_warranty(r, now):
            counts["warranty"] += 1
    return counts


__all__ = [
    "ALL_CATEGORIES",
    "ALL_FOLDERS",
    "ReceiptQuery",
    "available_categories",
    "filter_receipts",
    "folder_counts",
]
