"""
receiptit.export
~~~~~~~~~~~~~~~~
CSV export of normalised receipts (the settings screen's "Export data").

Usage::

    from receiptit.export import write_csv
    write_csv(wallet.receipts, "receipts.csv")
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable, List

from .models import Receipt

CSV_COLUMNS = (
    "id", "date", "merchant", "category", "folder",
    "amount", "subtotal", "vat", "currency",
    "reference_number", "warranty_date", "return_date", "status",
)


def _row(receipt: Receipt) -> List[str]:
    return [
        receipt.id,
        receipt.date,
        receipt.merchant,
        receipt.category,
        receipt.folder or "",
        f"{receipt.amount:.2f}",
        f"{receipt.subtotal:.2f}",
        f"{receipt.vat:.2f}",
        receipt.currency_symbol,
        receipt.reference_number,
        receipt.warranty_date or "",
        receipt.return_date or "",
        receipt.status or "",
    ]


def to_csv(receipts: Iterable[Receipt]) -> str:
    """Render ``receipts`` as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for receipt in receipts:
        writer.writerow(_row(receipt))
    return buffer.getvalue()


def write_csv(receipts: Iterable[Receipt], path: str | Path) -> Path:
    """Write the CSV export to ``path`` (UTF-8) and return the path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(to_csv(receipts), encoding="utf-8")
    return target


__all__ = ["CSV_COLUMNS", "to_csv", "write_csv"]
