"""
receiptit.normalizer
~~~~~~~~~~~~~~~~~~~~
Maps loosely-typed persisted receipt records onto the canonical ``Receipt``.

Records arrive with inconsistent field names (``amount`` / ``total`` /
``price``, ``tag`` / ``category``, ``warranty_date`` / ``warrantyDate``) and
inconsistent encodings (``"£1,299.00"`` vs ``1299``). Every canonical field
is resolved through an explicit, ordered alias table — first present value
wins.

Normalisation never raises. Anything missing or unparsable degrades to a
default so that half-ingested records still render.
"""

from __future__ import annotations

import calendar
import hashlib
import json
import logging
import math
import re
from datetime import date, datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .models import (
    DEFAULT_CATEGORY, DEFAULT_CURRENCY, FOLDERS, UNKNOWN_MERCHANT,
    LineItem, Receipt, TagStyle,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

RawReceiptRecord = Mapping[str, Any]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Canonical field → candidate source keys, highest priority first.
# The canonical snake_case name always comes first so that
# ``normalize_record(receipt.to_dict()) == receipt``.
FIELD_ALIASES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("id",               ("id", "_id", "uuid")),
    ("merchant",         ("merchant", "store_name", "store", "vendor")),
    ("amount",           ("amount", "total", "price")),
    ("subtotal",         ("subtotal", "sub_total")),
    ("vat",              ("vat", "vat_amount", "tax")),
    ("vat_rate",         ("vat_rate", "vatRate", "tax_rate")),
    ("currency_symbol",  ("currency_symbol", "currencySymbol", "currency")),
    ("date",             ("date", "timestamp", "created_at", "createdAt")),
    ("category",         ("category", "tag")),
    ("warranty_date",    ("warranty_date", "warrantyDate")),
    ("warranty_months",  ("warranty_months", "warrantyMonths")),
    ("return_date",      ("return_date", "returnDate")),
    ("reference_number", ("reference_number", "referenceNumber", "reference", "receipt_id")),
    ("email_alias",      ("email_alias", "emailAlias", "email")),
    ("items",            ("items", "line_items")),
    ("status",           ("status",)),
    ("folder",           ("folder",)),
    ("image_url",        ("image_url", "imageUrl")),
    ("payment_method",   ("payment_method", "paymentMethod", "payment_type", "payment")),
    ("card_last_4",      ("card_last_4", "cardLast4")),
    ("location",         ("location", "store_location")),
)

_ALIASES: Dict[str, Tuple[str, ...]] = dict(FIELD_ALIASES)

_ITEM_ALIASES: Dict[str, Tuple[str, ...]] = {
    "name":     ("name", "description", "title"),
    "quantity": ("quantity", "qty"),
    "price":    ("price", "unit_price", "amount"),
}

# Currency symbols, thousands separators and any whitespace
_AMOUNT_NOISE_RE = re.compile(r"[£$€¥,\s]")

_CURRENCY_CODES: Dict[str, str] = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
    "JPY": "¥",
}

# subtotal + vat may drift from amount by this much and still count as consistent
_TOTALS_TOLERANCE = 0.005

# Ordered (keyword, style) table; first case-insensitive substring match wins.
_TAG_STYLES: Tuple[Tuple[str, TagStyle], ...] = (
    ("tech",       TagStyle("blue",   "laptop")),
    ("electronic", TagStyle("blue",   "laptop")),
    ("food",       TagStyle("orange", "coffee")),
    ("coffee",     TagStyle("orange", "coffee")),
    ("restaurant", TagStyle("orange", "utensils")),
    ("clothing",   TagStyle("purple", "shirt")),
    ("fashion",    TagStyle("purple", "shirt")),
    ("grocer",     TagStyle("green",  "shopping-cart")),
    ("transport",  TagStyle("yellow", "car")),
    ("travel",     TagStyle("yellow", "plane")),
)

NEUTRAL_STYLE = TagStyle()


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------

def parse_amount(value: Any) -> Optional[float]:
    """
    Coerce a monetary value to a finite float.

    Strings are stripped of currency symbols, thousands separators and
    whitespace first. Returns ``None`` for anything that does not parse to
    a finite number (including booleans, NaN and infinities).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _AMOUNT_NOISE_RE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def normalize_date(value: Any) -> Optional[str]:
    """
    Return an ISO ``YYYY-MM-DD`` string, or ``None`` when unparsable.

    Accepts ``date`` / ``datetime`` objects and ISO-8601 strings with or
    without a time part; the time of day is discarded.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None
    text = value.strip()
    if len(text) < 10:
        return None
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return None


def add_months(iso_date: str, months: int) -> Optional[str]:
    """Shift an ISO date by whole months, clamping to the month's last day."""
    try:
        start = date.fromisoformat(iso_date)
    except (TypeError, ValueError):
        return None
    index = start.month - 1 + months
    year, month = start.year + index // 12, index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day).isoformat()


@lru_cache(maxsize=256)
def tag_style(category: str) -> TagStyle:
    """Colour/icon for a category — deterministic, memoised per string."""
    lowered = category.lower()
    for keyword, style in _TAG_STYLES:
        if keyword in lowered:
            return style
    return NEUTRAL_STYLE


# ---------------------------------------------------------------------------
# Field resolution
# ---------------------------------------------------------------------------

def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _first_present(record: RawReceiptRecord, keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if _present(value):
            return value
    return None


def _resolve_text(record: RawReceiptRecord, field: str) -> Optional[str]:
    value = _first_present(record, _ALIASES[field])
    return str(value).strip() if value is not None else None


def _resolve_number(
    record: RawReceiptRecord,
    keys: Iterable[str],
) -> Optional[float]:
    """First alias whose value parses to a finite number; absent/NaN falls through."""
    for key in keys:
        number = parse_amount(record.get(key))
        if number is not None:
            return number
    return None


def resolve_amount(record: RawReceiptRecord, field: str = "amount") -> float:
    """Resolve a monetary field through its aliases, ``0.0`` when absent."""
    number = _resolve_number(record, _ALIASES[field])
    return number if number is not None else 0.0


def _resolve_date(record: RawReceiptRecord, field: str) -> Optional[str]:
    for key in _ALIASES[field]:
        iso = normalize_date(record.get(key))
        if iso is not None:
            return iso
    return None


def reconcile_totals(
    amount: float,
    subtotal: Optional[float],
    vat: Optional[float],
) -> Tuple[float, float]:
    """
    Derive ``(subtotal, vat)`` so that ``amount == subtotal + vat``.

    ``amount`` is authoritative. A present VAT wins over a present subtotal
    when the two disagree with the amount.
    """
    if subtotal is not None and vat is not None:
        if abs(subtotal + vat - amount) <= _TOTALS_TOLERANCE:
            return subtotal, vat
        return amount - vat, vat
    if vat is not None:
        return amount - vat, vat
    if subtotal is not None:
        return subtotal, amount - subtotal
    return amount, 0.0


def _content_id(record: RawReceiptRecord) -> str:
    """Stable id for records that arrive without one."""
    payload = json.dumps(dict(record), sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:32]


def _normalize_currency(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_CURRENCY
    return _CURRENCY_CODES.get(value.upper(), value)


def _normalize_folder(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    folder = value.lower()
    return folder if folder in FOLDERS else None


def _normalize_items(value: Any) -> List[LineItem]:
    if not isinstance(value, (list, tuple)):
        return []
    items: List[LineItem] = []
    for entry in value:
        if isinstance(entry, LineItem):
            items.append(entry)
            continue
        if not isinstance(entry, Mapping):
            continue
        name = _first_present(entry, _ITEM_ALIASES["name"])
        quantity = _resolve_number(entry, _ITEM_ALIASES["quantity"])
        price = _resolve_number(entry, _ITEM_ALIASES["price"])
        items.append(LineItem(
            name=str(name).strip() if name is not None else "",
            quantity=quantity if quantity is not None else 1.0,
            price=price if price is not None else 0.0,
        ))
    return items


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def normalize_record(record: Union[RawReceiptRecord, Receipt]) -> Receipt:
    """
    Produce a canonical ``Receipt`` from a raw record.

    Already-canonical receipts are returned unchanged.
    """
    if isinstance(record, Receipt):
        return record

    receipt_id = _resolve_text(record, "id") or _content_id(record)

    amount = max(resolve_amount(record, "amount"), 0.0)
    if _resolve_number(record, _ALIASES["amount"]) is None:
        logger.debug("Receipt %s has no parsable amount — defaulting to 0", receipt_id)
    subtotal, vat = reconcile_totals(
        amount,
        _resolve_number(record, _ALIASES["subtotal"]),
        _resolve_number(record, _ALIASES["vat"]),
    )

    purchase_date = _resolve_date(record, "date") or ""

    months = _resolve_number(record, _ALIASES["warranty_months"])
    warranty_months = int(months) if months is not None and months > 0 else None
    warranty_date = _resolve_date(record, "warranty_date")
    if warranty_date is None and warranty_months and purchase_date:
        warranty_date = add_months(purchase_date, warranty_months)

    status = _resolve_text(record, "status")

    return Receipt(
        id=receipt_id,
        merchant=_resolve_text(record, "merchant") or UNKNOWN_MERCHANT,
        amount=amount,
        subtotal=subtotal,
        vat=vat,
        vat_rate=_resolve_number(record, _ALIASES["vat_rate"]),
        currency_symbol=_normalize_currency(_resolve_text(record, "currency_symbol")),
        date=purchase_date,
        category=_resolve_text(record, "category") or DEFAULT_CATEGORY,
        warranty_date=warranty_date,
        warranty_months=warranty_months,
        return_date=_resolve_date(record, "return_date"),
        reference_number=(
            _resolve_text(record, "reference_number") or receipt_id[:16].upper()
        ),
        email_alias=_resolve_text(record, "email_alias"),
        items=_normalize_items(_first_present(record, _ALIASES["items"])),
        status=status.lower() if status else None,
        folder=_normalize_folder(_resolve_text(record, "folder")),
        image_url=_resolve_text(record, "image_url"),
        payment_method=_resolve_text(record, "payment_method"),
        card_last_4=_resolve_text(record, "card_last_4"),
        location=_resolve_text(record, "location"),
    )


def normalize_records(records: Iterable[Union[RawReceiptRecord, Receipt]]) -> List[Receipt]:
    """Normalise a sequence of records, preserving order."""
    return [normalize_record(r) for r in records]


def superseded_keys(fields: Mapping[str, Any]) -> Set[str]:
    """
    Alias keys a write of ``fields`` must remove from a stored record.

    Writing a canonical field makes its lower-priority aliases stale; left in
    place they would resurface once the canonical value is cleared.
    """
    stale: Set[str] = set()
    for key in fields:
        stale.update(alias for alias in _ALIASES.get(key, ()) if alias != key)
    return stale


__all__ = [
    "FIELD_ALIASES",
    "NEUTRAL_STYLE",
    "add_months",
    "normalize_date",
    "normalize_record",
    "normalize_records",
    "parse_amount",
    "reconcile_totals",
    "resolve_amount",
    "superseded_keys",
    "tag_style",
]
