"""
receiptit.models
~~~~~~~~~~~~~~~~
Canonical in-memory receipt representation and result values.

Key design decisions
--------------------
* ``Receipt`` is a frozen dataclass. Every field is populated or
  explicitly defaulted by ``receiptit.normalizer`` so no ``None`` ever
  reaches arithmetic. Edits produce a new value via ``dataclasses.replace``.

* Dates are kept as ISO ``YYYY-MM-DD`` strings. Warranty and return
  activity is never stored: it is derived against "now" on every query
  (see ``receiptit.status``).

* ``to_dict()`` emits the canonical snake_case keys, which are also the
  first-priority keys of the normalizer's alias table — normalising the
  output again yields an equal ``Receipt``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Optional


UNKNOWN_MERCHANT = "Unknown Merchant"
DEFAULT_CATEGORY = "Other"
DEFAULT_CURRENCY = "£"
PROCESSING = "processing"
FOLDERS = ("work", "personal")


# ---------------------------------------------------------------------------
# TagStyle
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TagStyle:
    """Colour and icon names for a category chip."""

    color: str = "gray"
    icon:  str = "shopping-bag"

    def to_dict(self) -> dict:
        return {"color": self.color, "icon": self.icon}


# ---------------------------------------------------------------------------
# LineItem
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LineItem:
    """A single purchased line within a receipt."""

    name:     str = ""
    quantity: float = 1.0
    price:    float = 0.0

    @property
    def line_total(self) -> float:
        return self.quantity * self.price

    def to_dict(self) -> dict:
        return {"name": self.name, "quantity": self.quantity, "price": self.price}


# ---------------------------------------------------------------------------
# Receipt
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Receipt:
    """
    A normalised receipt.

    ``amount == subtotal + vat`` holds within float tolerance. ``status``
    is the backend's lifecycle marker; a receipt still being processed
    (or with a zero amount) is not interactive and shows no warranty or
    return badges.
    """

    id:               str
    merchant:         str = UNKNOWN_MERCHANT
    amount:           float = 0.0
    subtotal:         float = 0.0
    vat:              float = 0.0
    vat_rate:         Optional[float] = None
    currency_symbol:  str = DEFAULT_CURRENCY
    date:             str = ""
    category:         str = DEFAULT_CATEGORY
    warranty_date:    Optional[str] = None
    warranty_months:  Optional[int] = None
    return_date:      Optional[str] = None
    reference_number: str = ""
    email_alias:      Optional[str] = None
    items:            List[LineItem] = field(default_factory=list)
    status:           Optional[str] = None
    folder:           Optional[str] = None
    image_url:        Optional[str] = None
    payment_method:   Optional[str] = None
    card_last_4:      Optional[str] = None
    location:         Optional[str] = None

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        """True while the backend has not finalised this receipt."""
        return self.status == PROCESSING or self.amount == 0

    @property
    def month_key(self) -> str:
        """``YYYY-MM`` prefix of the purchase date, or ``""`` when unknown."""
        return self.date[:7]

    @property
    def items_total(self) -> float:
        return sum(item.line_total for item in self.items)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "id":               self.id,
            "merchant":         self.merchant,
            "amount":           self.amount,
            "subtotal":         self.subtotal,
            "vat":              self.vat,
            "vat_rate":         self.vat_rate,
            "currency_symbol":  self.currency_symbol,
            "date":             self.date,
            "category":         self.category,
            "warranty_date":    self.warranty_date,
            "warranty_months":  self.warranty_months,
            "return_date":      self.return_date,
            "reference_number": self.reference_number,
            "email_alias":      self.email_alias,
            "items":            [item.to_dict() for item in self.items],
            "status":           self.status,
            "folder":           self.folder,
            "image_url":        self.image_url,
            "payment_method":   self.payment_method,
            "card_last_4":      self.card_last_4,
            "location":         self.location,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Collaborator results
# ---------------------------------------------------------------------------

@dataclass
class RefreshResult:
    """
    Outcome of re-fetching the receipt collection.

    On failure the previously loaded collection is kept; ``count`` then
    reports the size of that last good collection.
    """

    success:       bool
    count:         int = 0
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success":       self.success,
            "count":         self.count,
            "error_message": self.error_message,
        }


@dataclass
class ActionResult:
    """
    Outcome of a delete, update or upload forwarded to a collaborator.

    Always check ``success`` before using ``receipt``.
    """

    success:       bool
    receipt_id:    Optional[str] = None
    receipt:       Optional[Receipt] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success":       self.success,
            "receipt_id":    self.receipt_id,
            "receipt":       self.receipt.to_dict() if self.receipt else None,
            "error_message": self.error_message,
        }
