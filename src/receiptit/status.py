"""
receiptit.status
~~~~~~~~~~~~~~~~
Warranty and return-window status derived from stored expiry dates.

Every function takes ``now`` explicitly — activity is a function of
wall-clock time, not a stored fact, so callers re-evaluate on every
query instead of caching the result.

Usage::

    from datetime import datetime
    from receiptit.status import return_window_status

    return_window_status("2025-01-18", datetime(2025, 1, 15, 9, 30))
    # ReturnWindowStatus(status='urgent', days_left=3, message='Return: 3 Days Left')
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Optional, Union

from .models import Receipt
from .normalizer import normalize_date

Now = Union[date, datetime]

URGENT_RETURN_DAYS = 3


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WarrantyStatus:
    """
    ``status`` is ``"active"``, ``"expired"`` or ``"none"``.

    ``years`` and ``months`` decompose the remaining ``days_left``
    (365-day years, then 30-day months from the remainder).
    """

    status:    str
    days_left: int = 0
    years:     int = 0
    months:    int = 0
    message:   str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> dict:
        return {
            "status":    self.status,
            "days_left": self.days_left,
            "years":     self.years,
            "months":    self.months,
            "message":   self.message,
        }


@dataclass(frozen=True)
class ReturnWindowStatus:
    """``status`` is ``"active"``, ``"urgent"``, ``"expired"`` or ``"none"``."""

    status:    str
    days_left: int = 0
    message:   str = ""

    def to_dict(self) -> dict:
        return {
            "status":    self.status,
            "days_left": self.days_left,
            "message":   self.message,
        }


NO_WARRANTY = WarrantyStatus("none")
NO_RETURN_WINDOW = ReturnWindowStatus("none")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_date(value: Any) -> Optional[date]:
    iso = normalize_date(value)
    return date.fromisoformat(iso) if iso else None


def _as_datetime(now: Now) -> datetime:
    if isinstance(now, datetime):
        return now.replace(tzinfo=None)
    return datetime.combine(now, time.min)


def _as_date(now: Now) -> date:
    return now.date() if isinstance(now, datetime) else now


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


# ---------------------------------------------------------------------------
# Warranty
# ---------------------------------------------------------------------------

def warranty_status(warranty_date: Any, now: Now) -> WarrantyStatus:
    """
    Classify a warranty expiry date against ``now``.

    Active iff the expiry (midnight of that day) is strictly after ``now``.
    An absent or unparsable date yields ``"none"``.
    """
    expiry = _parse_date(warranty_date)
    if expiry is None:
        return NO_WARRANTY

    expires_at = datetime.combine(expiry, time.min)
    current = _as_datetime(now)
    if expires_at <= current:
        return WarrantyStatus("expired", message="Warranty Expired")

    days = (expires_at - current).days
    years, months = days // 365, (days % 365) // 30

    if years:
        message = f"Expires in {years} Yr {months} Mo"
    elif months:
        message = f"Expires in {months} Mo"
    elif days:
        message = f"Expires in {_plural(days, 'Day')}"
    else:
        message = "Expires Today"

    return WarrantyStatus("active", days_left=days, years=years, months=months, message=message)


# ---------------------------------------------------------------------------
# Return window
# ---------------------------------------------------------------------------

def return_window_status(return_date: Any, now: Now) -> ReturnWindowStatus:
    """
    Four-state classification of a return deadline.

    Days are counted in whole calendar days with the time of day stripped
    from both sides; exactly ``URGENT_RETURN_DAYS`` days left is still
    urgent.
    """
    deadline = _parse_date(return_date)
    if deadline is None:
        return NO_RETURN_WINDOW

    days_left = (deadline - _as_date(now)).days

    if days_left < 0:
        return ReturnWindowStatus("expired", 0, "Return Expired")
    if days_left == 0:
        return ReturnWindowStatus("urgent", 0, "Return: Today")
    if days_left <= URGENT_RETURN_DAYS:
        return ReturnWindowStatus("urgent", days_left, f"Return: {_plural(days_left, 'Day')} Left")
    return ReturnWindowStatus("active", days_left, f"Return: {days_left} Days Left")


# ---------------------------------------------------------------------------
# Receipt-level badges
# ---------------------------------------------------------------------------

def warranty_badge(receipt: Receipt, now: Now) -> WarrantyStatus:
    """Warranty badge to display — always ``"none"`` while processing."""
    if receipt.is_processing:
        return NO_WARRANTY
    return warranty_status(receipt.warranty_date, now)


def return_badge(receipt: Receipt, now: Now) -> ReturnWindowStatus:
    """Return-window badge to display — always ``"none"`` while processing."""
    if receipt.is_processing:
        return NO_RETURN_WINDOW
    return return_window_status(receipt.return_date, now)


def has_active_warranty(receipt: Receipt, now: Now) -> bool:
    return warranty_status(receipt.warranty_date, now).is_active


__all__ = [
    "URGENT_RETURN_DAYS",
    "ReturnWindowStatus",
    "WarrantyStatus",
    "has_active_warranty",
    "return_badge",
    "return_window_status",
    "warranty_badge",
    "warranty_status",
]
