"""
receiptit.insights.spending
~~~~~~~~~~~~~~~~~~~~~~~~~~~
Spend insights over a collection of normalised receipts.

Figures
-------
total spent          sum of ``amount`` (single-currency assumption)
category breakdown   amount / count / share per category, largest first
average transaction  total / count, 0 for an empty collection
monthly trend        the N calendar months ending at "now", oldest first
month over month     (current − previous) / previous × 100, 0 if previous ≤ 0
budget status        share of a fixed limit; remaining may go negative

Usage::

    from datetime import date
    from receiptit.insights import generate_insights

    report = generate_insights(receipts, now=date.today())
    print(report.summary())
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ..config import cfg
from ..models import Receipt, TagStyle
from ..normalizer import tag_style
from ..status import has_active_warranty

Now = Union[date, datetime]

NO_CATEGORY = "N/A"

_MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# Budget share thresholds for the warning/critical levels
_WARNING_PCT = 70.0
_CRITICAL_PCT = 90.0


def _as_date(now: Now) -> date:
    return now.date() if isinstance(now, datetime) else now


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------

@dataclass
class CategorySpend:
    """Aggregated spend for one category."""

    category:   str
    amount:     float = 0.0
    count:      int = 0
    percentage: float = 0.0
    style:      TagStyle = field(default_factory=TagStyle)

    def to_dict(self) -> dict:
        return {
            "category":   self.category,
            "amount":     round(self.amount, 2),
            "count":      self.count,
            "percentage": round(self.percentage, 1),
            "color":      self.style.color,
            "icon":       self.style.icon,
        }


@dataclass
class MonthBucket:
    """Spend in one calendar month, keyed ``YYYY-MM``."""

    key:    str
    label:  str
    amount: float = 0.0
    count:  int = 0

    def to_dict(self) -> dict:
        return {
            "key":    self.key,
            "label":  self.label,
            "amount": round(self.amount, 2),
            "count":  self.count,
        }


@dataclass
class MonthComparison:
    """Current month against the previous one."""

    current:    float
    previous:   float
    change_pct: float

    @property
    def difference(self) -> float:
        return self.current - self.previous

    @property
    def direction(self) -> str:
        if self.change_pct > 0:
            return "increase"
        if self.change_pct < 0:
            return "decrease"
        return "flat"

    def to_dict(self) -> dict:
        return {
            "current":    round(self.current, 2),
            "previous":   round(self.previous, 2),
            "change_pct": round(self.change_pct, 1),
            "difference": round(self.difference, 2),
            "direction":  self.direction,
        }


@dataclass
class BudgetStatus:
    """
    Spend measured against a fixed limit.

    ``remaining < 0`` signals an over-budget state.
    """

    limit:      float
    spent:      float
    percentage: float

    @property
    def remaining(self) -> float:
        return self.limit - self.spent

    @property
    def is_over(self) -> bool:
        return self.remaining < 0

    @property
    def level(self) -> str:
        if self.percentage > _CRITICAL_PCT:
            return "critical"
        if self.percentage > _WARNING_PCT:
            return "warning"
        return "ok"

    def to_dict(self) -> dict:
        return {
            "limit":      round(self.limit, 2),
            "spent":      round(self.spent, 2),
            "percentage": round(self.percentage, 1),
            "remaining":  round(self.remaining, 2),
            "level":      self.level,
            "is_over":    self.is_over,
        }


@dataclass
class ActivityStats:
    """Counters shown on the alias screen."""

    receipts_captured:  int = 0
    warranties_tracked: int = 0
    spam_blocked:       int = 0

    def to_dict(self) -> dict:
        return {
            "receipts_captured":  self.receipts_captured,
            "warranties_tracked": self.warranties_tracked,
            "spam_blocked":       self.spam_blocked,
        }


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------

def total_spent(receipts: Iterable[Receipt]) -> float:
    return sum((r.amount for r in receipts), 0.0)


def average_transaction(receipts: Sequence[Receipt]) -> float:
    if not receipts:
        return 0.0
    return total_spent(receipts) / len(receipts)


def category_breakdown(receipts: Sequence[Receipt]) -> List[CategorySpend]:
    """
    Group by category, largest amount first.

    Ties keep first-encountered order. Percentages are 0 when nothing was
    spent.
    """
    total = total_spent(receipts)
    groups: Dict[str, CategorySpend] = {}
    for r in receipts:
        group = groups.get(r.category)
        if group is None:
            group = groups[r.category] = CategorySpend(r.category, style=tag_style(r.category))
        group.amount += r.amount
        group.count += 1

    for group in groups.values():
        group.percentage = group.amount / total * 100 if total > 0 else 0.0

    return sorted(groups.values(), key=lambda g: -g.amount)


def monthly_trend(
    receipts: Iterable[Receipt],
    now: Now,
    months: int = 6,
) -> List[MonthBucket]:
    """
    Exactly ``months`` buckets ending at the month of ``now``, oldest first.

    A receipt lands in a bucket when its ISO date starts with the bucket's
    ``YYYY-MM`` key; undated receipts land nowhere.
    """
    today = _as_date(now)
    current_index = today.year * 12 + today.month - 1
    buckets: List[MonthBucket] = []
    for back in range(months - 1, -1, -1):
        year, month0 = divmod(current_index - back, 12)
        buckets.append(MonthBucket(key=f"{year:04d}-{month0 + 1:02d}", label=_MONTH_LABELS[month0]))

    by_key = {b.key: b for b in buckets}
    for r in receipts:
        bucket = by_key.get(r.date[:7])
        if bucket is not None and r.date.startswith(bucket.key):
            bucket.amount += r.amount
            bucket.count += 1
    return buckets


def month_over_month(trend: Sequence[MonthBucket]) -> MonthComparison:
    current = trend[-1].amount if trend else 0.0
    previous = trend[-2].amount if len(trend) > 1 else 0.0
    change = (current - previous) / previous * 100 if previous > 0 else 0.0
    return MonthComparison(current=current, previous=previous, change_pct=change)


def budget_status(spent: float, limit: float) -> BudgetStatus:
    percentage = spent / limit * 100 if limit > 0 else 0.0
    return BudgetStatus(limit=limit, spent=spent, percentage=percentage)


def activity_stats(
    receipts: Sequence[Receipt],
    now: Now,
    spam_multiplier: int = 12,
) -> ActivityStats:
    captured = len(receipts)
    return ActivityStats(
        receipts_captured=captured,
        warranties_tracked=sum(1 for r in receipts if has_active_warranty(r, now)),
        spam_blocked=captured * spam_multiplier,
    )


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass
class SpendingInsights:
    """All spend figures for one collection, computed at ``generated_for``."""

    generated_for:       date
    currency_symbol:     str
    total_spent:         float
    receipt_count:       int
    average_transaction: float
    categories:          List[CategorySpend]
    monthly_trend:       List[MonthBucket]
    comparison:          MonthComparison
    budget:              BudgetStatus
    stats:               ActivityStats

    @property
    def top_category(self) -> str:
        return self.categories[0].category if self.categories else NO_CATEGORY

    @property
    def top_category_amount(self) -> float:
        return self.categories[0].amount if self.categories else 0.0

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "generated_for":       self.generated_for.isoformat(),
            "currency_symbol":     self.currency_symbol,
            "total_spent":         round(self.total_spent, 2),
            "receipt_count":       self.receipt_count,
            "average_transaction": round(self.average_transaction, 2),
            "top_category":        self.top_category,
            "top_category_amount": round(self.top_category_amount, 2),
            "categories":          [c.to_dict() for c in self.categories],
            "monthly_trend":       [b.to_dict() for b in self.monthly_trend],
            "comparison":          self.comparison.to_dict(),
            "budget":              self.budget.to_dict(),
            "stats":               self.stats.to_dict(),
        }

    def to_json(self, path: str | Path | None = None) -> str:
        raw = json.dumps(self.to_dict(), indent=2, ensure_ascii=False)
        if path:
            Path(path).write_text(raw, encoding="utf-8")
        return raw

    def summary(self) -> str:
        W = 52
        div  = "─" * W
        hdiv = "═" * W
        cur  = self.currency_symbol
        cmp_ = self.comparison

        lines = [
            "=" * W,
            f"  Spending insights — {self.generated_for}",
            "=" * W,
            f"  Receipts            : {self.receipt_count}",
            f"  Total spent         : {cur}{self.total_spent:,.2f}",
            f"  Average transaction : {cur}{self.average_transaction:,.2f}",
            f"  Top category        : {self.top_category}",
        ]

        if self.categories:
            lines.append(div)
            for c in self.categories:
                lines.append(
                    f"  {c.category:<20} {cur}{c.amount:>10,.2f}  {c.percentage:>5.1f}%  ({c.count})"
                )

        lines.append(div)
        for b in self.monthly_trend:
            lines.append(f"  {b.label} {b.key[:4]}            : {cur}{b.amount:>10,.2f}")

        lines += [
            hdiv,
            f"  Month over month    : {cmp_.change_pct:+.1f}% ({cmp_.direction})",
            f"  Budget              : {self.budget.percentage:.1f}% of {cur}{self.budget.limit:,.2f}",
            f"  Remaining           : {cur}{self.budget.remaining:,.2f}",
            "=" * W,
        ]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

def generate_insights(
    receipts: Iterable[Receipt],
    now: Now,
    budget_limit: Optional[float] = None,
    *,
    months: Optional[int] = None,
    spam_multiplier: Optional[int] = None,
    currency_symbol: Optional[str] = None,
) -> SpendingInsights:
    """
    Compute every insight figure for ``receipts`` as of ``now``.

    Unset keyword arguments fall back to the configured defaults.
    """
    receipts = list(receipts)
    limit = cfg.budget_limit if budget_limit is None else budget_limit
    trend = monthly_trend(receipts, now, months or cfg.trend_months)
    total = total_spent(receipts)

    if currency_symbol is None:
        currency_symbol = receipts[0].currency_symbol if receipts else cfg.currency_symbol

    return SpendingInsights(
        generated_for=_as_date(now),
        currency_symbol=currency_symbol,
        total_spent=total,
        receipt_count=len(receipts),
        average_transaction=average_transaction(receipts),
        categories=category_breakdown(receipts),
        monthly_trend=trend,
        comparison=month_over_month(trend),
        budget=budget_status(total, limit),
        stats=activity_stats(
            receipts, now,
            cfg.spam_multiplier if spam_multiplier is None else spam_multiplier,
        ),
    )
