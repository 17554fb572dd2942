"""
receiptit.insights
~~~~~~~~~~~~~~~~~~
Spend aggregation over normalised receipts.

Currently implemented:
  - ``spending`` — totals, category breakdown, monthly trend, budget
"""

from .spending import (
    NO_CATEGORY,
    ActivityStats,
    BudgetStatus,
    CategorySpend,
    MonthBucket,
    MonthComparison,
    SpendingInsights,
    activity_stats,
    average_transaction,
    budget_status,
    category_breakdown,
    generate_insights,
    month_over_month,
    monthly_trend,
    total_spent,
)

__all__ = [
    "NO_CATEGORY",
    "ActivityStats",
    "BudgetStatus",
    "CategorySpend",
    "MonthBucket",
    "MonthComparison",
    "SpendingInsights",
    "activity_stats",
    "average_transaction",
    "budget_status",
    "category_breakdown",
    "generate_insights",
    "month_over_month",
    "monthly_trend",
    "total_spent",
]
