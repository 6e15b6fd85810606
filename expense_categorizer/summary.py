"""Spend breakdown for a batch of categorized transactions.

Only money actually spent or earned is counted: debits (negative amounts) and
credits already categorized as ``Income``. Card payments and transfers between
the user's own accounts are left out entirely so that paying off a card is not
counted once as spending and again as income; other credits (refunds that
were categorized back into a spending category) are also left out.
"""

from __future__ import annotations

from collections.abc import Iterable

from .categories import NON_SPENDING_CATEGORIES
from .models import CategorizedTransaction, CategorySummary


def _counts_toward_summary(item: CategorizedTransaction) -> bool:
    if item.category in NON_SPENDING_CATEGORIES:
        return False
    return item.amount < 0 or (item.amount > 0 and item.category == "Income")


def calculate_summary(items: Iterable[CategorizedTransaction]) -> tuple[CategorySummary, ...]:
    """Per-category totals (absolute), counts and percentages, largest first."""

    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for item in items:
        if not _counts_toward_summary(item):
            continue
        totals[item.category] = totals.get(item.category, 0.0) + abs(item.amount)
        counts[item.category] = counts.get(item.category, 0) + 1

    grand_total = sum(totals.values())
    summary = [
        CategorySummary(
            category=category,
            total=round(total, 2),
            count=counts[category],
            percentage=(total / grand_total * 100.0) if grand_total > 0 else 0.0,
        )
        for category, total in totals.items()
    ]
    summary.sort(key=lambda s: s.total, reverse=True)
    return tuple(summary)


def total_expenses(items: Iterable[CategorizedTransaction]) -> float:
    """Absolute sum of debits, excluding payments and transfers."""

    return round(
        sum(
            abs(i.amount)
            for i in items
            if i.amount < 0 and i.category not in NON_SPENDING_CATEGORIES
        ),
        2,
    )


def total_income(items: Iterable[CategorizedTransaction]) -> float:
    """Sum of credits categorized as ``Income``."""

    return round(sum(i.amount for i in items if i.amount > 0 and i.category == "Income"), 2)


__all__ = ["calculate_summary", "total_expenses", "total_income"]
