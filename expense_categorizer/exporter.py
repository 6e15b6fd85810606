"""CSV export of categorized transactions.

Layout::

    Date,Description,Amount,Category,Confidence,IsSplit
    2024-01-15,"STARBUCKS #123",-5.75,Food & Dining,95%,No

The description is always quoted (inner quotes doubled), confidence is a
whole percentage or ``N/A`` and split transactions expand into one row per
split. When a :class:`RecurringAnalysis` is passed, a subscription summary
block and a blank line precede the transaction table.
"""

from __future__ import annotations

from collections.abc import Sequence

from .models import CategorizedTransaction, RecurringAnalysis

HEADER = "Date,Description,Amount,Category,Confidence,IsSplit"
RECURRING_TITLE = "Recurring Subscriptions Summary"
RECURRING_HEADER = "Merchant,Frequency,Average Amount,Occurrences,Next Expected"


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _confidence(value: float | None) -> str:
    if value is None:
        return "N/A"
    return f"{round(value * 100)}%"


def _transaction_rows(item: CategorizedTransaction) -> list[str]:
    confidence = _confidence(item.confidence)
    if item.is_split and item.splits:
        rows = []
        for split in item.splits:
            description = (
                f"{item.description} - {split.description}"
                if split.description
                else item.description
            )
            rows.append(
                f"{item.date},{_quote(description)},{split.amount:.2f},"
                f"{split.category},{confidence},Yes"
            )
        return rows
    return [
        f"{item.date},{_quote(item.description)},{item.amount:.2f},"
        f"{item.category},{confidence},No"
    ]


def _recurring_block(analysis: RecurringAnalysis) -> list[str]:
    lines = [RECURRING_TITLE, RECURRING_HEADER]
    for r in analysis.recurring:
        lines.append(
            f"{_quote(r.merchant)},{r.frequency},{r.average_amount:.2f},"
            f"{r.occurrences},{r.next_expected_date or 'N/A'}"
        )
    lines.append(f"Total Monthly,{analysis.total_monthly_spend:.2f}")
    lines.append(f"Total Annual,{analysis.total_annual_spend:.2f}")
    lines.append(f"Hidden Subscriptions,{analysis.hidden_count}")
    lines.append("")
    return lines


def export_to_csv(
    transactions: Sequence[CategorizedTransaction],
    recurring: RecurringAnalysis | None = None,
) -> str:
    """Render ``transactions`` as CSV text; empty input without recurring data gives ``""``."""

    if not transactions and recurring is None:
        return ""

    lines: list[str] = []
    if recurring is not None:
        lines.extend(_recurring_block(recurring))
    lines.append(HEADER)
    for item in transactions:
        lines.extend(_transaction_rows(item))
    return "\n".join(lines)


__all__ = ["HEADER", "RECURRING_HEADER", "RECURRING_TITLE", "export_to_csv"]
