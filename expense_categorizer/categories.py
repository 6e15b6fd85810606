"""The closed category vocabulary.

Every categorized transaction ends up with exactly one of these labels. The
tuple is both the allow-list used to validate classifier output and the
``enum`` embedded in the classifier's response schema, so the two can never
drift apart.
"""

from __future__ import annotations

from typing import Final

CATEGORIES: Final[tuple[str, ...]] = (
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Bills & Utilities",
    "Entertainment",
    "Healthcare",
    "Travel",
    "Groceries",
    "Household",
    "Education",
    "Income",
    "Payment",
    "Transfer",
    "Other",
)

FALLBACK_CATEGORY: Final[str] = "Other"

# Categories that move money between the user's own accounts; they are not
# spending and are excluded from expense totals.
NON_SPENDING_CATEGORIES: Final[frozenset[str]] = frozenset({"Payment", "Transfer"})

_ALLOWED: Final[frozenset[str]] = frozenset(CATEGORIES)


def is_valid_category(value: object) -> bool:
    """Return True when ``value`` is exactly one of :data:`CATEGORIES`."""

    return isinstance(value, str) and value in _ALLOWED


__all__ = [
    "CATEGORIES",
    "FALLBACK_CATEGORY",
    "NON_SPENDING_CATEGORIES",
    "is_valid_category",
]
