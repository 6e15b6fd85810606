"""Bank-native category -> canonical category tables.

Chase and Capital One exports include their own category column. These tables
translate the labels we trust into the canonical vocabulary. Labels that are
too broad to map safely (``"Professional Services"`` at both banks) are left
out on purpose: they return ``None`` and the transaction falls through to the
keyword heuristics.

Capital One's ``"Merchandise"`` bucket mixes supermarkets with general retail,
so it is resolved against the merchant description: a grocery keyword yields
``Groceries``, anything else ``Shopping``.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Final

CHASE_CATEGORY_MAP: Final[Mapping[str, str]] = MappingProxyType(
    {
        "Food & Drink": "Food & Dining",
        "Groceries": "Groceries",
        "Shopping": "Shopping",
        "Home": "Household",
        "Gas": "Transportation",
        "Automotive": "Transportation",
        "Travel": "Travel",
        "Bills & Utilities": "Bills & Utilities",
        "Health & Wellness": "Healthcare",
        "Healthcare": "Healthcare",
        "Entertainment": "Entertainment",
        "Personal": "Other",
        "Fees & Adjustments": "Other",
        "Gifts & Donations": "Other",
    }
)

CAPITAL_ONE_CATEGORY_MAP: Final[Mapping[str, str]] = MappingProxyType(
    {
        "Dining": "Food & Dining",
        "Restaurants": "Food & Dining",
        "Grocery": "Groceries",
        "Groceries": "Groceries",
        "Gas/Automotive": "Transportation",
        "Gas": "Transportation",
        "Automotive": "Transportation",
        "Parking": "Transportation",
        "Health Care": "Healthcare",
        "Healthcare": "Healthcare",
        "Medical": "Healthcare",
        "Pharmacy": "Healthcare",
        "Merchandise": "Shopping",
        "Shopping": "Shopping",
        "Retail": "Shopping",
        "Airfare": "Travel",
        "Lodging": "Travel",
        "Hotels": "Travel",
        "Car Rental": "Travel",
        "Other Travel": "Travel",
        "Travel": "Travel",
        "Phone/Cable": "Bills & Utilities",
        "Internet": "Bills & Utilities",
        "Utilities": "Bills & Utilities",
        "Insurance": "Bills & Utilities",
        "Entertainment": "Entertainment",
        "Movies": "Entertainment",
        "Education": "Education",
        "Payment/Credit": "Payment",
        "Payment": "Payment",
        "Payments": "Payment",
        "Fees Charged": "Other",
        "Fee/Interest Charge": "Other",
        "Other Services": "Other",
        "Other": "Other",
    }
)

MERCHANDISE_GROCERY_KEYWORDS: Final[tuple[str, ...]] = (
    "market",
    "food",
    "grocery",
    "supermarket",
    "produce",
    "whole foods",
    "trader joe",
    "wegmans",
    "shoprite",
    "price chopper",
    "hannaford",
    "stop & shop",
    "food co-op",
    "honest weight",
    "costco",
    "sams",
    "bj's wholesale",
)


def _clean(label: str | None) -> str | None:
    if label is None:
        return None
    trimmed = label.strip()
    return trimmed or None


def map_chase_category(bank_category: str | None) -> str | None:
    label = _clean(bank_category)
    if label is None:
        return None
    return CHASE_CATEGORY_MAP.get(label)


def map_capital_one_category(
    bank_category: str | None, merchant_description: str | None = None
) -> str | None:
    label = _clean(bank_category)
    if label is None:
        return None
    if label == "Merchandise" and merchant_description:
        desc = merchant_description.lower()
        if any(keyword in desc for keyword in MERCHANDISE_GROCERY_KEYWORDS):
            return "Groceries"
    return CAPITAL_ONE_CATEGORY_MAP.get(label)


def map_bank_category(
    bank_category: str | None, merchant_description: str | None = None
) -> str | None:
    """Try the Chase table, then Capital One; ``None`` when neither knows the label."""

    return map_chase_category(bank_category) or map_capital_one_category(
        bank_category, merchant_description
    )


__all__ = [
    "CAPITAL_ONE_CATEGORY_MAP",
    "CHASE_CATEGORY_MAP",
    "MERCHANDISE_GROCERY_KEYWORDS",
    "map_bank_category",
    "map_capital_one_category",
    "map_chase_category",
]
