"""Deterministic categorization used when the classifier is unavailable.

The keyword heuristics are an ordered table of :class:`ExpertRule` entries,
each a ``(predicate, category)`` pair evaluated against the lowercased
description and the signed amount. The first matching rule wins; nothing
matching means ``Other``. Order matters and encodes precedence:

1. mortgage/rent (before any generic "payment" rule)
2. credit-card payments arriving as credits
3. loan payments
4. transfers of the user's own money (Venmo, Zelle, brokerage buys)
5. any remaining credit is income
6. dining, groceries, transportation, bills & utilities, entertainment,
   education, shopping, healthcare, travel, household, home & auto shopping

:func:`smart_categorize` puts the bank's own fields in front of the table.
It never raises and always returns a vocabulary label.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final, Literal, NamedTuple

from .bank_categories import map_bank_category
from .categories import FALLBACK_CATEGORY
from .models import Transaction

type Predicate = Callable[[str, float], bool]


@dataclass(frozen=True, slots=True)
class ExpertRule:
    name: str
    predicate: Predicate
    category: str


class FallbackResult(NamedTuple):
    category: str
    source: Literal["bank", "keyword"]


# ---- Predicate builders -----------------------------------------------------


def contains_any(*keywords: str) -> Predicate:
    """Match when any keyword is a substring of the lowercased description."""

    lowered = tuple(k.lower() for k in keywords)
    return lambda desc, _amount: any(k in desc for k in lowered)


def words_any(*words: str) -> Predicate:
    """Match whole words only (``inn`` must not match ``dinner``)."""

    pattern = re.compile(r"\b(?:" + "|".join(re.escape(w.lower()) for w in words) + r")\b")
    return lambda desc, _amount: pattern.search(desc) is not None


def either(*predicates: Predicate) -> Predicate:
    return lambda desc, amount: any(p(desc, amount) for p in predicates)


def credit(predicate: Predicate) -> Predicate:
    """Restrict ``predicate`` to positive amounts."""

    return lambda desc, amount: amount > 0 and predicate(desc, amount)


def is_credit(_desc: str, amount: float) -> bool:
    return amount > 0


# ---- The table --------------------------------------------------------------

EXPERT_RULES: Final[tuple[ExpertRule, ...]] = (
    ExpertRule(
        "mortgage_rent",
        contains_any(
            "wf home mtg",
            "wells fargo home mtg",
            "home mtg auto pay",
            "mortgage payment",
            "homestead funding",
            "quicken loans",
            "rent payment",
            "rent due",
        ),
        "Bills & Utilities",
    ),
    ExpertRule(
        "card_payment_credit",
        credit(
            contains_any(
                "payment thank you",
                "automatic payment",
                "online payment",
                "mobile payment",
                "credit card payment",
                "autopay",
                "capital one mobile pymt",
                "capital one online pymt",
            )
        ),
        "Payment",
    ),
    ExpertRule(
        "loan_payment",
        contains_any("loan payment", "student loan", "car loan"),
        "Payment",
    ),
    ExpertRule(
        "own_money_transfer",
        contains_any(
            "transfer",
            "xfer",
            "venmo",
            "zelle",
            "cash app",
            "vanguard buy",
            "vanguard investment",
            "charles schwab bank",
            "synchrony bank",
        ),
        "Transfer",
    ),
    ExpertRule("credit_income", is_credit, "Income"),
    ExpertRule(
        "dining",
        either(
            contains_any(
                "chipotle",
                "mcdonald",
                "burger king",
                "taco bell",
                "wendys",
                "popeyes",
                "panera",
                "doordash",
                "dd *door",
                "uber eats",
                "grubhub",
                "postmates",
                "seamless",
                "starbucks",
                "coffee",
                "cafe",
                "espresso",
                "dunkin",
                "restaurant",
                "grill",
                "diner",
                "bistro",
                "taqueria",
                "pizz",
                "sushi",
                "bagel",
                "applebees",
            ),
            words_any("kfc", "subway", "deli", "thai", "mexican", "chinese", "italian", "cava"),
        ),
        "Food & Dining",
    ),
    ExpertRule(
        "groceries",
        contains_any(
            "walmart",
            "wal-mart",
            "wal mart",
            "target",
            "costco whse",
            "costco warehouse",
            "sams club",
            "samsclub",
            "sam's club",
            "whole foods",
            "trader joe",
            "safeway",
            "kroger",
            "aldi",
            "hannaford",
            "price chopper",
            "grocery",
            "food co-op",
            "wegmans",
            "publix",
        ),
        "Groceries",
    ),
    ExpertRule(
        "transportation",
        either(
            contains_any(
                "fuel",
                "exxon",
                "chevron",
                "sunoco",
                "citgo",
                "valero",
                "costco gas",
                "lyft",
                "parking",
                "ezpass",
                "e-zpass",
                "spothero",
                "metrocard",
            ),
            words_any("gas", "shell", "bp", "mobil", "uber", "toll", "tolls", "mta", "metro"),
        ),
        "Transportation",
    ),
    ExpertRule(
        "bills_utilities",
        either(
            contains_any(
                "spectrum",
                "comcast",
                "xfinity",
                "verizon",
                "at&t",
                "t-mobile",
                "mint mobile",
                "straighttalk",
                "google voice",
                "electric",
                "utility",
                "water",
                "sewer",
                "municipal",
                "insurance",
                "turbotax",
                "freetaxusa",
                "hrblock",
                "aaa membership",
            ),
            words_any("power", "sprint"),
        ),
        "Bills & Utilities",
    ),
    ExpertRule(
        "entertainment",
        contains_any(
            "netflix",
            "hulu",
            "disney",
            "spotify",
            "apple music",
            "amazon music",
            "prime video",
            "hbo",
            "youtube",
            "twitch",
            "kindle",
            "groupon",
            "cinema",
            "theater",
            "theatre",
        ),
        "Entertainment",
    ),
    ExpertRule(
        "education",
        contains_any(
            "audible", "coursera", "udemy", "skillshare", "masterclass", "khan academy", "tuition"
        ),
        "Education",
    ),
    ExpertRule(
        "shopping",
        either(
            lambda desc, _amount: "amazon" in desc and "prime video" not in desc,
            contains_any(
                "amzn mktp",
                "ebay",
                "etsy",
                "best buy",
                "apple store",
                "marshalls",
                "tj maxx",
                "dollar tree",
            ),
            words_any("ross", "lush"),
        ),
        "Shopping",
    ),
    ExpertRule(
        "healthcare",
        contains_any(
            "cvs",
            "walgreens",
            "pharmacy",
            "doctor",
            "dr.",
            "hospital",
            "medical",
            "dental",
            "optometry",
            "dermatology",
            "health",
            "clinic",
        ),
        "Healthcare",
    ),
    ExpertRule(
        "travel",
        either(
            contains_any(
                "hotel",
                "motel",
                "airline",
                "flight",
                "airways",
                "airbnb",
                "booking.com",
                "expedia",
                "jetblue",
                "american air",
                "southwest",
                "amtrak",
                "airport",
                "foreign transaction fee",
            ),
            words_any("inn", "united", "delta", "train"),
        ),
        "Travel",
    ),
    ExpertRule(
        "household",
        contains_any(
            "hvac",
            "plumbing",
            "electrician",
            "handyman",
            "contractor",
            "lawn",
            "landscaping",
            "mowing",
            "gutter",
            "roofing",
            "chimney",
            "pest control",
            "exterminator",
            "maid",
            "cleaning service",
            "house clean",
        ),
        "Household",
    ),
    ExpertRule(
        "home_auto_shopping",
        contains_any(
            "home depot",
            "lowes",
            "hardware",
            "advance auto",
            "autozone",
            "napa auto",
            "car wash",
        ),
        "Shopping",
    ),
)


def expert_categorize(
    description: str,
    amount: float,
    *,
    rules: Sequence[ExpertRule] = EXPERT_RULES,
) -> str:
    """Return the category of the first matching rule, else ``Other``."""

    desc = description.lower()
    for rule in rules:
        if rule.predicate(desc, amount):
            return rule.category
    return FALLBACK_CATEGORY


def smart_categorize(
    transaction: Transaction,
    *,
    rules: Sequence[ExpertRule] = EXPERT_RULES,
) -> FallbackResult:
    """Categorize without any external call.

    Priority: a bank ``type`` of "payment" (or a bank category naming a
    payment), then the mapped bank category, then the keyword table. Credits
    the table cannot place default to ``Income``.
    """

    bank_type = (transaction.transaction_type or "").strip().lower()
    bank_category = (transaction.original_category or "").strip()
    if bank_type == "payment" or "payment" in bank_category.lower():
        return FallbackResult("Payment", "bank")

    mapped = map_bank_category(bank_category, transaction.description)
    if mapped is not None:
        return FallbackResult(mapped, "bank")

    category = expert_categorize(transaction.description, transaction.amount, rules=rules)
    if transaction.amount > 0 and category == FALLBACK_CATEGORY:
        category = "Income"
    return FallbackResult(category, "keyword")


__all__ = [
    "EXPERT_RULES",
    "ExpertRule",
    "FallbackResult",
    "contains_any",
    "credit",
    "either",
    "expert_categorize",
    "smart_categorize",
    "words_any",
]
