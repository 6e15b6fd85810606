"""Recurring charge and subscription detection.

``detect_recurring`` works on one batch of categorized transactions and keeps
no state between calls.

Algorithm
---------
1. Group transactions by :func:`~expense_categorizer.merchants.recurring_key`
   (first two words of the coarse merchant key). Merchants that are plainly
   not subscriptions (marketplaces, restaurants, fuel, groceries, card
   payments, single rides) are dropped.
2. A group needs at least two members to be analyzed and at least three to be
   accepted. Sorted by date, the group yields the mean absolute amount,
   whether every amount lies within 10% of that mean, the day gaps between
   charges and their mean.
3. Frequency from the mean gap: 25-35 days monthly, 80-100 quarterly, 350-380
   annual, anything else ``unknown`` (a lone out-of-range gap is rejected).
4. Confidence starts at 0.5: +0.3 for consistent amounts, +0.1 at three
   charges, +0.1 more at five, +0.2 when the merchant carries a subscription
   keyword; capped at 1.0. Candidates whose amounts vary and that carry no
   keyword are rejected, and only confidence >= 0.6 is kept.
5. The next charge is expected ``round(mean gap)`` days after the last one.

Detected items are partitioned into keyword groups (first match wins, the
rest go to "Other Subscriptions") and summarized into monthly and annual
spend plus a count of small monthly charges that are easy to forget.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Final

from .logging_setup import get_logger
from .merchants import display_merchant, recurring_key
from .models import CategorizedTransaction, Frequency, RecurringAnalysis, RecurringTransaction
from .models import SubscriptionGroup

_logger = get_logger("expense_categorizer.recurring")

# ---- Tunables -----------------------------------------------------------------
MIN_GROUP_SIZE = 2
MIN_OCCURRENCES = 3
AMOUNT_TOLERANCE = 0.10
MIN_CONFIDENCE = 0.6
HIDDEN_AMOUNT_THRESHOLD = 20.0

_FREQUENCY_WINDOWS: Final[tuple[tuple[Frequency, float, float], ...]] = (
    ("monthly", 25, 35),
    ("quarterly", 80, 100),
    ("annual", 350, 380),
)

SUBSCRIPTION_KEYWORDS: Final[tuple[str, ...]] = (
    "netflix",
    "spotify",
    "hulu",
    "disney",
    "apple",
    "amazon prime",
    "youtube",
    "gym",
    "fitness",
    "planet",
    "crunch",
    "insurance",
    "phone",
    "internet",
    "cable",
    "electricity",
    "gas company",
    "water",
    "rent",
    "mortgage",
    "subscription",
    "membership",
    "adobe",
)

SUBSCRIPTION_GROUPS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    (
        "Streaming Services",
        (
            "netflix",
            "hulu",
            "disney",
            "hbo",
            "paramount",
            "peacock",
            "youtube",
            "prime video",
            "apple tv",
        ),
    ),
    ("Music & Podcasts", ("spotify", "apple music", "pandora", "tidal", "soundcloud")),
    (
        "Fitness & Health",
        ("gym", "fitness", "planet", "crunch", "peloton", "crossfit", "yoga", "health"),
    ),
    (
        "Software & Tools",
        ("adobe", "microsoft", "google", "dropbox", "notion", "slack", "zoom", "github"),
    ),
    (
        "Utilities & Bills",
        ("electric", "gas", "water", "internet", "phone", "cable", "insurance"),
    ),
    ("News & Media", ("times", "post", "journal", "magazine", "news", "medium")),
)
OTHER_GROUP = "Other Subscriptions"

_EXCLUDED_MERCHANT_RE = re.compile(
    "|".join(
        (
            # marketplaces and big-box retail
            r"amazon\s*mktpl?",
            r"amzn\s*mktp",
            r"amazon\.com[a-z0-9]+",
            r"\bebay\b",
            r"wal-?mart(?!\s*\+)",
            r"\btarget\b(?!\s*(?:circle|subscription))",
            r"costco(?!\s*membership)",
            r"sams?\s*(?:scan|club)(?!\s*membership)",
            # restaurants, coffee and delivery
            r"chipotle",
            r"mcdonald",
            r"burger\s*king",
            r"wendy'?s",
            r"taco\s*bell",
            r"\bsubway\b",
            r"starbucks",
            r"dunkin",
            r"panera",
            r"popeyes",
            r"\bkfc\b",
            r"pizza",
            r"restaurant",
            r"\bcafe\b",
            r"\bdiner\b",
            r"\bdeli\b",
            r"bistro",
            r"\bgrill\b",
            r"eatery",
            r"^tst\s*\*",
            r"\bdd\s+(?:doordash|dd)\b",
            r"doordash(?!.*(?:plus|dashpass))",
            r"uber\s*eats",
            r"grubhub",
            r"postmates",
            # fuel stations
            r"sunoco",
            r"shell\s*(?:oil|\d|#)",
            r"exxon",
            r"\bbp\s*#",
            r"\bmobil\b",
            r"chevron",
            r"citgo",
            r"speedway",
            r"\bwawa\b",
            r"\bgulf\b",
            r"7-eleven",
            r"\bgas\b(?!\s*(?:company|utility|bill))",
            # home improvement and groceries
            r"home\s*depot",
            r"lowe'?s",
            r"trader\s*joe",
            r"whole\s*foods",
            r"\baldi\b",
            r"hannaford",
            r"safeway",
            r"kroger",
            r"publix",
            r"wegmans",
            r"market\s*\d+",
            r"\bc\s*town\b",
            # card payments, rides, tolls, pharmacies
            r"payment\s*thank\s*you",
            r"automatic\s*payment",
            r"^\s*payment\s*$",
            r"uber\s*\*?\s*trip",
            r"lyft\s*ride",
            r"\btaxi\b",
            r"\bcab\b",
            r"e-z(?!pass\s*subscription)",
            r"amtrak\s*mobile",
            r"metro(?!\s*(?:pass|card|subscription))",
            r"\bmta\b(?!.*(?:monthly|pass))",
            r"\bcdta\b",
            r"cvs/pharmacy",
            r"walgreens",
            r"rite\s*aid",
            r"dollar\s*(?:tree|general)",
            r"parking(?!\s*(?:pass|subscription|monthly))",
            r"spothero",
            r"foreign\s*transaction",
        )
    ),
    re.IGNORECASE,
)


def is_excluded_merchant(description: str) -> bool:
    return _EXCLUDED_MERCHANT_RE.search(description) is not None


def has_subscription_keyword(*names: str) -> bool:
    lowered = [n.lower() for n in names]
    return any(k in name for name in lowered for k in SUBSCRIPTION_KEYWORDS)


def classify_frequency(mean_interval: float, num_intervals: int) -> Frequency | None:
    """Map a mean gap in days to a frequency; ``None`` rejects the pattern."""

    for frequency, low, high in _FREQUENCY_WINDOWS:
        if low <= mean_interval <= high:
            return frequency
    if num_intervals >= 2:
        return "unknown"
    return None


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def analyze_group(key: str, items: Sequence[CategorizedTransaction]) -> RecurringTransaction | None:
    """Score one merchant group; ``None`` when it is not a recurring charge."""

    if len(items) < MIN_GROUP_SIZE:
        return None
    ordered = sorted(items, key=lambda t: t.date)
    occurrences = len(ordered)
    if occurrences < MIN_OCCURRENCES:
        return None

    amounts = [abs(t.amount) for t in ordered]
    mean_amount = sum(amounts) / occurrences
    consistent = all(abs(a - mean_amount) <= AMOUNT_TOLERANCE * mean_amount for a in amounts)

    dates = [date.fromisoformat(t.date) for t in ordered]
    intervals = [(later - earlier).days for earlier, later in zip(dates, dates[1:])]
    mean_interval = sum(intervals) / len(intervals)
    frequency = classify_frequency(mean_interval, len(intervals))
    if frequency is None:
        return None

    merchant = display_merchant(ordered[0].description)
    keyword = has_subscription_keyword(key, merchant)
    if not consistent and not keyword:
        return None

    confidence = 0.5
    if consistent:
        confidence += 0.3
    if occurrences >= 3:
        confidence += 0.1
    if occurrences >= 5:
        confidence += 0.1
    if keyword:
        confidence += 0.2
    confidence = min(1.0, round(confidence, 2))
    if confidence < MIN_CONFIDENCE:
        return None

    next_expected = dates[-1] + timedelta(days=_round_half_up(mean_interval))
    return RecurringTransaction(
        merchant=merchant,
        frequency=frequency,
        occurrences=occurrences,
        category=ordered[0].category,
        dates=tuple(d.isoformat() for d in dates),
        total_spent=round(sum(amounts), 2),
        average_amount=round(mean_amount, 2),
        confidence=confidence,
        next_expected_date=next_expected.isoformat(),
    )


def group_subscriptions(recurring: Iterable[RecurringTransaction]) -> tuple[SubscriptionGroup, ...]:
    """Partition detected items into keyword groups, keeping non-empty groups only."""

    names = [name for name, _ in SUBSCRIPTION_GROUPS] + [OTHER_GROUP]
    buckets: dict[str, list[RecurringTransaction]] = {name: [] for name in names}
    for item in recurring:
        merchant = item.merchant.lower()
        target = next(
            (name for name, keywords in SUBSCRIPTION_GROUPS if any(k in merchant for k in keywords)),
            OTHER_GROUP,
        )
        buckets[target].append(item)

    groups: list[SubscriptionGroup] = []
    for name in names:
        members = buckets[name]
        if not members:
            continue
        monthly = sum(_monthly_equivalent(m) for m in members)
        # annual figure is the monthly run-rate, so each item counts once per year
        groups.append(
            SubscriptionGroup(
                group_name=name,
                subscriptions=tuple(members),
                total_monthly=round(monthly, 2),
                total_annual=round(monthly * 12, 2),
                count=len(members),
            )
        )
    return tuple(groups)


def _monthly_equivalent(item: RecurringTransaction) -> float:
    if item.frequency == "monthly":
        return item.average_amount
    if item.frequency == "quarterly":
        return item.average_amount / 3
    if item.frequency == "annual":
        return item.average_amount / 12
    return 0.0


def detect_recurring(transactions: Sequence[CategorizedTransaction]) -> RecurringAnalysis:
    """Find recurring charges in one batch of categorized transactions."""

    if not transactions:
        return RecurringAnalysis()

    groups: dict[str, list[CategorizedTransaction]] = {}
    for tx in transactions:
        groups.setdefault(recurring_key(tx.description), []).append(tx)

    recurring: list[RecurringTransaction] = []
    for key, members in groups.items():
        if len(members) < MIN_GROUP_SIZE:
            continue
        if is_excluded_merchant(members[0].description):
            continue
        pattern = analyze_group(key, members)
        if pattern is not None:
            recurring.append(pattern)
    recurring.sort(key=lambda r: r.total_spent, reverse=True)

    monthly_total = sum(r.average_amount for r in recurring if r.frequency == "monthly")
    monthly_total += sum(r.average_amount / 3 for r in recurring if r.frequency == "quarterly")
    annual_total = sum(r.average_amount for r in recurring if r.frequency == "annual")
    annual_total += 12 * monthly_total
    hidden = sum(
        1
        for r in recurring
        if r.frequency == "monthly" and r.average_amount < HIDDEN_AMOUNT_THRESHOLD
    )

    _logger.info(
        "detect_recurring:done transactions=%d merchants=%d recurring=%d",
        len(transactions),
        len(groups),
        len(recurring),
    )
    return RecurringAnalysis(
        recurring=tuple(recurring),
        groups=group_subscriptions(recurring),
        total_monthly_spend=round(monthly_total, 2),
        total_annual_spend=round(annual_total, 2),
        hidden_count=hidden,
    )


__all__ = [
    "OTHER_GROUP",
    "SUBSCRIPTION_GROUPS",
    "SUBSCRIPTION_KEYWORDS",
    "analyze_group",
    "classify_frequency",
    "detect_recurring",
    "group_subscriptions",
    "has_subscription_keyword",
    "is_excluded_merchant",
]
