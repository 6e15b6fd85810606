"""Data models for ``expense_categorizer``.

In-memory records produced and consumed by the pipeline are frozen, slotted
dataclasses. The two shapes that cross a persistence boundary (a learned
``CategoryRule`` and the versioned ``RuleEnvelope`` around them) are pydantic
models so that anything loaded from disk, a database or an import file is
validated before the rules engine trusts it. Their JSON form uses camelCase
keys (``merchantPattern``, ``appliedCount``) to stay compatible with rule sets
exported from the browser application.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .categories import is_valid_category

# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

_SPLIT_TOLERANCE = 0.005


@dataclass(frozen=True, slots=True)
class Transaction:
    """A canonical transaction as emitted by the format parsers.

    ``date`` is always ``YYYY-MM-DD``; ``amount`` is finite, negative for
    debits and positive for credits. ``original_category`` and
    ``transaction_type`` carry the bank's own labels when the export has them.
    """

    date: str
    description: str
    amount: float
    original_category: str | None = None
    transaction_type: str | None = None


@dataclass(frozen=True, slots=True)
class SplitItem:
    amount: float
    category: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class CategorizedTransaction:
    """A transaction with its assigned category.

    ``confidence`` is 1.0 only for learned-rule matches. When ``is_split`` is
    set, ``splits`` is non-empty and its amounts sum to the parent amount.
    """

    transaction: Transaction
    category: str
    confidence: float | None = None
    splits: tuple[SplitItem, ...] = ()
    is_split: bool = False

    def __post_init__(self) -> None:
        if not is_valid_category(self.category):
            raise ValueError(f"Unknown category: {self.category!r}")
        if self.confidence is not None and not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")
        if self.is_split:
            if not self.splits:
                raise ValueError("A split transaction needs at least one split")
            total = sum(s.amount for s in self.splits)
            if abs(total - self.transaction.amount) > _SPLIT_TOLERANCE:
                raise ValueError(
                    f"Split amounts sum to {total:.2f}, expected {self.transaction.amount:.2f}"
                )

    @property
    def date(self) -> str:
        return self.transaction.date

    @property
    def description(self) -> str:
        return self.transaction.description

    @property
    def amount(self) -> float:
        return self.transaction.amount


def split_transaction(
    item: CategorizedTransaction, splits: list[SplitItem] | tuple[SplitItem, ...]
) -> CategorizedTransaction:
    """Return a copy of ``item`` divided into ``splits``.

    Raises ``ValueError`` when a split has an unknown category or when the
    split amounts do not add up to the transaction amount.
    """

    for split in splits:
        if not is_valid_category(split.category):
            raise ValueError(f"Unknown category in split: {split.category!r}")
    return replace(item, splits=tuple(splits), is_split=True)


# ---------------------------------------------------------------------------
# Pipeline outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategorySummary:
    category: str
    total: float
    count: int
    percentage: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    size: int
    hits: int
    misses: int
    hit_rate: str


@dataclass(frozen=True, slots=True)
class CategorizationResult:
    """Everything a single ``categorize`` call produces.

    The stage counters (``rule_matches`` .. ``fallback_categorized``) add up to
    ``len(transactions)``.
    """

    transactions: tuple[CategorizedTransaction, ...]
    category_summary: tuple[CategorySummary, ...]
    total_expenses: float
    total_income: float
    cache_stats: CacheStats
    rule_matches: int = 0
    cache_hits: int = 0
    ai_categorized: int = 0
    fallback_categorized: int = 0


@dataclass(slots=True)
class ParseResult:
    """Outcome of parsing one upload.

    ``errors`` holds row-level messages (``"Row N: ..."``) alongside any
    transactions that did parse, or file-level messages with no transactions.
    ``raw_csv`` is set by the Excel parser, whose CSV rendering is handed to
    the text parser.
    """

    transactions: list[Transaction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    format: str | None = None
    raw_csv: str | None = None
    has_categories: bool = False


# ---------------------------------------------------------------------------
# Recurring analysis
# ---------------------------------------------------------------------------

type Frequency = Literal["monthly", "quarterly", "annual", "unknown"]


@dataclass(frozen=True, slots=True)
class RecurringTransaction:
    merchant: str
    frequency: Frequency
    occurrences: int
    category: str
    dates: tuple[str, ...]
    total_spent: float
    average_amount: float
    confidence: float
    next_expected_date: str | None = None


@dataclass(frozen=True, slots=True)
class SubscriptionGroup:
    group_name: str
    subscriptions: tuple[RecurringTransaction, ...]
    total_monthly: float
    total_annual: float
    count: int


@dataclass(frozen=True, slots=True)
class RecurringAnalysis:
    recurring: tuple[RecurringTransaction, ...] = ()
    groups: tuple[SubscriptionGroup, ...] = ()
    total_monthly_spend: float = 0.0
    total_annual_spend: float = 0.0
    hidden_count: int = 0


# ---------------------------------------------------------------------------
# Learned rules (persisted)
# ---------------------------------------------------------------------------


class CategoryRule(BaseModel):
    """A user-taught ``merchant pattern -> category`` override."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    id: str = Field(min_length=1)
    merchant_pattern: str = Field(min_length=1)
    category: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0, strict=True)
    created_at: str = Field(min_length=1)
    applied_count: int = Field(default=0, ge=0)
    last_applied: str | None = None

    @field_validator("category")
    @classmethod
    def _category_in_vocabulary(cls, v: str) -> str:
        if not is_valid_category(v):
            raise ValueError(f"unknown category {v!r}")
        return v


class RuleEnvelope(BaseModel):
    """Versioned container written to and read from a ``RuleStore``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    version: str
    rules: list[CategoryRule] = Field(default_factory=list)
    updated_at: str


__all__ = [
    "CacheStats",
    "CategorizationResult",
    "CategorizedTransaction",
    "CategoryRule",
    "CategorySummary",
    "Frequency",
    "ParseResult",
    "RecurringAnalysis",
    "RecurringTransaction",
    "RuleEnvelope",
    "SplitItem",
    "SubscriptionGroup",
    "Transaction",
    "split_transaction",
]
