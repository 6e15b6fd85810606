"""Categorization pipeline.

Every transaction passes through the stages below; the first stage that
produces a category wins:

1. learned rules (``confidence == 1.0``);
2. the merchant cache (cached category and confidence, no external call);
3. one batch classifier request covering every remaining transaction;
4. the deterministic fallback (:func:`expert_rules.smart_categorize`).

Classifier labels are checked against the vocabulary the categorizer was
built with (a subset of the 14 labels). A label outside it is replaced by the
fallback for that transaction, clamped to the vocabulary (confidence 0.85).
If the request itself fails (exception, timeout, malformed JSON, wrong
length) the whole batch takes the fallback at 0.95 when the bank's own fields
decided it and 0.80 otherwise. The fallback never raises, so the output
always has one categorized transaction per input, in input order.

Results of a successful classifier call are written to the merchant cache;
fallback results are not, so a later call retries the classifier.
"""

from __future__ import annotations

from collections.abc import Sequence

from .cache import MerchantCache, get_default_cache
from .categories import CATEGORIES, FALLBACK_CATEGORY, is_valid_category
from .classifier import Classifier, ClassifierItem
from .expert_rules import smart_categorize
from .logging_setup import get_logger
from .models import CategorizationResult, CategorizedTransaction, Transaction
from .rules import LearnedRules
from .summary import calculate_summary, total_expenses, total_income

_logger = get_logger("expense_categorizer.categorize")

RULE_CONFIDENCE = 1.0
AI_CONFIDENCE = 0.95
AI_REMAPPED_CONFIDENCE = 0.85
BANK_FALLBACK_CONFIDENCE = 0.95
KEYWORD_FALLBACK_CONFIDENCE = 0.80


def _within(category: str, vocabulary: tuple[str, ...]) -> str:
    """Clamp a heuristic category into the call's vocabulary."""

    if category in vocabulary:
        return category
    if FALLBACK_CATEGORY in vocabulary:
        return FALLBACK_CATEGORY
    return vocabulary[0]


def fallback_categorize(transaction: Transaction) -> CategorizedTransaction:
    """Deterministic categorization used when the classifier cannot answer."""

    result = smart_categorize(transaction)
    confidence = (
        BANK_FALLBACK_CONFIDENCE if result.source == "bank" else KEYWORD_FALLBACK_CONFIDENCE
    )
    return CategorizedTransaction(transaction, result.category, confidence)


class Categorizer:
    """Runs the rule -> cache -> classifier -> fallback pipeline.

    Parameters
    ----------
    classifier:
        Batch classifier; ``None`` skips the external stage entirely.
    cache:
        Merchant cache; defaults to the process-wide cache.
    rules:
        Learned rules; ``None`` disables the rule stage.
    categories:
        Vocabulary used to validate classifier labels; a non-empty subset of
        :data:`CATEGORIES`. It is copied on construction, so one call never sees
        it change. Raises ``ValueError`` for an empty vocabulary or unknown labels.
    """

    def __init__(
        self,
        *,
        classifier: Classifier | None = None,
        cache: MerchantCache | None = None,
        rules: LearnedRules | None = None,
        categories: Sequence[str] = CATEGORIES,
    ) -> None:
        self.classifier = classifier
        self.cache = cache if cache is not None else get_default_cache()
        self.rules = rules
        vocabulary = tuple(dict.fromkeys(categories))
        unknown = [c for c in vocabulary if not is_valid_category(c)]
        if unknown:
            raise ValueError(f"Unknown categories in vocabulary: {unknown!r}")
        if not vocabulary:
            raise ValueError("categories must contain at least one label")
        self._categories = vocabulary

    def categorize(self, transactions: Sequence[Transaction]) -> CategorizationResult:
        vocabulary = self._categories
        allowed = frozenset(vocabulary)
        resolved: list[CategorizedTransaction | None] = [None] * len(transactions)
        pending: list[int] = []
        rule_matches = 0
        cache_hits = 0

        for i, tx in enumerate(transactions):
            if self.rules is not None:
                match = self.rules.apply_rules(tx.description)
                if match is not None:
                    resolved[i] = CategorizedTransaction(tx, match.category, RULE_CONFIDENCE)
                    rule_matches += 1
                    continue
            hit = self.cache.get(tx.description)
            if hit is not None and hit.category in allowed:
                resolved[i] = CategorizedTransaction(tx, hit.category, hit.confidence)
                cache_hits += 1
                continue
            pending.append(i)

        ai_categorized, fallback_categorized = self._resolve_pending(
            transactions, pending, resolved, vocabulary, allowed
        )

        items = tuple(r for r in resolved if r is not None)
        _logger.info(
            "categorize:done count=%d rules=%d cache=%d ai=%d fallback=%d",
            len(items),
            rule_matches,
            cache_hits,
            ai_categorized,
            fallback_categorized,
        )
        return CategorizationResult(
            transactions=items,
            category_summary=calculate_summary(items),
            total_expenses=total_expenses(items),
            total_income=total_income(items),
            cache_stats=self.cache.stats(),
            rule_matches=rule_matches,
            cache_hits=cache_hits,
            ai_categorized=ai_categorized,
            fallback_categorized=fallback_categorized,
        )

    def _resolve_pending(
        self,
        transactions: Sequence[Transaction],
        pending: list[int],
        resolved: list[CategorizedTransaction | None],
        vocabulary: tuple[str, ...],
        allowed: frozenset[str],
    ) -> tuple[int, int]:
        if not pending:
            return 0, 0

        labels = self._classify([transactions[i] for i in pending], vocabulary)
        if labels is None:
            for i in pending:
                resolved[i] = fallback_categorize(transactions[i])
            return 0, len(pending)

        remapped = 0
        for i, label in zip(pending, labels, strict=True):
            tx = transactions[i]
            if isinstance(label, str) and label in allowed:
                category, confidence = label, AI_CONFIDENCE
            else:
                remapped += 1
                category = _within(smart_categorize(tx).category, vocabulary)
                confidence = AI_REMAPPED_CONFIDENCE
            self.cache.put(tx.description, category, confidence)
            resolved[i] = CategorizedTransaction(tx, category, confidence)
        if remapped:
            _logger.warning("categorize:labels_remapped count=%d of=%d", remapped, len(pending))
        return len(pending), 0

    def _classify(
        self, batch: Sequence[Transaction], vocabulary: tuple[str, ...]
    ) -> list[str] | None:
        """Return one label per transaction, or ``None`` when the batch must fall back."""

        if self.classifier is None:
            return None
        _logger.info("categorize:ai_batch count=%d", len(batch))
        try:
            labels = self.classifier.classify(
                [ClassifierItem(t.description, t.amount) for t in batch], vocabulary
            )
        except Exception as e:  # noqa: BLE001
            _logger.warning(
                "categorize:ai_failed count=%d error=%s", len(batch), e.__class__.__name__
            )
            return None
        if not isinstance(labels, list) or len(labels) != len(batch):
            _logger.warning(
                "categorize:ai_bad_shape expected=%d got=%s",
                len(batch),
                len(labels) if isinstance(labels, list) else type(labels).__name__,
            )
            return None
        return labels


def categorize_transactions(
    transactions: Sequence[Transaction],
    *,
    classifier: Classifier | None = None,
    cache: MerchantCache | None = None,
    rules: LearnedRules | None = None,
) -> CategorizationResult:
    """One-shot helper around :class:`Categorizer`."""

    return Categorizer(classifier=classifier, cache=cache, rules=rules).categorize(transactions)


__all__ = [
    "AI_CONFIDENCE",
    "AI_REMAPPED_CONFIDENCE",
    "BANK_FALLBACK_CONFIDENCE",
    "Categorizer",
    "KEYWORD_FALLBACK_CONFIDENCE",
    "RULE_CONFIDENCE",
    "categorize_transactions",
    "fallback_categorize",
]
