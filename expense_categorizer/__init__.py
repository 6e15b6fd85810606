"""Expense categorization for bank and credit card exports.

Public entry points:

- :func:`parse_upload` turns a CSV, plain-text, OFX/QFX or Excel export into
  canonical :class:`Transaction` records.
- :class:`Categorizer` assigns each transaction one of :data:`CATEGORIES`
  (learned rules, merchant cache, AI classifier, deterministic fallback).
- :func:`detect_recurring` finds subscriptions and other recurring charges.
- :class:`LearnedRules` records user corrections as merchant rules.
- :func:`export_to_csv` renders categorized transactions as CSV.
"""

from __future__ import annotations

from .cache import CacheSweeper, MerchantCache, get_default_cache
from .categories import CATEGORIES, FALLBACK_CATEGORY, is_valid_category
from .categorize import Categorizer, categorize_transactions, fallback_categorize
from .classifier import Classifier, ClassifierItem, OpenAIClassifier
from .exporter import export_to_csv
from .ingest import parse_excel, parse_ofx, parse_transactions, parse_upload
from .models import (
    CategorizationResult,
    CategorizedTransaction,
    CategoryRule,
    ParseResult,
    RecurringAnalysis,
    RecurringTransaction,
    SplitItem,
    SubscriptionGroup,
    Transaction,
    split_transaction,
)
from .recurring import detect_recurring
from .rules import InMemoryRuleStore, JsonFileRuleStore, LearnedRules, RuleImportError

__all__ = [
    "CATEGORIES",
    "FALLBACK_CATEGORY",
    "CacheSweeper",
    "CategorizationResult",
    "CategorizedTransaction",
    "Categorizer",
    "CategoryRule",
    "Classifier",
    "ClassifierItem",
    "InMemoryRuleStore",
    "JsonFileRuleStore",
    "LearnedRules",
    "MerchantCache",
    "OpenAIClassifier",
    "ParseResult",
    "RecurringAnalysis",
    "RecurringTransaction",
    "RuleImportError",
    "SplitItem",
    "SubscriptionGroup",
    "Transaction",
    "categorize_transactions",
    "detect_recurring",
    "export_to_csv",
    "fallback_categorize",
    "get_default_cache",
    "is_valid_category",
    "parse_excel",
    "parse_ofx",
    "parse_transactions",
    "parse_upload",
    "split_transaction",
]
