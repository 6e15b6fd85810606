"""Merchant-name normalization.

Bank descriptions carry store numbers, order ids, processor prefixes and
amounts that defeat exact matching (``"STARBUCKS #1234 SEATTLE WA"``). Two
strengths of normalization are provided:

``coarse_key``
    High-recall key for the merchant cache (first word) and the recurring
    detector (first two words). Everything from the first ``*`` onward is
    dropped, then ``#<digits>`` order suffixes, then anything that is not a
    letter, then company suffixes.

``rule_key``
    Medium-specificity key for learned rules. Context words such as ``fee``
    or ``payment`` are kept alongside the merchant words so that
    ``"CAPITAL ONE FEE"`` and ``"CAPITAL ONE PAYMENT"`` become different
    rules.

Both functions are idempotent: normalizing a key again returns it unchanged.
"""

from __future__ import annotations

import re
from typing import Final

CONTEXT_KEYWORDS: Final[frozenset[str]] = frozenset(
    {
        "payment",
        "fee",
        "membership",
        "refund",
        "charge",
        "interest",
        "annual",
        "monthly",
        "subscription",
        "autopay",
        "transfer",
        "deposit",
        "withdrawal",
        "credit",
        "debit",
        "recurring",
        "purchase",
        "bill",
        "invoice",
    }
)

_COMPANY_SUFFIXES: Final[frozenset[str]] = frozenset({"inc", "llc", "ltd", "corp", "co"})

_ORDER_SUFFIX_RE = re.compile(r"#\d+.*$", re.DOTALL)
_HASH_TOKEN_RE = re.compile(r"#\w+")
_DOLLAR_AMOUNT_RE = re.compile(r"\$[\d,.]+")
_NON_LETTER_RE = re.compile(r"[^a-z\s]+")
_PROCESSOR_PREFIX_RE = re.compile(r"^\s*[a-z]{2,4}\s*\*\s*", re.IGNORECASE)
_DISPLAY_CUT_RE = re.compile(r"[#*\d]")

_RULE_FALLBACK_LEN = 20
_RULE_MERCHANT_WORDS = 3
_RULE_MAX_WORDS = 4
_RULE_PLAIN_WORDS = 2


def _letter_words(text: str) -> list[str]:
    cleaned = _NON_LETTER_RE.sub(" ", text)
    return [w for w in cleaned.split() if w not in _COMPANY_SUFFIXES]


def coarse_key(description: str, *, words: int = 1) -> str:
    """Return the coarse merchant key (first ``words`` words).

    >>> coarse_key("STARBUCKS #1234 SEATTLE")
    'starbucks'
    >>> coarse_key("NETFLIX.COM", words=2)
    'netflix com'
    """

    s = description.lower().split("*", 1)[0]
    s = _ORDER_SUFFIX_RE.sub("", s)
    return " ".join(_letter_words(s)[:words])


def cache_key(description: str) -> str:
    return coarse_key(description, words=1)


def recurring_key(description: str) -> str:
    return coarse_key(description, words=2)


def rule_key(description: str) -> str:
    """Return the context-preserving key used for learned rules.

    Without context words the key is the first two merchant words. With
    context words it is the first three words plus every context word, in
    order, de-duplicated and capped at four words. Descriptions with no
    letters at all fall back to their first 20 lowercase characters.
    """

    s = description.lower()
    s = _HASH_TOKEN_RE.sub(" ", s)
    s = _DOLLAR_AMOUNT_RE.sub(" ", s)
    words = _letter_words(s)
    if not words:
        return description.strip().lower()[:_RULE_FALLBACK_LEN].strip()

    context = [w for w in words if w in CONTEXT_KEYWORDS]
    if context:
        merged = dict.fromkeys(words[:_RULE_MERCHANT_WORDS] + context)
        return " ".join(list(merged)[:_RULE_MAX_WORDS])
    return " ".join(words[:_RULE_PLAIN_WORDS])


def display_merchant(description: str) -> str:
    """Clean a raw description into a human-readable merchant name.

    A short processor prefix (``SQ *``, ``TST*``) is removed and the name is
    cut at the first ``#``, ``*`` or digit: ``"SQ *ALIAS COFFEE"`` becomes
    ``"ALIAS COFFEE"`` and ``"PLANET FITNESS #123"`` becomes
    ``"PLANET FITNESS"``.
    """

    original = " ".join(description.split())
    s = _PROCESSOR_PREFIX_RE.sub("", original)
    s = _DISPLAY_CUT_RE.split(s, maxsplit=1)[0]
    s = " ".join(s.split()).strip(" -.,/")
    return s or original


__all__ = [
    "CONTEXT_KEYWORDS",
    "cache_key",
    "coarse_key",
    "display_merchant",
    "recurring_key",
    "rule_key",
]
