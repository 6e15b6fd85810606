"""Prompt construction for the batch transaction classifier.

This module builds:
- the system instructions (vocabulary, payment/transfer rules and merchant
  hints);
- the user content, a JSON array of ``{idx, description, amount}`` objects
  between ``BEGIN_TRANSACTIONS_JSON`` / ``END_TRANSACTIONS_JSON`` markers;
- the strict ``json_schema`` response format for the OpenAI Responses API,
  whose ``categories`` array is constrained to the vocabulary.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

BEGIN_MARKER = "BEGIN_TRANSACTIONS_JSON"
END_MARKER = "END_TRANSACTIONS_JSON"

_DOMAIN_RULES = (
    "Payments versus transfers:",
    '- "Payment Thank You" and other credit card payments are Payment, never Income.',
    "- Loan and mortgage payments are Payment.",
    "- Venmo, Zelle, Cash App and transfers between accounts are Transfer.",
    "- Refunds, salary and direct deposits are Income.",
    "",
    "Merchant hints:",
    "- Walmart, Target, Costco, Sam's Club: Groceries unless clearly something else.",
    "- DoorDash, Uber Eats, Grubhub, restaurants, fast food, Starbucks, coffee shops: "
    "Food & Dining.",
    "- Gas stations (Shell, Exxon, Sunoco), E-ZPass, tolls, parking, Uber, Lyft: "
    "Transportation.",
    "- Spectrum, Verizon, AT&T, electric, water, insurance: Bills & Utilities.",
    "- Amazon: Shopping, or Groceries when it is clearly food.",
    "- Airlines, hotels, Airbnb: Travel.",
    "- CVS, pharmacies, doctors, dental: Healthcare.",
    "- Netflix, Spotify, Hulu, Disney+: Entertainment.",
)


def serialize_items(items: Sequence[tuple[str, float]]) -> str:
    """Serialize ``(description, amount)`` pairs with their position as ``idx``."""

    payload: list[dict[str, Any]] = [
        {"idx": i, "description": description, "amount": amount}
        for i, (description, amount) in enumerate(items)
    ]
    return json.dumps(payload, ensure_ascii=False)


def build_system_instructions(categories: Sequence[str]) -> str:
    lines = [
        "You are a personal finance expert who categorizes bank and credit card "
        "transactions for budgeting.",
        "Assign exactly one category to every transaction, using only these labels: "
        + ", ".join(categories)
        + ".",
        "Negative amounts are money spent; positive amounts are money received.",
        "",
        *_DOMAIN_RULES,
        "",
        "Return JSON matching the schema: a 'categories' array with one label per "
        "transaction, in the same order as the input and with the same length.",
    ]
    return "\n".join(lines)


def build_user_content(items_json: str) -> str:
    return (
        f"Categorize each of the following transactions.\n\n"
        f"{BEGIN_MARKER}\n{items_json}\n{END_MARKER}"
    )


def build_response_format(categories: Sequence[str]) -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON-schema response format.

    Schema shape::

        {"categories": ["<label>", ...]}

    with every label constrained to ``categories``.
    """

    labels = [c for c in dict.fromkeys(categories) if c]
    if not labels:
        raise ValueError("categories must contain at least one label")

    return {
        "type": "json_schema",
        "name": "transaction_categories",
        "schema": {
            "type": "object",
            "properties": {
                "categories": {
                    "type": "array",
                    "items": {"type": "string", "enum": labels},
                }
            },
            "required": ["categories"],
            "additionalProperties": False,
        },
        "strict": True,
    }


__all__ = [
    "BEGIN_MARKER",
    "END_MARKER",
    "build_response_format",
    "build_system_instructions",
    "build_user_content",
    "serialize_items",
]
