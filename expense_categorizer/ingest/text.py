"""CSV and plain-text statement parser.

Input is whatever a user uploads or pastes: a bank CSV export with or without
a header row, or loosely delimited text copied from a statement page. The
parser tries CSV first (stdlib :mod:`csv`, RFC 4180 quoting) and falls back to
line-by-line tab/comma splitting when CSV mode yields no transactions.

Column detection
----------------
With a header row, columns are picked by name:

- date: a cell containing ``date`` or ``posted`` (a *transaction* date wins
  over a posted date);
- amount: ``amount`` first, then ``debit``/``credit``, then ``sum`` or exactly
  ``total``. A ``balance`` column is never treated as the amount;
- description: exactly ``payee`` or ``merchant name`` first, then anything
  containing ``desc``, ``merchant`` or ``transaction`` (but not date/amount);
- bank extras: exact ``category`` and ``type``/``transaction type``, and
  separate ``debit`` + ``credit`` columns (amount = credit - debit).

Without a header, the Wells Fargo layout (``date, amount, *, , description``)
is recognized; otherwise columns are positional ``[date, description, amount]``.

Rows missing a field, or whose amount or date cannot be parsed, are reported as
``"Row N: <reason>"`` where N is the 1-based line in the source, and skipped.
"""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from io import StringIO

from ..logging_setup import get_logger
from ..models import ParseResult, Transaction
from .utils import parse_amount, parse_date

_logger = get_logger("expense_categorizer.ingest.text")

_LIKELY_DATE_RES = (
    re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}$"),
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    re.compile(r"^\d{1,2}-\d{1,2}-\d{2,4}$"),
)


@dataclass(slots=True)
class ColumnLayout:
    """Resolved column indices for one CSV layout."""

    date: int
    description: int
    amount: int | None
    category: int | None = None
    transaction_type: int | None = None
    debit: int | None = None
    credit: int | None = None
    wells_fargo: bool = False

    @property
    def has_debit_credit(self) -> bool:
        return self.debit is not None and self.credit is not None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_transactions(text: str) -> ParseResult:
    """Parse CSV or delimited plain text into canonical transactions."""

    trimmed = text.strip()
    if not trimmed:
        return ParseResult(errors=["Input is empty"])

    result = _parse_csv(trimmed)
    if result.transactions:
        _logger.debug(
            "parse_transactions:csv format=%s transactions=%d errors=%d",
            result.format,
            len(result.transactions),
            len(result.errors),
        )
        return result

    fallback = _parse_plain_text(trimmed)
    _logger.debug(
        "parse_transactions:plain_text transactions=%d errors=%d",
        len(fallback.transactions),
        len(fallback.errors),
    )
    return fallback


def is_header_row(row: list[str]) -> bool:
    cells = [c.strip().lower() for c in row]
    has_date = any("date" in c for c in cells)
    has_description = any(("desc" in c or "merchant" in c or "transaction" in c) for c in cells)
    has_amount = any(("amount" in c or "sum" in c or "total" in c) for c in cells)
    has_debit_credit = "debit" in cells and "credit" in cells
    return has_date and has_description and (has_amount or has_debit_credit)


def detect_columns(row: list[str]) -> ColumnLayout:
    """Resolve a :class:`ColumnLayout` from a header (or first data) row."""

    date_idx = -1
    amount_idx = -1
    desc_idx = -1
    category_idx: int | None = None
    type_idx: int | None = None
    debit_idx: int | None = None
    credit_idx: int | None = None

    for idx, raw in enumerate(row):
        cell = raw.strip().lower()

        if "date" in cell or "posted" in cell:
            if date_idx == -1 or "transaction" in cell:
                date_idx = idx

        if "amount" in cell:
            amount_idx = idx
        elif "debit" in cell or "credit" in cell:
            if amount_idx == -1:
                amount_idx = idx
        elif "sum" in cell or cell == "total":
            if amount_idx == -1:
                amount_idx = idx

        if cell in ("payee", "merchant name"):
            desc_idx = idx
        elif "desc" in cell or "merchant" in cell or (
            "transaction" in cell and "date" not in cell and "amount" not in cell
        ):
            if desc_idx == -1 or "payee" not in row[desc_idx].lower():
                desc_idx = idx

        if cell == "category":
            category_idx = idx
        if cell in ("type", "transaction type"):
            type_idx = idx
        if cell == "debit":
            debit_idx = idx
        if cell == "credit":
            credit_idx = idx

    has_debit_credit = debit_idx is not None and credit_idx is not None

    if amount_idx == -1 and not has_debit_credit:
        for idx, raw in enumerate(row):
            cell = raw.strip().lower()
            if "account" in cell or "balance" in cell or "card" in cell:
                continue
            if _is_likely_amount(raw):
                amount_idx = idx
                break

    if date_idx == -1 or desc_idx == -1 or amount_idx == -1:
        wells_fargo = _detect_wells_fargo(row)
        if wells_fargo is not None:
            return wells_fargo

    if amount_idx == -1:
        amount: int | None = None if has_debit_credit else 2
    else:
        amount = amount_idx

    return ColumnLayout(
        date=0 if date_idx == -1 else date_idx,
        description=1 if desc_idx == -1 else desc_idx,
        amount=amount,
        category=category_idx,
        transaction_type=type_idx,
        debit=debit_idx,
        credit=credit_idx,
    )


# ---------------------------------------------------------------------------
# CSV mode
# ---------------------------------------------------------------------------


def _parse_csv(text: str) -> ParseResult:
    try:
        rows = [row for row in csv.reader(StringIO(text)) if any(c.strip() for c in row)]
    except csv.Error as exc:
        return ParseResult(errors=[f"CSV parse error: {exc}"])
    if not rows:
        return ParseResult(errors=["No data found"])

    has_header = is_header_row(rows[0])
    data_rows = rows[1:] if has_header else rows
    if not data_rows:
        return ParseResult(errors=["No data rows found after header"])
    layout = detect_columns(rows[0] if has_header else data_rows[0])
    row_offset = 2 if has_header else 1

    result = ParseResult(format=_format_tag(layout, has_header))
    for index, row in enumerate(data_rows):
        try:
            result.transactions.append(_parse_row(row, layout))
        except ValueError as exc:
            result.errors.append(f"Row {index + row_offset}: {exc}")

    result.has_categories = layout.category is not None and any(
        t.original_category for t in result.transactions
    )
    return result


def _format_tag(layout: ColumnLayout, has_header: bool) -> str:
    if layout.wells_fargo:
        return "wells-fargo"
    if layout.has_debit_credit:
        return "capital-one"
    if has_header and layout.category is not None and layout.transaction_type is not None:
        return "chase"
    return "generic-csv"


# ---------------------------------------------------------------------------
# Plain-text mode
# ---------------------------------------------------------------------------


def _parse_plain_text(text: str) -> ParseResult:
    result = ParseResult(format="plain-text")
    layout = ColumnLayout(date=0, description=1, amount=2)
    lines = [line for line in text.splitlines() if line.strip()]
    for index, line in enumerate(lines, start=1):
        parts = [p.strip() for p in line.split("\t" if "\t" in line else ",")]
        if len(parts) < 3:
            result.errors.append(
                f"Line {index}: Not enough columns (expected 3, got {len(parts)})"
            )
            continue
        try:
            result.transactions.append(_parse_row(parts, layout))
        except ValueError as exc:
            result.errors.append(f"Line {index}: {exc}")
    return result


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def _cell(row: list[str], idx: int | None) -> str:
    if idx is None or idx < 0 or idx >= len(row):
        return ""
    return row[idx].strip()


def _parse_row(row: list[str], layout: ColumnLayout) -> Transaction:
    date_raw = _cell(row, layout.date)
    description = _cell(row, layout.description)

    if layout.has_debit_credit:
        debit_raw = _cell(row, layout.debit)
        credit_raw = _cell(row, layout.credit)
        if not debit_raw and not credit_raw:
            raise ValueError("Missing amount (debit and credit are both empty)")
        debit = parse_amount(debit_raw) if debit_raw else 0.0
        credit = parse_amount(credit_raw) if credit_raw else 0.0
        amount = credit - abs(debit)
    else:
        amount_raw = _cell(row, layout.amount)
        if not amount_raw:
            raise ValueError("Missing amount")
        amount = parse_amount(amount_raw)

    if not date_raw:
        raise ValueError("Missing date")
    if not description:
        raise ValueError("Missing description")

    return Transaction(
        date=parse_date(date_raw),
        description=description,
        amount=amount,
        original_category=_cell(row, layout.category) or None,
        transaction_type=_cell(row, layout.transaction_type) or None,
    )


def _is_likely_date(value: str) -> bool:
    s = value.strip()
    return any(p.match(s) for p in _LIKELY_DATE_RES)


def _is_likely_amount(value: str) -> bool:
    cleaned = value.strip().replace("$", "").replace(",", "")
    if not cleaned:
        return False
    try:
        float(cleaned)
    except ValueError:
        return False
    return cleaned.lower() not in ("nan", "inf", "-inf", "infinity", "-infinity")


def _detect_wells_fargo(row: list[str]) -> ColumnLayout | None:
    if len(row) < 5:
        return None
    if not _is_likely_date(row[0]) or not _is_likely_amount(row[1]):
        return None
    flag = row[2].strip()
    if not flag or len(flag) > 3:
        return None
    for idx in range(len(row) - 1, -1, -1):
        cell = row[idx].strip()
        if len(cell) > 5 and not _is_likely_amount(cell) and not _is_likely_date(cell):
            return ColumnLayout(date=0, description=idx, amount=1, wells_fargo=True)
    return None


__all__ = ["ColumnLayout", "detect_columns", "is_header_row", "parse_transactions"]
