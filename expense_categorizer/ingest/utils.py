"""Amount and date normalization shared by the format parsers.

Both helpers raise ``ValueError`` with a short, user-facing reason; parsers
turn that into a row-indexed error message rather than aborting the file.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

_CURRENCY_SYMBOLS = "$€£¥"

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")
_DASH_US_DATE_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_TEXT_DATE_FORMATS = ("%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d %B %Y", "%b %d %Y")


def parse_amount(raw: str | None) -> float:
    """Parse a bank-export amount cell into a signed float.

    Handles a leading ``+``/``-``, parenthesized negatives such as
    ``"(123.45)"``, the currency symbols ``$ € £ ¥`` in any position before
    the digits, and comma thousands separators.
    """

    if raw is None:
        raise ValueError("amount is required")
    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")

    negative = False
    # Markers may come in any order, e.g. "-$(1,234.56)" or "$-5".
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s and s[0] in _CURRENCY_SYMBOLS:
            s = s[1:].lstrip()
            changed = True
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").strip()
    # Trailing currency symbol ("12.50 €")
    s = s.rstrip(_CURRENCY_SYMBOLS).strip()
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {raw.strip()!r}") from exc
    value = float(-abs(d) if negative else d)
    if not math.isfinite(value):
        raise ValueError(f"Invalid amount: {raw.strip()!r}")
    return value


def _iso(year: int, month: int, day: int, raw: str) -> str:
    try:
        return date(year, month, day).isoformat()
    except ValueError as exc:
        raise ValueError(f"Invalid date: {raw!r}") from exc


def parse_date(raw: str | None) -> str:
    """Normalize a date cell to ``YYYY-MM-DD``.

    Accepted forms: ``YYYY-MM-DD``, ``MM/DD/YYYY``, ``M/D/YY`` (two-digit
    years are 20YY), ``MM-DD-YYYY``, ``Jan 15, 2024``, ``15 Jan 2024`` and
    ISO date-times (the date part is kept).
    """

    if raw is None:
        raise ValueError("date is required")
    s = raw.strip()
    if not s:
        raise ValueError("date is empty")

    m = _ISO_DATE_RE.match(s)
    if m:
        return _iso(int(m.group(1)), int(m.group(2)), int(m.group(3)), s)

    m = _SLASH_DATE_RE.match(s)
    if m:
        year = int(m.group(3))
        if len(m.group(3)) == 2:
            year += 2000
        return _iso(year, int(m.group(1)), int(m.group(2)), s)

    m = _DASH_US_DATE_RE.match(s)
    if m:
        return _iso(int(m.group(3)), int(m.group(1)), int(m.group(2)), s)

    try:
        return datetime.fromisoformat(s).date().isoformat()
    except ValueError:
        pass

    for fmt in _TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue

    raise ValueError(f"Invalid date: {s!r}")


__all__ = ["parse_amount", "parse_date"]
