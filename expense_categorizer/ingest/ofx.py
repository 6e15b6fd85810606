"""OFX / QFX statement parser.

Handles both the SGML flavour (``OFXHEADER:100`` with unclosed leaf tags) and
the XML flavour. Only the ``<STMTTRN>`` blocks matter: each one becomes a
transaction with

- ``DTPOSTED``: ``YYYYMMDD[HHMMSS][.fff][tz]``, truncated to the date;
- ``TRNAMT``: signed amount as exported by the bank;
- ``NAME`` (falling back to ``MEMO``): description;
- ``TRNTYPE``: kept as the bank-native transaction type.

A block with an unusable date or amount yields ``"Row N: <reason>"`` and is
skipped; the file as a whole is rejected only when it lacks OFX markers or has
no ``STMTTRN`` blocks at all.
"""

from __future__ import annotations

import math
import re
from datetime import date

from ..logging_setup import get_logger
from ..models import ParseResult, Transaction

_logger = get_logger("expense_categorizer.ingest.ofx")

_STMTTRN_RE = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)
_OFX_MARKERS = ("<OFX>", "OFXHEADER:", "DATA:OFXSGML", "<STMTTRN>")

_STRUCTURE_ERRORS = (
    "Invalid OFX file structure",
    "Could not find OFX transaction data",
    "Tip: Make sure this is a valid OFX or QFX file from your bank",
)


def is_ofx(content: str) -> bool:
    """Return True when ``content`` carries any OFX structural marker."""

    upper = content.upper()
    return any(marker in upper for marker in _OFX_MARKERS)


def parse_ofx_date(raw: str) -> str:
    """Convert an OFX timestamp to ``YYYY-MM-DD``.

    ``"20240115120000.000[-5:EST]"`` -> ``"2024-01-15"``.
    """

    core = raw.strip().split("[", 1)[0].split(".", 1)[0]
    digits = core[:8]
    if len(digits) < 8 or not digits.isdigit():
        raise ValueError(f"Invalid date format: {raw.strip()}")
    year, month, day = int(digits[:4]), int(digits[4:6]), int(digits[6:8])
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        raise ValueError(f"Invalid date format: {raw.strip()}")
    try:
        return date(year, month, day).isoformat()
    except ValueError as exc:
        raise ValueError(f"Invalid date format: {raw.strip()}") from exc


def _field(block: str, tag: str) -> str | None:
    m = re.search(rf"<{tag}>([^\n<]+)", block, re.IGNORECASE)
    if m is None:
        return None
    value = m.group(1).strip()
    return value or None


def _parse_block(block: str) -> Transaction:
    posted = _field(block, "DTPOSTED")
    if posted is None:
        raise ValueError("Missing DTPOSTED (date) field")
    amount_raw = _field(block, "TRNAMT")
    if amount_raw is None:
        raise ValueError("Missing TRNAMT (amount) field")
    try:
        amount = float(amount_raw.replace(",", ""))
    except ValueError as exc:
        raise ValueError(f"Invalid amount: {amount_raw}") from exc
    if not math.isfinite(amount):
        raise ValueError(f"Invalid amount: {amount_raw}")

    description = _field(block, "NAME") or _field(block, "MEMO") or "Unknown Transaction"
    return Transaction(
        date=parse_ofx_date(posted),
        description=description,
        amount=amount,
        transaction_type=_field(block, "TRNTYPE"),
    )


def parse_ofx(content: str) -> ParseResult:
    """Parse OFX/QFX text into a :class:`ParseResult` tagged ``"ofx"``."""

    if not is_ofx(content):
        return ParseResult(errors=list(_STRUCTURE_ERRORS), format="ofx")

    blocks = _STMTTRN_RE.findall(content)
    if not blocks:
        return ParseResult(errors=["No transactions found in OFX file"], format="ofx")

    result = ParseResult(format="ofx")
    for index, block in enumerate(blocks, start=1):
        try:
            result.transactions.append(_parse_block(block))
        except ValueError as exc:
            result.errors.append(f"Row {index}: {exc}")

    if not result.transactions and not result.errors:
        result.errors.append("No valid transactions could be parsed from OFX file")

    _logger.debug(
        "parse_ofx:done blocks=%d transactions=%d errors=%d",
        len(blocks),
        len(result.transactions),
        len(result.errors),
    )
    return result


__all__ = ["is_ofx", "parse_ofx", "parse_ofx_date"]
